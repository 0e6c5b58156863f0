"""Lockfile model, reader, and graph helpers."""

from .filter import filter_lockfile_by_importers
from .io import LOCKFILE_NAME, ROOT_IMPORTER, parse_lockfile, read_lockfile, read_skipped
from .model import ImporterSnapshot, LockfileGraph, PackageSnapshot
from .resolve import dependency_key, is_link, link_target, name_from_snapshot

__all__ = [
    "LOCKFILE_NAME",
    "ROOT_IMPORTER",
    "ImporterSnapshot",
    "LockfileGraph",
    "PackageSnapshot",
    "dependency_key",
    "filter_lockfile_by_importers",
    "is_link",
    "link_target",
    "name_from_snapshot",
    "parse_lockfile",
    "read_lockfile",
    "read_skipped",
]
