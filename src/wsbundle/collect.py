"""Collect the files and symlinks that make up a bundle."""

from __future__ import annotations

import posixpath
import stat
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from wsbundle.closure import WorkspacePackage
from wsbundle.iogate import DirEntry, IOGate
from wsbundle.manifest import MANIFEST_NAME, bundled_manifest, parse_manifest, serialize_manifest
from wsbundle.observability import StructuredLogger
from wsbundle.packlist import list_publishable_files

EntryType = Literal["file", "symlink"]
PublishableLister = Callable[[Path], list[str]]


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """A file or symlink at ``path``, relative to the archive root.

    Files carry either a ``source`` to copy or inline ``content``. Symlinks carry
    ``link_target`` verbatim; it is never resolved.
    """

    kind: EntryType
    path: str
    source: Path | None = None
    content: bytes | None = None
    link_target: str | None = None

    @classmethod
    def file(cls, path: str, source: Path) -> ArchiveEntry:
        return cls(kind="file", path=path, source=source)

    @classmethod
    def inline(cls, path: str, content: bytes) -> ArchiveEntry:
        return cls(kind="file", path=path, content=content)

    @classmethod
    def symlink(cls, path: str, target: str) -> ArchiveEntry:
        return cls(kind="symlink", path=path, link_target=target)


def list_external_files(gate: IOGate, base_dir: Path, package_dirs: Iterable[str]) -> list[ArchiveEntry]:
    """Recursively list each package directory, relative to ``base_dir``.

    Symlinks are recorded with their raw link text and never followed. A
    package directory that is itself a symlink becomes a single symlink entry.
    """
    roots = sorted(set(package_dirs))
    root_stats = [(rel, gate.lstat(base_dir / rel)) for rel in roots]

    listings: deque[tuple[str, Future[list[DirEntry]]]] = deque()
    links: list[tuple[str, Future[str]]] = []
    entries: list[ArchiveEntry] = []

    for rel, pending_stat in root_stats:
        if stat.S_ISLNK(pending_stat.result().st_mode):
            links.append((rel, gate.readlink(base_dir / rel)))
        else:
            listings.append((rel, gate.readdir(base_dir / rel)))

    while listings:
        rel_dir, pending_listing = listings.popleft()
        for item in pending_listing.result():
            rel = posixpath.join(rel_dir, item.name)
            if item.kind == "symlink":
                links.append((rel, gate.readlink(base_dir / rel)))
            elif item.kind == "dir":
                listings.append((rel, gate.readdir(base_dir / rel)))
            elif item.kind == "file":
                entries.append(ArchiveEntry.file(rel, base_dir / rel))

    entries.extend(ArchiveEntry.symlink(rel, pending_link.result()) for rel, pending_link in links)
    entries.sort(key=lambda entry: entry.path)
    return entries


def list_workspace_files(
    gate: IOGate,
    packages: Mapping[str, WorkspacePackage],
    *,
    lister: PublishableLister = list_publishable_files,
) -> list[ArchiveEntry]:
    """List publishable files and dependency symlinks of every workspace package.

    The manifest at the archive root is rewritten inline without
    ``dependencies``; relocated manifests are copied unchanged. Every listed
    source must exist.
    """
    entries: list[ArchiveEntry] = []
    for package in packages.values():
        listed = [
            (posixpath.normpath(posixpath.join(package.archive_code_dir, rel)), rel)
            for rel in lister(package.source_dir)
        ]
        # the root manifest is read for rewriting, every other file is only checked here
        pending: list[Future[Any]] = [
            gate.read_file(package.source_dir / rel)
            if archive_path == MANIFEST_NAME
            else gate.stat(package.source_dir / rel)
            for archive_path, rel in listed
        ]
        for (archive_path, rel), result in zip(listed, pending, strict=True):
            source = package.source_dir / rel
            if archive_path == MANIFEST_NAME:
                manifest = parse_manifest(result.result(), source=str(source))
                entries.append(ArchiveEntry.inline(archive_path, serialize_manifest(bundled_manifest(manifest))))
            else:
                result.result()
                entries.append(ArchiveEntry.file(archive_path, source))

        for dep_name, dep in sorted(package.dependencies.items()):
            entries.append(
                ArchiveEntry.symlink(
                    posixpath.join(package.archive_modules_dir, dep_name),
                    dep.relative_symlink_target,
                )
            )
    return entries


def collect_entries(
    gate: IOGate,
    packages: Mapping[str, WorkspacePackage],
    *,
    base_dir: Path,
    package_dirs: Iterable[str],
    lister: PublishableLister = list_publishable_files,
    logger: StructuredLogger | None = None,
) -> list[ArchiveEntry]:
    """Run the external and workspace listings side by side; external entries come first."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="wsbundle-collect") as pool:
        external = pool.submit(list_external_files, gate, base_dir, list(package_dirs))
        workspace = pool.submit(list_workspace_files, gate, packages, lister=lister)
        external_entries = external.result()
        workspace_entries = workspace.result()

    if logger is not None:
        logger.log(
            operation="collect",
            phase="external",
            importer=None,
            message="Listed external package files.",
            extra={"entries": len(external_entries)},
        )
        logger.log(
            operation="collect",
            phase="workspace",
            importer=None,
            message="Listed workspace package files.",
            extra={"entries": len(workspace_entries), "importers": len(packages)},
        )
    return external_entries + workspace_entries
