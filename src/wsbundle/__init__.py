"""Public package entrypoint for the workspace bundler."""

from .archive import build_archive
from .bundle import BundleRequest, BundleResult, bundle_workspace
from .closure import ResolvedDependency, WorkspacePackage, resolve_closure
from .collect import ArchiveEntry, collect_entries
from .config import WorkspaceConfig, load_config
from .depath import dep_path_to_filename
from .errors import (
    ArchiveWriteError,
    BundleError,
    ConfigError,
    FileSystemError,
    GraphInconsistencyError,
    LockfileError,
    ManifestError,
)
from .iogate import IOGate
from .policy import FilterPolicy
from .report import BundleReport

__all__ = [
    "ArchiveEntry",
    "ArchiveWriteError",
    "BundleError",
    "BundleReport",
    "BundleRequest",
    "BundleResult",
    "ConfigError",
    "FileSystemError",
    "FilterPolicy",
    "GraphInconsistencyError",
    "IOGate",
    "LockfileError",
    "ManifestError",
    "ResolvedDependency",
    "WorkspaceConfig",
    "WorkspacePackage",
    "build_archive",
    "bundle_workspace",
    "collect_entries",
    "dep_path_to_filename",
    "load_config",
    "resolve_closure",
]
