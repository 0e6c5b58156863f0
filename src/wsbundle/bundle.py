"""End-to-end bundling of one workspace package and its dependency closure."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from wsbundle.archive import DEFAULT_OUTPUT, build_archive
from wsbundle.closure import MODULES_DIR, WorkspacePackage, external_keys, resolve_closure
from wsbundle.collect import PublishableLister, collect_entries
from wsbundle.config import WorkspaceConfig
from wsbundle.depath import StoreNames
from wsbundle.errors import GraphInconsistencyError
from wsbundle.iogate import IOGate
from wsbundle.lockfile import ROOT_IMPORTER, filter_lockfile_by_importers, read_lockfile, read_skipped
from wsbundle.observability import StructuredLogger
from wsbundle.packlist import list_publishable_files
from wsbundle.policy import FilterPolicy
from wsbundle.report import BundleReport


@dataclass(frozen=True, slots=True)
class BundleRequest:
    importer_id: str = ROOT_IMPORTER
    output: Path = Path(DEFAULT_OUTPUT)
    policy: FilterPolicy = field(default_factory=FilterPolicy)


@dataclass(frozen=True, slots=True)
class BundleResult:
    output: Path
    packages: dict[str, WorkspacePackage]
    report: BundleReport


def normalize_importer_id(importer_id: str) -> str:
    normalized = posixpath.normpath(importer_id.replace("\\", "/"))
    if normalized == ".." or normalized.startswith("../") or posixpath.isabs(normalized):
        raise GraphInconsistencyError(
            "Target package must live inside the workspace.",
            context={"importer": importer_id},
        )
    return normalized


def bundle_workspace(
    config: WorkspaceConfig,
    request: BundleRequest,
    *,
    lister: PublishableLister = list_publishable_files,
    logger: StructuredLogger | None = None,
) -> BundleResult:
    logger = logger if logger is not None else StructuredLogger()
    target_id = normalize_importer_id(request.importer_id)
    lockfile = read_lockfile(config.lockfile_dir)
    if target_id not in lockfile.importers:
        logger.log(
            operation="resolve",
            phase="closure",
            importer=target_id,
            message="Target package has no lockfile entry; bundling it without dependencies.",
            level="warning",
        )

    names = StoreNames()
    skipped = read_skipped(config.lockfile_dir / MODULES_DIR)
    packages = resolve_closure(
        lockfile,
        target_id,
        lockfile_dir=config.lockfile_dir,
        store_root=config.virtual_store_dir,
        policy=request.policy,
        names=names,
        skipped=skipped,
        logger=logger,
    )
    filtered = filter_lockfile_by_importers(lockfile, packages, policy=request.policy, skipped=skipped)
    package_keys = sorted(set(filtered.packages) | external_keys(packages))
    package_dirs = [posixpath.join(config.virtual_store_dir, names.encode(key)) for key in package_keys]

    with IOGate(config.io_capacity) as gate:
        entries = collect_entries(
            gate,
            packages,
            base_dir=config.lockfile_dir,
            package_dirs=package_dirs,
            lister=lister,
            logger=logger,
        )
        archive_sha256 = build_archive(entries, request.output, gate=gate)

    logger.log(
        operation="archive",
        phase="write",
        importer=target_id,
        message="Wrote bundle archive.",
        extra={"path": str(request.output), "entries": len(entries), "sha256": archive_sha256},
    )
    report = BundleReport(
        target=target_id,
        importers=tuple(packages),
        external_packages=tuple(package_keys),
        entry_count=len(entries),
        archive_sha256=archive_sha256,
    )
    return BundleResult(output=Path(request.output), packages=packages, report=report)
