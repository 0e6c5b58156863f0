"""Dependency closure of one workspace package.

The walk starts at the target importer and follows ``link:`` references to
other importers. Every importer is visited once. The target stays at the
archive root; every other importer is relocated into the shared store under a
``file:<importer-id>`` slot, next to the external packages.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from wsbundle.depath import StoreNames, importer_store_key
from wsbundle.errors import GraphInconsistencyError, ManifestError
from wsbundle.lockfile import LockfileGraph, dependency_key, is_link, link_target, name_from_snapshot
from wsbundle.manifest import manifest_name, read_manifest
from wsbundle.observability import StructuredLogger
from wsbundle.policy import FilterPolicy

MODULES_DIR = "node_modules"
ROOT_CODE_DIR = "."

DependencyKind = Literal["workspace", "external"]
ManifestReader = Callable[[Path], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class ResolvedDependency:
    """One entry of a package's modules directory.

    :ivar kind: ``workspace`` for another importer, ``external`` for a registry package.
    :ivar key: Importer id or lockfile package key.
    :ivar relative_symlink_target: Link text for ``<modules-dir>/<name>``.
    """

    kind: DependencyKind
    key: str
    relative_symlink_target: str


@dataclass(slots=True)
class WorkspacePackage:
    id: str
    source_dir: Path
    archive_code_dir: str
    archive_modules_dir: str
    name: str | None = None
    dependencies: dict[str, ResolvedDependency] = field(default_factory=dict)


def resolve_closure(
    lockfile: LockfileGraph,
    target_id: str,
    *,
    lockfile_dir: Path,
    store_root: str,
    policy: FilterPolicy | None = None,
    names: StoreNames | None = None,
    manifest_reader: ManifestReader = read_manifest,
    skipped: frozenset[str] = frozenset(),
    logger: StructuredLogger | None = None,
) -> dict[str, WorkspacePackage]:
    """Walk the workspace links reachable from ``target_id``.

    Optional packages in ``skipped`` were not installed and get no link.
    """
    policy = policy or FilterPolicy()
    names = names or StoreNames()
    sections = policy.sections()

    packages: dict[str, WorkspacePackage] = {
        target_id: WorkspacePackage(
            id=target_id,
            source_dir=lockfile_dir / target_id,
            archive_code_dir=ROOT_CODE_DIR,
            archive_modules_dir=MODULES_DIR,
        )
    }
    worklist = [target_id]

    while worklist:
        importer = packages[worklist.pop()]
        for dep_name, spec in lockfile.importer_dependencies(importer.id, sections).items():
            if is_link(spec):
                linked_id = _linked_importer_id(importer.id, spec)
                linked = packages.get(linked_id)
                if linked is None:
                    linked = _relocated_package(
                        linked_id,
                        lockfile_dir=lockfile_dir,
                        store_root=store_root,
                        names=names,
                        manifest_reader=manifest_reader,
                        required_by=importer.id,
                    )
                    packages[linked_id] = linked
                    worklist.append(linked_id)
                importer.dependencies[dep_name] = ResolvedDependency(
                    kind="workspace",
                    key=linked_id,
                    relative_symlink_target=_relative_target(importer, dep_name, linked.archive_code_dir),
                )
            else:
                key = dependency_key(dep_name, spec, lockfile)
                if key in skipped:
                    continue
                location = posixpath.join(
                    store_root,
                    names.encode(key),
                    MODULES_DIR,
                    name_from_snapshot(key, lockfile),
                )
                importer.dependencies[dep_name] = ResolvedDependency(
                    kind="external",
                    key=key,
                    relative_symlink_target=_relative_target(importer, dep_name, location),
                )

        if logger is not None:
            logger.log(
                operation="resolve",
                phase="closure",
                importer=importer.id,
                message="Resolved importer dependencies.",
                extra={
                    "code_dir": importer.archive_code_dir,
                    "dependencies": len(importer.dependencies),
                },
            )

    return packages


def external_keys(packages: Mapping[str, WorkspacePackage]) -> set[str]:
    return {
        dep.key
        for package in packages.values()
        for dep in package.dependencies.values()
        if dep.kind == "external"
    }


def _linked_importer_id(importer_id: str, spec: str) -> str:
    linked_id = posixpath.normpath(posixpath.join(importer_id, link_target(spec)))
    if linked_id == ".." or linked_id.startswith("../") or posixpath.isabs(linked_id):
        raise GraphInconsistencyError(
            "Workspace link points outside the workspace.",
            context={"importer": importer_id, "link": spec},
        )
    return linked_id


def _relocated_package(
    importer_id: str,
    *,
    lockfile_dir: Path,
    store_root: str,
    names: StoreNames,
    manifest_reader: ManifestReader,
    required_by: str,
) -> WorkspacePackage:
    source_dir = lockfile_dir / importer_id
    try:
        name = manifest_name(manifest_reader(source_dir), source=str(source_dir))
    except ManifestError as exc:
        raise GraphInconsistencyError(
            "Workspace link points to a directory without a readable manifest.",
            hint=str(exc),
            context={"importer": importer_id, "required_by": required_by},
        ) from exc
    modules_dir = posixpath.join(store_root, names.encode(importer_store_key(importer_id)), MODULES_DIR)
    return WorkspacePackage(
        id=importer_id,
        source_dir=source_dir,
        archive_code_dir=posixpath.join(modules_dir, name),
        archive_modules_dir=modules_dir,
        name=name,
    )


def _relative_target(importer: WorkspacePackage, dep_name: str, location: str) -> str:
    link_dir = posixpath.normpath(posixpath.join(importer.archive_modules_dir, dep_name, ".."))
    return posixpath.relpath(location, link_dir)
