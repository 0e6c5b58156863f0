"""Restrict a lockfile to the packages needed by a set of importers."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from wsbundle.errors import GraphInconsistencyError
from wsbundle.lockfile.model import ImporterSnapshot, LockfileGraph, PackageSnapshot
from wsbundle.lockfile.resolve import dependency_key, is_link
from wsbundle.policy import DEV_SECTION, OPTIONAL_SECTION, PROD_SECTION, FilterPolicy


def filter_lockfile_by_importers(
    lockfile: LockfileGraph,
    importer_ids: Iterable[str],
    *,
    policy: FilterPolicy,
    skipped: frozenset[str] = frozenset(),
) -> LockfileGraph:
    importer_ids = list(importer_ids)
    sections = policy.sections()

    pending: list[tuple[str, str]] = []
    for importer_id in importer_ids:
        for name, spec in lockfile.importer_dependencies(importer_id, sections).items():
            if not is_link(spec):
                pending.append((dependency_key(name, spec, lockfile), importer_id))

    reached: dict[str, PackageSnapshot] = {}
    while pending:
        key, parent = pending.pop()
        if key in reached or key in skipped:
            continue
        snapshot = lockfile.packages.get(key)
        if snapshot is None:
            if policy.fail_on_missing:
                raise GraphInconsistencyError(
                    "Dependency has no snapshot in the lockfile.",
                    hint="Re-run `pnpm install` so the lockfile is consistent.",
                    context={"key": key, "required_by": parent},
                )
            continue
        reached[key] = snapshot
        children = dict(snapshot.dependencies)
        if policy.include_optional:
            children.update(snapshot.optional_dependencies)
        for name, spec in children.items():
            if not is_link(spec):
                pending.append((dependency_key(name, spec, lockfile), key))

    return LockfileGraph(
        lockfile_version=lockfile.lockfile_version,
        importers={
            importer_id: _select_sections(lockfile.importers[importer_id], policy)
            for importer_id in importer_ids
            if importer_id in lockfile.importers
        },
        packages=dict(sorted(reached.items())),
    )


def _select_sections(importer: ImporterSnapshot, policy: FilterPolicy) -> ImporterSnapshot:
    sections = policy.sections()
    return replace(
        importer,
        dependencies=importer.dependencies if PROD_SECTION in sections else {},
        dev_dependencies=importer.dev_dependencies if DEV_SECTION in sections else {},
        optional_dependencies=(
            importer.optional_dependencies if OPTIONAL_SECTION in sections else {}
        ),
    )
