"""Dependency key and package name lookups over a lockfile graph."""

from __future__ import annotations

from wsbundle.depath import parse_dep_key
from wsbundle.errors import GraphInconsistencyError
from wsbundle.lockfile.model import LockfileGraph

LINK_PREFIX = "link:"


def is_link(spec: str) -> bool:
    return spec.startswith(LINK_PREFIX)


def link_target(spec: str) -> str:
    return spec[len(LINK_PREFIX) :]


def dependency_key(name: str, spec: str, lockfile: LockfileGraph) -> str:
    """Normalize an importer or snapshot dependency spec to a package key.

    A spec is either a version (the key is implied by the dependency name) or
    a full key, as for aliased dependencies.
    """
    separator = "@" if lockfile.major_version >= 6 else "/"
    implied = f"/{name}{separator}{spec}"
    if spec.startswith("/"):
        return spec
    if spec in lockfile.packages:
        if implied in lockfile.packages:
            raise GraphInconsistencyError(
                "Dependency spec matches two lockfile snapshots.",
                hint="The spec reads both as a full key and as a version of the dependency.",
                context={"dependency": name, "spec": spec, "candidates": f"{spec}, {implied}"},
            )
        return spec
    return implied


def name_from_snapshot(key: str, lockfile: LockfileGraph) -> str:
    snapshot = lockfile.packages.get(key)
    if snapshot is None:
        raise GraphInconsistencyError(
            "Dependency has no snapshot in the lockfile.",
            hint="Re-run `pnpm install` so the lockfile is consistent.",
            context={"key": key},
        )
    if snapshot.name:
        return snapshot.name
    return parse_dep_key(key)[0]
