"""Lockfile reader."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from wsbundle.errors import LockfileError
from wsbundle.lockfile.model import ImporterSnapshot, LockfileGraph, PackageSnapshot

LOCKFILE_NAME = "pnpm-lock.yaml"
MODULES_MANIFEST = ".modules.yaml"
ROOT_IMPORTER = "."


def read_lockfile(lockfile_dir: str | Path) -> LockfileGraph:
    lock_path = Path(lockfile_dir) / LOCKFILE_NAME
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Lockfile does not exist.",
            hint="Run `pnpm install` in the workspace before bundling.",
            context={"path": str(lock_path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LockfileError("Unable to read lockfile.", context={"path": str(lock_path)}) from exc
    return parse_lockfile(raw)


def parse_lockfile(raw: str) -> LockfileGraph:
    try:
        payload = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise LockfileError("Invalid lockfile YAML.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise LockfileError("Invalid lockfile payload type.")

    version = payload.get("lockfileVersion")
    if not isinstance(version, (str, int, float)):
        raise LockfileError("Invalid lockfile `lockfileVersion` value.")

    importers_raw = payload.get("importers")
    if importers_raw is None:
        # single-project lockfile: the root importer lives at the top level
        importers_raw = {ROOT_IMPORTER: payload}
    if not isinstance(importers_raw, dict):
        raise LockfileError("Invalid lockfile `importers` value.")

    packages_raw = payload.get("packages") or {}
    if not isinstance(packages_raw, dict):
        raise LockfileError("Invalid lockfile `packages` value.")

    return LockfileGraph(
        lockfile_version=str(version),
        importers={
            str(importer_id): _parse_importer(str(importer_id), item)
            for importer_id, item in importers_raw.items()
        },
        packages={str(key): _parse_package(str(key), item) for key, item in packages_raw.items()},
    )


def read_skipped(modules_dir: str | Path) -> frozenset[str]:
    """Return the keys of optional packages that were skipped at install time."""
    path = Path(modules_dir) / MODULES_MANIFEST
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return frozenset()
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise LockfileError("Unable to read modules manifest.", context={"path": str(path)}) from exc
    if not isinstance(payload, dict):
        return frozenset()
    skipped = payload.get("skipped") or []
    if not isinstance(skipped, list):
        raise LockfileError("Invalid modules manifest `skipped` value.", context={"path": str(path)})
    return frozenset(str(item) for item in skipped)


def _parse_importer(importer_id: str, item: Any) -> ImporterSnapshot:
    if item is None:
        return ImporterSnapshot()
    if not isinstance(item, dict):
        raise LockfileError("Invalid importer entry in lockfile.", context={"importer": importer_id})
    return ImporterSnapshot(
        dependencies=_dependency_map(item, "dependencies", owner=importer_id),
        dev_dependencies=_dependency_map(item, "devDependencies", owner=importer_id),
        optional_dependencies=_dependency_map(item, "optionalDependencies", owner=importer_id),
    )


def _parse_package(key: str, item: Any) -> PackageSnapshot:
    if item is None:
        item = {}
    if not isinstance(item, dict):
        raise LockfileError("Invalid package entry in lockfile.", context={"package": key})
    name = item.get("name")
    return PackageSnapshot(
        name=name if isinstance(name, str) else None,
        dependencies=_dependency_map(item, "dependencies", owner=key),
        optional_dependencies=_dependency_map(item, "optionalDependencies", owner=key),
    )


def _dependency_map(payload: dict[str, Any], key: str, *, owner: str) -> dict[str, str]:
    value = payload.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise LockfileError(f"Invalid lockfile `{key}` value.", context={"owner": owner})
    parsed: dict[str, str] = {}
    for name, spec in value.items():
        # lockfile v6 importers use {specifier, version} mappings
        if isinstance(spec, dict):
            spec = spec.get("version")
        if not isinstance(spec, (str, int, float)):
            raise LockfileError(
                f"Invalid lockfile `{key}` entry.",
                context={"owner": owner, "dependency": str(name)},
            )
        parsed[str(name)] = str(spec)
    return parsed
