"""Workspace and store configuration, read once at startup."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from wsbundle.errors import ConfigError

DEFAULT_VIRTUAL_STORE_DIR = "node_modules/.pnpm"
DEFAULT_IO_CAPACITY = 1000
NPMRC = ".npmrc"


@dataclass(frozen=True, slots=True)
class WorkspaceConfig:
    """Resolved locations for one bundling run.

    :ivar workspace_dir: Workspace root on disk.
    :ivar lockfile_dir: Directory holding ``pnpm-lock.yaml``; importer ids are relative to it.
    :ivar virtual_store_dir: Shared dependency store, POSIX path relative to ``lockfile_dir``.
    :ivar io_capacity: Maximum number of in-flight filesystem operations.
    """

    workspace_dir: Path
    lockfile_dir: Path
    virtual_store_dir: str = DEFAULT_VIRTUAL_STORE_DIR
    io_capacity: int = DEFAULT_IO_CAPACITY


def load_config(
    workspace_dir: str | Path,
    *,
    overrides: Mapping[str, str | int | None] | None = None,
) -> WorkspaceConfig:
    """Build a config from ``.npmrc`` settings with ``overrides`` taking precedence."""
    workspace = Path(workspace_dir).resolve()
    if not workspace.is_dir():
        raise ConfigError(
            "Workspace directory does not exist.",
            context={"workspace_dir": str(workspace)},
        )

    settings: dict[str, str | int] = dict(read_npmrc(workspace / NPMRC))
    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value

    lockfile_dir = workspace
    raw_lockfile_dir = settings.get("lockfile-dir")
    if raw_lockfile_dir:
        lockfile_dir = (workspace / str(raw_lockfile_dir)).resolve()

    virtual_store_dir = _relative_store_dir(
        str(settings.get("virtual-store-dir") or DEFAULT_VIRTUAL_STORE_DIR),
        lockfile_dir=lockfile_dir,
    )
    io_capacity = _positive_int(settings.get("io-capacity", DEFAULT_IO_CAPACITY), key="io-capacity")
    return WorkspaceConfig(
        workspace_dir=workspace,
        lockfile_dir=lockfile_dir,
        virtual_store_dir=virtual_store_dir,
        io_capacity=io_capacity,
    )


def read_npmrc(path: Path) -> dict[str, str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError("Unable to read .npmrc.", context={"path": str(path)}) from exc

    settings: dict[str, str] = {}
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", ";")) or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        settings[key.strip()] = value.strip().strip('"')
    return settings


def _relative_store_dir(value: str, *, lockfile_dir: Path) -> str:
    store = Path(value)
    if store.is_absolute():
        try:
            store = store.resolve().relative_to(lockfile_dir)
        except ValueError as exc:
            raise ConfigError(
                "Virtual store must live inside the lockfile directory.",
                hint="Bundles reproduce the store layout relative to the lockfile directory.",
                context={"virtual_store_dir": value, "lockfile_dir": str(lockfile_dir)},
            ) from exc
    normalized = posixpath.normpath(store.as_posix())
    if normalized == "." or normalized.startswith("../") or normalized == "..":
        raise ConfigError(
            "Virtual store must be a subdirectory of the lockfile directory.",
            context={"virtual_store_dir": value},
        )
    return normalized


def _positive_int(value: str | int, *, key: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid `{key}` value.", context={key: str(value)}) from exc
    if parsed < 1:
        raise ConfigError(f"`{key}` must be a positive integer.", context={key: str(value)})
    return parsed
