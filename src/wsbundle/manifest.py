"""package.json reading and the bundled rewrite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from wsbundle.errors import ManifestError

MANIFEST_NAME = "package.json"
BUNDLED_MARKER = "bundledDependencies"


def read_manifest(path: str | Path) -> dict[str, Any]:
    """Read a manifest from a file or a package directory.

    The returned dict is freshly parsed and safe to mutate.
    """
    manifest_path = Path(path)
    if manifest_path.is_dir():
        manifest_path = manifest_path / MANIFEST_NAME
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(
            "Package manifest does not exist.",
            context={"path": str(manifest_path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError("Unable to read package manifest.", context={"path": str(manifest_path)}) from exc
    return parse_manifest(raw, source=str(manifest_path))


def parse_manifest(raw: str | bytes, *, source: str = "<memory>") -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise ManifestError("Invalid package manifest JSON.", hint=str(exc), context={"path": source}) from exc
    if not isinstance(payload, dict):
        raise ManifestError("Invalid package manifest payload type.", context={"path": source})
    return payload


def manifest_name(manifest: dict[str, Any], *, source: str) -> str:
    name = manifest.get("name")
    if not isinstance(name, str) or not name:
        raise ManifestError("Package manifest has no `name`.", context={"path": source})
    return name


def bundled_manifest(manifest: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``manifest`` declaring its dependencies as physically bundled."""
    rewritten = {key: value for key, value in manifest.items() if key != "dependencies"}
    rewritten[BUNDLED_MARKER] = True
    return rewritten


def serialize_manifest(manifest: dict[str, Any]) -> bytes:
    return json.dumps(manifest, indent=4, ensure_ascii=False).encode("utf-8")
