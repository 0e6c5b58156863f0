"""List the files a package would publish, following npm pack rules."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from pathspec import GitIgnoreSpec, PathSpec

from wsbundle.errors import FileSystemError
from wsbundle.manifest import MANIFEST_NAME, read_manifest

DEFAULT_IGNORES: tuple[str, ...] = (
    ".npmignore",
    ".gitignore",
    ".git",
    "CVS",
    ".svn",
    ".hg",
    ".lock-wscript",
    ".wafpickle-*",
    ".*.swp",
    ".DS_Store",
    "._*",
    "npm-debug.log",
    "/.npmrc",
    "node_modules",
    "config.gypi",
    "*.orig",
    "/package-lock.json",
    "/yarn.lock",
    "/pnpm-lock.yaml",
    "/archived-packages/",
)
ALWAYS_INCLUDED_PREFIXES: tuple[str, ...] = ("readme", "license", "licence")
_PRUNED_DIRS = frozenset({".git", "node_modules"})


def list_publishable_files(package_dir: str | Path) -> list[str]:
    """Return sorted POSIX paths, relative to ``package_dir``, that publishing would include."""
    root = Path(package_dir)
    manifest = read_manifest(root)
    candidates = _walk(root)
    defaults = GitIgnoreSpec.from_lines(DEFAULT_IGNORES)

    files_field = manifest.get("files")
    if isinstance(files_field, list) and files_field:
        included = PathSpec.from_lines("gitignore", _anchored(str(item) for item in files_field))
        selected = {path for path in candidates if included.match_file(path) and not defaults.match_file(path)}
    else:
        ignore = _ignore_spec(root)
        selected = {
            path
            for path in candidates
            if not defaults.match_file(path) and (ignore is None or not ignore.match_file(path))
        }

    main = manifest.get("main")
    if isinstance(main, str):
        main_path = os.path.normpath(main).replace(os.sep, "/")
        if main_path in candidates:
            selected.add(main_path)
    for path in candidates:
        if "/" not in path and (path == MANIFEST_NAME or path.lower().startswith(ALWAYS_INCLUDED_PREFIXES)):
            selected.add(path)
    return sorted(selected)


def _walk(root: Path) -> list[str]:
    def _raise(exc: OSError) -> None:
        raise FileSystemError(
            "Unable to list package directory.",
            context={"operation": "readdir", "path": str(exc.filename or root)},
        ) from exc

    paths: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames[:] = sorted(name for name in dirnames if name not in _PRUNED_DIRS)
        base = Path(dirpath)
        for filename in filenames:
            full = base / filename
            if full.is_symlink():
                continue
            paths.append(full.relative_to(root).as_posix())
    return paths


def _anchored(entries: Iterable[str]) -> list[str]:
    lines: list[str] = []
    for entry in entries:
        negated = entry.startswith("!")
        pattern = entry[1:] if negated else entry
        pattern = pattern.removeprefix("./").lstrip("/")
        lines.append(("!/" if negated else "/") + pattern)
    return lines


def _ignore_spec(root: Path) -> GitIgnoreSpec | None:
    for name in (".npmignore", ".gitignore"):
        path = root / name
        if path.is_file():
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as exc:
                raise FileSystemError(
                    "Unable to read ignore file.",
                    context={"operation": "read", "path": str(path)},
                ) from exc
            return GitIgnoreSpec.from_lines(lines)
    return None
