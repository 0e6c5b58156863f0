"""Shared test fixtures."""

from __future__ import annotations

import json
import os
import textwrap
from pathlib import Path

import pytest

SCENARIO_LOCKFILE = textwrap.dedent(
    """\
    lockfileVersion: 5.4

    importers:

      .:
        specifiers:
          left-pad: 1.0.0
          util: workspace:*
          jest-lite: 2.0.0
        dependencies:
          left-pad: 1.0.0
          util: link:libs/util
        devDependencies:
          jest-lite: 2.0.0

      libs/util:
        specifiers:
          lodash: 4.0.0
        dependencies:
          lodash: 4.0.0

    packages:

      /left-pad/1.0.0:
        resolution: {integrity: sha512-leftpad}
        dev: false

      /lodash/4.0.0:
        resolution: {integrity: sha512-lodash}
        dev: false

      /jest-lite/2.0.0:
        resolution: {integrity: sha512-jestlite}
        dependencies:
          pretty: 1.0.0
        dev: true

      /pretty/1.0.0:
        resolution: {integrity: sha512-pretty}
        dev: true
    """
)


def write_file(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def write_json(path: Path, payload: dict[str, object]) -> Path:
    return write_file(path, json.dumps(payload, indent=2) + "\n")


def symlink(path: Path, target: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target, path)
    return path


def store_package(root: Path, slot: str, name: str, files: dict[str, str]) -> Path:
    package_dir = root / "node_modules" / ".pnpm" / slot / "node_modules" / name
    write_json(package_dir / "package.json", {"name": name, "version": slot.rsplit("@", 1)[1]})
    for rel, content in files.items():
        write_file(package_dir / rel, content)
    return package_dir


def make_scenario_workspace(root: Path) -> Path:
    """Installed pnpm workspace: app -> left-pad, app -> libs/util -> lodash, app (dev) -> jest-lite."""
    write_file(root / "pnpm-lock.yaml", SCENARIO_LOCKFILE)
    write_json(
        root / "package.json",
        {
            "name": "app",
            "version": "1.0.0",
            "files": ["index.js"],
            "scripts": {"start": "node index.js"},
            "dependencies": {"left-pad": "1.0.0", "util": "workspace:*"},
            "devDependencies": {"jest-lite": "2.0.0"},
        },
    )
    write_file(root / "index.js", "require('left-pad');\n")
    write_file(root / "README.md", "# app\n")
    write_file(root / "notes.txt", "not published\n")

    util_dir = root / "libs" / "util"
    write_json(
        util_dir / "package.json",
        {"name": "util", "version": "0.1.0", "main": "index.js", "dependencies": {"lodash": "4.0.0"}},
    )
    write_file(util_dir / "index.js", "module.exports = require('lodash');\n")

    store_package(root, "left-pad@1.0.0", "left-pad", {"index.js": "module.exports = pad;\n"})
    lodash = store_package(
        root,
        "lodash@4.0.0",
        "lodash",
        {"lodash.js": "module.exports = {};\n", "fp/map.js": "module.exports = map;\n"},
    )
    symlink(lodash / "alias.js", "lodash.js")
    store_package(root, "jest-lite@2.0.0", "jest-lite", {"index.js": "test();\n"})
    symlink(
        root / "node_modules" / ".pnpm" / "jest-lite@2.0.0" / "node_modules" / "pretty",
        "../../pretty@1.0.0/node_modules/pretty",
    )
    store_package(root, "pretty@1.0.0", "pretty", {"index.js": "pretty();\n"})

    symlink(root / "node_modules" / "left-pad", ".pnpm/left-pad@1.0.0/node_modules/left-pad")
    symlink(root / "node_modules" / "util", "../libs/util")
    symlink(root / "node_modules" / "jest-lite", ".pnpm/jest-lite@2.0.0/node_modules/jest-lite")
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Provide an installed scenario workspace."""
    return make_scenario_workspace(tmp_path / "ws")
