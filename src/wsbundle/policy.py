"""Dependency inclusion policy."""

from __future__ import annotations

from dataclasses import dataclass

PROD_SECTION = "dependencies"
DEV_SECTION = "devDependencies"
OPTIONAL_SECTION = "optionalDependencies"


@dataclass(frozen=True, slots=True)
class FilterPolicy:
    include_prod: bool = True
    include_dev: bool = False
    include_optional: bool = True
    fail_on_missing: bool = True

    def sections(self) -> tuple[str, ...]:
        """Importer dependency sections selected by this policy, in lockfile order."""
        selected: list[str] = []
        if self.include_prod:
            selected.append(PROD_SECTION)
        if self.include_dev:
            selected.append(DEV_SECTION)
        if self.include_optional:
            selected.append(OPTIONAL_SECTION)
        return tuple(selected)
