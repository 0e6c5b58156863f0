"""Lockfile typed model."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from wsbundle.policy import DEV_SECTION, OPTIONAL_SECTION, PROD_SECTION


@dataclass(frozen=True, slots=True)
class ImporterSnapshot:
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    optional_dependencies: dict[str, str] = field(default_factory=dict)

    def section(self, name: str) -> dict[str, str]:
        if name == PROD_SECTION:
            return self.dependencies
        if name == DEV_SECTION:
            return self.dev_dependencies
        if name == OPTIONAL_SECTION:
            return self.optional_dependencies
        raise KeyError(name)


@dataclass(frozen=True, slots=True)
class PackageSnapshot:
    name: str | None = None
    dependencies: dict[str, str] = field(default_factory=dict)
    optional_dependencies: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LockfileGraph:
    lockfile_version: str
    importers: dict[str, ImporterSnapshot] = field(default_factory=dict)
    packages: dict[str, PackageSnapshot] = field(default_factory=dict)

    @property
    def major_version(self) -> int:
        head = self.lockfile_version.split(".", 1)[0]
        return int(head) if head.isdigit() else 0

    def importer_dependencies(self, importer_id: str, sections: Iterable[str]) -> dict[str, str]:
        """Merged dependency mapping of one importer; an unknown importer has none."""
        importer = self.importers.get(importer_id)
        if importer is None:
            return {}
        merged: dict[str, str] = {}
        for section in sections:
            merged.update(importer.section(section))
        return merged
