"""Bundle report export."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path

import cbor2


@dataclass(frozen=True, slots=True)
class BundleReport:
    target: str
    importers: tuple[str, ...]
    external_packages: tuple[str, ...]
    entry_count: int
    archive_sha256: str
    schema_version: int = 1

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def digest(self) -> str:
        return hashlib.sha256(self.to_cbor()).hexdigest()

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "target": self.target,
            "importers": sorted(self.importers),
            "external_packages": sorted(self.external_packages),
            "entry_count": self.entry_count,
            "archive_sha256": self.archive_sha256,
        }
