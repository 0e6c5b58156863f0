"""Dependency keys and their directory names inside the shared store.

Two kinds of keys are encoded:

- external packages, keyed like ``/name/version`` (lockfile v5) or
  ``/name@version`` (lockfile v6), become ``name@version``;
- workspace packages, keyed ``file:<importer-id>``, become ``file+<importer-id>``
  with every ``/`` written as ``+``.

Characters that are unsafe on common filesystems are replaced with ``+``.
Names that are too long, or that would only differ by case, are shortened and
suffixed with a base32 digest of the full name. Importer ids whose plain name
could not be read back (they already contain ``+``, ``_``, parentheses or
unsafe characters) are always hashed, so distinct importers never share a
directory.
"""

from __future__ import annotations

import base64
import hashlib
import posixpath
import re
from dataclasses import dataclass, field

from wsbundle.errors import GraphInconsistencyError

FILE_PREFIX = "file:"
MAX_FILENAME_LENGTH = 120
_HASHED_PREFIX_LENGTH = 50
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_PEER_PARENS = re.compile(r"\)\(|\(")
_AMBIGUOUS_IMPORTER_CHARS = re.compile(r'[\\:*?"<>|+_()]')


def create_base32_hash(value: str) -> str:
    digest = hashlib.md5(value.encode("utf-8")).digest()  # noqa: S324 - naming only
    return base64.b32encode(digest).decode("ascii").rstrip("=").lower()


def parse_dep_key(key: str) -> tuple[str, str]:
    """Split an external dependency key into ``(name, version)``.

    Package names never contain ``/`` (besides the scope separator) or ``@``
    (besides the scope marker), so the first of either after the name ends it.
    """
    body = key[1:] if key.startswith("/") else key
    scope = ""
    if body.startswith("@"):
        scope, sep, body = body.partition("/")
        if not sep:
            raise GraphInconsistencyError("Malformed dependency key.", context={"key": key})
        scope += "/"

    match = re.search(r"[/@]", body)
    if match is None or match.start() == 0 or match.end() == len(body):
        raise GraphInconsistencyError("Malformed dependency key.", context={"key": key})
    return scope + body[: match.start()], body[match.end() :]


def importer_store_key(importer_id: str) -> str:
    return FILE_PREFIX + importer_id


def dep_path_to_filename(dep_key: str, context_root: str = ".") -> str:
    """Return the store directory name for ``dep_key``.

    ``context_root`` is the lockfile directory; absolute ``file:`` keys are
    made relative to it so the name does not depend on where the workspace lives.
    """
    if dep_key.startswith(FILE_PREFIX):
        return _importer_filename(dep_key, context_root)
    name, version = parse_dep_key(dep_key)
    filename = _UNSAFE_CHARS.sub("+", f"{name}@{version}")
    if "(" in filename:
        filename = _PEER_PARENS.sub("_", filename).removesuffix(")")
    if len(filename) > MAX_FILENAME_LENGTH or filename != filename.lower():
        return _hashed(filename, filename)
    return filename


def _importer_filename(dep_key: str, context_root: str) -> str:
    target = dep_key[len(FILE_PREFIX) :]
    if posixpath.isabs(target):
        target = posixpath.relpath(target, context_root)
    target = posixpath.normpath(target)
    filename = "file+" + target.replace("/", "+")
    # plain names stay reversible; anything else is hashed, and only hashed names contain "_"
    if _AMBIGUOUS_IMPORTER_CHARS.search(target) or len(filename) > MAX_FILENAME_LENGTH:
        return _hashed(_UNSAFE_CHARS.sub("+", filename), FILE_PREFIX + target)
    return filename


def _hashed(filename: str, key: str) -> str:
    return f"{filename[:_HASHED_PREFIX_LENGTH]}_{create_base32_hash(key)}"


@dataclass(slots=True)
class StoreNames:
    """Encodes keys for one run and rejects two keys sharing a directory name."""

    context_root: str = "."
    _owners: dict[str, str] = field(default_factory=dict)

    def encode(self, dep_key: str) -> str:
        filename = dep_path_to_filename(dep_key, self.context_root)
        owner = self._owners.setdefault(filename, dep_key)
        if owner != dep_key:
            raise GraphInconsistencyError(
                "Two dependencies map to the same store directory.",
                hint="Rename one of the packages or report the colliding keys.",
                context={"directory": filename, "first": owner, "second": dep_key},
            )
        return filename
