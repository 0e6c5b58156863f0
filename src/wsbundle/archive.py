"""Streaming tar writer for collected entries.

File contents are read ahead through the I/O gate while entries are appended
to the tar stream one at a time, in entry order. The archive is written to a
temporary sibling of the output and only renamed into place once the stream
is finalized, so a failed build never leaves a usable-looking output file.
"""

from __future__ import annotations

import hashlib
import os
import posixpath
import stat
import tarfile
from collections import deque
from collections.abc import Sequence
from concurrent.futures import Future
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

from wsbundle.collect import ArchiveEntry
from wsbundle.errors import ArchiveWriteError, BundleError
from wsbundle.iogate import IOGate

ARCHIVE_ROOT = "package"
DEFAULT_OUTPUT = "out.tar"
PARTIAL_SUFFIX = ".partial"

Prepared = tuple[ArchiveEntry, Future[bytes] | None, Future[os.stat_result] | None]


class _HashingWriter:
    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        self.sha256 = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self.sha256.update(data)
        return self._handle.write(data)


def build_archive(
    entries: Sequence[ArchiveEntry],
    output: str | Path,
    *,
    gate: IOGate,
    root: str = ARCHIVE_ROOT,
    read_ahead: int | None = None,
) -> str:
    """Write ``entries`` under ``root/`` into a tar at ``output``; return its sha256."""
    _ensure_unique_paths(entries)
    output_path = Path(output)
    partial_path = output_path.with_name(output_path.name + PARTIAL_SUFFIX)
    window = read_ahead or gate.capacity

    try:
        with partial_path.open("wb") as handle:
            writer = _HashingWriter(handle)
            with tarfile.open(fileobj=writer, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                prepared: deque[Prepared] = deque()
                for entry in entries:
                    prepared.append(_prepare(entry, gate))
                    if len(prepared) >= window:
                        _append(tar, prepared.popleft(), root)
                while prepared:
                    _append(tar, prepared.popleft(), root)
        os.replace(partial_path, output_path)
    except BundleError:
        partial_path.unlink(missing_ok=True)
        raise
    except (OSError, tarfile.TarError) as exc:
        partial_path.unlink(missing_ok=True)
        raise ArchiveWriteError(
            "Unable to write archive.",
            hint=str(exc),
            context={"path": str(output_path)},
        ) from exc
    return writer.sha256.hexdigest()


def archive_name(root: str, path: str) -> str:
    return posixpath.normpath(posixpath.join(root, path))


def _ensure_unique_paths(entries: Sequence[ArchiveEntry]) -> None:
    seen: set[str] = set()
    for entry in entries:
        if entry.path in seen:
            raise ArchiveWriteError(
                "Two archive entries share one path.",
                context={"path": entry.path},
            )
        seen.add(entry.path)


def _prepare(entry: ArchiveEntry, gate: IOGate) -> Prepared:
    if entry.kind == "file" and entry.content is None:
        if entry.source is None:
            raise ArchiveWriteError("File entry has neither source nor content.", context={"path": entry.path})
        return entry, gate.read_file(entry.source), gate.stat(entry.source)
    return entry, None, None


def _append(tar: tarfile.TarFile, prepared: Prepared, root: str) -> None:
    entry, pending_content, pending_stat = prepared
    info = _tarinfo_deterministic(archive_name(root, entry.path))
    if entry.kind == "symlink":
        info.type = tarfile.SYMTYPE
        info.linkname = entry.link_target or ""
        info.mode = 0o777
        tar.addfile(info)
        return

    if pending_content is not None and pending_stat is not None:
        content = pending_content.result()
        if pending_stat.result().st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
            info.mode = 0o755
    else:
        content = entry.content or b""
    info.size = len(content)
    tar.addfile(info, BytesIO(content))


def _tarinfo_deterministic(name: str) -> tarfile.TarInfo:
    ti = tarfile.TarInfo(name=name)
    ti.mtime = 0
    ti.uid = 0
    ti.gid = 0
    ti.uname = ""
    ti.gname = ""
    ti.mode = 0o644
    return ti
