"""Bounded admission for filesystem reads.

Every stat, directory listing, symlink read and file read goes through a
fixed-size worker pool. Work is admitted in submission order and a slot is
released when the call returns or raises, so the number of concurrently open
descriptors never exceeds the gate capacity however wide the traversal fans out.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeVar

from wsbundle.config import DEFAULT_IO_CAPACITY
from wsbundle.errors import ConfigError, FileSystemError

T = TypeVar("T")
EntryKind = Literal["file", "symlink", "dir", "other"]


@dataclass(frozen=True, slots=True)
class DirEntry:
    name: str
    kind: EntryKind


class IOGate:
    def __init__(self, capacity: int = DEFAULT_IO_CAPACITY) -> None:
        if capacity < 1:
            raise ConfigError("I/O gate capacity must be positive.", context={"capacity": str(capacity)})
        self.capacity = capacity
        self._executor = ThreadPoolExecutor(max_workers=capacity, thread_name_prefix="wsbundle-io")
        self._lock = threading.Lock()
        self._in_flight = 0
        self.peak_in_flight = 0

    def __enter__(self) -> IOGate:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=True, cancel_futures=True)

    def stat(self, path: Path) -> Future[os.stat_result]:
        return self._submit("stat", path, os.stat, path)

    def lstat(self, path: Path) -> Future[os.stat_result]:
        return self._submit("lstat", path, os.lstat, path)

    def readlink(self, path: Path) -> Future[str]:
        return self._submit("readlink", path, os.readlink, path)

    def readdir(self, path: Path) -> Future[list[DirEntry]]:
        return self._submit("readdir", path, _scan, path)

    def read_file(self, path: Path) -> Future[bytes]:
        return self._submit("read", path, Path.read_bytes, path)

    def _submit(self, operation: str, path: Path, fn: Callable[..., T], *args: object) -> Future[T]:
        def run() -> T:
            with self._lock:
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            try:
                return fn(*args)
            except OSError as exc:
                raise FileSystemError(
                    f"Filesystem {operation} failed.",
                    hint=exc.strerror,
                    context={"operation": operation, "path": str(path)},
                ) from exc
            finally:
                with self._lock:
                    self._in_flight -= 1

        return self._executor.submit(run)


def _scan(path: Path) -> list[DirEntry]:
    entries: list[DirEntry] = []
    with os.scandir(path) as it:
        for entry in it:
            kind: EntryKind
            if entry.is_symlink():
                kind = "symlink"
            elif entry.is_dir(follow_symlinks=False):
                kind = "dir"
            elif entry.is_file(follow_symlinks=False):
                kind = "file"
            else:
                kind = "other"
            entries.append(DirEntry(name=entry.name, kind=kind))
    entries.sort(key=lambda item: item.name)
    return entries
