import hashlib
import io
import os
import tarfile
from pathlib import Path

import pytest

from tests.conftest import write_file
from wsbundle.archive import PARTIAL_SUFFIX, build_archive
from wsbundle.collect import ArchiveEntry
from wsbundle.errors import ArchiveWriteError, FileSystemError
from wsbundle.iogate import IOGate


def _members(path: Path) -> dict[str, tarfile.TarInfo]:
    with tarfile.open(path) as tar:
        return {member.name: member for member in tar.getmembers()}


def _read(path: Path, name: str) -> bytes:
    with tarfile.open(path) as tar:
        extracted = tar.extractfile(name)
        assert extracted is not None
        return extracted.read()


def test_entries_are_written_under_the_archive_root(tmp_path: Path) -> None:
    source = write_file(tmp_path / "src" / "index.js", "console.log(1);\n")
    entries = [
        ArchiveEntry.file("index.js", source),
        ArchiveEntry.inline("package.json", b'{"name": "app"}'),
        ArchiveEntry.symlink("node_modules/left-pad", ".pnpm/left-pad@1.0.0/node_modules/left-pad"),
    ]
    output = tmp_path / "out.tar"

    with IOGate(capacity=2) as gate:
        digest = build_archive(entries, output, gate=gate)

    members = _members(output)
    assert list(members) == ["package/index.js", "package/package.json", "package/node_modules/left-pad"]
    assert _read(output, "package/index.js") == b"console.log(1);\n"
    assert _read(output, "package/package.json") == b'{"name": "app"}'
    link = members["package/node_modules/left-pad"]
    assert link.issym()
    assert link.linkname == ".pnpm/left-pad@1.0.0/node_modules/left-pad"
    assert digest == hashlib.sha256(output.read_bytes()).hexdigest()


def test_symlink_targets_are_never_validated(tmp_path: Path) -> None:
    entries = [ArchiveEntry.symlink("dangling", "../../does/not/exist")]
    output = tmp_path / "out.tar"

    with IOGate(capacity=1) as gate:
        build_archive(entries, output, gate=gate)

    assert _members(output)["package/dangling"].linkname == "../../does/not/exist"


def test_headers_are_normalized_and_output_is_reproducible(tmp_path: Path) -> None:
    script = write_file(tmp_path / "src" / "bin.js", "#!/usr/bin/env node\n")
    script.chmod(0o755)
    plain = write_file(tmp_path / "src" / "lib.js", "x\n")
    os.utime(plain, (1_000_000, 1_000_000))
    entries = [ArchiveEntry.file("bin.js", script), ArchiveEntry.file("lib.js", plain)]

    with IOGate(capacity=2) as gate:
        first = build_archive(entries, tmp_path / "a.tar", gate=gate, read_ahead=1)
        second = build_archive(entries, tmp_path / "b.tar", gate=gate)

    assert first == second
    assert (tmp_path / "a.tar").read_bytes() == (tmp_path / "b.tar").read_bytes()
    members = _members(tmp_path / "a.tar")
    assert members["package/bin.js"].mode == 0o755
    assert members["package/lib.js"].mode == 0o644
    assert {member.mtime for member in members.values()} == {0}
    assert {member.uid for member in members.values()} == {0}


def test_long_paths_survive(tmp_path: Path) -> None:
    deep = "node_modules/.pnpm/" + "/".join(["segment"] * 20) + "/file.js"
    entries = [ArchiveEntry.inline(deep, b"deep")]

    with IOGate(capacity=1) as gate:
        build_archive(entries, tmp_path / "out.tar", gate=gate)

    assert _read(tmp_path / "out.tar", f"package/{deep}") == b"deep"


def test_missing_source_leaves_no_output(tmp_path: Path) -> None:
    output = tmp_path / "out.tar"
    entries = [
        ArchiveEntry.inline("package.json", b"{}"),
        ArchiveEntry.file("gone.js", tmp_path / "gone.js"),
    ]

    with IOGate(capacity=2) as gate, pytest.raises(FileSystemError):
        build_archive(entries, output, gate=gate)

    assert not output.exists()
    assert not (tmp_path / ("out.tar" + PARTIAL_SUFFIX)).exists()


def test_failed_rebuild_keeps_previous_archive_untouched(tmp_path: Path) -> None:
    output = tmp_path / "out.tar"
    output.write_bytes(b"previous")

    with IOGate(capacity=2) as gate, pytest.raises(FileSystemError):
        build_archive([ArchiveEntry.file("gone.js", tmp_path / "gone.js")], output, gate=gate)

    assert output.read_bytes() == b"previous"


def test_unwritable_destination_raises_archive_write_error(tmp_path: Path) -> None:
    output = tmp_path / "missing-dir" / "out.tar"

    with IOGate(capacity=1) as gate, pytest.raises(ArchiveWriteError):
        build_archive([ArchiveEntry.inline("a", b"a")], output, gate=gate)

    assert not output.exists()


def test_duplicate_paths_are_rejected(tmp_path: Path) -> None:
    entries = [ArchiveEntry.inline("a.js", b"1"), ArchiveEntry.symlink("a.js", "b.js")]

    with IOGate(capacity=1) as gate, pytest.raises(ArchiveWriteError):
        build_archive(entries, tmp_path / "out.tar", gate=gate)

    assert not (tmp_path / "out.tar").exists()


def test_archive_is_a_plain_uncompressed_tar_stream(tmp_path: Path) -> None:
    with IOGate(capacity=1) as gate:
        build_archive([ArchiveEntry.inline("a", b"a")], tmp_path / "out.tar", gate=gate)

    with tarfile.open(fileobj=io.BytesIO((tmp_path / "out.tar").read_bytes()), mode="r:") as tar:
        assert tar.getnames() == ["package/a"]
