import json
import tarfile
from pathlib import Path

import cbor2
import pytest

from wsbundle.cli import main


def test_cli_writes_archive_report_and_logs(
    workspace: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output = tmp_path / "bundle.tar"
    report = tmp_path / "report.json"
    logs = tmp_path / "logs.jsonl"

    code = main([str(workspace), "-o", str(output), "--report", str(report), "--log-json", str(logs)])

    assert code == 0
    with tarfile.open(output) as tar:
        assert "package/package.json" in tar.getnames()
    assert json.loads(report.read_text(encoding="utf-8"))["target"] == "."
    assert logs.read_text(encoding="utf-8").strip()
    assert "bundle.tar" in capsys.readouterr().out


def test_cli_writes_canonical_cbor_report(workspace: Path, tmp_path: Path) -> None:
    output = tmp_path / "bundle.tar"
    report = tmp_path / "report.cbor"

    assert main([str(workspace), "-o", str(output), "--report", str(report)]) == 0

    encoded = report.read_bytes()
    payload = cbor2.loads(encoded)
    assert payload["target"] == "."
    assert payload["importers"] == [".", "libs/util"]
    assert payload["external_packages"] == ["/left-pad/1.0.0", "/lodash/4.0.0"]
    assert encoded == cbor2.dumps(payload, canonical=True)


def test_cli_bundles_a_workspace_package(workspace: Path, tmp_path: Path) -> None:
    output = tmp_path / "util.tar"

    assert main([str(workspace), "libs/util", "-o", str(output), "--io-capacity", "4"]) == 0
    with tarfile.open(output) as tar:
        assert "package/node_modules/lodash" in tar.getnames()


def test_cli_reports_fatal_errors_on_stderr(
    workspace: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (workspace / "pnpm-lock.yaml").unlink()
    output = tmp_path / "out.tar"

    code = main([str(workspace), "-o", str(output)])

    assert code == 1
    assert "E_LOCKFILE" in capsys.readouterr().err
    assert not output.exists()


def test_cli_rejects_invalid_io_capacity(workspace: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main([str(workspace), "-o", str(tmp_path / "out.tar"), "--io-capacity", "0"])

    assert code == 1
    assert "E_CONFIG" in capsys.readouterr().err


def test_cli_reports_unreadable_workspace_manifest(
    workspace: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (workspace / "libs/util/package.json").write_bytes(b'{"name": "ut\xffil"}')
    output = tmp_path / "out.tar"

    code = main([str(workspace), "-o", str(output)])

    assert code == 1
    assert "error[E_GRAPH]" in capsys.readouterr().err
    assert not output.exists()
