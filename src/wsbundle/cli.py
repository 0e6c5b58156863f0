"""Command-line entry point.

Usage:
    wsbundle WORKSPACE [IMPORTER] [-o OUTPUT]
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from wsbundle.archive import DEFAULT_OUTPUT
from wsbundle.bundle import BundleRequest, bundle_workspace
from wsbundle.config import load_config
from wsbundle.errors import BundleError
from wsbundle.lockfile import ROOT_IMPORTER
from wsbundle.observability import StructuredLogger
from wsbundle.policy import FilterPolicy
from wsbundle.report import BundleReport

CBOR_SUFFIX = ".cbor"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wsbundle",
        description="Bundle a pnpm workspace package and its dependency closure into one tar archive",
    )
    parser.add_argument("workspace", type=Path, help="Workspace root directory")
    parser.add_argument(
        "importer",
        nargs="?",
        default=ROOT_IMPORTER,
        help="Target package path relative to the workspace root (default: the root package)",
    )
    parser.add_argument("-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT), help="Archive path")
    parser.add_argument("--dev", action="store_true", help="Include devDependencies")
    parser.add_argument("--no-optional", action="store_true", help="Exclude optionalDependencies")
    parser.add_argument("--virtual-store-dir", help="Shared store location relative to the lockfile directory")
    parser.add_argument("--io-capacity", type=int, help="Maximum concurrent filesystem operations")
    parser.add_argument(
        "--report",
        type=Path,
        help="Write a bundle report; canonical CBOR when PATH ends in .cbor, JSON otherwise",
    )
    parser.add_argument("--log-json", type=Path, help="Write structured logs as JSON lines")
    return parser


def write_report(report: BundleReport, path: Path) -> None:
    if path.suffix == CBOR_SUFFIX:
        report.to_cbor(path)
    else:
        report.to_json(path)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = StructuredLogger()
    try:
        config = load_config(
            args.workspace,
            overrides={"virtual-store-dir": args.virtual_store_dir, "io-capacity": args.io_capacity},
        )
        request = BundleRequest(
            importer_id=args.importer,
            output=args.output,
            policy=FilterPolicy(include_dev=args.dev, include_optional=not args.no_optional),
        )
        result = bundle_workspace(config, request, logger=logger)
        if args.report is not None:
            write_report(result.report, args.report)
    except BundleError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        if args.log_json is not None:
            logger.to_json_lines(args.log_json)

    print(f"Wrote {result.output} ({result.report.entry_count} entries)")
    return 0
