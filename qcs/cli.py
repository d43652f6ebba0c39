#!/usr/bin/env python3
"""
cli.py

Main entry point for the Quick Crash Symbolicator (QCS).

Responsibilities:
  - Parse CLI arguments and build the runtime config
  - Run the symbolication pipeline for one or more crash reports
  - Print symbolized traces to stdout, log everything else to stderr
  - Map errors to exit status 1

Usage examples:

  # Panic report written by the app's panic handler
  qcs ~/Library/Logs/Zed/panic-2024-01-01.json

  # macOS crash report
  qcs ~/Library/Logs/DiagnosticReports/Zed-2024-01-01-120000.ips

  # Only show which artifact would be used
  qcs --print-location report.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from qcs.config import (
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_ROOT,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
    config_from_args,
)
from qcs.errors import SymbolicateError, UsageError
from qcs.pipeline import Stage, SymbolicationPipeline, symbolicate_many


LOG = logging.getLogger("qcs")


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="qcs",
        description=(
            "Quick Crash Symbolicator (QCS) - fetch the debug symbols for the "
            "exact build that crashed and symbolicate the report."
        ),
        add_help=False,
    )
    p.add_argument(
        "reports",
        metavar="REPORT",
        nargs="*",
        help="Crash report: panic JSON (*.json) or macOS crash report (*.ips).",
    )
    p.add_argument(
        "-h",
        "--help",
        action="store_true",
        help="Show this help message and exit.",
    )
    p.add_argument(
        "--cache-root",
        default=str(DEFAULT_CACHE_ROOT),
        help=f"Local debug-symbol cache directory (default: {DEFAULT_CACHE_ROOT}).",
    )
    p.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="Debug-symbol storage URL (default: %(default)s).",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Network timeout in seconds per download attempt (default: %(default)s).",
    )
    p.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help="Reports processed in parallel when several are given (default: %(default)s).",
    )
    p.add_argument(
        "--print-location",
        action="store_true",
        help="Print the resolved artifact name, URLs and cache path; do not symbolicate.",
    )
    p.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Raises:
        UsageError: help was requested or no report was given.
    """
    args = build_argparser().parse_args(argv)
    if args.help:
        raise UsageError("help requested")
    if not args.reports:
        raise UsageError("no crash report given")
    return args


def _print_locations(pipeline: SymbolicationPipeline, paths: List[Path]) -> int:
    rc = 0
    for path in paths:
        try:
            run = pipeline.resolve_location(path)
        except SymbolicateError as e:
            LOG.error("%s: %s", path, e)
            rc = 1
            continue
        loc = run.location
        print(f"{path}")
        print(f"  artifact : {loc.artifact_name}")
        print(f"  cache    : {loc.local_path}")
        print(f"  primary  : {loc.remote_primary_url}")
        print(f"  fallback : {loc.remote_fallback_url or 'None'}")
    return rc


def _symbolicate(pipeline: SymbolicationPipeline, paths: List[Path], workers: int) -> int:
    if len(paths) == 1:
        try:
            run = pipeline.run(paths[0])
        except SymbolicateError as e:
            LOG.error("%s", e)
            return 1
        sys.stdout.write(run.output)
        return 0

    rc = 0
    runs = symbolicate_many(pipeline, paths, workers=workers)
    for run in runs:
        if run.stage is not Stage.DONE:
            LOG.error("%s: %s", run.report_path, run.error)
            rc = 1
            continue
        print(f"==> {run.report_path} <==")
        sys.stdout.write(run.output)
    return rc


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> None:
    try:
        args = parse_args(argv)
    except UsageError:
        build_argparser().print_help(sys.stderr)
        raise SystemExit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    paths = [Path(r) for r in args.reports]
    for path in paths:
        if not path.is_file():
            LOG.error("Input report does not exist: %s", path)
            raise SystemExit(1)

    config = config_from_args(args)
    pipeline = SymbolicationPipeline(config)

    if args.print_location:
        rc = _print_locations(pipeline, paths)
    else:
        rc = _symbolicate(pipeline, paths, config.workers)

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
