#!/usr/bin/env python3
"""
symbolizer.py

Symbolization step for QCS.

Responsibilities:
  - Structured panic: turn each backtrace frame into the offset that the
    resolver expects, resolve them against the cached artifact, then
    demangle the resolver output. Frame order is preserved.
  - Native crash: hand the report and the artifact to the native tool and
    return its output unmodified.

This module does NOT parse reports or fetch artifacts, and it never spawns
processes itself; all tool access goes through a Symbolizer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from qcs.parser import CrashReport, NativeCrash, StructuredPanic
from qcs.tool_runner import Symbolizer


LOG = logging.getLogger("symbolizer")


def extract_offset(frame: str) -> str:
    """
    Return the part of a frame after its final '+', stripped.

        "zed::main + 0x1a2b" -> "0x1a2b"

    Frames without a '+' are returned unchanged.
    """
    _, plus, tail = frame.rpartition("+")
    if not plus:
        return frame
    return tail.strip()


def extract_offsets(backtrace: Iterable[str]) -> List[str]:
    return [extract_offset(frame) for frame in backtrace]


def symbolize_panic(report: StructuredPanic, artifact: Path, symbolizer: Symbolizer) -> str:
    offsets = extract_offsets(report.backtrace)
    LOG.info("Resolving %d frames against %s", len(offsets), artifact)
    raw = symbolizer.resolve(artifact, offsets)
    return symbolizer.demangle(raw)


def symbolize_native(report_path: Path, artifact: Path, symbolizer: Symbolizer) -> str:
    LOG.info("Symbolicating %s against %s", report_path, artifact)
    return symbolizer.symbolicate_native(report_path, artifact)


def symbolize_report(
    report: CrashReport,
    report_path: Path,
    artifact: Path,
    symbolizer: Symbolizer,
) -> str:
    if isinstance(report, StructuredPanic):
        return symbolize_panic(report, artifact, symbolizer)
    if isinstance(report, NativeCrash):
        return symbolize_native(report_path, artifact, symbolizer)
    raise TypeError(f"unsupported report type: {type(report).__name__}")


__all__ = [
    "extract_offset",
    "extract_offsets",
    "symbolize_panic",
    "symbolize_native",
    "symbolize_report",
]
