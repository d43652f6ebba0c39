#!/usr/bin/env python3
"""
parser.py

Crash report parser for QCS.

Responsibilities:
  - Decide which of the two supported report formats a file is in.
  - Extract only the fields needed to name the debug-symbol artifact:
      * structured panic (.json): panic.app_version, panic.release_channel,
        panic.target, panic.backtrace
      * native crash (.ips): app_version / bundleID / slice_uuid from the
        first record, cpuType from the second record

Notes:
  - Backtrace entries are NOT validated. Each entry is passed through to the
    symbolizer as-is; only the top-level fields are required.
  - We deliberately do NOT parse frames of native crash reports. The native
    symbolicate tool resolves those itself.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from qcs.errors import MalformedReport


LOG = logging.getLogger("parser")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class Channel(str, Enum):
    """Release track of the application."""
    STABLE = "stable"
    NIGHTLY = "nightly"
    PREVIEW = "preview"


class ReportFormat(str, Enum):
    STRUCTURED_PANIC = "panic"
    NATIVE_CRASH = "native"


@dataclass(frozen=True)
class StructuredPanic:
    """
    Panic report written by the application's own panic handler.

    Fields:
        app_version:     Version string, possibly "remote-server-" prefixed.
        release_channel: Channel name exactly as reported.
        target_triple:   Rust target triple of the crashed binary.
        backtrace:       Raw frame strings, e.g. "zed::main + 0x1a2b".
    """
    app_version: str
    release_channel: Channel
    target_triple: str
    backtrace: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class NativeCrash:
    """
    OS-native crash report (.ips).

    Fields:
        app_version: Version from the first record.
        bundle_id:   bundleID from the first record (channel is inferred from it).
        cpu_type:    cpuType from the second record.
        uuid:        Build UUID (first record's slice_uuid), if present.
    """
    app_version: str
    bundle_id: str
    cpu_type: str
    uuid: Optional[str] = None


CrashReport = Union[StructuredPanic, NativeCrash]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_str(obj: Dict[str, Any], key: str, dotted: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise MalformedReport(dotted)
    return value


def _load_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedReport(what, f"{what} is not valid JSON: {e}") from e


def _load_first_json(text: str, what: str) -> Any:
    # later records are separate JSON values; only the first is decoded
    try:
        value, _ = json.JSONDecoder().raw_decode(text.lstrip())
    except json.JSONDecodeError as e:
        raise MalformedReport(what, f"{what} is not valid JSON: {e}") from e
    return value


def _backtrace_entry(entry: Any) -> str:
    # jq -r semantics: strings raw, everything else as JSON text
    if isinstance(entry, str):
        return entry
    return json.dumps(entry)


def detect_format(path: Path, text: Optional[str] = None) -> ReportFormat:
    """
    Pick the report format from the file extension.

    For unknown extensions the document shape decides: a single JSON object
    with a "panic" object is a structured panic, everything else is treated
    as a native crash report.
    """
    suffix = path.suffix.lower()
    if suffix == ".json":
        return ReportFormat.STRUCTURED_PANIC
    if suffix == ".ips":
        return ReportFormat.NATIVE_CRASH

    if text is not None:
        try:
            doc = json.loads(text)
        except json.JSONDecodeError:
            doc = None
        if isinstance(doc, dict) and isinstance(doc.get("panic"), dict):
            return ReportFormat.STRUCTURED_PANIC

    return ReportFormat.NATIVE_CRASH


# ---------------------------------------------------------------------------
# Format-specific parsers
# ---------------------------------------------------------------------------

def parse_structured_panic(text: str) -> StructuredPanic:
    doc = _load_json(text, "report")
    if not isinstance(doc, dict) or not isinstance(doc.get("panic"), dict):
        raise MalformedReport("panic")
    panic = doc["panic"]

    version = _require_str(panic, "app_version", "panic.app_version")
    channel_name = _require_str(panic, "release_channel", "panic.release_channel")
    target = _require_str(panic, "target", "panic.target")

    backtrace = panic.get("backtrace")
    if not isinstance(backtrace, list):
        raise MalformedReport("panic.backtrace")

    try:
        channel = Channel(channel_name)
    except ValueError:
        raise MalformedReport(
            "panic.release_channel",
            f"unknown release channel {channel_name!r} in panic.release_channel",
        ) from None

    return StructuredPanic(
        app_version=version,
        release_channel=channel,
        target_triple=target,
        backtrace=[_backtrace_entry(e) for e in backtrace],
    )


def parse_native_crash(text: str) -> NativeCrash:
    """
    Parse an .ips report.

    The first line is the header record. The body record follows it and is
    usually pretty-printed over many lines. Records after the body and any
    other fields are ignored.
    """
    header_line, _, body_text = text.partition("\n")

    header = _load_json(header_line, "record 1")
    if not isinstance(header, dict):
        raise MalformedReport("record 1")
    version = _require_str(header, "app_version", "app_version")
    bundle_id = _require_str(header, "bundleID", "bundleID")

    uuid = header.get("slice_uuid")
    if not isinstance(uuid, str) or not uuid:
        uuid = None

    if not body_text.strip():
        raise MalformedReport("cpuType", "record 2 (cpuType) is missing")
    body = _load_first_json(body_text, "record 2")
    if not isinstance(body, dict):
        raise MalformedReport("record 2")
    cpu_type = _require_str(body, "cpuType", "cpuType")

    return NativeCrash(
        app_version=version,
        bundle_id=bundle_id,
        cpu_type=cpu_type,
        uuid=uuid,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def report_format(report: CrashReport) -> ReportFormat:
    if isinstance(report, StructuredPanic):
        return ReportFormat.STRUCTURED_PANIC
    return ReportFormat.NATIVE_CRASH


def parse_report_text(text: str, fmt: ReportFormat) -> CrashReport:
    if fmt is ReportFormat.STRUCTURED_PANIC:
        return parse_structured_panic(text)
    return parse_native_crash(text)


def parse_report_file(path: Path) -> CrashReport:
    """
    Read and parse a crash report file.

    Raises:
        MalformedReport: the file is not UTF-8, or a required field is
            missing or of the wrong type.
        OSError: the file cannot be read.
    """
    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedReport("report", f"{path} is not valid UTF-8: {e}") from e
    fmt = detect_format(path, text)
    LOG.debug("Detected %s report format for %s", fmt.value, path)
    return parse_report_text(text, fmt)


__all__ = [
    "Channel",
    "ReportFormat",
    "StructuredPanic",
    "NativeCrash",
    "CrashReport",
    "detect_format",
    "parse_structured_panic",
    "parse_native_crash",
    "report_format",
    "parse_report_text",
    "parse_report_file",
]
