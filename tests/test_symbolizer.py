"""Tests for offset extraction and the symbolizer driver."""

from pathlib import Path

import pytest

from qcs.parser import Channel, NativeCrash, StructuredPanic
from qcs.symbolizer import extract_offset, extract_offsets, symbolize_report


@pytest.mark.parametrize(
    "frame, expected",
    [
        ("frame1 + 0x10", "0x10"),
        ("zed::main+0x1a2b", "0x1a2b"),
        ("<T as core::ops::Add>::add + 0x5 + 0x40", "0x40"),
        ("0x1234", "0x1234"),
        ("", ""),
    ],
)
def test_extract_offset(frame, expected):
    assert extract_offset(frame) == expected


def test_extract_offsets_preserves_order():
    assert extract_offsets(["a + 0x3", "b + 0x1", "c + 0x2"]) == ["0x3", "0x1", "0x2"]


def test_panic_is_resolved_then_demangled_in_order(symbolizer):
    report = StructuredPanic(
        app_version="1.0.0",
        release_channel=Channel.STABLE,
        target_triple="x86_64-apple-darwin",
        backtrace=["frame1 + 0x10", "frame2 + 0x20"],
    )
    artifact = Path("/cache/stable/zed-1.0.0-x86_64-apple-darwin.dbg")

    out = symbolize_report(report, Path("panic.json"), artifact, symbolizer)

    assert symbolizer.resolved == [(artifact, ["0x10", "0x20"])]
    assert symbolizer.demangled == [
        "_ZN3zed4main17h0x10E at src/main.rs:1\n_ZN3zed4main17h0x20E at src/main.rs:1\n"
    ]
    assert out.splitlines() == [
        "zed::main@0x10 at src/main.rs:1",
        "zed::main@0x20 at src/main.rs:1",
    ]
    assert symbolizer.native_calls == []


def test_native_output_is_passed_through(symbolizer):
    report = NativeCrash(app_version="0.150.2", bundle_id="dev.zed.Zed", cpu_type="ARM-64")
    artifact = Path("/cache/stable/Zed-0.150.2-aarch64-apple-darwin.dwarf")

    out = symbolize_report(report, Path("crash.ips"), artifact, symbolizer)

    assert symbolizer.native_calls == [(Path("crash.ips"), artifact)]
    assert out == "Thread 0 Crashed: symbolicated with Zed-0.150.2-aarch64-apple-darwin.dwarf\n"
    assert symbolizer.resolved == []
    assert symbolizer.demangled == []


def test_unknown_report_type(symbolizer):
    with pytest.raises(TypeError):
        symbolize_report(object(), Path("x"), Path("y"), symbolizer)
