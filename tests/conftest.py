"""Shared fixtures: fake network opener, fake symbolizer, report writers."""

import gzip
import io
import json
import urllib.error
from pathlib import Path

import pytest

from qcs.errors import ToolMissing
from qcs.tool_runner import Symbolizer


BASE_URL = "https://symbols.example"


class FakeOpener:
    """
    Stands in for urllib.request.urlopen.

    responses maps URL -> bytes (served) or an exception (raised).
    Unknown URLs answer HTTP 404.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, url, timeout=None):
        self.calls.append(url)
        resp = self.responses.get(url)
        if resp is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", None, None)
        if isinstance(resp, BaseException):
            raise resp
        return io.BytesIO(resp)


class FakeSymbolizer(Symbolizer):
    """Records every call; resolves offsets to fake mangled names."""

    def __init__(self, missing_tool=None, uuid=None):
        self.missing_tool = missing_tool
        self.uuid = uuid
        self.required = []
        self.resolved = []
        self.demangled = []
        self.native_calls = []
        self.uuid_queries = []

    def require(self, fmt):
        self.required.append(fmt)
        if self.missing_tool:
            raise ToolMissing(self.missing_tool, "install it")

    def resolve(self, artifact, offsets):
        self.resolved.append((artifact, list(offsets)))
        return "".join(f"_ZN3zed4main17h{o}E at src/main.rs:1\n" for o in offsets)

    def demangle(self, text):
        self.demangled.append(text)
        return text.replace("_ZN3zed4main17h", "zed::main@").replace("E at", " at")

    def symbolicate_native(self, report_path, artifact):
        self.native_calls.append((report_path, artifact))
        return f"Thread 0 Crashed: symbolicated with {Path(artifact).name}\n"

    def report_uuid(self, report_path):
        self.uuid_queries.append(report_path)
        return self.uuid


def gz(data: bytes) -> bytes:
    return gzip.compress(data)


def panic_doc(**overrides):
    panic = {
        "app_version": "1.0.0",
        "release_channel": "stable",
        "target": "x86_64-apple-darwin",
        "backtrace": ["frame1 + 0x10", "frame2 + 0x20"],
    }
    panic.update(overrides)
    return {"panic": panic}


def ips_text(header=None, body=None):
    h = {
        "app_name": "Zed",
        "app_version": "0.150.2",
        "bundleID": "dev.zed.Zed",
        "name": "Zed",
    }
    h.update(header or {})
    b = {"cpuType": "ARM-64", "procName": "zed", "threads": []}
    b.update(body or {})
    return json.dumps(h) + "\n" + json.dumps(b, indent=2) + "\n"


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def symbolizer():
    return FakeSymbolizer()


@pytest.fixture
def write_panic(tmp_path):
    def _write(name="panic.json", **overrides):
        path = tmp_path / name
        path.write_text(json.dumps(panic_doc(**overrides)))
        return path
    return _write


@pytest.fixture
def write_ips(tmp_path):
    def _write(name="Zed-2024-01-01-120000.ips", header=None, body=None):
        path = tmp_path / name
        path.write_text(ips_text(header, body))
        return path
    return _write
