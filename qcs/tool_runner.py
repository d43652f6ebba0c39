#!/usr/bin/env python3
"""
tool_runner.py

Helpers to run the external symbolization tools.

This module provides:

  - require_tools(): fail fast with an install hint when a tool is missing.
  - run_tool(): run one tool, feeding it stdin text, returning stdout text.
  - Symbolizer: the capability the symbolizer driver talks to.
  - ToolchainSymbolizer: Symbolizer backed by real binaries:
      * llvm-symbolizer  address -> symbol resolver (mangled output)
      * rustfilt         Rust name demangler (stdin -> stdout filter)
      * symbolicate      native crash report symbolicator

Tools are run one after another with the previous tool's stdout as the next
tool's stdin, never wired together as a live pipe.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from qcs.errors import SymbolicateError, ToolFailed, ToolMissing
from qcs.parser import ReportFormat


LOG = logging.getLogger("tool_runner")


# Install hints, keyed by the default tool name.
REMEDIES: Dict[str, str] = {
    "llvm-symbolizer": "install LLVM (e.g. `brew install llvm` or `apt install llvm`)",
    "rustfilt": "install it with `cargo install rustfilt`",
    "symbolicate": "install it with `cargo install symbolicate`",
}


def _remedy(tool: str) -> str:
    return REMEDIES.get(Path(tool).name, f"make sure {tool} is on PATH")


def require_tools(tools: Sequence[str]) -> None:
    """
    Raise ToolMissing for the first tool that is not on PATH.
    """
    for tool in tools:
        if shutil.which(tool) is None:
            raise ToolMissing(tool, _remedy(tool))


def run_tool(cmd: List[str], stdin_text: Optional[str] = None) -> str:
    """
    Run cmd and return its stdout.

    Raises:
        ToolMissing: the executable disappeared between the check and the run.
        ToolFailed: nonzero exit status; stderr is included in the message.
    """
    LOG.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            input=stdin_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise ToolMissing(cmd[0], _remedy(cmd[0])) from e

    if proc.returncode != 0:
        raise ToolFailed(
            f"{cmd[0]} exited with code {proc.returncode}: {proc.stderr.strip()}"
        )
    return proc.stdout


class Symbolizer(ABC):
    """
    Capability used by the symbolizer driver. One method per report variant
    plus the tool checks; test code substitutes a fake.
    """

    @abstractmethod
    def require(self, fmt: ReportFormat) -> None:
        ...

    @abstractmethod
    def resolve(self, artifact: Path, offsets: List[str]) -> str:
        """Resolve offsets against artifact; output may still be mangled."""

    @abstractmethod
    def demangle(self, text: str) -> str:
        ...

    @abstractmethod
    def symbolicate_native(self, report_path: Path, artifact: Path) -> str:
        ...

    @abstractmethod
    def report_uuid(self, report_path: Path) -> Optional[str]:
        ...


class ToolchainSymbolizer(Symbolizer):
    def __init__(
        self,
        resolver: str = "llvm-symbolizer",
        demangler: str = "rustfilt",
        native_tool: str = "symbolicate",
    ):
        self.resolver = resolver
        self.demangler = demangler
        self.native_tool = native_tool

    def require(self, fmt: ReportFormat) -> None:
        if fmt is ReportFormat.STRUCTURED_PANIC:
            require_tools([self.resolver, self.demangler])
        else:
            require_tools([self.native_tool])

    def resolve(self, artifact: Path, offsets: List[str]) -> str:
        cmd = [self.resolver, "--no-demangle", f"--obj={artifact}", "-p"]
        stdin_text = "".join(f"{o}\n" for o in offsets)
        return run_tool(cmd, stdin_text)

    def demangle(self, text: str) -> str:
        return run_tool([self.demangler], text)

    def symbolicate_native(self, report_path: Path, artifact: Path) -> str:
        return run_tool([self.native_tool, str(report_path), str(artifact)])

    def report_uuid(self, report_path: Path) -> Optional[str]:
        """
        Ask the native tool for the crashed binary's UUID.

        Older symbolicate builds do not know --uuid; any failure here only
        means the UUID-addressed URL is skipped, so it is logged, not raised.
        """
        try:
            out = run_tool([self.native_tool, str(report_path), "--uuid"])
        except SymbolicateError as e:
            LOG.warning("Could not read build UUID from %s: %s", report_path, e)
            return None
        uuid = out.strip()
        return uuid or None


__all__ = [
    "REMEDIES",
    "require_tools",
    "run_tool",
    "Symbolizer",
    "ToolchainSymbolizer",
]
