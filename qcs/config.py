"""
config.py

Runtime configuration for QCS.

Everything that used to be implied by the current working directory or
hard-coded in the symbolicate flow (cache root, storage host, tool names)
lives here and is injected into the cache store, fetcher and symbolizer.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path


DEFAULT_CACHE_ROOT = Path("target") / "dsyms"
DEFAULT_BASE_URL = "https://zed-debug-symbols.nyc3.digitaloceanspaces.com"
DEFAULT_TIMEOUT = 60.0
DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class SymbolicateConfig:
    """
    cache_root:
        Root of the local artifact cache. Artifacts live under
        <cache_root>/<channel>/<file>.
    base_url:
        Artifact storage host; remote names are appended to it.
    timeout:
        Per-request network timeout in seconds.
    workers:
        Thread count when several reports are processed at once.
    resolver / demangler / native_tool:
        Executable names of the external tools.
    """
    cache_root: Path = DEFAULT_CACHE_ROOT
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS
    resolver: str = "llvm-symbolizer"
    demangler: str = "rustfilt"
    native_tool: str = "symbolicate"


def config_from_args(args: argparse.Namespace) -> SymbolicateConfig:
    """Build a config from parsed CLI flags (see cli.build_argparser)."""
    return SymbolicateConfig(
        cache_root=Path(args.cache_root),
        base_url=args.base_url.rstrip("/"),
        timeout=args.timeout,
        workers=max(1, args.workers),
    )


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_CACHE_ROOT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_WORKERS",
    "SymbolicateConfig",
    "config_from_args",
]
