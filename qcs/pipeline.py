#!/usr/bin/env python3
"""
pipeline.py

Sequences one symbolication run:

    INIT -> PARSED -> NAMED -> CACHED -> SYMBOLIZED -> DONE

Any failing step moves the run to FAILED and re-raises; later steps are not
attempted. The only retry-like behavior lives in the fetcher (one fallback
URL).

symbolicate_many() runs independent pipelines for several reports on a
thread pool. The shared CacheStore serializes downloads per artifact.
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from qcs.cache import CacheStore
from qcs.config import SymbolicateConfig
from qcs.downloader import ArtifactFetcher
from qcs.errors import SymbolicateError
from qcs.naming import ArtifactIdentity, ArtifactLocation, identify, locate
from qcs.parser import CrashReport, NativeCrash, parse_report_file, report_format
from qcs.symbolizer import symbolize_report
from qcs.tool_runner import Symbolizer, ToolchainSymbolizer


LOG = logging.getLogger("pipeline")


class Stage(str, Enum):
    INIT = "init"
    PARSED = "parsed"
    NAMED = "named"
    CACHED = "cached"
    SYMBOLIZED = "symbolized"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SymbolicationRun:
    """
    State of one report's run. Fields are filled in as stages complete.
    """
    report_path: Path
    stage: Stage = Stage.INIT
    report: Optional[CrashReport] = None
    identity: Optional[ArtifactIdentity] = None
    location: Optional[ArtifactLocation] = None
    artifact: Optional[Path] = None
    output: Optional[str] = None
    error: Optional[SymbolicateError] = None

    def advance(self, stage: Stage) -> None:
        LOG.debug("%s: %s -> %s", self.report_path, self.stage.value, stage.value)
        self.stage = stage

    def fail(self, error: SymbolicateError) -> None:
        LOG.debug("%s: %s -> failed (%s)", self.report_path, self.stage.value, error)
        self.stage = Stage.FAILED
        self.error = error


class SymbolicationPipeline:
    def __init__(
        self,
        config: SymbolicateConfig,
        cache: Optional[CacheStore] = None,
        symbolizer: Optional[Symbolizer] = None,
    ):
        self.config = config
        self.cache = cache or CacheStore(
            config.cache_root,
            ArtifactFetcher(timeout=config.timeout),
        )
        self.symbolizer = symbolizer or ToolchainSymbolizer(
            resolver=config.resolver,
            demangler=config.demangler,
            native_tool=config.native_tool,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _parse(self, run: SymbolicationRun) -> None:
        try:
            run.report = parse_report_file(run.report_path)
        except OSError as e:
            raise SymbolicateError(f"cannot read report {run.report_path}: {e}") from e
        run.advance(Stage.PARSED)

    def _name(self, run: SymbolicationRun, query_uuid: bool) -> None:
        report = run.report
        if query_uuid and isinstance(report, NativeCrash) and not report.uuid:
            uuid = self.symbolizer.report_uuid(run.report_path)
            if uuid:
                report = dataclasses.replace(report, uuid=uuid)
                run.report = report
        run.identity = identify(report)
        run.location = locate(run.identity, self.config.cache_root, self.config.base_url)
        LOG.info("Artifact for %s: %s", run.report_path, run.location.artifact_name)
        run.advance(Stage.NAMED)

    def _cache(self, run: SymbolicationRun) -> None:
        run.artifact = self.cache.ensure_present(run.location)
        run.advance(Stage.CACHED)

    def _symbolize(self, run: SymbolicationRun) -> None:
        run.output = symbolize_report(run.report, run.report_path, run.artifact, self.symbolizer)
        run.advance(Stage.SYMBOLIZED)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_location(self, report_path: Path) -> SymbolicationRun:
        """
        Parse and name only: no tool checks, no UUID query, no download.
        """
        run = SymbolicationRun(report_path=report_path)
        try:
            self._parse(run)
            self._name(run, query_uuid=False)
        except SymbolicateError as e:
            run.fail(e)
            raise
        return run

    def run(self, report_path: Path) -> SymbolicationRun:
        """
        Symbolicate one report. Returns the finished run (stage DONE).

        Raises:
            SymbolicateError: from the first failing stage.
        """
        run = SymbolicationRun(report_path=report_path)
        self.execute(run)
        return run

    def execute(self, run: SymbolicationRun) -> None:
        """Drive run from INIT to DONE, or to FAILED and re-raise."""
        try:
            self._parse(run)
            self.symbolizer.require(report_format(run.report))
            self._name(run, query_uuid=True)
            self._cache(run)
            self._symbolize(run)
        except SymbolicateError as e:
            run.fail(e)
            raise
        run.advance(Stage.DONE)


def symbolicate_many(
    pipeline: SymbolicationPipeline,
    report_paths: List[Path],
    workers: int = 4,
) -> List[SymbolicationRun]:
    """
    Run the pipeline for each report; results are in input order.

    A failing report does not stop the others. Its run is returned with
    stage FAILED and the error attached.
    """
    def _one(path: Path) -> SymbolicationRun:
        run = SymbolicationRun(report_path=path)
        try:
            pipeline.execute(run)
        except SymbolicateError:
            # already recorded on run.error by execute()
            pass
        return run

    if len(report_paths) <= 1:
        return [_one(p) for p in report_paths]

    with ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
        return list(ex.map(_one, report_paths))


__all__ = [
    "Stage",
    "SymbolicationRun",
    "SymbolicationPipeline",
    "symbolicate_many",
]
