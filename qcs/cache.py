#!/usr/bin/env python3
"""
cache.py

Local debug-symbol cache.

Layout:
    <cache_root>/<channel>/<artifact file>

Artifacts are keyed by a name that is unique per build, so an existing file
is always the right one: a hit never touches the network, and nothing here
ever deletes a cached artifact.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from qcs.downloader import ArtifactFetcher
from qcs.errors import CacheError, CacheNotFound, FetchError
from qcs.naming import ArtifactLocation


LOG = logging.getLogger("cache")


class CacheStore:
    def __init__(self, cache_root: Path, fetcher: Optional[ArtifactFetcher] = None):
        self.cache_root = cache_root
        self.fetcher = fetcher or ArtifactFetcher()
        # One lock per artifact file so parallel runs for the same build
        # download it once.
        self._locks_guard = Lock()
        self._locks: Dict[Path, Lock] = {}

    def _lock_for(self, path: Path) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = Lock()
                self._locks[path] = lock
            return lock

    def contains(self, location: ArtifactLocation) -> bool:
        return location.local_path.is_file()

    def ensure_present(self, location: ArtifactLocation) -> Path:
        """
        Return the cached artifact path, downloading it on a miss.

        Raises:
            CacheNotFound: the fetcher failed; the FetchError is chained.
            CacheError: the cache directory cannot be created or written.
        """
        path = location.local_path
        if path.is_file():
            LOG.debug("Cache hit: %s", path)
            return path

        with self._lock_for(path):
            if path.is_file():
                LOG.debug("Cache hit after wait: %s", path)
                return path

            LOG.info("Cache miss, downloading %s", location.artifact_name)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                return self.fetcher.fetch(
                    location.remote_primary_url,
                    path,
                    fallback_url=location.remote_fallback_url,
                )
            except FetchError as e:
                raise CacheNotFound(
                    f"artifact {location.artifact_name} not available: {e}"
                ) from e
            except OSError as e:
                raise CacheError(
                    f"cannot write artifact cache at {path.parent}: {e}"
                ) from e


__all__ = [
    "CacheStore",
]
