#!/usr/bin/env python3
"""
downloader.py

Fetch a gzip-compressed debug-symbol artifact and install it, decompressed,
at its final cache path.

Steps for one artifact:

  1) Download the primary URL into "<final>.<random>.gz" next to the final path.
     On any transport failure, try the fallback URL once (if there is one).
  2) Decompress into "<final>.<random>.tmp" in the same directory.
  3) os.replace() the decompressed file onto the final path.
  4) Remove the compressed copy (always) and the temp file (on failure).

The final path therefore either does not exist or holds a complete artifact.
"""

from __future__ import annotations

import gzip
import http.client
import logging
import os
import shutil
import tempfile
import urllib.error
import urllib.request
import zlib
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional

from qcs.config import DEFAULT_TIMEOUT
from qcs.errors import CacheError, FetchCorrupt, FetchUnavailable


LOG = logging.getLogger("downloader")

_CHUNK = 1024 * 1024


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# mkstemp creates 0600 files; installed artifacts get the umask-derived mode
_FILE_MODE = 0o666 & ~_current_umask()


def _mkstemp_beside(final_path: Path, suffix: str) -> Path:
    fd, name = tempfile.mkstemp(
        dir=str(final_path.parent),
        prefix=final_path.name + ".",
        suffix=suffix,
    )
    os.close(fd)
    return Path(name)


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def gunzip_atomic(compressed: Path, final_path: Path) -> Path:
    """
    Decompress `compressed` onto `final_path` via a temporary file + rename.

    Raises:
        FetchCorrupt: the data is not a valid gzip stream. Nothing is left
        at final_path in that case.
        OSError: the temporary file cannot be written or renamed.
    """
    tmp_path = _mkstemp_beside(final_path, ".tmp")
    try:
        with gzip.open(compressed, "rb") as src, tmp_path.open("wb") as dst:
            shutil.copyfileobj(src, dst, _CHUNK)
        os.chmod(tmp_path, _FILE_MODE)
        os.replace(tmp_path, final_path)
    except (gzip.BadGzipFile, EOFError, zlib.error) as e:
        raise FetchCorrupt(f"failed to decompress {compressed.name}: {e}") from e
    finally:
        _unlink_quietly(tmp_path)
    return final_path


class ArtifactFetcher:
    """
    Downloads artifacts with urllib.

    opener:
        Callable with the signature of urllib.request.urlopen(url, timeout=...).
        Returns a file-like response usable as a context manager.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        opener: Optional[Callable] = None,
    ):
        self.timeout = timeout
        self.opener = opener or urllib.request.urlopen

    def _download(self, url: str, dest: Path, out: BinaryIO) -> None:
        out.seek(0)
        out.truncate()
        with self.opener(url, timeout=self.timeout) as resp:
            while True:
                chunk = resp.read(_CHUNK)
                if not chunk:
                    return
                try:
                    out.write(chunk)
                except OSError as e:
                    # local disk trouble, not a transport failure
                    raise CacheError(f"cannot write {dest}: {e}") from e

    def download_first(self, urls: List[str], dest: Path) -> str:
        """
        Download the first URL that succeeds into dest. Returns that URL.

        Any transport failure on one URL (HTTP status, DNS, TLS, timeout,
        truncated response, malformed URL) moves on to the next.

        Raises:
            FetchUnavailable: every URL failed.
            CacheError: dest cannot be written.
        """
        last_error = "no URL given"
        with dest.open("wb") as out:
            for url in urls:
                LOG.info("Downloading %s", url)
                try:
                    self._download(url, dest, out)
                    return url
                except urllib.error.HTTPError as e:
                    last_error = f"HTTP {e.code} for {url}"
                except (OSError, http.client.HTTPException, ValueError) as e:
                    last_error = f"{url}: {e}"
                LOG.warning("Download failed: %s", last_error)
        raise FetchUnavailable(urls, last_error)

    def fetch(
        self,
        primary_url: str,
        final_path: Path,
        fallback_url: Optional[str] = None,
    ) -> Path:
        """
        Fetch primary_url (or fallback_url) and install it at final_path.

        The parent directory of final_path must already exist.
        """
        urls = [primary_url]
        if fallback_url:
            urls.append(fallback_url)

        compressed = _mkstemp_beside(final_path, ".gz")
        try:
            used = self.download_first(urls, compressed)
            LOG.debug("Decompressing %s -> %s", used, final_path)
            return gunzip_atomic(compressed, final_path)
        finally:
            _unlink_quietly(compressed)


__all__ = [
    "ArtifactFetcher",
    "gunzip_atomic",
]
