"""Tests for the local artifact cache."""

import threading
import time

import pytest

from qcs.cache import CacheStore
from qcs.downloader import ArtifactFetcher
from qcs.errors import CacheError, CacheNotFound, FetchUnavailable
from qcs.naming import ArtifactLocation
from tests.conftest import FakeOpener, gz

URL = "https://symbols.example/stable/zed-1.0.0-x86_64-apple-darwin.dbg.gz"


class CountingFetcher:
    def __init__(self, payload=b"symbols", delay=0.0):
        self.payload = payload
        self.delay = delay
        self.calls = []

    def fetch(self, primary_url, final_path, fallback_url=None):
        self.calls.append((primary_url, fallback_url))
        time.sleep(self.delay)
        final_path.write_bytes(self.payload)
        return final_path


def _location(root):
    return ArtifactLocation(
        artifact_name="stable/zed-1.0.0-x86_64-apple-darwin.dbg",
        local_path=root / "stable" / "zed-1.0.0-x86_64-apple-darwin.dbg",
        remote_primary_url=URL,
    )


def test_second_ensure_present_is_a_cache_hit(tmp_path):
    fetcher = CountingFetcher()
    store = CacheStore(tmp_path, fetcher)
    location = _location(tmp_path)

    first = store.ensure_present(location)
    second = store.ensure_present(location)

    assert first == second == location.local_path
    assert len(fetcher.calls) == 1


def test_existing_file_is_never_fetched(tmp_path):
    location = _location(tmp_path)
    location.local_path.parent.mkdir(parents=True)
    location.local_path.write_bytes(b"already here")
    fetcher = CountingFetcher()

    assert CacheStore(tmp_path, fetcher).ensure_present(location) == location.local_path
    assert fetcher.calls == []
    assert location.local_path.read_bytes() == b"already here"


def test_miss_creates_channel_directory(tmp_path):
    store = CacheStore(tmp_path, CountingFetcher())
    location = _location(tmp_path)

    assert not (tmp_path / "stable").exists()
    assert store.contains(location) is False
    store.ensure_present(location)
    assert (tmp_path / "stable").is_dir()
    assert store.contains(location) is True


def test_fetch_failure_surfaces_as_cache_not_found(tmp_path):
    store = CacheStore(tmp_path, ArtifactFetcher(opener=FakeOpener()))

    with pytest.raises(CacheNotFound) as excinfo:
        store.ensure_present(_location(tmp_path))

    assert isinstance(excinfo.value.__cause__, FetchUnavailable)
    assert "stable/zed-1.0.0-x86_64-apple-darwin.dbg" in str(excinfo.value)


def test_real_fetcher_round_trip(tmp_path):
    opener = FakeOpener({URL: gz(b"debug info")})
    store = CacheStore(tmp_path, ArtifactFetcher(opener=opener))
    location = _location(tmp_path)

    store.ensure_present(location)
    store.ensure_present(location)

    assert location.local_path.read_bytes() == b"debug info"
    assert opener.calls == [URL]


def test_concurrent_requests_for_same_artifact_download_once(tmp_path):
    fetcher = CountingFetcher(delay=0.05)
    store = CacheStore(tmp_path, fetcher)
    location = _location(tmp_path)
    results = []

    threads = [
        threading.Thread(target=lambda: results.append(store.ensure_present(location)))
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(fetcher.calls) == 1
    assert results == [location.local_path] * 4


def test_cache_root_that_is_a_file_is_a_cache_error(tmp_path):
    root = tmp_path / "dsyms"
    root.write_text("not a directory")
    fetcher = CountingFetcher()

    with pytest.raises(CacheError) as excinfo:
        CacheStore(root, fetcher).ensure_present(_location(root))

    assert isinstance(excinfo.value.__cause__, OSError)
    assert str(root / "stable") in str(excinfo.value)
    assert fetcher.calls == []
