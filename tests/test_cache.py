"""Tests for the cache stores."""

from __future__ import annotations

import os
import tempfile
import threading

from flagsync.cache import FileCacheStore, MemoryCacheStore


class TestMemoryCacheStore:
    def test_get_missing(self):
        assert MemoryCacheStore().get("k") is None

    def test_put_and_get(self):
        store = MemoryCacheStore()
        store.put("k", b"value")
        assert store.get("k") == b"value"

    def test_initial_data(self):
        store = MemoryCacheStore({"k": b"seed"})
        assert store.get("k") == b"seed"

    def test_clear_specific(self):
        store = MemoryCacheStore({"a": b"1", "b": b"2"})
        store.clear("a")
        assert store.get("a") is None
        assert store.get("b") == b"2"

    def test_clear_all(self):
        store = MemoryCacheStore({"a": b"1", "b": b"2"})
        store.clear()
        assert store.get("a") is None
        assert store.get("b") is None


class TestFileCacheStore:
    def test_get_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            assert store.get("FeatureCache.txt") is None

    def test_put_and_get(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("FeatureCache.txt", b'{"a":1}')
            assert store.get("FeatureCache.txt") == b'{"a":1}'

    def test_put_creates_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cache_dir = os.path.join(tmpdir, "nested", "cache")
            store = FileCacheStore(cache_dir=cache_dir)
            store.put("k", b"x")
            assert os.path.isdir(cache_dir)
            assert store.get("k") == b"x"

    def test_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("k", b"old")
            store.put("k", b"new")
            assert store.get("k") == b"new"

    def test_no_temp_files_left_behind(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("k", b"x")
            assert [f for f in os.listdir(tmpdir) if f.endswith(".tmp")] == []

    def test_key_with_path_separators_stays_in_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("../../etc/passwd", b"x")
            assert len(os.listdir(tmpdir)) == 1
            assert store.get("../../etc/passwd") == b"x"

    def test_clear_specific(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("a", b"1")
            store.put("b", b"2")
            store.clear("a")
            assert store.get("a") is None
            assert store.get("b") == b"2"

    def test_clear_all(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            store.put("a", b"1")
            store.put("b", b"2")
            store.clear()
            assert store.get("a") is None
            assert store.get("b") is None

    def test_concurrent_writers_never_interleave(self):
        blobs = [bytes([65 + i]) * 200_000 for i in range(8)]
        with tempfile.TemporaryDirectory() as tmpdir:
            store = FileCacheStore(cache_dir=tmpdir)
            threads = [threading.Thread(target=store.put, args=("k", b)) for b in blobs]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            assert store.get("k") in blobs
