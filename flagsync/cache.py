"""Byte-addressed cache storage for feature snapshots.

Stores the last good feature set so the client can report flags
immediately on startup, offline, or while the remote source is
temporarily unreachable.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_DEFAULT_CACHE_DIR = os.path.join(
    os.environ.get("XDG_CACHE_HOME", os.path.expanduser("~/.cache")),
    "flagsync",
)


class CacheStore(ABC):
    """Abstract base class for cache storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the blob stored under *key*, or ``None`` if absent."""

    @abstractmethod
    def put(self, key: str, content: bytes) -> None:
        """Store *content* under *key*, replacing any previous blob."""

    @abstractmethod
    def clear(self, key: Optional[str] = None) -> None:
        """Remove one entry, or every entry when *key* is ``None``."""


# ── In-memory store ─────────────────────────────────────────────────────


class MemoryCacheStore(CacheStore):
    """Dict-backed store, mostly useful for tests and short-lived clients."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, content: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(content)

    def clear(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._data.clear()
            else:
                self._data.pop(key, None)


# ── File-backed store ───────────────────────────────────────────────────


class FileCacheStore(CacheStore):
    """One file per key inside *cache_dir*.

    Writes go through a temp file and ``os.replace`` so readers always see
    either the previous blob or the new one, never a partial write.

    Parameters
    ----------
    cache_dir:
        Directory for cache files.  Created on first write.
    """

    def __init__(self, cache_dir: str = _DEFAULT_CACHE_DIR) -> None:
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> str:
        return self._cache_dir

    # ── public interface ────────────────────────────────────────────

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as exc:
            logger.warning("Failed to read cache file %s: %s", path, exc)
            return None

    def put(self, key: str, content: bytes) -> None:
        os.makedirs(self._cache_dir, exist_ok=True)
        path = self._path_for(key)
        fd, tmp_path = tempfile.mkstemp(dir=self._cache_dir, prefix=".cache_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Cache written: %s (%d bytes)", path, len(content))

    def clear(self, key: Optional[str] = None) -> None:
        if key:
            path = self._path_for(key)
            if os.path.exists(path):
                os.unlink(path)
        elif os.path.isdir(self._cache_dir):
            for fname in os.listdir(self._cache_dir):
                fp = os.path.join(self._cache_dir, fname)
                if os.path.isfile(fp) and fp.endswith(".cache"):
                    os.unlink(fp)

    # ── internals ───────────────────────────────────────────────────

    def _path_for(self, key: str) -> str:
        safe_name = hashlib.sha256(key.encode()).hexdigest()
        base_dir = Path(self._cache_dir).resolve()
        target_path = (base_dir / f"{safe_name}.cache").resolve()
        if not target_path.is_relative_to(base_dir):
            raise ValueError("Cache path escapes cache directory")
        return str(target_path)
