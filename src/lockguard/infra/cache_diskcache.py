from __future__ import annotations

import os
from contextlib import AbstractContextManager
from typing import Iterable, Optional

import diskcache as dc
from platformdirs import user_cache_dir

from ..core.ports.cache_port import CachePort


def default_cache_dir() -> str:
    return os.getenv("LOCKGUARD_CACHE_DIR") or user_cache_dir("lockguard")


class DiskCacheAdapter(CachePort):
    """CachePort over a diskcache ``Cache`` (SQLite in WAL mode), one directory per namespace."""

    def __init__(self, namespace: str, base_dir: Optional[str] = None) -> None:
        self._namespace = namespace
        path = os.path.join(base_dir or default_cache_dir(), namespace)
        os.makedirs(path, exist_ok=True)
        self._cache = dc.Cache(path)

    @property
    def directory(self) -> str:
        return self._cache.directory

    def get(self, key: str) -> bytes | None:
        value = self._cache.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value
        raise TypeError("DiskCacheAdapter invariant violated: cached value is not bytes")

    def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        self._cache.set(key, value, expire=ttl_seconds if ttl_seconds else None)

    def delete(self, key: str) -> None:
        self._cache.delete(key)

    def clear(self, prefix: str | None = None) -> None:
        if prefix is None:
            self._cache.clear()
            return
        with self._cache.transact():
            for key in list(self.iter_keys(prefix)):
                self._cache.delete(key)

    def iter_keys(self, prefix: str) -> Iterable[str]:
        for key in self._cache.iterkeys():
            if isinstance(key, str) and key.startswith(prefix):
                yield key

    def incr(self, key: str) -> int:
        return int(self._cache.incr(key, delta=1, default=0))

    def transact(self) -> AbstractContextManager[None]:
        return self._cache.transact()

    def close(self) -> None:
        self._cache.close()

    def __enter__(self) -> DiskCacheAdapter:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
