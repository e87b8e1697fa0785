"""Caching layer for parsed XSD structures.

Parsing an XSD is the expensive part of declaring resource kinds from a
schema; many kinds usually share one schema file. This module memoizes
:class:`~mydata_schema.xsd_structure.XsdStructure` objects.

Provides:
    * In-memory dictionary cache with TTL + file mtime staleness checks.
    * Redis-backed distributed cache that degrades to the local cache when
      Redis is unreachable.
    * :func:`get_structure`, the loader used by resource registries.

Design goals:
    1. Deterministic keys: all cache keys are md5 hashes of argument tuples.
    2. Predictable invalidation: TTL expiry OR upstream file modification time.
    3. Fail soft: Redis outages revert to the local cache with a warning.

Environment variables:
    MYDATA_XSD_PATH      Default XSD for :func:`get_structure`.
    MYDATA_CACHE_TYPE    ``local`` (default) or ``distributed``.
    MYDATA_CACHE_TTL     Entry TTL in seconds (default 3600).
    REDIS_URL            Redis connection URL; setting it selects the distributed cache.
    MYDATA_REDIS_PREFIX  Key prefix for Redis entries (default ``mydata:``).

Quick examples:

Local cache get/set::

    from mydata_schema.cache import SchemaCache
    cache = SchemaCache(default_ttl=5)
    key = cache._make_key('xsd', '/path/to/file.xsd')
    cache.set(key, {'parsed': True})
    assert cache.get(key)['parsed'] is True

Cached structure loading::

    from mydata_schema.cache import get_structure
    structure = get_structure(Path('InvoicesDoc.xsd'))
"""

from __future__ import annotations

import hashlib
import logging
import os
import pickle
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union, cast

import redis

from .exceptions import XsdStructureError
from .xsd_structure import StructureConfig, XsdStructure

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with TTL and source file tracking."""

    data: Any
    timestamp: float = field(default_factory=time.time)
    ttl: float = 3600.0
    etag: str = ""
    file_mtime: float = 0.0

    def is_expired(self) -> bool:
        """Check if cache entry has expired."""
        return time.time() - self.timestamp > self.ttl

    def is_stale(self, file_path: Path) -> bool:
        """Check if cache is stale based on file modification time."""
        if not file_path.exists():
            return True
        return file_path.stat().st_mtime > self.file_mtime


def _file_fingerprint(file_path: Optional[Path]) -> tuple[str, float]:
    if file_path is None or not file_path.exists():
        return "", 0.0
    return hashlib.md5(file_path.read_bytes()).hexdigest(), file_path.stat().st_mtime


class SchemaCache:
    """Simple in-memory cache for parsed schema objects.

    Single-thread oriented, like the registries that use it.
    """

    def __init__(self, default_ttl: float = 3600.0):
        self.default_ttl = default_ttl
        self._cache: Dict[str, CacheEntry] = {}

    def _make_key(self, *args: Any) -> str:
        """Create cache key from arguments."""
        return hashlib.md5(str(args).encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None if absent/expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._cache[key]
            return None
        return entry.data

    def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        """Insert or replace a value.

        Args:
            key: Cache key.
            data: Arbitrary Python object (stored as-is).
            ttl: Optional time-to-live override in seconds.
            file_path: Optional source file used for staleness detection.
        """
        etag, file_mtime = _file_fingerprint(file_path)
        self._cache[key] = CacheEntry(
            data=data, ttl=self.default_ttl if ttl is None else ttl, etag=etag, file_mtime=file_mtime
        )

    def invalidate(self, key: str) -> None:
        """Remove specific entry from cache."""
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "backend": "local",
            "cache_size": len(self._cache),
            "default_ttl": self.default_ttl,
        }

    def check_file_staleness(self, key: str, file_path: Path) -> bool:
        """Return True if the entry is missing or older than ``file_path``."""
        entry = self._cache.get(key)
        if entry is None:
            return True
        return entry.is_stale(file_path)


class DistributedCache:
    """Redis-backed cache with a local fallback.

    Entries are pickled :class:`CacheEntry` objects stored with a Redis TTL.
    Every Redis error is logged and the operation is served by the local
    ``fallback_cache`` instead.

    Args:
        default_ttl: Default TTL in seconds.
        redis_url: Connection URL (defaults to ``REDIS_URL`` or localhost).
        redis_prefix: Prefix for every key written to Redis.
        fallback_cache: Local cache used when Redis fails.
        redis_client: Pre-built client (e.g. ``fakeredis.FakeStrictRedis()``).
    """

    def __init__(
        self,
        default_ttl: float = 3600.0,
        redis_url: Optional[str] = None,
        redis_prefix: str = "mydata:",
        fallback_cache: Optional[SchemaCache] = None,
        redis_client: Any = None,
    ) -> None:
        self.default_ttl = default_ttl
        self.redis_prefix = redis_prefix
        self.fallback_cache = fallback_cache or SchemaCache(default_ttl=default_ttl)
        if redis_client is None:
            url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
            redis_client = redis.Redis.from_url(url)
            logger.info(f"Using Redis schema cache at {url}")
        self._redis = redis_client

    def _make_key(self, *parts: Any) -> str:
        return hashlib.md5(str(parts).encode()).hexdigest()

    def _redis_key(self, key: str) -> str:
        return f"{self.redis_prefix}{key}"

    def _load_entry(self, key: str) -> Optional[CacheEntry]:
        try:
            blob = self._redis.get(self._redis_key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis get failed for {key}, using local cache: {e}")
            return self.fallback_cache._cache.get(key)
        if blob is None:
            return None
        return cast(CacheEntry, pickle.loads(blob))

    def get(self, key: str) -> Optional[Any]:
        entry = self._load_entry(key)
        if entry is None or entry.is_expired():
            return None
        return entry.data

    def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[float] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        etag, file_mtime = _file_fingerprint(file_path)
        entry = CacheEntry(data=data, ttl=ttl, etag=etag, file_mtime=file_mtime)
        try:
            self._redis.set(self._redis_key(key), pickle.dumps(entry), ex=max(1, int(ttl)))
        except redis.RedisError as e:
            logger.warning(f"Redis set failed for {key}, using local cache: {e}")
            self.fallback_cache._cache[key] = entry

    def invalidate(self, key: str) -> None:
        self.fallback_cache.invalidate(key)
        try:
            self._redis.delete(self._redis_key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")

    def clear(self) -> None:
        """Delete every key under this cache's prefix."""
        self.fallback_cache.clear()
        try:
            keys = list(self._redis.scan_iter(match=f"{self.redis_prefix}*"))
            if keys:
                self._redis.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis clear failed: {e}")

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "backend": "redis",
            "redis_prefix": self.redis_prefix,
            "default_ttl": self.default_ttl,
            "fallback": self.fallback_cache.get_cache_stats(),
        }

    def check_file_staleness(self, key: str, file_path: Path) -> bool:
        entry = self._load_entry(key)
        if entry is None:
            return True
        return entry.is_stale(file_path)


_schema_cache = SchemaCache(default_ttl=float(os.getenv("MYDATA_CACHE_TTL", "3600")))
_distributed_cache: Optional[DistributedCache] = None


def get_cache_instance() -> Union[SchemaCache, DistributedCache]:
    """Return the process cache selected by ``MYDATA_CACHE_TYPE``/``REDIS_URL``."""
    global _distributed_cache

    cache_type = os.getenv("MYDATA_CACHE_TYPE", "local").lower()
    redis_url = os.getenv("REDIS_URL")
    if cache_type == "distributed" or redis_url:
        if _distributed_cache is None:
            _distributed_cache = DistributedCache(
                default_ttl=float(os.getenv("MYDATA_CACHE_TTL", "3600")),
                redis_url=redis_url,
                redis_prefix=os.getenv("MYDATA_REDIS_PREFIX", "mydata:"),
                fallback_cache=_schema_cache,
            )
        return _distributed_cache
    return _schema_cache


def get_structure(
    xsd_path: Optional[Union[str, Path]] = None,
    config: Optional[StructureConfig] = None,
    cache: Optional[Union[SchemaCache, DistributedCache]] = None,
    force_refresh: bool = False,
) -> XsdStructure:
    """Return a cached :class:`XsdStructure` for ``xsd_path``.

    Args:
        xsd_path: XSD file; defaults to ``MYDATA_XSD_PATH``.
        config: Structure extraction options (part of the cache key).
        cache: Cache override; defaults to :func:`get_cache_instance`.
        force_refresh: Re-parse even when a fresh entry exists.

    Raises:
        XsdStructureError: No path given and ``MYDATA_XSD_PATH`` unset, or the
            file does not exist.
    """
    raw_path = xsd_path or os.getenv("MYDATA_XSD_PATH")
    if not raw_path:
        raise XsdStructureError("No XSD path given and MYDATA_XSD_PATH is not set")
    path = Path(raw_path)
    config = config or StructureConfig()
    cache = cache or get_cache_instance()
    key = cache._make_key("xsd_structure", str(path.resolve()), repr(config))

    if not force_refresh and not cache.check_file_staleness(key, path):
        cached = cache.get(key)
        if cached is not None:
            return cast(XsdStructure, cached)

    structure = XsdStructure(path, config=config)
    cache.set(key, structure, file_path=path)
    return structure
