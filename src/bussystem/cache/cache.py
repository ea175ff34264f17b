"""Disk-based cache for decoded API payloads.

Uses :mod:`diskcache` to persist payloads on the filesystem with a
per-entry expiry.  The store itself knows nothing about lifetimes per
operation; :class:`~bussystem.client.cached.CachedOperation` decides what
to cache and for how long.

Cache keys have the form ``busapi:<operation>:<sha256>`` where the digest is
taken over the sorted-key JSON serialisation of the request parameters, so
logically equal parameter mappings always resolve to the same entry
regardless of insertion order.

:class:`diskcache.Cache` is safe to share between threads and processes;
concurrent writers of the same key simply overwrite each other.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import diskcache

from bussystem.models import CacheConfig

KEY_PREFIX = "busapi"

_MISSING = object()


def _stringify_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _stringify_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify_keys(v) for v in value]
    return value


def canonical_parameters(params: Optional[Mapping[str, Any]]) -> str:
    """Serialise *params* to a stable string independent of key order.

    Mapping keys are compared as strings, the way they appear in the JSON
    body, so ``{1: "a"}`` and ``{"1": "a"}`` share a key.  Values that cannot be
    sent as JSON raise :class:`TypeError` here rather than on the wire.
    """
    return json.dumps(
        _stringify_keys(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def make_key(operation: str, params: Optional[Mapping[str, Any]]) -> str:
    """Build the cache key for *operation* called with *params*."""
    digest = hashlib.sha256(canonical_parameters(params).encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}:{operation}:{digest}"


class ResponseCache:
    """Disk-backed store for successful API payloads.

    Args:
        cache_dir: Root directory for the cache.  A ``responses/``
            subdirectory is created inside it.
        config: Cache configuration; when ``enabled`` is false the cache
            never opens a directory and every lookup misses.

    Example::

        cache = ResponseCache("/tmp/bus-cache", CacheConfig())
        key = make_key("get_points", {"country_id": 1})
        cache.set(key, [{"point_id": "90"}], expire=3600)
        hit = cache.get(key)
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._config = config
        self._cache: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir)
        if config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "responses"))

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Return the payload stored under *key*, or *default* on a miss.

        Expired entries are never returned.
        """
        if self._cache is None:
            return default
        return self._cache.get(key, default=default)

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Return ``(hit, payload)`` for *key* in a single read.

        Payloads may legitimately be ``null``, so the caching wrapper uses
        this instead of :meth:`get` to tell a cached ``None`` from a miss.
        """
        if self._cache is None:
            return False, None
        value = self._cache.get(key, default=_MISSING)
        if value is _MISSING:
            return False, None
        return True, value

    def set(self, key: str, payload: Any, expire: int) -> None:
        """Store *payload* under *key* for *expire* seconds.

        A non-positive *expire* is ignored so that nothing is ever stored
        without a lifetime.
        """
        if self._cache is None or expire <= 0:
            return
        self._cache.set(key, payload, expire=expire)

    def invalidate(self, operation: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        """Remove the entry for *operation* called with *params*.

        Returns:
            ``True`` if an entry was removed.
        """
        if self._cache is None:
            return False
        return bool(self._cache.delete(make_key(operation, params)))

    def clear(self) -> int:
        """Remove all entries and return how many were removed."""
        if self._cache is None:
            return 0
        return self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            ``{"enabled": False}`` for a disabled cache, otherwise
            ``enabled``, ``size`` (number of entries) and ``directory``.
        """
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "responses"),
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        if self._cache is not None:
            self._cache.close()
