"""Cached operation wrapper in front of :class:`RequestDispatcher`.

For every call :class:`CachedOperation`:

1. looks up the operation's lifetime in ``Settings.cache_times`` (an
   unknown operation is a :class:`~bussystem.exceptions.ConfigError`);
2. with a lifetime of ``0`` -- or no cache at all -- dispatches directly and
   never touches the store;
3. otherwise derives ``busapi:<operation>:<sha256>`` from the canonical
   form of the effective request without ``password``, returns a live
   entry if there is one, and on a miss dispatches and stores the payload
   for the configured lifetime.

Only successful payloads are written; errors propagate unchanged.
Concurrent misses for the same key each dispatch and each write the same
payload, last writer wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

from bussystem.cache.cache import make_key
from bussystem.client.dispatcher import RequestDispatcher
from bussystem.models import Settings
from bussystem.output import get_output

if TYPE_CHECKING:
    from bussystem.cache import ResponseCache


class CachedOperation:
    """Caching layer for named operations.

    Args:
        settings: Supplies the per-operation cache lifetimes.
        dispatcher: Performs the network call on a miss.
        cache: Optional payload store.  When ``None`` every call dispatches.
    """

    def __init__(
        self,
        settings: Settings,
        dispatcher: RequestDispatcher,
        cache: Optional[ResponseCache] = None,
    ) -> None:
        self._settings = settings
        self._dispatcher = dispatcher
        self._cache = cache

    def key_parameters(self, params: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """Parameters that identify a cached payload.

        The effective request minus ``password``: the injected ``login`` and
        ``lang`` are part of it, so payloads fetched for another account or in
        another language are never served from the same entry.
        """
        scoped = self._dispatcher.effective_request(params)
        scoped.pop("password", None)
        return scoped

    def invoke(
        self,
        operation: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Return the payload of *operation*, from the cache when possible.

        Raises:
            ConfigError: If *operation* has no configured cache time.
            ApiError: Whatever the dispatcher raised on a miss.
        """
        ttl = self._settings.ttl_for(operation)
        output = get_output()

        if ttl == 0 or self._cache is None:
            output.debug(f"Cache bypass: {operation}")
            return self._dispatcher.dispatch(path, params)

        key = make_key(operation, self.key_parameters(params))
        hit, payload = self._cache.lookup(key)
        if hit:
            output.debug(f"Cache hit: {operation} ({key})")
            return payload

        output.debug(f"Cache miss: {operation} ({key})")
        payload = self._dispatcher.dispatch(path, params)
        self._cache.set(key, payload, expire=ttl)
        output.debug(f"Cache store: {operation} for {ttl}s")
        return payload
