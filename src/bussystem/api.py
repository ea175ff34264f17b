"""Public endpoint methods of the BusSystem API.

:class:`BusApi` exposes one method per remote operation.  Each method merges
its mapping and keyword parameters, checks the operation's required fields
(see :mod:`bussystem.operations`) and hands the call to
:class:`~bussystem.client.CachedOperation`.  Validation happens before any
cache lookup or network activity.

Example::

    from bussystem.api import BusApi
    from bussystem.config import resolve_settings

    with BusApi.from_settings(resolve_settings()) as api:
        points = api.get_points(country_id=1)
        routes = api.get_routes({"id_from": 3, "id_to": 7, "date": "2024-09-09"})
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import httpx

from bussystem import operations as ops
from bussystem.cache import ResponseCache
from bussystem.client import CachedOperation, RequestDispatcher
from bussystem.models import Settings

Params = Optional[Mapping[str, Any]]


class BusApi:
    """Typed facade over the BusSystem reservation API.

    Args:
        settings: Effective configuration.
        cache: Optional payload store; ``None`` disables caching.
        transport: Optional :class:`httpx.BaseTransport` for the dispatcher.
    """

    def __init__(
        self,
        settings: Settings,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._dispatcher = RequestDispatcher(settings, transport=transport)
        self._cached = CachedOperation(settings, self._dispatcher, cache)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache_dir: Optional[Path] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> BusApi:
        """Build a client with a disk cache under ``<cache_dir>/<environment>``.

        Test and production payloads are kept in separate directories.
        """
        if cache_dir is None:
            from bussystem.config import get_cache_dir

            cache_dir = get_cache_dir()
        cache = ResponseCache(cache_dir / settings.environment.value, settings.cache)
        return cls(settings, cache=cache, transport=transport)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def cache(self) -> Optional[ResponseCache]:
        return self._cache

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def __enter__(self) -> BusApi:
        self._dispatcher.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP connection pool and the cache."""
        self._dispatcher.close()
        if self._cache is not None:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Generic entry points
    # ------------------------------------------------------------------ #

    def call(self, operation: str, params: Params = None, **kwargs: Any) -> Any:
        """Validate and run *operation* by name.

        Raises:
            InvalidParametersError: If a required field is missing.
            ConfigError: If *operation* is unknown.
            ApiError: Any failure of the remote call.
        """
        merged = {**dict(params or {}), **kwargs}
        descriptor = ops.validate_parameters(operation, merged)
        return self._cached.invoke(descriptor.name, descriptor.path, merged)

    def invalidate(self, operation: str, params: Params = None, **kwargs: Any) -> bool:
        """Drop the cached payload of *operation* for these parameters."""
        if self._cache is None:
            return False
        ops.get_operation(operation)
        return self._cache.invalidate(
            operation, self._cached.key_parameters({**dict(params or {}), **kwargs})
        )

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def get_points(self, params: Params = None, **kwargs: Any) -> Any:
        """Cities, stations and airports.

        Useful filters: ``country_id``, ``point_id_from``, ``point_id_to``,
        ``autocomplete``, ``trans`` (``bus``, ``train``, ``air``, ...),
        ``group_by_point``, ``group_by_iata``, ``all``.
        """
        return self.call(ops.GET_POINTS.name, params, **kwargs)

    def get_routes(self, params: Params = None, **kwargs: Any) -> Any:
        """Routes between two points on a date.

        Points are given as ``id_from``/``id_to`` (bus),
        ``point_train_from_id``/``point_train_to_id`` (train) or
        ``id_iata_from``/``id_iata_to`` (air), plus ``date`` (``yyyy-mm-dd``).
        """
        return self.call(ops.GET_ROUTES.name, params, **kwargs)

    def get_all_routes(self, params: Params = None, **kwargs: Any) -> Any:
        """Route schedule for a ``timetable_id`` from :meth:`get_routes`."""
        return self.call(ops.GET_ALL_ROUTES.name, params, **kwargs)

    def get_baggage(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_BAGGAGE.name, params, **kwargs)

    def get_free_seats(self, params: Params = None, **kwargs: Any) -> Any:
        """Free seats; trains additionally take ``train_id`` and ``vagon_id``."""
        return self.call(ops.GET_FREE_SEATS.name, params, **kwargs)

    def get_plan(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_PLAN.name, params, **kwargs)

    # ------------------------------------------------------------------ #
    # Order lifecycle
    # ------------------------------------------------------------------ #

    def new_order(self, params: Params = None, **kwargs: Any) -> Any:
        """Create an order.

        Passenger fields (``seat``, ``name``, ``surname``, ``birth_date``)
        may be lists with one entry per passenger.
        """
        return self.call(ops.NEW_ORDER.name, params, **kwargs)

    def reserve_ticket(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.RESERVE_TICKET.name, params, **kwargs)

    def reserve_validation(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.RESERVE_VALIDATION.name, params, **kwargs)

    def sms_validation(self, params: Params = None, **kwargs: Any) -> Any:
        """Send an SMS code, or verify one with ``check_sms=1`` and ``validation_code``."""
        return self.call(ops.SMS_VALIDATION.name, params, **kwargs)

    def get_order(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_ORDER.name, params, **kwargs)

    def get_ticket(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_TICKET.name, params, **kwargs)

    def buy_ticket(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.BUY_TICKET.name, params, **kwargs)

    def reg_ticket(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.REG_TICKET.name, params, **kwargs)

    def cancel_ticket(self, params: Params = None, **kwargs: Any) -> Any:
        """Cancel a whole order (``order_id``) or a single ``ticket_id`` within it."""
        return self.call(ops.CANCEL_TICKET.name, params, **kwargs)

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def get_bus_tickets_reversal(self, params: Params = None, **kwargs: Any) -> Any:
        """Returned tickets; needs ``login`` + ``password`` or a session ID."""
        return self.call(ops.GET_BUS_TICKETS_REVERSAL.name, params, **kwargs)

    def get_cash(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_CASH.name, params, **kwargs)

    def get_orders(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_ORDERS.name, params, **kwargs)

    def get_tickets(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_TICKETS.name, params, **kwargs)

    def get_dispatcher_tickets(self, params: Params = None, **kwargs: Any) -> Any:
        return self.call(ops.GET_DISPATCHER_TICKETS.name, params, **kwargs)
