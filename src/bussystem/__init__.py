"""bussystem -- typed client and CLI for the BusSystem ticketing API.

Exposes the BusSystem bus/train/air reservation backend as Python methods:
point and route search, seat plans and baggage, and the order lifecycle
(create, reserve, validate, pay, fetch, cancel) plus agent reports.

Every call goes through one chokepoint: parameters are validated, the
response cache is consulted, a single JSON POST is sent with the agent
credentials injected, and any failure is translated into one
:class:`~bussystem.exceptions.ApiError` subclass.

Typical use::

    from bussystem.api import BusApi
    from bussystem.config import resolve_settings

    with BusApi.from_settings(resolve_settings()) as api:
        api.get_points(country_id=1)

Modules:
    api: Endpoint methods (:class:`~bussystem.api.BusApi`).
    operations: Operation table and required-parameter contracts.
    client: Request dispatcher and cached operation wrapper.
    cache: Disk-backed payload cache.
    models: Pydantic configuration models.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
