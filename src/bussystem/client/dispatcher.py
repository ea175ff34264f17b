"""Request dispatcher -- one POST per call, every failure classified.

:class:`RequestDispatcher` wraps :class:`httpx.Client` and is the only place
that talks to the network.  For each call it:

- resolves the base URL from the configured environment (never from the
  caller) and appends the fixed endpoint path verbatim;
- builds the *effective request*: ``login``, ``password`` and ``lang`` from
  :class:`~bussystem.models.Settings` as defaults, overridden by any
  caller-supplied value of the same key (the caller's mapping is copied,
  never mutated);
- sends a single JSON ``POST`` with ``Accept: application/json`` and the
  configured timeout (120 s by default);
- returns the decoded JSON payload, or raises
  :class:`~bussystem.exceptions.RequestFailedError`,
  :class:`~bussystem.exceptions.TransportError` or
  :class:`~bussystem.exceptions.DecodeError`.

There is no retry: the first failure is surfaced to the caller.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Optional

import httpx

from bussystem.exceptions import DecodeError, RequestFailedError, TransportError
from bussystem.models import Settings
from bussystem.output import get_output


class RequestDispatcher:
    """Synchronous dispatcher for BusSystem API calls.

    Must be used as a context manager so that the underlying connection pool
    is opened and closed deterministically.

    Args:
        settings: Credentials, environment and request settings.
        transport: Optional :class:`httpx.BaseTransport`, e.g. an
            :class:`httpx.MockTransport` in tests.

    Example::

        with RequestDispatcher(settings) as dispatcher:
            points = dispatcher.dispatch("/curl/get_points.php", {"country_id": 1})
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def settings(self) -> Settings:
        return self._settings

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> RequestDispatcher:
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def open(self) -> None:
        """Create the underlying :class:`httpx.Client` if it is not open yet."""
        if self._client is not None:
            return
        config = self._settings.request
        self._client = httpx.Client(
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def build_url(self, path: str) -> str:
        """Return ``base_url + path`` for the active environment."""
        return f"{self._settings.base_url}{path}"

    def effective_request(self, params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        """Merge *params* over the injected credential defaults.

        Returns a new dict; *params* is left untouched.
        """
        return {**self._settings.default_parameters(), **dict(params or {})}

    def dispatch(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Send one request and return the decoded JSON payload.

        Args:
            path: Fixed endpoint path, e.g. ``"/curl/get_routes.php"``.
            params: Caller parameters; merged over the credential defaults.

        Returns:
            The decoded JSON body, passed through verbatim.

        Raises:
            RequestFailedError: On any non-2xx status.
            TransportError: On timeout, connection, DNS or TLS failures.
            DecodeError: When a 2xx body is not valid JSON.
        """
        assert self._client is not None, "Dispatcher not initialised -- use as context manager"

        url = self.build_url(path)
        body = self.effective_request(params)
        output = get_output()
        output.debug(f"POST {url}")

        try:
            response = self._client.post(url, json=body)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request to {path} timed out after {self._settings.request.timeout}s: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {path} failed: {exc}") from exc

        output.debug(f"HTTP {response.status_code} from {path}")
        if not response.is_success:
            raise RequestFailedError(response.status_code)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(
                f"Response from {path} is not valid JSON: {exc}"
            ) from exc
