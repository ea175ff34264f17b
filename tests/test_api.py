"""Tests for the BusApi endpoint methods."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from bussystem.api import BusApi
from bussystem.cache import ResponseCache
from bussystem.exceptions import ConfigError, InvalidParametersError, RequestFailedError
from bussystem.models import CacheConfig, Environment, Settings
from bussystem.operations import OPERATIONS

POINTS_RESPONSE = [
    {
        "point_id": "90",
        "point_latin_name": "Moskva",
        "country_name": "Russia",
        "currency": "RUB",
        "latitude": "55.609899",
    },
    {
        "point_id": "2",
        "point_latin_name": "Minsk",
        "country_name": "Belarus",
        "currency": "BYN",
    },
]


@pytest.fixture(autouse=True)
def _quiet(quiet_output):
    yield


@pytest.fixture()
def cache(tmp_path):
    c = ResponseCache(tmp_path, CacheConfig())
    yield c
    c.close()


def _complete(name: str) -> dict[str, Any]:
    params = {field: "1" for field in OPERATIONS[name].required_fields}
    if name == "get_bus_tickets_reversal":
        params["sid"] = "abc"
    return params


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_get_points_cached_for_a_year(self, settings, make_transport, cache) -> None:
        transport = make_transport(POINTS_RESPONSE)
        with BusApi(settings, cache=cache, transport=transport) as api:
            first = api.get_points({"country_id": 1})
            second = api.get_points({"country_id": 1})

        assert first == second == POINTS_RESPONSE
        assert first[0]["point_id"] == "90"
        assert first[1]["currency"] == "BYN"
        assert transport.calls == 1

    def test_kwargs_and_mapping_are_equivalent(self, settings, make_transport, cache) -> None:
        transport = make_transport(POINTS_RESPONSE)
        with BusApi(settings, cache=cache, transport=transport) as api:
            api.get_points({"country_id": 1})
            api.get_points(country_id=1)
        assert transport.calls == 1

    def test_kwargs_override_mapping(self, settings, make_transport) -> None:
        transport = make_transport({})
        with BusApi(settings, transport=transport) as api:
            api.get_routes({"date": "2024-09-09", "lang": "de"}, lang="pl")
        assert transport.bodies[0]["lang"] == "pl"

    def test_lang_override_on_the_wire(self, make_transport) -> None:
        settings = Settings(login="A", password="B", lang="en")
        transport = make_transport({})
        with BusApi(settings, transport=transport) as api:
            api.get_routes(lang="ru")
        assert transport.bodies[0] == {"login": "A", "password": "B", "lang": "ru"}

    def test_get_routes_server_error(self, settings, make_transport) -> None:
        cache = MagicMock(spec=ResponseCache)
        cache.lookup.return_value = (False, None)
        transport = make_transport({"error": "x"}, status_code=500)
        with BusApi(settings, cache=cache, transport=transport) as api:
            with pytest.raises(RequestFailedError) as exc_info:
                api.get_routes({"id_from": 3, "id_to": 7})
        assert exc_info.value.status_code == 500
        cache.set.assert_not_called()

    def test_order_lifecycle_never_cached(self, settings, make_transport, cache) -> None:
        transport = make_transport({"order_id": 1024, "security": "777"})
        with BusApi(settings, cache=cache, transport=transport) as api:
            params = _complete("new_order")
            api.new_order(params)
            api.new_order(params)
            api.buy_ticket(order_id=1024)
            api.cancel_ticket(order_id=1024)
        assert transport.calls == 4
        assert cache.stats()["size"] == 0

    def test_get_order_uses_short_cache(self, settings, make_transport, cache) -> None:
        transport = make_transport({"order_id": 1024, "status": "buy"})
        with BusApi(settings, cache=cache, transport=transport) as api:
            api.get_order(order_id=1024, security="777")
            api.get_order(order_id=1024, security="777")
        assert transport.calls == 1

    def test_invalidate(self, settings, make_transport, cache) -> None:
        transport = make_transport({"order_id": 1024})
        with BusApi(settings, cache=cache, transport=transport) as api:
            api.get_order(order_id=1024, security="777")
            assert api.invalidate("get_order", order_id=1024, security="777") is True
            api.get_order(order_id=1024, security="777")
        assert transport.calls == 2

    def test_languages_do_not_share_cached_payloads(self, make_transport, cache) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"lang": json.loads(request.content)["lang"]})

        transport = make_transport(handler=handler)
        english = Settings(login="A", password="B", lang="en")
        russian = Settings(login="A", password="B", lang="ru")
        with BusApi(english, cache=cache, transport=transport) as api:
            first = api.get_points(country_id=1)
        with BusApi(russian, cache=cache, transport=transport) as api:
            second = api.get_points(country_id=1)
            again = api.get_points(country_id=1)

        assert first == {"lang": "en"}
        assert second == again == {"lang": "ru"}
        assert transport.calls == 2

    def test_invalidate_unknown_operation(self, settings, cache) -> None:
        api = BusApi(settings, cache=cache)
        with pytest.raises(ConfigError):
            api.invalidate("get_weather")


# ---------------------------------------------------------------------------
# Validation precedes I/O
# ---------------------------------------------------------------------------


_REQUIRED_CASES = [
    (name, field)
    for name, op in OPERATIONS.items()
    for field in op.required_fields
]


class TestValidationBeforeIO:
    @pytest.mark.parametrize("name,field", _REQUIRED_CASES)
    def test_missing_field_no_io(self, settings, make_transport, name, field) -> None:
        cache = MagicMock(spec=ResponseCache)
        transport = make_transport({})
        params = _complete(name)
        del params[field]

        with BusApi(settings, cache=cache, transport=transport) as api:
            with pytest.raises(InvalidParametersError):
                getattr(api, name)(params)

        assert transport.calls == 0
        cache.lookup.assert_not_called()
        cache.get.assert_not_called()
        cache.set.assert_not_called()

    def test_reversal_without_identity_no_io(self, settings, make_transport) -> None:
        cache = MagicMock(spec=ResponseCache)
        transport = make_transport({})
        with BusApi(settings, cache=cache, transport=transport) as api:
            with pytest.raises(InvalidParametersError):
                api.get_bus_tickets_reversal()
        assert transport.calls == 0
        cache.lookup.assert_not_called()
        cache.get.assert_not_called()
        cache.set.assert_not_called()

    def test_injected_credentials_do_not_satisfy_validation(self, settings, make_transport) -> None:
        transport = make_transport({})
        with BusApi(settings, transport=transport) as api:
            with pytest.raises(InvalidParametersError):
                api.get_orders()
        assert transport.calls == 0


# ---------------------------------------------------------------------------
# Every operation reaches its path
# ---------------------------------------------------------------------------


class TestEndpointMethods:
    @pytest.mark.parametrize("name", sorted(OPERATIONS))
    def test_method_posts_to_operation_path(self, settings, make_transport, name) -> None:
        transport = make_transport({"ok": True})
        with BusApi(settings, transport=transport) as api:
            assert getattr(api, name)(_complete(name)) == {"ok": True}
        assert transport.calls == 1
        assert transport.requests[0].url.path == "/server" + OPERATIONS[name].path

    def test_call_by_name(self, settings, make_transport) -> None:
        transport = make_transport({"ok": True})
        with BusApi(settings, transport=transport) as api:
            api.call("get_free_seats", interval_id="local|1")
        assert transport.bodies[0]["interval_id"] == "local|1"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestFromSettings:
    def test_cache_dir_per_environment(self, tmp_path) -> None:
        test_api = BusApi.from_settings(Settings(), cache_dir=tmp_path)
        prod_api = BusApi.from_settings(
            Settings(environment=Environment.PRODUCTION), cache_dir=tmp_path
        )
        try:
            assert test_api.cache.stats()["directory"] == str(tmp_path / "test" / "responses")
            assert prod_api.cache.stats()["directory"] == str(
                tmp_path / "production" / "responses"
            )
        finally:
            test_api.close()
            prod_api.close()

    def test_default_cache_dir(self, isolated_config) -> None:
        api = BusApi.from_settings(Settings())
        try:
            assert api.cache.stats()["directory"].startswith(
                str(isolated_config / "cache" / "bussystem")
            )
        finally:
            api.close()

    def test_disabled_cache_from_settings(self, tmp_path, make_transport) -> None:
        settings = Settings(cache=CacheConfig(enabled=False))
        transport = make_transport({})
        with BusApi.from_settings(settings, cache_dir=tmp_path, transport=transport) as api:
            api.get_points()
            api.get_points()
        assert transport.calls == 2
