"""Tests for the configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from bussystem.exceptions import ConfigError
from bussystem.models import DEFAULT_CACHE_TIMES, Environment, Settings


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.environment == Environment.TEST
        assert s.lang == "en"
        assert s.request.timeout == 120
        assert s.cache.enabled is True
        assert s.base_url == "https://test-api.bussystem.eu/server"

    def test_production_base_url(self) -> None:
        assert Settings(environment="production").base_url == "https://api.bussystem.eu/server"

    def test_immutable(self) -> None:
        s = Settings()
        with pytest.raises(ValidationError):
            s.login = "other"

    def test_default_parameters(self) -> None:
        s = Settings(login="A", password="B", lang="ru")
        assert s.default_parameters() == {"login": "A", "password": "B", "lang": "ru"}

    def test_cache_times_read_only(self) -> None:
        s = Settings()
        with pytest.raises(TypeError):
            s.cache_times["get_points"] = 0
        assert s.ttl_for("get_points") == DEFAULT_CACHE_TIMES["get_points"]

    def test_cache_times_copied_from_input(self) -> None:
        times = dict(DEFAULT_CACHE_TIMES)
        s = Settings(cache_times=times)
        times["get_points"] = 0
        assert s.ttl_for("get_points") == DEFAULT_CACHE_TIMES["get_points"]

    def test_cache_times_dump_as_plain_dict(self) -> None:
        dumped = Settings(cache_times={"get_points": 5}).model_dump(mode="json")
        assert dumped["cache_times"] == {"get_points": 5}


class TestTtlFor:
    @pytest.mark.parametrize(
        "name,seconds",
        [
            ("get_points", 31536000),
            ("get_routes", 86400),
            ("get_free_seats", 3600),
            ("get_order", 1800),
            ("new_order", 0),
            ("get_bus_tickets_reversal", 0),
        ],
    )
    def test_defaults(self, name: str, seconds: int) -> None:
        assert Settings().ttl_for(name) == seconds

    def test_unknown(self) -> None:
        with pytest.raises(ConfigError, match="get_weather"):
            Settings().ttl_for("get_weather")

    def test_negative(self) -> None:
        with pytest.raises(ConfigError):
            Settings(cache_times={"get_points": -1}).ttl_for("get_points")
