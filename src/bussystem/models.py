"""Pydantic models for bussystem configuration.

:class:`Settings` is the single immutable configuration value handed to the
request dispatcher and the caching wrapper at construction time.  It is
assembled by :func:`~bussystem.config.resolve_settings` from defaults, the
user and project config files, environment variables and CLI flags, but can
equally be constructed directly (tests build one per case).

The nested models mirror the sections of ``config.json``::

    {
      "login": "agent",
      "password_source": "env:BUS_API_PASSWORD",
      "environment": "production",
      "lang": "ru",
      "request": {"timeout": 120},
      "cache_times": {"get_routes": 3600}
    }
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from bussystem.exceptions import ConfigError

# Seconds.  ``0`` disables caching for the operation.
DEFAULT_CACHE_TIMES: dict[str, int] = {
    "get_points": 365 * 24 * 60 * 60,
    "get_routes": 24 * 60 * 60,
    "get_all_routes": 24 * 60 * 60,
    "get_baggage": 24 * 60 * 60,
    "get_free_seats": 60 * 60,
    "get_plan": 60 * 60,
    "new_order": 0,
    "reserve_ticket": 0,
    "reserve_validation": 0,
    "sms_validation": 0,
    "get_order": 30 * 60,
    "get_ticket": 30 * 60,
    "buy_ticket": 0,
    "reg_ticket": 0,
    "cancel_ticket": 0,
    "get_bus_tickets_reversal": 0,
    "get_cash": 0,
    "get_orders": 0,
    "get_tickets": 0,
    "get_dispatcher_tickets": 0,
}


class Environment(str, enum.Enum):
    """Which BusSystem server the client talks to."""

    TEST = "test"
    PRODUCTION = "production"


class EndpointsConfig(BaseModel):
    """Base URLs of the two BusSystem environments."""

    model_config = ConfigDict(frozen=True)

    test: str = Field(
        default="https://test-api.bussystem.eu/server",
        description="Base URL of the sandbox server",
    )
    production: str = Field(
        default="https://api.bussystem.eu/server",
        description="Base URL of the live server",
    )


class RequestConfig(BaseModel):
    """HTTP settings applied to every API call."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=120, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheConfig(BaseModel):
    """Response cache switch.  Per-operation lifetimes live in ``Settings.cache_times``."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable response caching")


class Settings(BaseModel):
    """Effective client configuration.

    ``login``, ``password`` and ``lang`` are injected into every request as
    defaults; a caller-supplied parameter of the same name wins.

    Attributes:
        login: Agent login sent with each request.
        password: Agent password sent with each request.
        environment: Selects the base URL from :attr:`endpoints`.
        lang: Default response language (``en``, ``ru``, ``ua``, ``de``, ``pl``, ``cz``).
        endpoints: Base URLs per environment.
        request: Timeout and TLS settings.
        cache: Global cache switch.
        cache_times: Cache lifetime in seconds keyed by operation name
            (read-only).
    """

    model_config = ConfigDict(frozen=True)

    login: str = ""
    password: str = ""
    environment: Environment = Environment.TEST
    lang: str = "en"
    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    cache_times: Mapping[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_CACHE_TIMES), validate_default=True
    )

    @field_validator("cache_times")
    @classmethod
    def freeze_cache_times(cls, value: Mapping[str, int]) -> Mapping[str, int]:
        return MappingProxyType(dict(value))

    @field_serializer("cache_times")
    def dump_cache_times(self, value: Mapping[str, int]) -> dict[str, int]:
        return dict(value)

    @property
    def base_url(self) -> str:
        """Base URL of the active environment."""
        if self.environment == Environment.PRODUCTION:
            return self.endpoints.production
        return self.endpoints.test

    def ttl_for(self, operation: str) -> int:
        """Return the cache lifetime of *operation* in seconds.

        Raises:
            ConfigError: If *operation* has no entry in :attr:`cache_times`.
                This is a setup defect, never a user input problem.
        """
        try:
            ttl = self.cache_times[operation]
        except KeyError:
            raise ConfigError(
                f"No cache time configured for operation '{operation}'"
            ) from None
        if ttl < 0:
            raise ConfigError(
                f"Cache time for operation '{operation}' must be >= 0, got {ttl}"
            )
        return ttl

    def default_parameters(self) -> dict[str, str]:
        """Credentials and language injected under every request."""
        return {
            "login": self.login,
            "password": self.password,
            "lang": self.lang,
        }
