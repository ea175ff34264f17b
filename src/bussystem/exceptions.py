"""Exception hierarchy for bussystem.

All exceptions inherit from :class:`BusSystemError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`bussystem.exit_codes`.
Failures of a single API call are :class:`ApiError` subclasses; a
:class:`ConfigError` signals a broken setup or programming defect and is
deliberately kept outside the :class:`ApiError` branch.

Subclass hierarchy::

    BusSystemError (exit 1)
    +-- ApiError
    |   +-- InvalidParametersError  (exit 2)
    |   +-- RequestFailedError      (exit 5)
    |   +-- TransportError          (exit 6)
    |   +-- DecodeError             (exit 7)
    +-- ConfigError                 (exit 1)
"""

from bussystem.exit_codes import (
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_PARAMETERS,
    EXIT_REQUEST_FAILED,
    EXIT_TRANSPORT_ERROR,
)


class BusSystemError(Exception):
    """Base exception for all bussystem errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ApiError(BusSystemError):
    """Base class for every failure of a single API operation."""


class InvalidParametersError(ApiError):
    """Raised before any I/O when a required parameter is missing or empty."""

    exit_code = EXIT_INVALID_PARAMETERS

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


class RequestFailedError(ApiError):
    """Raised when the API answers with a non-2xx HTTP status."""

    exit_code = EXIT_REQUEST_FAILED

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(
            message or f"API request failed with status code: {status_code}"
        )
        self.status_code = status_code


class TransportError(ApiError):
    """Raised on network-level failures (timeout, DNS, refused connection, TLS)."""

    exit_code = EXIT_TRANSPORT_ERROR


class DecodeError(ApiError):
    """Raised when a 2xx response body is not valid JSON."""

    exit_code = EXIT_DECODE_ERROR


class ConfigError(BusSystemError):
    """Raised for configuration problems: unreadable config files, bad values,
    unknown operation names, unresolvable credential sources."""

    exit_code = EXIT_GENERIC_FAILURE
