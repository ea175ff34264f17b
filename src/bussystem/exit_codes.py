"""Numeric process exit codes for the ``bussystem`` command line.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~bussystem.exceptions.BusSystemError` subclass.
Shell scripts can inspect the exit code to tell a rejected request from a
network outage without parsing stderr.

Example::

    $ bussystem get-order -P order_id=1
    $ echo $?
    2   # EXIT_INVALID_PARAMETERS -- "security" is missing
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration errors)."""

EXIT_INVALID_PARAMETERS = 2
"""A required request parameter was missing or empty."""

EXIT_REQUEST_FAILED = 5
"""The remote API answered with a non-2xx HTTP status."""

EXIT_TRANSPORT_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused, TLS)."""

EXIT_DECODE_ERROR = 7
"""The remote API answered 2xx but the body was not valid JSON."""
