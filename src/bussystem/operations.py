"""The closed set of BusSystem operations and their parameter contracts.

Every remote capability is described by one immutable
:class:`OperationDescriptor`: the name (also the key into
:attr:`Settings.cache_times <bussystem.models.Settings.cache_times>` and the
cache namespace), the fixed endpoint path, and the parameters that must be
present.  :func:`validate_parameters` enforces the contract before any cache
lookup or network activity.

A parameter counts as *present* when :func:`is_present` says so: ``None``,
``False``, numeric zero, ``""``, ``"0"`` and empty sequences or mappings are
all treated as missing, matching what the remote API itself treats as unset.
"""

from __future__ import annotations

from collections.abc import Mapping, Sized
from dataclasses import dataclass
from typing import Any, Callable, Optional

from bussystem.exceptions import ConfigError, InvalidParametersError

ExtraRule = Callable[[Mapping[str, Any]], Optional[str]]


def is_present(value: Any) -> bool:
    """Return ``True`` if *value* counts as a supplied parameter."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    if isinstance(value, str):
        return value not in ("", "0")
    if isinstance(value, Sized):
        return len(value) > 0
    return True


def _quote_list(names: tuple[str, ...]) -> str:
    quoted = [f'"{name}"' for name in names]
    if len(quoted) == 1:
        return quoted[0]
    return ", ".join(quoted[:-1]) + " and " + quoted[-1]


@dataclass(frozen=True)
class OperationDescriptor:
    """Static description of one remote operation.

    Attributes:
        name: Unique operation name, e.g. ``"get_routes"``.
        path: Endpoint path appended verbatim to the base URL.
        required_fields: Parameters that must be present.
        summary: One-line description used for CLI help.
        extra_rule: Optional additional check returning an error message
            (or ``None`` when satisfied).  Runs after the required fields.
    """

    name: str
    path: str
    required_fields: tuple[str, ...] = ()
    summary: str = ""
    extra_rule: Optional[ExtraRule] = None

    @property
    def command_name(self) -> str:
        """CLI command name (``get_points`` -> ``get-points``)."""
        return self.name.replace("_", "-")

    def missing_fields(self, params: Mapping[str, Any]) -> tuple[str, ...]:
        """Return the required fields absent from *params*, in declaration order."""
        return tuple(f for f in self.required_fields if not is_present(params.get(f)))

    def validate(self, params: Mapping[str, Any]) -> None:
        """Check *params* against this operation's contract.

        Raises:
            InvalidParametersError: With the missing field names attached.
        """
        missing = self.missing_fields(params)
        if missing:
            noun = "parameter is" if len(missing) == 1 else "parameters are"
            raise InvalidParametersError(
                f"{self.name}: the {_quote_list(missing)} {noun} required "
                f"and cannot be empty.",
                missing=missing,
            )
        if self.extra_rule is not None:
            message = self.extra_rule(params)
            if message:
                raise InvalidParametersError(f"{self.name}: {message}")


def _sms_code_rule(params: Mapping[str, Any]) -> Optional[str]:
    if params.get("check_sms") in (1, "1") and not is_present(
        params.get("validation_code")
    ):
        return 'the "validation_code" parameter is required for SMS code verification.'
    return None


def _reversal_identity_rule(params: Mapping[str, Any]) -> Optional[str]:
    if is_present(params.get("login")) and is_present(params.get("password")):
        return None
    if any(is_present(params.get(key)) for key in ("sid", "sid_guest", "sid_disp")):
        return None
    return (
        'provide either "login" and "password" or one of the session IDs: '
        '"sid", "sid_guest" or "sid_disp".'
    )


GET_POINTS = OperationDescriptor(
    "get_points", "/curl/get_points.php",
    summary="List cities, stations and airports.",
)
GET_ROUTES = OperationDescriptor(
    "get_routes", "/curl/get_routes.php",
    summary="Search routes between two points on a date.",
)
GET_ALL_ROUTES = OperationDescriptor(
    "get_all_routes", "/curl/get_all_routes.php", ("timetable_id",),
    summary="Full stop schedule of a route.",
)
GET_BAGGAGE = OperationDescriptor(
    "get_baggage", "/curl/get_baggage.php",
    ("interval_id", "station_from_id", "station_to_id"),
    summary="Baggage options for a route segment.",
)
GET_FREE_SEATS = OperationDescriptor(
    "get_free_seats", "/curl/get_free_seats.php", ("interval_id",),
    summary="Free seats on an interval (or wagon).",
)
GET_PLAN = OperationDescriptor(
    "get_plan", "/curl/get_plan.php", ("bustype_id",),
    summary="Seat plan of a bus type or wagon.",
)
NEW_ORDER = OperationDescriptor(
    "new_order", "/curl/new_order.php",
    ("date", "interval_id", "station_from_id", "station_to_id",
     "seat", "name", "surname", "birth_date"),
    summary="Create an order and hold the seats.",
)
RESERVE_TICKET = OperationDescriptor(
    "reserve_ticket", "/curl/reserve_ticket.php", ("order_id", "phone", "email"),
    summary="Reserve an order without payment.",
)
RESERVE_VALIDATION = OperationDescriptor(
    "reserve_validation", "/curl/reserve_validation.php", ("phone",),
    summary="Check whether a phone number needs SMS validation.",
)
SMS_VALIDATION = OperationDescriptor(
    "sms_validation", "/curl/sms_validation.php", ("sid_guest", "phone"),
    summary="Send or verify an SMS validation code.",
    extra_rule=_sms_code_rule,
)
GET_ORDER = OperationDescriptor(
    "get_order", "/curl/get_order.php", ("order_id", "security"),
    summary="Order details.",
)
GET_TICKET = OperationDescriptor(
    "get_ticket", "/curl/get_ticket.php", ("order_id", "security"),
    summary="Ticket details of an order.",
)
BUY_TICKET = OperationDescriptor(
    "buy_ticket", "/curl/buy_ticket.php", ("order_id",),
    summary="Pay for an order and issue tickets.",
)
REG_TICKET = OperationDescriptor(
    "reg_ticket", "/curl/reg_ticket.php",
    ("interval_id", "date", "seat", "ticket_id", "security"),
    summary="Register an open-date ticket on a trip.",
)
CANCEL_TICKET = OperationDescriptor(
    "cancel_ticket", "/curl/cancel_ticket.php", ("order_id",),
    summary="Cancel an order or a ticket.",
)
GET_BUS_TICKETS_REVERSAL = OperationDescriptor(
    "get_bus_tickets_reversal", "/curl/get_bus_tickets_reversal.php",
    summary="Tickets returned by the carrier.",
    extra_rule=_reversal_identity_rule,
)
GET_CASH = OperationDescriptor(
    "get_cash", "/curl/get_cash.php",
    ("login", "password", "date_from", "date_until", "status"),
    summary="Cash report for a period.",
)
GET_ORDERS = OperationDescriptor(
    "get_orders", "/curl/get_orders.php", ("login", "password"),
    summary="Orders placed by the agent.",
)
GET_TICKETS = OperationDescriptor(
    "get_tickets", "/curl/get_tickets.php", ("login", "password"),
    summary="Tickets sold by the agent.",
)
GET_DISPATCHER_TICKETS = OperationDescriptor(
    "get_dispatcher_tickets", "/curl_dispatcher/get_tickets.php",
    ("login", "password"),
    summary="Tickets visible to a dispatcher account.",
)

OPERATIONS: dict[str, OperationDescriptor] = {
    op.name: op
    for op in (
        GET_POINTS,
        GET_ROUTES,
        GET_ALL_ROUTES,
        GET_BAGGAGE,
        GET_FREE_SEATS,
        GET_PLAN,
        NEW_ORDER,
        RESERVE_TICKET,
        RESERVE_VALIDATION,
        SMS_VALIDATION,
        GET_ORDER,
        GET_TICKET,
        BUY_TICKET,
        REG_TICKET,
        CANCEL_TICKET,
        GET_BUS_TICKETS_REVERSAL,
        GET_CASH,
        GET_ORDERS,
        GET_TICKETS,
        GET_DISPATCHER_TICKETS,
    )
}


def get_operation(name: str) -> OperationDescriptor:
    """Look up an operation by name.

    Raises:
        ConfigError: If *name* is not part of the operation table.
    """
    try:
        return OPERATIONS[name]
    except KeyError:
        raise ConfigError(f"Unknown operation '{name}'") from None


def validate_parameters(name: str, params: Mapping[str, Any]) -> OperationDescriptor:
    """Validate *params* for operation *name* and return its descriptor."""
    operation = get_operation(name)
    operation.validate(params)
    return operation
