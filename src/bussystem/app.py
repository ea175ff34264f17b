"""Typer application and CLI entry point for bussystem.

Every operation in :data:`bussystem.operations.OPERATIONS` is registered as a
top-level command (``get-points``, ``new-order``, ...).  Parameters are passed
as repeated ``-P key=value`` options and/or one ``--params`` JSON object;
values that parse as JSON (numbers, lists, objects) are sent as such, the rest
as strings.  Repeating a key collects its values into a list, which is how
multi-passenger orders are expressed.

Built-in sub-commands:

* ``operations`` -- list operations, paths, required fields and cache times.
* ``cache stats|clear`` -- inspect or empty the response cache.
* ``config show|path|init`` -- inspect or write the user configuration.

:func:`main` is the console-script entry point declared in
``pyproject.toml``.  :class:`~bussystem.exceptions.BusSystemError` exits with
the error's ``exit_code``; anything else is written to a crash log under the
data directory.
"""

from __future__ import annotations

import json
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Callable, Optional

import typer

from bussystem import __version__
from bussystem.exceptions import BusSystemError
from bussystem.exit_codes import EXIT_GENERIC_FAILURE
from bussystem.models import Environment, Settings
from bussystem.operations import OPERATIONS, OperationDescriptor
from bussystem.output import (
    OutputFormat,
    OutputManager,
    error,
    get_output,
    set_output,
    success,
)

app = typer.Typer(
    name="bussystem",
    help="Query and book bus, train and air tickets through the BusSystem API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
cache_app = typer.Typer(help="Response cache management.", no_args_is_help=True)
config_app = typer.Typer(help="Configuration management.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"bussystem {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    production: Optional[bool] = typer.Option(
        None,
        "--production/--test",
        help="Talk to the live or the sandbox server (default: from config).",
    ),
    lang: Optional[str] = typer.Option(
        None, "--lang", "-l", help="Response language (en, ru, ua, de, pl, cz)."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the response cache."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show requests and cache decisions."
    ),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write the payload to a file."
    ),
) -> None:
    """Install the output manager and stash shared options in ``ctx.obj``."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
            output_file=output_file,
        )
    )

    ctx.ensure_object(dict)
    if production is None:
        ctx.obj["environment"] = None
    else:
        ctx.obj["environment"] = (
            Environment.PRODUCTION if production else Environment.TEST
        )
    ctx.obj["lang"] = lang
    ctx.obj["no_cache"] = no_cache


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _settings_from_ctx(ctx: typer.Context) -> Settings:
    from bussystem.config import resolve_settings

    obj = ctx.obj or {}
    return resolve_settings(
        cli_environment=obj.get("environment"),
        cli_lang=obj.get("lang"),
        cli_cache_enabled=False if obj.get("no_cache") else None,
    )


def _open_api(settings: Settings):
    """Create the :class:`~bussystem.api.BusApi` used by CLI commands."""
    from bussystem.api import BusApi

    return BusApi.from_settings(settings)


def _parse_value(raw: str) -> Any:  # noqa: ANN401
    """Parse *raw* as JSON if possible, returning the string on failure."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


def _collect_params(params_json: Optional[str], pairs: Optional[list[str]]) -> dict[str, Any]:
    """Build the request parameters from ``--params`` and ``-P key=value`` options."""
    params: dict[str, Any] = {}
    if params_json:
        try:
            loaded = json.loads(params_json)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"--params is not valid JSON: {exc}") from exc
        if not isinstance(loaded, dict):
            raise typer.BadParameter("--params must be a JSON object")
        params.update(loaded)

    collected: dict[str, list[Any]] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        collected.setdefault(key, []).append(_parse_value(raw))

    for key, values in collected.items():
        params[key] = values[0] if len(values) == 1 else values
    return params


def _fail(exc: BusSystemError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


# ------------------------------------------------------------------ #
# Operation commands
# ------------------------------------------------------------------ #


def _operation_help(operation: OperationDescriptor) -> str:
    lines = [operation.summary or operation.name]
    if operation.required_fields:
        lines.append("")
        lines.append("Required: " + ", ".join(operation.required_fields))
    return "\n".join(lines)


def _build_operation_command(operation: OperationDescriptor) -> Callable[..., None]:
    """Create the Typer callback that runs *operation*."""

    def command(
        ctx: typer.Context,
        param: Optional[list[str]] = typer.Option(
            None, "--param", "-P", help="Request parameter as key=value (repeatable)."
        ),
        params_json: Optional[str] = typer.Option(
            None, "--params", help="Request parameters as a JSON object."
        ),
    ) -> None:
        params = _collect_params(params_json, param)
        try:
            settings = _settings_from_ctx(ctx)
            with _open_api(settings) as api:
                payload = api.call(operation.name, params)
        except BusSystemError as exc:
            raise _fail(exc) from exc
        get_output().format_response(payload)

    command.__name__ = operation.name
    command.__doc__ = _operation_help(operation)
    return command


for _operation in OPERATIONS.values():
    app.command(
        name=_operation.command_name,
        help=_operation_help(_operation),
    )(_build_operation_command(_operation))


@app.command("operations")
def operations_command(ctx: typer.Context) -> None:
    """List all operations with their paths, required fields and cache times."""
    try:
        settings = _settings_from_ctx(ctx)
    except BusSystemError as exc:
        raise _fail(exc) from exc
    rows = []
    for operation in OPERATIONS.values():
        ttl = settings.cache_times.get(operation.name)
        rows.append([
            operation.command_name,
            operation.path,
            ", ".join(operation.required_fields) or "-",
            "-" if ttl is None else str(ttl),
        ])
    get_output().print_table(
        ["command", "path", "required", "cache_seconds"], rows, title="Operations"
    )


# ------------------------------------------------------------------ #
# cache
# ------------------------------------------------------------------ #


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show the number of cached payloads for the active environment."""
    try:
        settings = _settings_from_ctx(ctx)
        api = _open_api(settings)
    except BusSystemError as exc:
        raise _fail(exc) from exc
    try:
        stats = api.cache.stats() if api.cache is not None else {"enabled": False}
    finally:
        api.close()
    stats["environment"] = settings.environment.value
    get_output().format_response(stats)


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every cached payload for the active environment."""
    try:
        settings = _settings_from_ctx(ctx)
        api = _open_api(settings)
    except BusSystemError as exc:
        raise _fail(exc) from exc
    try:
        removed = api.cache.clear() if api.cache is not None else 0
    finally:
        api.close()
    success(f"Removed {removed} cached response(s) ({settings.environment.value}).")


# ------------------------------------------------------------------ #
# config
# ------------------------------------------------------------------ #


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective settings (password masked)."""
    try:
        settings = _settings_from_ctx(ctx)
    except BusSystemError as exc:
        raise _fail(exc) from exc
    data = settings.model_dump(mode="json")
    if data.get("password"):
        data["password"] = "********"
    data["base_url"] = settings.base_url
    get_output().format_response(data)


@config_app.command("path")
def config_path() -> None:
    """Print the location of the user config file."""
    from bussystem.config import user_config_path

    get_output().print_data(str(user_config_path()))


@config_app.command("init")
def config_init(
    login: Optional[str] = typer.Option(None, "--login", help="Agent login."),
    password: Optional[str] = typer.Option(
        None, "--password", help="Agent password (stored in plain text)."
    ),
    password_source: Optional[str] = typer.Option(
        None,
        "--password-source",
        help="Where to read the password: env:VAR or file:/path.",
    ),
    production: Optional[bool] = typer.Option(
        None, "--production/--test", help="Default environment."
    ),
    lang: Optional[str] = typer.Option(None, "--lang", help="Default language."),
) -> None:
    """Write credentials and defaults to the user config file."""
    from bussystem.config import load_user_config, save_user_config

    if password and password_source:
        raise typer.BadParameter("Use either --password or --password-source, not both")
    try:
        data = load_user_config()
    except BusSystemError as exc:
        raise _fail(exc) from exc

    if login is not None:
        data["login"] = login
    if password is not None:
        data["password"] = password
        data.pop("password_source", None)
    if password_source is not None:
        data["password_source"] = password_source
        data.pop("password", None)
    if production is not None:
        data["environment"] = (
            Environment.PRODUCTION.value if production else Environment.TEST.value
        )
    if lang is not None:
        data["lang"] = lang

    path = save_user_config(data)
    success(f"Configuration written to {path}")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from bussystem.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``bussystem`` console script."""
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except BusSystemError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error: {exc}")
        sys.stderr.write(f"Crash log written to {log_path}\n")
        sys.exit(EXIT_GENERIC_FAILURE)
