"""Terminal output for the bussystem CLI.

Payloads go to stdout (or the ``--output`` file); confirmations, errors and
``--verbose`` traces go to stderr, so ``bussystem --json get-points | jq``
always reads clean JSON.

Outside JSON mode a payload is rendered by shape:

* a list of records (points, routes, orders, tickets) becomes a table whose
  columns are the record keys in first-seen order;
* a single record (an order, a reservation, a cache report) becomes a
  ``field``/``value`` table;
* anything else is printed as JSON text.

Nested values inside a cell are shown as compact JSON.  Rich tables are used
on an interactive terminal, tab-separated lines otherwise; ``NO_COLOR``,
``TERM=dumb`` and ``--no-color`` force the latter.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormat(str, Enum):
    """Requested output format; ``AUTO`` picks ``RICH`` or ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Renders payloads and diagnostics for one CLI invocation.

    Args:
        format: Desired output format. ``AUTO`` resolves based on TTY detection.
        no_color: Disable colour and Rich markup.
        quiet: Hide success messages.
        verbose: Show debug traces of the dispatcher and the cache.
        output_file: Write payloads to this path instead of stdout.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        self._no_color = no_color or _color_disabled_by_env()
        self._quiet = quiet
        self._verbose = verbose
        self._output_file = output_file

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._err_console = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # Payloads (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render an API payload according to its shape."""
        if self._output_file:
            with open(self._output_file, "w", encoding="utf-8") as f:
                f.write(_to_json(data) + "\n")
            return

        if self._format == OutputFormat.JSON:
            self.print_data(_to_json(data))
        elif _is_record_list(data):
            headers = _columns(data)
            rows = [[_cell(record.get(h)) for h in headers] for record in data]
            self.print_table(headers, rows)
        elif isinstance(data, dict):
            self.print_table(
                ["field", "value"], [[str(k), _cell(v)] for k, v in data.items()]
            )
        elif isinstance(data, str):
            self.print_data(data)
        else:
            self.print_data(_to_json(data))

    def print_data(self, text: str) -> None:
        """Write one block of text to stdout (or append it to the output file)."""
        if self._output_file:
            with open(self._output_file, "a", encoding="utf-8") as f:
                f.write(text if text.endswith("\n") else text + "\n")
        else:
            print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, tab-separated lines, or JSON records."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\n".join("\t".join(line) for line in [headers, *rows]))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*(escape(cell) for cell in row))
            self._console.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def success(self, message: str) -> None:
        """Confirmation of a completed action. Hidden by ``--quiet``."""
        if not self._quiet:
            self._diagnostic(message, f"[green]{escape(message)}[/green]")

    def error(self, message: str) -> None:
        """Failure report. Always shown."""
        self._diagnostic(
            f"Error: {message}", f"[bold red]Error:[/bold red] {escape(message)}"
        )

    def debug(self, message: str) -> None:
        """Request and cache trace. Only shown with ``--verbose``."""
        if self._verbose:
            self._diagnostic(f"[debug] {message}", f"[dim]\\[debug] {escape(message)}[/dim]")

    def _diagnostic(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._err_console.print(markup)


# ------------------------------------------------------------------ #
# Rendering helpers
# ------------------------------------------------------------------ #


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _is_record_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and all(isinstance(i, dict) for i in data)


def _columns(records: list[dict[str, Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for record in records:
        for key in record:
            seen.setdefault(str(key), None)
    return list(seen)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _color_disabled_by_env() -> bool:
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager (between CLI invocations and tests)."""
    global _output
    _output = None


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)
