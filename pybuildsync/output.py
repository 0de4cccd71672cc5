"""Console output formatting for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Writes CLI output as rich text or as JSON.

    Informational messages are dropped in quiet or JSON mode; warnings and
    errors always go to stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str = "") -> None:
        if not self._silent:
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(message, highlight=False, markup=False)

    def success(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        self.err_console.print(
            f"[yellow]Warning:[/yellow] {escape(message)}",
            highlight=False,
            soft_wrap=True,
        )

    def error(self, message: str) -> None:
        self.err_console.print(
            f"[red]Error:[/red] {escape(message)}", highlight=False, soft_wrap=True
        )

    def output_json(self, data: Any) -> None:
        """Print data as JSON regardless of quiet mode."""
        self.console.print(
            json.dumps(data, indent=2),
            soft_wrap=True,
            highlight=False,
            markup=False,
        )

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table, or as a JSON list in JSON mode."""
        if self.json_output:
            self.output_json([{c: row.get(c) for c in columns} for row in rows])
            return

        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(*("" if row.get(c) is None else str(row[c]) for c in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self._silent:
            return
        self.console.print(f"\n[bold]{title}[/bold]")
        for label, value in items:
            self.console.print(f"  {label}: {value}", highlight=False)
