"""
Symscope Console Interface
===========================

Thin wrapper around :class:`rich.console.Console` providing themed
section headers, status messages and tables for the symscope CLI.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

_SCOPE_THEME = Theme(
    {
        "scope.section": "bold bright_magenta",
        "scope.success": "bold green",
        "scope.warning": "bold yellow",
        "scope.error": "bold red",
        "scope.info": "bold bright_blue",
        "scope.dim": "dim white",
    }
)


class ScopeConsole:
    """Unified console for symscope output.

    Usage::

        con = ScopeConsole()
        con.section("Symbols")
        con.success("Decoded 120 symbols")
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        """Initialise the console.

        Args:
            quiet:  Suppress all output (library / test mode).
            record: Enable Rich recording so output can be exported.
        """
        self._console = Console(
            theme=_SCOPE_THEME,
            quiet=quiet,
            record=record,
            highlight=False,
        )

    @property
    def rich(self) -> Console:
        """Direct access to the underlying Rich Console instance."""
        return self._console

    def section(self, title: str) -> None:
        self._console.print()
        self._console.rule(f"[scope.section]{title}[/scope.section]", style="bright_magenta")

    def success(self, message: str) -> None:
        self._console.print(f"[scope.success][+][/scope.success] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[scope.warning][!][/scope.warning] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[scope.error][x][/scope.error] {message}")

    def info(self, message: str) -> None:
        self._console.print(f"[scope.info][*][/scope.info] {message}")

    def table(
        self,
        columns: Sequence[tuple[str, dict[str, Any]]],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> Table:
        """Build and print a table.

        Args:
            columns: ``(header, column_kwargs)`` pairs passed to
                     :meth:`rich.table.Table.add_column`.
            rows:    Pre-formatted cell strings.
            title:   Optional table title.

        Returns:
            The rendered :class:`rich.table.Table`.
        """
        tbl = Table(
            title=title,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            show_lines=False,
            padding=(0, 1),
        )
        for header, kwargs in columns:
            tbl.add_column(header, **kwargs)
        for row in rows:
            tbl.add_row(*row)
        self._console.print(tbl)
        return tbl

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._console.print(*args, **kwargs)

    def blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._console.print()

    def export_text(self) -> str:
        """Export recorded output as plain text (requires ``record=True``)."""
        return self._console.export_text()
