"""
Symscope Console Output
========================

Rich-powered terminal display for recovered symbols: a binary summary
panel, a table of functions with their share of the code section, and
an optional section layout table.

Uses the ScopeConsole abstraction for consistent styling.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel

from shared.console import ScopeConsole

from symscope.core.models import SectionInfo, Symbol, SymbolReport


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

SORT_KEYS: tuple[str, ...] = ("size", "address", "name")


def sort_symbols(symbols: list[Symbol], key: str = "size") -> list[Symbol]:
    """Order symbols for display.

    ``size`` is largest first; ``address`` and ``name`` are ascending.
    Ties are broken by address so output is stable across runs.
    """
    if key == "size":
        return sorted(symbols, key=lambda s: (-s.size, s.address))
    if key == "address":
        return sorted(symbols, key=lambda s: (s.address, s.name))
    if key == "name":
        return sorted(symbols, key=lambda s: (s.name, s.address))
    raise ValueError(f"Unknown sort key: {key}")


def _share_colour(share: float) -> str:
    if share >= 0.10:
        return "bright_red"
    if share >= 0.02:
        return "yellow"
    return "green"


def _share_bar(share: float, width: int = 20) -> str:
    filled = min(int(share * width + 0.5), width)
    colour = _share_colour(share)
    return f"[{colour}]{'#' * filled}[/{colour}][dim]{'.' * (width - filled)}[/dim]"


class SymscopeConsoleOutput:
    """Renders a :class:`SymbolReport` to the terminal."""

    def __init__(self, console: ScopeConsole | None = None) -> None:
        """Initialise the output renderer.

        Args:
            console: Optional ScopeConsole instance.  A new one is
                     created if not provided.
        """
        self._console: ScopeConsole = console or ScopeConsole()

    def display(
        self,
        report: SymbolReport,
        *,
        sort: str = "size",
        limit: int = 30,
        show_sections: bool = False,
    ) -> None:
        """Display the complete report.

        Args:
            report: The SymbolReport to render.
            sort: One of :data:`SORT_KEYS`.
            limit: Maximum number of symbols to list; 0 lists all.
            show_sections: Also render the section table.
        """
        self._console.section("SYMSCOPE -- Function Symbol Recovery")
        self.display_header(report)

        if show_sections:
            self.display_sections(report.sections)

        if report.symbols:
            self.display_symbols(report, sort=sort, limit=limit)
        else:
            self._console.warning("No function symbols recovered.")

    def display_header(self, report: SymbolReport) -> None:
        """Display the binary summary panel."""
        lines: list[str] = [
            f"[bold]File:[/bold]          {escape(report.path or '<memory>')}",
            f"[bold]Size:[/bold]          {report.size:,} bytes ({report.size / 1024:.1f} KiB)",
            f"[bold]Format:[/bold]        {report.format.value.upper()} ({report.byte_order.value}-endian)",
            f"[bold]Code section:[/bold]  {report.text_size:,} bytes",
            f"[bold]Symbols:[/bold]       {len(report.symbols):,} "
            f"covering {report.symbols_size:,} bytes ({report.coverage:.1%})",
        ]
        if report.md5:
            lines.append(f"[bold]MD5:[/bold]           {report.md5}")
        if report.sha256:
            lines.append(f"[bold]SHA-256:[/bold]       {report.sha256}")

        panel = Panel(
            "\n".join(lines),
            title="[bold bright_cyan]Binary Information[/bold bright_cyan]",
            border_style="bright_cyan",
            padding=(1, 2),
        )
        self._console.rich.print(panel)
        self._console.blank()

    def display_symbols(
        self,
        report: SymbolReport,
        *,
        sort: str = "size",
        limit: int = 30,
    ) -> None:
        """Display the function table with each symbol's share of code."""
        self._console.section("Functions")

        ordered = sort_symbols(report.symbols, sort)
        shown = ordered[:limit] if limit > 0 else ordered

        rows: list[list[str]] = []
        for sym in shown:
            share = sym.size / report.text_size if report.text_size else 0.0
            colour = _share_colour(share)
            rows.append([
                f"0x{sym.address:x}",
                f"{sym.size:,}",
                f"[{colour}]{share:.2%}[/{colour}]",
                _share_bar(share),
                escape(sym.name),
            ])

        self._console.table(
            [
                ("Address", {"style": "dim", "justify": "right"}),
                ("Size", {"justify": "right"}),
                ("% .text", {"justify": "right"}),
                ("Share", {"min_width": 20}),
                ("Name", {"ratio": 1, "overflow": "fold"}),
            ],
            rows,
        )

        if len(shown) < len(ordered):
            self._console.info(
                f"Showing {len(shown)} of {len(ordered)} symbols (use --limit 0 for all)."
            )

    def display_sections(self, sections: list[SectionInfo]) -> None:
        """Display the section layout table."""
        self._console.section("Sections")
        if not sections:
            self._console.warning("No sections.")
            return

        self._console.table(
            [
                ("#", {"style": "dim", "justify": "right", "width": 4}),
                ("Name", {"style": "bold", "min_width": 12}),
                ("Kind", {}),
                ("Offset", {"justify": "right"}),
                ("Size", {"justify": "right"}),
            ],
            [
                [
                    str(i),
                    escape(sec.name or "<unnamed>"),
                    sec.kind or "-",
                    f"0x{sec.offset:x}",
                    f"{sec.size:,}",
                ]
                for i, sec in enumerate(sections)
            ],
        )
