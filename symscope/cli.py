"""
Symscope CLI -- Function Symbol Recovery
=========================================

Click-based command-line interface for symscope.  Decodes one binary and
lists its functions by size, address or name, as a Rich table or JSON.

Usage::

    # Largest 30 functions
    symscope /path/to/binary

    # Every function in address order, raw linker names
    symscope /path/to/binary --sort address --limit 0 --no-demangle

    # Force the decoder and show the section layout
    symscope firmware.bin --format elf32 --sections

    # JSON to stdout, or to a file
    symscope /path/to/binary --json
    symscope /path/to/binary --output report.json

Exit status is 0 on success and 1 when the file cannot be read or
decoded.

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import sys

import click

from shared.config import ScopeConfig
from shared.console import ScopeConsole
from shared.logger import ScopeLogger

from symscope.core.engine import FORMAT_CHOICES, SymbolEngine
from symscope.core.errors import ParseError
from symscope.output.console import SORT_KEYS, SymscopeConsoleOutput
from symscope.output.report import SymscopeReportGenerator


# ---------------------------------------------------------------------------
# CLI command
# ---------------------------------------------------------------------------

@click.command("symscope")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format", "-f",
    "file_format",
    type=click.Choice(list(FORMAT_CHOICES), case_sensitive=False),
    default="auto",
    help="Container format override.  Default: auto-detect.",
)
@click.option(
    "--sort", "-s",
    "sort_key",
    type=click.Choice(list(SORT_KEYS), case_sensitive=False),
    default="size",
    help="Symbol ordering (default: size, largest first).",
)
@click.option(
    "--limit", "-n",
    type=click.IntRange(min=0),
    default=None,
    help="Number of symbols to list; 0 lists all.  Default: global.max_display.",
)
@click.option(
    "--sections",
    "show_sections",
    is_flag=True,
    default=False,
    help="Also list the section table.",
)
@click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Output the report as JSON to stdout.",
)
@click.option(
    "--no-demangle",
    is_flag=True,
    default=False,
    help="Show raw linker names.",
)
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a symscope TOML configuration file.",
)
@click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the JSON report to this path.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug output.",
)
def symscope_cli(
    path: str,
    file_format: str,
    sort_key: str,
    limit: int | None,
    show_sections: bool,
    json_output: bool,
    no_demangle: bool,
    config_path: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Symscope -- Function Symbol Recovery.

    List the functions defined in the code section of an ELF, Mach-O or
    PE binary, with their addresses and sizes.

    PATH is the path to the binary file to decode.
    """
    console = ScopeConsole(quiet=json_output)

    try:
        config = ScopeConfig.load(config_path)
    except FileNotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if no_demangle:
        config.decoder.demangle = False

    settings = config.global_settings

    def make_logger(component: str) -> ScopeLogger:
        return ScopeLogger(
            component,
            log_level="DEBUG" if verbose else settings.log_level,
            log_file=settings.log_file or None,
            json_logs=settings.log_json,
            console_output=verbose,
        )

    logger = make_logger("cli")
    engine = SymbolEngine(config=config, logger=make_logger("engine"))

    try:
        report = engine.analyze(path, format=file_format)
    except ParseError as exc:
        logger.error("Decoding %s failed: %s", path, exc, kind=exc.kind.value)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except OSError as exc:
        logger.error("Reading %s failed: %s", path, exc)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    report_gen = SymscopeReportGenerator()

    if json_output:
        click.echo(report_gen.to_json(report))
    else:
        output_display = SymscopeConsoleOutput(console=console)
        output_display.display(
            report,
            sort=sort_key,
            limit=settings.max_display if limit is None else limit,
            show_sections=show_sections,
        )

    if output_path:
        report_path = report_gen.generate_json(report, output_path)
        console.success(f"JSON report saved: {report_path}")
        logger.info("Report written to %s", report_path)


# ---------------------------------------------------------------------------
# Module entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for the ``symscope`` console script."""
    symscope_cli()


if __name__ == "__main__":
    main()
