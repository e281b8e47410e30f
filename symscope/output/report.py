"""
Symscope Report Generator
==========================

Writes a :class:`SymbolReport` as structured JSON suitable for machine
consumption and downstream size-profiling pipelines.

The document wraps the pydantic model dump with a report type, a version
and a generation timestamp, plus the derived totals that the console view
shows.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from symscope import __version__
from symscope.core.models import SymbolReport


class SymscopeReportGenerator:
    """Builds and writes JSON reports."""

    def build(self, report: SymbolReport) -> dict[str, Any]:
        """Return the report document as a JSON-ready dictionary."""
        return {
            "report_type": "symscope_symbols",
            "version": __version__,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "binary": report.model_dump(mode="json", exclude={"symbols", "sections"}),
            "summary": {
                "symbol_count": len(report.symbols),
                "symbols_size": report.symbols_size,
                "coverage": round(report.coverage, 4),
            },
            "sections": [sec.model_dump(mode="json") for sec in report.sections],
            "symbols": [sym.model_dump(mode="json") for sym in report.symbols],
        }

    def to_json(self, report: SymbolReport) -> str:
        return json.dumps(self.build(report), indent=2, ensure_ascii=False)

    def generate_json(self, report: SymbolReport, output_path: str) -> str:
        """Write the JSON report to *output_path*.

        Args:
            report: The SymbolReport to write.
            output_path: Filesystem path for the output JSON file.

        Returns:
            The absolute path of the generated report.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json(report))

        return str(path.resolve())
