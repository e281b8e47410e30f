"""
Symscope Output
================

Rich console rendering and JSON report generation.
"""

from symscope.output.console import SymscopeConsoleOutput
from symscope.output.report import SymscopeReportGenerator

__all__ = [
    "SymscopeConsoleOutput",
    "SymscopeReportGenerator",
]
