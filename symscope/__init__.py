"""
Symscope -- Function Symbol Recovery
=====================================

Symscope reads compiled binaries and recovers the functions defined in
their code section, with each function's address and size.  Its decoders
are hardened against truncated and hostile input: every failure surfaces
as a :class:`~symscope.core.errors.ParseError`.

Capabilities:
    - Magic-number container detection (ELF, Mach-O, PE)
    - ELF32/ELF64 decoding in either byte order
    - 64-bit Mach-O decoding with inferred function sizes
    - PE/COFF symbol table decoding with inferred function sizes
    - Legacy Rust symbol demangling
    - Console tables and JSON reports

Modules:
    - symscope.parsers: Byte cursor, format detection and decoders
    - symscope.analyzers: Size inference and demangling
    - symscope.core: Engine, data models and errors
    - symscope.output: Console and report output
    - symscope.cli: Click-based command-line interface

References:
    - TIS Committee. (1995). ELF Specification.
    - Apple. Mach-O file format reference.
    - Microsoft. (2024). PE Format.
"""

__version__ = "1.0.0"
__all__ = [
    "SymbolEngine",
    "SymbolReport",
    "SymscopeConsoleOutput",
    "SymscopeReportGenerator",
]
