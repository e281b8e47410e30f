"""
Symscope Decoding Engine
=========================

Routes a binary to the decoder for its container format and assembles a
:class:`SymbolReport`.

Pipeline:
    1. Read the file (bounded by ``decoder.max_file_size``) and hash it
    2. Detect the container format from its magic bytes, or honour an
       explicit override
    3. Decode sections and function symbols with the matching decoder
    4. Apply report-level filters

Decode failures are logged and re-raised as the original
:class:`ParseError`; the engine never converts them into partial results.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Union

from shared.config import ScopeConfig
from shared.logger import ScopeLogger

from symscope.analyzers.demangle import Demangler, demangle, identity
from symscope.core.errors import MalformedInput, ParseError
from symscope.core.models import (
    BinaryFormat,
    ByteOrder,
    DetectedFormat,
    SectionInfo,
    SymbolReport,
    SymbolTable,
)
from symscope.parsers import elf_parser, macho_parser, pe_parser
from symscope.parsers.magic import detect_format

Handle = Union[elf_parser.Elf32, elf_parser.Elf64, macho_parser.Macho, pe_parser.PeFile]

FORMAT_CHOICES: tuple[str, ...] = ("auto",) + tuple(
    fmt.value for fmt in BinaryFormat if fmt is not BinaryFormat.UNKNOWN
)


class SymbolEngine:
    """Detects, decodes and reports on compiled binaries.

    Usage::

        engine = SymbolEngine()
        report = engine.analyze("/path/to/binary")
        for sym in report.symbols:
            print(sym.name, sym.size)

    Args:
        config: Symscope configuration; defaults when omitted.
        logger: Logger instance; a new ``engine`` logger when omitted.
    """

    def __init__(
        self,
        config: ScopeConfig | None = None,
        logger: ScopeLogger | None = None,
    ) -> None:
        self._config: ScopeConfig = config or ScopeConfig()
        self._logger: ScopeLogger = logger or ScopeLogger("engine", console_output=False)
        self._decoders: dict[BinaryFormat, Callable[[bytes, DetectedFormat], Handle]] = {
            BinaryFormat.ELF32: lambda data, det: elf_parser.parse_elf32(data, det.byte_order),
            BinaryFormat.ELF64: lambda data, det: elf_parser.parse_elf64(data, det.byte_order),
            BinaryFormat.MACHO: lambda data, det: macho_parser.parse(data),
            BinaryFormat.PE: lambda data, det: pe_parser.parse(data),
        }

    @property
    def demangler(self) -> Demangler:
        return demangle if self._config.decoder.demangle else identity

    # ------------------------------------------------------------------ #
    #  Entry points
    # ------------------------------------------------------------------ #

    def analyze(self, file_path: str | Path, format: str = "auto") -> SymbolReport:
        """Decode a binary file.

        Args:
            file_path: Path to the binary.
            format: ``"auto"`` or one of the :class:`BinaryFormat` values.

        Raises:
            FileNotFoundError: *file_path* does not exist.
            MalformedInput: The file exceeds ``decoder.max_file_size`` or
                its format is not recognised.
            UnexpectedEndOfInput: The file is truncated.
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        file_size = path.stat().st_size
        max_size = self._config.decoder.max_file_size
        if file_size > max_size:
            raise MalformedInput(
                f"File too large: {file_size:,} bytes (max: {max_size:,} bytes)"
            )

        self._logger.info("Starting analysis of %s", path)
        return self.analyze_data(path.read_bytes(), format=format, path=str(path.resolve()))

    def analyze_data(self, data: bytes, format: str = "auto", path: str = "") -> SymbolReport:
        """Decode an in-memory binary and build its report."""
        detected = self.resolve_format(data, format)
        table, sections = self.decode(data, detected)

        min_size = self._config.decoder.min_symbol_size
        symbols = [sym for sym in table.symbols if sym.size >= min_size]

        return SymbolReport(
            path=path,
            size=len(data),
            format=detected.format,
            byte_order=detected.byte_order or ByteOrder.LITTLE,
            text_size=table.text_size,
            symbols=symbols,
            sections=sections,
            md5=hashlib.md5(data).hexdigest(),
            sha256=hashlib.sha256(data).hexdigest(),
        )

    def resolve_format(self, data: bytes, format: str = "auto") -> DetectedFormat:
        """Detect the container format, honouring an explicit override.

        Raises:
            MalformedInput: Nothing recognisable was found, or *format* is
                not a known format name.
        """
        detected = detect_format(data)
        if format != "auto":
            try:
                forced = BinaryFormat(format.lower())
            except ValueError:
                raise MalformedInput(f"Unknown format override: {format}") from None
            if forced in (BinaryFormat.ELF32, BinaryFormat.ELF64):
                detected = DetectedFormat(forced, detected.byte_order or ByteOrder.LITTLE)
            else:
                detected = DetectedFormat(forced)

        if not detected.recognized:
            self._logger.error("Unrecognised binary format")
            raise MalformedInput("Unrecognised binary format")
        self._logger.debug("Detected format %s", detected.format.value)
        return detected

    def decode(self, data: bytes, detected: DetectedFormat) -> tuple[SymbolTable, list[SectionInfo]]:
        """Run the decoder for *detected* and extract symbols and sections."""
        decoder = self._decoders[detected.format]
        with self._logger.operation("decode"):
            try:
                with self._logger.timed(f"{detected.format.value} decode"):
                    handle = decoder(data, detected)
                    sections = handle.section_infos()
                    table = handle.symbols(self.demangler)
            except ParseError as exc:
                self._logger.error(
                    "Decode failed: %s", exc,
                    format=detected.format.value, kind=exc.kind.value,
                )
                raise

            self._logger.info(
                "Recovered %d symbols from %d sections",
                len(table.symbols), len(sections),
                format=detected.format.value, text_size=table.text_size,
            )
        return table, sections
