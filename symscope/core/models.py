"""
Symscope Data Models
=====================

Shared enumerations and value objects for the decoding engine and its
reports.  Function symbols and reports are pydantic models so they can be
validated and serialised directly; the format dispatcher result is a
plain frozen dataclass.

References:
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
    - Apple. Mach-O file format reference (``mach-o/loader.h``).
    - Microsoft. (2024). PE Format. Microsoft Learn.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ByteOrder(str, enum.Enum):
    """Byte order used to interpret multi-byte integers."""
    LITTLE = "little"
    BIG = "big"

    @property
    def struct_prefix(self) -> str:
        """The :mod:`struct` format prefix for this byte order."""
        return "<" if self is ByteOrder.LITTLE else ">"


class BinaryFormat(str, enum.Enum):
    """Container formats the dispatcher can route to a decoder."""
    ELF32 = "elf32"
    ELF64 = "elf64"
    MACHO = "macho"
    PE = "pe"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class DetectedFormat:
    """Result of format detection.

    Attributes:
        format: Which decoder applies.
        byte_order: Detected byte order; only set for ELF.
    """
    format: BinaryFormat
    byte_order: Optional[ByteOrder] = None

    @property
    def recognized(self) -> bool:
        return self.format is not BinaryFormat.UNKNOWN


# ---------------------------------------------------------------------------
# Symbol output
# ---------------------------------------------------------------------------

class Symbol(BaseModel):
    """A recovered function symbol.

    Attributes:
        name: Demangled display name.
        address: Symbol address (section-relative for PE/COFF).
        size: Size in bytes, stored or inferred.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    address: int = Field(ge=0)
    size: int = Field(ge=0)


class SymbolTable(NamedTuple):
    """Uniform result of every decoder's symbol extraction."""
    symbols: list[Symbol]
    text_size: int


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------

class SectionInfo(BaseModel):
    """Format-neutral view of a section for reports.

    Attributes:
        name: Section name (``__TEXT,__text`` style for Mach-O).
        offset: File offset in bytes.
        size: Size in bytes.
        kind: Format-specific section type, when the format has one.
    """
    name: str = ""
    offset: int = 0
    size: int = 0
    kind: str = ""


class SymbolReport(BaseModel):
    """Everything symscope recovered from one binary.

    Attributes:
        path: Filesystem path of the input, if it came from a file.
        size: Input size in bytes.
        format: Detected container format.
        byte_order: Byte order the decoder used.
        text_size: Size of the code section in bytes.
        symbols: Recovered function symbols.
        sections: Section layout.
        md5: MD5 of the input.
        sha256: SHA-256 of the input.
    """
    path: str = ""
    size: int = 0
    format: BinaryFormat = BinaryFormat.UNKNOWN
    byte_order: ByteOrder = ByteOrder.LITTLE
    text_size: int = 0
    symbols: list[Symbol] = Field(default_factory=list)
    sections: list[SectionInfo] = Field(default_factory=list)
    md5: str = ""
    sha256: str = ""

    @property
    def symbols_size(self) -> int:
        """Total bytes attributed to recovered symbols."""
        return sum(sym.size for sym in self.symbols)

    @property
    def coverage(self) -> float:
        """Fraction of the code section covered by recovered symbols."""
        if self.text_size == 0:
            return 0.0
        return min(self.symbols_size / self.text_size, 1.0)
