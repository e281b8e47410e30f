"""
PE/COFF Binary Format Decoder
==============================

Defensive decoder for Portable Executable images and their COFF symbol
tables.

The decoder follows ``e_lfanew`` at offset ``0x3C`` to the PE signature,
reads the COFF file header and section table, and extracts external
function symbols defined in ``.text``.  COFF symbols carry no size, so
sizes are inferred from the distance to the next distinct symbol value,
with the raw size of ``.text`` bounding the last function.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from symscope.analyzers.demangle import Demangler, demangle
from symscope.analyzers.size_inference import SizeInference
from symscope.core.errors import MalformedInput
from symscope.core.models import ByteOrder, SectionInfo, Symbol, SymbolTable
from symscope.parsers.cursor import (
    I16,
    U8,
    U16,
    U32,
    ByteCursor,
    checked_range,
    parse_null_string,
)


# ---------------------------------------------------------------------------
# PE Constants
# ---------------------------------------------------------------------------

PE_POINTER_OFFSET: int = 0x3C
PE_MAGIC: bytes = b"PE\x00\x00"
SIZEOF_PE_MAGIC: int = 4
SIZEOF_COFF_HEADER: int = 20
SIZEOF_SECTION_NAME: int = 8
SIZEOF_SECTION_TAIL: int = 16  # relocations, line numbers, characteristics
SIZEOF_SECTION_HEADER: int = SIZEOF_SECTION_NAME + 16 + SIZEOF_SECTION_TAIL
COFF_SYMBOL_SIZE: int = 18

IMAGE_SYM_CLASS_EXTERNAL: int = 2
IMAGE_SYM_DTYPE_SHIFT: int = 4
IMAGE_SYM_DTYPE_FUNCTION: int = 2

TEXT_SECTION: str = ".text"


# ---------------------------------------------------------------------------
# Parsed structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PeHeader:
    """COFF file header."""
    machine: int
    number_of_sections: int
    time_date_stamp: int
    pointer_to_symbol_table: int
    number_of_symbols: int
    size_of_optional_header: int
    characteristics: int


@dataclass(frozen=True, slots=True)
class PeSection:
    """One section table entry.

    Attributes:
        index: 0-based position in the section table.
        name: Inline 8-byte name up to the first NUL.
    """
    index: int
    name: str
    virtual_size: int
    virtual_address: int
    size_of_raw_data: int
    pointer_to_raw_data: int

    def range(self) -> range:
        """File byte range of the raw section data."""
        return checked_range(self.pointer_to_raw_data, self.size_of_raw_data)


@dataclass(frozen=True, slots=True)
class _CoffSymbol:
    name: str
    address: int
    seed: bool = False


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _parse_header(cur: ByteCursor) -> PeHeader:
    if cur.read_bytes(SIZEOF_PE_MAGIC) != PE_MAGIC:
        raise MalformedInput("Missing PE signature")
    return PeHeader(
        machine=cur.read(U16),
        number_of_sections=cur.read(U16),
        time_date_stamp=cur.read(U32),
        pointer_to_symbol_table=cur.read(U32),
        number_of_symbols=cur.read(U32),
        size_of_optional_header=cur.read(U16),
        characteristics=cur.read(U16),
    )


def _inline_name(raw: memoryview) -> str:
    return raw.tobytes().split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _parse_sections(data: bytes, offset: int, count: int) -> list[PeSection]:
    if count == 0:
        return []
    cur = ByteCursor.at(data, offset, ByteOrder.LITTLE)
    sections: list[PeSection] = []
    have_text = False
    for index in range(count):
        # An overstated count only matters until .text is found.
        if have_text and cur.remaining() < SIZEOF_SECTION_HEADER:
            break
        name = _inline_name(cur.read_bytes(SIZEOF_SECTION_NAME))
        virtual_size = cur.read(U32)
        virtual_address = cur.read(U32)
        size_of_raw_data = cur.read(U32)
        pointer_to_raw_data = cur.read(U32)
        cur.skip_len(SIZEOF_SECTION_TAIL)
        sections.append(PeSection(
            index=index,
            name=name,
            virtual_size=virtual_size,
            virtual_address=virtual_address,
            size_of_raw_data=size_of_raw_data,
            pointer_to_raw_data=pointer_to_raw_data,
        ))
        have_text = have_text or name == TEXT_SECTION
    return sections


class PeFile:
    """Decoded PE image: COFF header plus section table."""

    def __init__(
        self,
        data: bytes,
        pe_offset: int,
        header: PeHeader,
        sections: list[PeSection],
    ) -> None:
        self._data = data
        self._pe_offset = pe_offset
        self._header = header
        self._sections = sections

    @property
    def pe_offset(self) -> int:
        """File offset of the ``PE\\0\\0`` signature."""
        return self._pe_offset

    def header(self) -> PeHeader:
        return self._header

    def sections(self) -> list[PeSection]:
        return list(self._sections)

    def section_with_name(self, name: str) -> Optional[PeSection]:
        for section in self._sections:
            if section.name == name:
                return section
        return None

    def section_infos(self) -> list[SectionInfo]:
        return [
            SectionInfo(name=sec.name, offset=sec.pointer_to_raw_data, size=sec.size_of_raw_data)
            for sec in self._sections
        ]

    def symbols(self, demangler: Demangler = demangle) -> SymbolTable:
        """Extract external function symbols in ``.text``.

        Symbol values are offsets within ``.text``.

        Returns:
            The symbols and the raw size of ``.text``.

        Raises:
            MalformedInput: The image has no ``.text`` section.
            UnexpectedEndOfInput: The symbol table or one of its auxiliary
                records lies outside the input.
        """
        text = self.section_with_name(TEXT_SECTION)
        if text is None:
            raise MalformedInput("No .text section")

        table = ByteCursor.window(
            self._data,
            range(self._header.pointer_to_symbol_table, len(self._data)),
            ByteOrder.LITTLE,
        )
        records = table.take(self._header.number_of_symbols * COFF_SYMBOL_SIZE)
        string_table_offset = table.offset

        # The .text size seeds the boundary for the last real symbol.
        entries = [_CoffSymbol(TEXT_SECTION, text.size_of_raw_data, seed=True)]
        while not records.at_end():
            raw_name = records.read_bytes(8)
            value = records.read(U32)
            section_number = records.read(I16)
            kind = records.read(U16)
            storage_class = records.read(U8)
            aux_count = records.read(U8)
            records.skip_len(aux_count * COFF_SYMBOL_SIZE)

            if kind >> IMAGE_SYM_DTYPE_SHIFT != IMAGE_SYM_DTYPE_FUNCTION:
                continue
            if storage_class != IMAGE_SYM_CLASS_EXTERNAL:
                continue
            # Section numbers are 1-based.
            if section_number - 1 != text.index:
                continue

            name = self._symbol_name(raw_name, string_table_offset)
            if name:
                entries.append(_CoffSymbol(name, value))

        ordered = sorted(entries, key=lambda sym: sym.address)
        inference = SizeInference([sym.address for sym in ordered])

        symbols: list[Symbol] = []
        for index, entry in enumerate(ordered):
            if entry.seed:
                continue
            size = inference.claim(index)
            if size is None:
                continue
            symbols.append(Symbol(name=demangler(entry.name), address=entry.address, size=size))
        return SymbolTable(symbols, text.size_of_raw_data)

    def _symbol_name(self, raw: memoryview, string_table_offset: int) -> Optional[str]:
        if raw[:4] != b"\x00\x00\x00\x00":
            try:
                return raw.tobytes().split(b"\x00", 1)[0].decode("utf-8")
            except UnicodeDecodeError:
                return None

        # Long names live in the string table right after the symbols.
        cur = ByteCursor(raw, ByteOrder.LITTLE)
        cur.skip(U32)
        return parse_null_string(self._data, string_table_offset + cur.read(U32))


def parse(data: bytes) -> PeFile:
    """Decode the PE signature, COFF header and section table.

    Raises:
        UnexpectedEndOfInput: The DOS stub pointer, the COFF header or the
            section table lies outside *data*.
        MalformedInput: The ``PE\\0\\0`` signature is missing.
    """
    if not isinstance(data, bytes):
        data = bytes(data)
    cur = ByteCursor.at(data, PE_POINTER_OFFSET, ByteOrder.LITTLE)
    pe_offset = cur.read(U32)

    cur = ByteCursor.at(data, pe_offset, ByteOrder.LITTLE)
    header = _parse_header(cur)

    sections_offset = (
        pe_offset
        + SIZEOF_PE_MAGIC
        + SIZEOF_COFF_HEADER
        + header.size_of_optional_header
    )
    sections = _parse_sections(data, sections_offset, header.number_of_sections)
    return PeFile(data, pe_offset, header, sections)


def extract_symbols(data: bytes, demangler: Demangler = demangle) -> SymbolTable:
    """One-shot decode: ``(symbols, text_size)`` straight from raw bytes."""
    return parse(data).symbols(demangler)
