"""
Mach-O Binary Format Decoder
=============================

Defensive decoder for little-endian 64-bit Mach-O images.

The decoder walks exactly ``ncmds`` load commands, collects the sections
of every ``LC_SEGMENT_64`` and reads function symbols from ``LC_SYMTAB``.
``nlist_64`` entries carry no size, so sizes are inferred from the
distance to the next distinct address (see
:mod:`symscope.analyzers.size_inference`), with the end of
``__TEXT,__text`` closing the last function.

References:
    - Apple. ``mach-o/loader.h`` (``mach_header_64``, ``segment_command_64``,
      ``section_64``, ``symtab_command``).
    - Apple. ``mach-o/nlist.h`` (``nlist_64``, ``N_TYPE``, ``N_SECT``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from symscope.analyzers.demangle import Demangler, demangle
from symscope.analyzers.size_inference import SizeInference
from symscope.core.errors import MalformedInput
from symscope.core.models import ByteOrder, SectionInfo, Symbol, SymbolTable
from symscope.parsers.cursor import (
    U8,
    U16,
    U32,
    U64,
    ByteCursor,
    StringTable,
    checked_range,
    parse_null_string,
    require_within,
)


# ---------------------------------------------------------------------------
# Mach-O Constants
# ---------------------------------------------------------------------------

# Load command kinds
LC_SYMTAB: int = 0x2
LC_SEGMENT_64: int = 0x19

LOAD_COMMAND_HEADER_SIZE: int = 8
NAME_FIELD_SIZE: int = 16
SECTION_64_PADDING: int = 12  # reserved1..reserved3

# nlist n_type masks
N_TYPE: int = 0x0E
N_INDIRECT_BITS: int = 0xA
N_SECTION_BITS: int = 0xE

# n_sect is 1-based; 1 is conventionally __TEXT,__text
TEXT_SECTION_ORDINAL: int = 1

TEXT_SEGMENT: str = "__TEXT"
TEXT_SECTION: str = "__text"


# ---------------------------------------------------------------------------
# Parsed structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MachoHeader:
    """``mach_header_64`` fields after the magic."""
    cputype: int
    cpusubtype: int
    filetype: int
    ncmds: int
    sizeofcmds: int
    flags: int


@dataclass(frozen=True, slots=True)
class LoadCommand:
    """A load command: its kind and the file offset of its body."""
    kind: int
    offset: int


@dataclass(frozen=True, slots=True)
class MachoSection:
    """One ``section_64`` record."""
    segment_name: str
    section_name: str
    address: int
    offset: int
    size: int

    def range(self) -> range:
        """File byte range of the section contents."""
        return checked_range(self.offset, self.size)


@dataclass(frozen=True, slots=True)
class _RawSymbol:
    string_index: int
    kind: int
    section: int
    address: int


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _parse_header(cur: ByteCursor) -> MachoHeader:
    cur.skip(U32)  # magic
    header = MachoHeader(
        cputype=cur.read(U32),
        cpusubtype=cur.read(U32),
        filetype=cur.read(U32),
        ncmds=cur.read(U32),
        sizeofcmds=cur.read(U32),
        flags=cur.read(U32),
    )
    cur.skip(U32)  # reserved
    return header


def _parse_commands(cur: ByteCursor, count: int) -> list[LoadCommand]:
    commands: list[LoadCommand] = []
    for _ in range(count):
        kind = cur.read(U32)
        size = cur.read(U32)
        commands.append(LoadCommand(kind=kind, offset=cur.offset))

        # cmdsize covers the whole command, header included.
        if size < LOAD_COMMAND_HEADER_SIZE:
            raise MalformedInput(f"Load command size {size} is smaller than its header")
        cur.skip_len(size - LOAD_COMMAND_HEADER_SIZE)
    return commands


def _parse_segment_sections(data: bytes, command: LoadCommand) -> list[MachoSection]:
    cur = ByteCursor.at(data, command.offset, ByteOrder.LITTLE)
    cur.skip_len(NAME_FIELD_SIZE)  # segname
    cur.skip(U64)  # vmaddr
    cur.skip(U64)  # vmsize
    cur.skip(U64)  # fileoff
    cur.skip(U64)  # filesize
    cur.skip(U32)  # maxprot
    cur.skip(U32)  # initprot
    count = cur.read(U32)
    cur.skip(U32)  # flags

    sections: list[MachoSection] = []
    for _ in range(count):
        section_name = parse_null_string(cur.read_bytes(NAME_FIELD_SIZE).tobytes(), 0)
        segment_name = parse_null_string(cur.read_bytes(NAME_FIELD_SIZE).tobytes(), 0)
        address = cur.read(U64)
        size = cur.read(U64)
        offset = cur.read(U32)
        cur.skip(U32)  # align
        cur.skip(U32)  # reloff
        cur.skip(U32)  # nreloc
        cur.skip(U32)  # flags
        cur.skip_len(SECTION_64_PADDING)

        if segment_name is None or section_name is None:
            continue
        sections.append(MachoSection(
            segment_name=segment_name,
            section_name=section_name,
            address=address,
            offset=offset,
            size=size,
        ))
    return sections


class Macho:
    """Decoded Mach-O container.

    Usage::

        macho = parse(raw_bytes)
        text = macho.section_with_name("__TEXT", "__text")
        symbols, text_size = macho.symbols()
    """

    def __init__(
        self,
        data: bytes,
        header: MachoHeader,
        commands: list[LoadCommand],
        sections: list[MachoSection],
    ) -> None:
        self._data = data
        self._header = header
        self._commands = commands
        self._sections = sections

    def header(self) -> MachoHeader:
        return self._header

    def commands(self) -> list[LoadCommand]:
        return list(self._commands)

    def sections(self) -> list[MachoSection]:
        """Sections in discovery order."""
        return list(self._sections)

    def section_with_name(self, segment_name: str, section_name: str) -> Optional[MachoSection]:
        for section in self._sections:
            if section.segment_name == segment_name and section.section_name == section_name:
                return section
        return None

    def section_infos(self) -> list[SectionInfo]:
        return [
            SectionInfo(
                name=f"{sec.segment_name},{sec.section_name}",
                offset=sec.offset,
                size=sec.size,
            )
            for sec in self._sections
        ]

    def symbols(self, demangler: Demangler = demangle) -> SymbolTable:
        """Extract function symbols from ``LC_SYMTAB`` with inferred sizes.

        Returns:
            The symbols and the size of ``__TEXT,__text``; an empty table
            when the image has no ``LC_SYMTAB``.

        Raises:
            MalformedInput: The first section is not a non-empty
                ``__TEXT,__text``.
            UnexpectedEndOfInput: The symbol or string table lies outside
                the input.
        """
        if not self._sections:
            raise MalformedInput("Mach-O image has no sections")
        text = self._sections[0]
        if (text.segment_name, text.section_name) != (TEXT_SEGMENT, TEXT_SECTION):
            raise MalformedInput("The first section must be __TEXT,__text")
        if text.size == 0:
            raise MalformedInput("__TEXT,__text is empty")

        symtab = next((cmd for cmd in self._commands if cmd.kind == LC_SYMTAB), None)
        if symtab is None:
            return SymbolTable([], 0)

        cur = ByteCursor.at(self._data, symtab.offset, ByteOrder.LITTLE)
        symbols_offset = cur.read(U32)
        symbols_count = cur.read(U32)
        strings_offset = cur.read(U32)
        strings_size = cur.read(U32)

        strings = StringTable(
            self._data,
            require_within(self._data, checked_range(strings_offset, strings_size)),
        )
        records = ByteCursor.window(
            self._data, range(symbols_offset, len(self._data)), ByteOrder.LITTLE,
        )
        raw_symbols = _read_symbols(records, symbols_count)
        symbols = _sized_symbols(raw_symbols, strings, text, demangler)
        return SymbolTable(symbols, text.size)


def _read_symbols(cur: ByteCursor, count: int) -> list[_RawSymbol]:
    raw_symbols: list[_RawSymbol] = []
    for _ in range(count):
        string_index = cur.read(U32)
        kind = cur.read(U8)
        section = cur.read(U8)
        cur.skip(U16)  # n_desc
        value = cur.read(U64)

        if value == 0:
            continue
        raw_symbols.append(_RawSymbol(string_index, kind, section, value))
    return raw_symbols


def _is_text_function(sym: _RawSymbol) -> bool:
    if sym.string_index == 0:
        return False
    sub_type = sym.kind & N_TYPE
    if sub_type & N_INDIRECT_BITS != N_INDIRECT_BITS:
        return False
    if sub_type & N_SECTION_BITS != N_SECTION_BITS:
        return False
    return sym.section == TEXT_SECTION_ORDINAL


def _sized_symbols(
    raw_symbols: list[_RawSymbol],
    strings: StringTable,
    text: MachoSection,
    demangler: Demangler,
) -> list[Symbol]:
    ordered = sorted(raw_symbols, key=lambda sym: sym.address)
    # The end of __TEXT,__text bounds the last function.
    inference = SizeInference([sym.address for sym in ordered] + [text.address + text.size])

    symbols: list[Symbol] = []
    for index, sym in enumerate(ordered):
        if not _is_text_function(sym):
            continue
        name = strings.get(sym.string_index)
        if name is None:
            continue
        size = inference.claim(index)
        if size is None:
            continue
        symbols.append(Symbol(name=demangler(name), address=sym.address, size=size))
    return symbols


def parse(data: bytes) -> Macho:
    """Decode the header, load commands and segment sections of *data*.

    Raises:
        UnexpectedEndOfInput: The header or a load command is truncated.
        MalformedInput: A load command's size is smaller than its header.
    """
    if not isinstance(data, bytes):
        data = bytes(data)
    cur = ByteCursor(data, ByteOrder.LITTLE)
    header = _parse_header(cur)
    commands = _parse_commands(cur, header.ncmds)

    sections: list[MachoSection] = []
    for command in commands:
        if command.kind == LC_SEGMENT_64:
            sections.extend(_parse_segment_sections(data, command))
    return Macho(data, header, commands, sections)
