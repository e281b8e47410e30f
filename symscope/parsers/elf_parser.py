"""
ELF Binary Format Decoder
==========================

Defensive decoder for 32-bit and 64-bit Executable and Linkable Format
files of either byte order.

Both address classes share one implementation: :class:`_ElfFile` carries
the header and section-table logic parameterised by field widths, and the
:class:`Elf32` / :class:`Elf64` subclasses supply their ABI-specific
symbol record layout (the two classes order ``Elf_Sym`` fields
differently).

The decoder extracts:
    - ELF header (post ``e_ident``)
    - Section header table, with names resolved through ``e_shstrndx``
    - Function symbols in ``.text`` from the first ``SHT_SYMTAB`` section

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - System V Application Binary Interface, Edition 4.1.
    - Linux man page: elf(5).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from symscope.analyzers.demangle import Demangler, demangle
from symscope.core.errors import MalformedInput, UnexpectedEndOfInput
from symscope.core.models import ByteOrder, SectionInfo, Symbol, SymbolTable
from symscope.parsers.cursor import (
    HOST_MAX_OFFSET,
    U8,
    U16,
    U32,
    U64,
    ByteCursor,
    RawNumber,
    StringTable,
    checked_range,
    require_within,
)


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

# Size of e_ident; the file header proper starts here
EI_NIDENT: int = 16

# Section header types
SHT_NULL: int = 0
SHT_PROGBITS: int = 1
SHT_SYMTAB: int = 2
SHT_STRTAB: int = 3
SHT_RELA: int = 4
SHT_HASH: int = 5
SHT_DYNAMIC: int = 6
SHT_NOTE: int = 7
SHT_NOBITS: int = 8
SHT_REL: int = 9
SHT_DYNSYM: int = 11

_SHT_NAMES: dict[int, str] = {
    SHT_NULL: "NULL",
    SHT_PROGBITS: "PROGBITS",
    SHT_SYMTAB: "SYMTAB",
    SHT_STRTAB: "STRTAB",
    SHT_RELA: "RELA",
    SHT_HASH: "HASH",
    SHT_DYNAMIC: "DYNAMIC",
    SHT_NOTE: "NOTE",
    SHT_NOBITS: "NOBITS",
    SHT_REL: "REL",
    SHT_DYNSYM: "DYNSYM",
}

# Symbol types (low nibble of st_info)
STT_TYPE_MASK: int = 0xF
STT_FUNC: int = 2

TEXT_SECTION: str = ".text"


# ---------------------------------------------------------------------------
# Parsed structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ElfHeader:
    """File header fields following ``e_ident``."""
    elf_type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int


@dataclass(frozen=True, slots=True)
class ElfSection:
    """One section header.

    Attributes:
        index: Position in the section header table.
        name: Offset of the name in the section-name string table.
        kind: ``sh_type``.
        link: ``sh_link``, an index into the section list.
        offset: File offset of the section contents.
        size: Size of the contents in bytes.
        entries: ``size // entsize``, or 0 when ``entsize`` is 0.
    """
    index: int
    name: int
    kind: int
    link: int
    offset: int
    size: int
    entries: int

    def range(self) -> range:
        """File byte range of the section contents."""
        return checked_range(self.offset, self.size)


@dataclass(frozen=True, slots=True)
class _RawElfSymbol:
    name: int
    info: int
    shndx: int
    value: int
    size: int


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

class _ElfFile:
    """Decoded ELF container; see :class:`Elf32` and :class:`Elf64`.

    Instances are read-only views over the input buffer; every query
    re-reads only the bytes it needs.
    """

    BITS: ClassVar[int]
    WORD: ClassVar[RawNumber] = U32
    HALF: ClassVar[RawNumber] = U16
    ADDRESS: ClassVar[RawNumber]
    XWORD: ClassVar[RawNumber]
    HEADER_SIZE: ClassVar[int]
    SECTION_HEADER_SIZE: ClassVar[int]
    # Symbol record fields in file order; ``other`` is read and ignored.
    SYMBOL_LAYOUT: ClassVar[tuple[tuple[str, RawNumber], ...]]

    def __init__(
        self,
        data: bytes,
        byte_order: ByteOrder,
        header: ElfHeader,
        sections: list[ElfSection],
    ) -> None:
        self._data = data
        self._byte_order = byte_order
        self._header = header
        self._sections = sections

    @classmethod
    def parse(cls, data: bytes, byte_order: ByteOrder) -> _ElfFile:
        """Decode the file header and section header table.

        Raises:
            UnexpectedEndOfInput: The header or the start of the section
                table lies outside *data*.
            MalformedInput: ``e_shoff`` does not fit the host address width.
        """
        if not isinstance(data, bytes):
            data = bytes(data)
        header = cls._parse_header(data, byte_order)
        sections = cls._parse_sections(data, byte_order, header)
        return cls(data, byte_order, header, sections)

    @classmethod
    def _parse_header(cls, data: bytes, byte_order: ByteOrder) -> ElfHeader:
        cur = ByteCursor.at(data, EI_NIDENT, byte_order)
        if cur.remaining() < cls.HEADER_SIZE:
            raise UnexpectedEndOfInput(
                f"ELF{cls.BITS} header needs {cls.HEADER_SIZE} bytes, "
                f"{cur.remaining()} available"
            )
        return ElfHeader(
            elf_type=cur.read(cls.HALF),
            machine=cur.read(cls.HALF),
            version=cur.read(cls.WORD),
            entry=cur.read(cls.ADDRESS),
            phoff=cur.read(cls.ADDRESS),
            shoff=cur.read(cls.ADDRESS),
            flags=cur.read(cls.WORD),
            ehsize=cur.read(cls.HALF),
            phentsize=cur.read(cls.HALF),
            phnum=cur.read(cls.HALF),
            shentsize=cur.read(cls.HALF),
            shnum=cur.read(cls.HALF),
            shstrndx=cur.read(cls.HALF),
        )

    @classmethod
    def _parse_sections(
        cls,
        data: bytes,
        byte_order: ByteOrder,
        header: ElfHeader,
    ) -> list[ElfSection]:
        if header.shoff > HOST_MAX_OFFSET:
            raise MalformedInput(f"Section table offset 0x{header.shoff:x} is too large")
        cur = ByteCursor.at(data, header.shoff, byte_order)

        # Truncated tables stop at the last complete header.
        sections: list[ElfSection] = []
        while len(sections) < header.shnum and cur.remaining() >= cls.SECTION_HEADER_SIZE:
            name = cur.read(cls.WORD)
            kind = cur.read(cls.WORD)
            cur.skip(cls.XWORD)     # flags
            cur.skip(cls.ADDRESS)   # addr
            offset = cur.read(cls.ADDRESS)
            size = cur.read(cls.XWORD)
            link = cur.read(cls.WORD)
            cur.skip(cls.WORD)      # info
            cur.skip(cls.XWORD)     # addralign
            entry_size = cur.read(cls.XWORD)

            sections.append(ElfSection(
                index=len(sections),
                name=name,
                kind=kind,
                link=link,
                offset=offset,
                size=size,
                entries=size // entry_size if entry_size else 0,
            ))
        return sections

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    @property
    def byte_order(self) -> ByteOrder:
        return self._byte_order

    def header(self) -> ElfHeader:
        return self._header

    def sections(self) -> list[ElfSection]:
        """Section headers in on-disk order."""
        return list(self._sections)

    def section_names(self) -> StringTable:
        """The section-name string table selected by ``e_shstrndx``.

        Raises:
            MalformedInput: ``e_shstrndx`` is not a valid section index or
                its range overflows.
            UnexpectedEndOfInput: The table lies outside the input.
        """
        index = self._header.shstrndx
        if index >= len(self._sections):
            raise MalformedInput(f"Section name table index {index} is out of range")
        bounds = require_within(self._data, self._sections[index].range())
        return StringTable(self._data, bounds)

    def section_name(self, section: ElfSection) -> Optional[str]:
        return self.section_names().get(section.name)

    def section_with_name(self, name: str) -> Optional[ElfSection]:
        """Find the first section whose resolved name equals *name*."""
        names = self.section_names()
        for section in self._sections:
            if names.get(section.name) == name:
                return section
        return None

    def section_infos(self) -> list[SectionInfo]:
        """Format-neutral section summaries for reports."""
        names = self.section_names()
        return [
            SectionInfo(
                name=names.get(sh.name) or "",
                offset=sh.offset,
                size=sh.size,
                kind=_SHT_NAMES.get(sh.kind, f"0x{sh.kind:x}"),
            )
            for sh in self._sections
        ]

    def symbols(self, demangler: Demangler = demangle) -> SymbolTable:
        """Extract sized function symbols defined in ``.text``.

        Returns:
            The symbols and the size of ``.text``.

        Raises:
            MalformedInput: ``.text`` or the symbol table is missing, or the
                symbol table's link does not name a string table.
            UnexpectedEndOfInput: A table lies outside the input or ends
                with a partial record.
        """
        text = self.section_with_name(TEXT_SECTION)
        if text is None:
            raise MalformedInput("No .text section")

        symtab = next((sh for sh in self._sections if sh.kind == SHT_SYMTAB), None)
        if symtab is None:
            raise MalformedInput("No symbol table section")

        if symtab.link >= len(self._sections):
            raise MalformedInput(f"Symbol table link {symtab.link} is out of range")
        linked = self._sections[symtab.link]
        if linked.kind != SHT_STRTAB:
            raise MalformedInput("Symbol table is not linked to a string table")

        strings = StringTable(self._data, require_within(self._data, linked.range()))
        cur = ByteCursor.window(self._data, symtab.range(), self._byte_order)

        symbols: list[Symbol] = []
        while not cur.at_end():
            raw = self._read_symbol(cur)

            if raw.shndx != text.index:
                continue
            if raw.size == 0:
                continue
            if raw.name == 0:
                continue
            if raw.info & STT_TYPE_MASK != STT_FUNC:
                continue

            name = strings.get(raw.name)
            if name is None:
                continue
            symbols.append(Symbol(name=demangler(name), address=raw.value, size=raw.size))

        return SymbolTable(symbols, text.size)

    def _read_symbol(self, cur: ByteCursor) -> _RawElfSymbol:
        fields = {field: cur.read(width) for field, width in self.SYMBOL_LAYOUT}
        return _RawElfSymbol(
            name=fields["name"],
            info=fields["info"],
            shndx=fields["shndx"],
            value=fields["value"],
            size=fields["size"],
        )


class Elf32(_ElfFile):
    """32-bit ELF (``Elf32_Ehdr`` / ``Elf32_Shdr`` / ``Elf32_Sym``)."""

    BITS = 32
    ADDRESS = U32
    XWORD = U32
    HEADER_SIZE = 36
    SECTION_HEADER_SIZE = 40
    SYMBOL_LAYOUT = (
        ("name", U32), ("value", U32), ("size", U32),
        ("info", U8), ("other", U8), ("shndx", U16),
    )


class Elf64(_ElfFile):
    """64-bit ELF (``Elf64_Ehdr`` / ``Elf64_Shdr`` / ``Elf64_Sym``)."""

    BITS = 64
    ADDRESS = U64
    XWORD = U64
    HEADER_SIZE = 48
    SECTION_HEADER_SIZE = 64
    SYMBOL_LAYOUT = (
        ("name", U32), ("info", U8), ("other", U8),
        ("shndx", U16), ("value", U64), ("size", U64),
    )


def parse_elf32(data: bytes, byte_order: ByteOrder) -> Elf32:
    """Decode a 32-bit ELF file."""
    return Elf32.parse(data, byte_order)  # type: ignore[return-value]


def parse_elf64(data: bytes, byte_order: ByteOrder) -> Elf64:
    """Decode a 64-bit ELF file."""
    return Elf64.parse(data, byte_order)  # type: ignore[return-value]
