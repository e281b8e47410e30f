"""Tests for the ELF32/ELF64 decoder."""

from __future__ import annotations

import struct

import pytest

from symscope.core.errors import MalformedInput, UnexpectedEndOfInput
from symscope.core.models import ByteOrder, Symbol
from symscope.parsers.elf_parser import (
    SHT_NULL,
    SHT_PROGBITS,
    SHT_STRTAB,
    SHT_SYMTAB,
    Elf32,
    Elf64,
    ElfSection,
    parse_elf32,
    parse_elf64,
)

from tests.binaries import STT_OBJECT_GLOBAL, ElfSym, build_elf


def _patch(data: bytes, offset: int, fmt: str, value: int) -> bytes:
    buf = bytearray(data)
    struct.pack_into(fmt, buf, offset, value)
    return bytes(buf)


def _section_field(image, index: int, field_offset: int) -> int:
    return image.shoff + index * 64 + field_offset


# Elf64_Shdr field offsets
SH64_OFFSET = 24
SH64_SIZE = 32


class TestElf64:
    def test_single_function(self):
        image = build_elf([ElfSym("main", 0x1000, 0x40)])
        elf = parse_elf64(image.data, ByteOrder.LITTLE)

        symbols, text_size = elf.symbols()
        assert symbols == [Symbol(name="main", address=0x1000, size=0x40)]
        assert text_size == 0x100

    def test_header(self):
        image = build_elf()
        header = parse_elf64(image.data, ByteOrder.LITTLE).header()
        assert header.shoff == image.shoff
        assert header.shnum == 5
        assert header.shstrndx == 2
        assert header.shentsize == 64

    def test_sections_in_disk_order(self):
        image = build_elf([ElfSym("a", 0, 4), ElfSym("b", 4, 4)])
        elf = parse_elf64(image.data, ByteOrder.LITTLE)

        sections = elf.sections()
        assert [s.index for s in sections] == [0, 1, 2, 3, 4]
        assert [s.kind for s in sections] == [SHT_NULL, SHT_PROGBITS, SHT_STRTAB, SHT_STRTAB, SHT_SYMTAB]
        assert [elf.section_name(s) for s in sections] == [None, ".text", ".shstrtab", ".strtab", ".symtab"]
        assert sections[1].offset == image.text_offset
        assert sections[4].entries == 3

    def test_section_with_name(self):
        elf = parse_elf64(build_elf().data, ByteOrder.LITTLE)
        text = elf.section_with_name(".text")
        assert text is not None
        assert text.index == 1
        assert text.size == 0x100
        assert elf.section_with_name(".data") is None

    def test_section_infos(self):
        elf = parse_elf64(build_elf().data, ByteOrder.LITTLE)
        infos = elf.section_infos()
        assert [i.name for i in infos] == ["", ".text", ".shstrtab", ".strtab", ".symtab"]
        assert [i.kind for i in infos] == ["NULL", "PROGBITS", "STRTAB", "STRTAB", "SYMTAB"]

    def test_big_endian(self):
        image = build_elf([ElfSym("start", 0x400000, 0x20)], big_endian=True)
        elf = parse_elf64(image.data, ByteOrder.BIG)
        assert elf.byte_order is ByteOrder.BIG
        assert elf.symbols().symbols == [Symbol(name="start", address=0x400000, size=0x20)]

    def test_symbol_filters(self):
        image = build_elf([
            ElfSym("keep", 0x10, 0x10),
            ElfSym("data_object", 0x20, 0x10, info=STT_OBJECT_GLOBAL),
            ElfSym("empty", 0x30, 0),
            ElfSym("elsewhere", 0x40, 0x10, shndx=2),
            ElfSym("", 0x50, 0x10),
            ElfSym("also_kept", 0x60, 0x8),
        ])
        symbols = parse_elf64(image.data, ByteOrder.LITTLE).symbols().symbols
        assert [s.name for s in symbols] == ["keep", "also_kept"]

    def test_symbols_keep_table_order(self):
        image = build_elf([ElfSym("late", 0x80, 0x10), ElfSym("early", 0x10, 0x10)])
        symbols = parse_elf64(image.data, ByteOrder.LITTLE).symbols().symbols
        assert [s.name for s in symbols] == ["late", "early"]

    def test_local_function_binding_kept(self):
        image = build_elf([ElfSym("local_fn", 0x10, 0x10, info=0x02)])
        assert parse_elf64(image.data, ByteOrder.LITTLE).symbols().symbols[0].name == "local_fn"

    def test_demangler(self):
        image = build_elf([ElfSym("_ZN4core3fmt5write17h0123456789abcdefE", 0x10, 0x20)])
        elf = parse_elf64(image.data, ByteOrder.LITTLE)
        assert elf.symbols().symbols[0].name == "core::fmt::write"
        assert elf.symbols(lambda name: name.upper()).symbols[0].name == (
            "_ZN4CORE3FMT5WRITE17H0123456789ABCDEFE"
        )

    def test_no_symbols(self):
        symbols, text_size = parse_elf64(build_elf().data, ByteOrder.LITTLE).symbols()
        assert symbols == []
        assert text_size == 0x100


@pytest.mark.parametrize("cls,record_size", [(Elf32, 16), (Elf64, 24)])
def test_symbol_layout(cls, record_size):
    assert sum(width.size for _, width in cls.SYMBOL_LAYOUT) == record_size
    assert sorted(field for field, _ in cls.SYMBOL_LAYOUT) == [
        "info", "name", "other", "shndx", "size", "value",
    ]


class TestElf32:
    @pytest.mark.parametrize("big_endian", [False, True])
    def test_round_trip(self, big_endian):
        image = build_elf(
            [ElfSym("reset", 0x8000, 0x24), ElfSym("loop", 0x8024, 0x10)],
            bits=32,
            big_endian=big_endian,
            text_size=0x80,
        )
        order = ByteOrder.BIG if big_endian else ByteOrder.LITTLE
        elf = parse_elf32(image.data, order)

        assert elf.header().shentsize == 40
        assert len(elf.sections()) == 5
        symbols, text_size = elf.symbols()
        assert symbols == [
            Symbol(name="reset", address=0x8000, size=0x24),
            Symbol(name="loop", address=0x8024, size=0x10),
        ]
        assert text_size == 0x80

    def test_truncated_header(self):
        data = build_elf(bits=32).data[:16 + 35]
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf32(data, ByteOrder.LITTLE)


class TestMalformed:
    def test_empty(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(b"", ByteOrder.LITTLE)

    def test_ident_only(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(b"\x7fELF\x02\x01\x01" + b"\x00" * 9, ByteOrder.LITTLE)

    def test_truncated_header(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(build_elf().data[:40], ByteOrder.LITTLE)

    def test_section_table_past_end(self):
        image = build_elf()
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(image.data[:image.shoff], ByteOrder.LITTLE)

    def test_truncated_section_table_keeps_complete_headers(self):
        image = build_elf()
        elf = parse_elf64(image.data[:image.shoff + 3 * 64 + 10], ByteOrder.LITTLE)
        assert len(elf.sections()) == 3
        assert elf.section_with_name(".text") is not None

    def test_missing_text(self):
        elf = parse_elf64(build_elf(with_text=False).data, ByteOrder.LITTLE)
        with pytest.raises(MalformedInput):
            elf.symbols()

    def test_missing_symtab(self):
        elf = parse_elf64(build_elf(with_symtab=False).data, ByteOrder.LITTLE)
        with pytest.raises(MalformedInput):
            elf.symbols()

    @pytest.mark.parametrize("link", [1, 4, 99])
    def test_bad_symtab_link(self, link):
        image = build_elf([ElfSym("main", 0, 4)], symtab_link=link)
        with pytest.raises(MalformedInput):
            parse_elf64(image.data, ByteOrder.LITTLE).symbols()

    def test_bad_shstrndx(self):
        elf = parse_elf64(build_elf(shstrndx=50).data, ByteOrder.LITTLE)
        with pytest.raises(MalformedInput):
            elf.section_with_name(".text")

    def test_overflowing_string_table_size(self):
        image = build_elf([ElfSym("main", 0, 4)])
        data = _patch(image.data, _section_field(image, 3, SH64_SIZE), "<Q", 2 ** 64 - 1)
        with pytest.raises(MalformedInput):
            parse_elf64(data, ByteOrder.LITTLE).symbols()

    def test_string_table_past_end(self):
        image = build_elf([ElfSym("main", 0, 4)])
        data = _patch(image.data, _section_field(image, 3, SH64_OFFSET), "<Q", len(image.data))
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(data, ByteOrder.LITTLE).symbols()

    def test_partial_symbol_record(self):
        image = build_elf([ElfSym("main", 0, 4)])
        data = _patch(image.data, _section_field(image, 4, SH64_SIZE), "<Q", 24 * 2 - 1)
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(data, ByteOrder.LITTLE).symbols()

    def test_symbol_table_past_end(self):
        image = build_elf([ElfSym("main", 0, 4)])
        data = _patch(image.data, _section_field(image, 4, SH64_OFFSET), "<Q", len(image.data) + 8)
        with pytest.raises(UnexpectedEndOfInput):
            parse_elf64(data, ByteOrder.LITTLE).symbols()

    def test_shoff_too_wide(self):
        image = build_elf()
        # e_shoff sits at 16 + 2 + 2 + 4 + 8 + 8
        data = _patch(image.data, 40, "<Q", 2 ** 64 - 1)
        with pytest.raises(MalformedInput):
            parse_elf64(data, ByteOrder.LITTLE)

    def test_section_range_overflow(self):
        section = ElfSection(index=0, name=0, kind=1, link=0, offset=2 ** 63, size=2 ** 63, entries=0)
        with pytest.raises(MalformedInput):
            section.range()
