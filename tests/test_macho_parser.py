"""Tests for the 64-bit Mach-O decoder."""

from __future__ import annotations

import struct

import pytest

from symscope.core.errors import MalformedInput, UnexpectedEndOfInput
from symscope.core.models import Symbol
from symscope.parsers.macho_parser import LC_SEGMENT_64, LC_SYMTAB, MachoSection, parse

from tests.binaries import N_UNDF_EXT, MachoSect, MachoSym, build_macho

LC_UUID = 0x1B


def _patch_u32(data: bytes, offset: int, value: int) -> bytes:
    buf = bytearray(data)
    struct.pack_into("<I", buf, offset, value)
    return bytes(buf)


class TestStructure:
    def test_header(self):
        image = build_macho()
        header = parse(image.data).header()
        assert header.ncmds == 2
        assert header.filetype == 2

    def test_commands(self):
        image = build_macho(extra_commands=[(LC_UUID, b"\x00" * 16)])
        commands = parse(image.data).commands()
        assert [c.kind for c in commands] == [LC_SEGMENT_64, LC_SYMTAB, LC_UUID]
        assert commands[1].offset == image.symtab_command_offset + 8

    def test_sections(self):
        image = build_macho(sections=[
            MachoSect("__TEXT", "__text", 0x1000, 0x200, offset=0x400),
            MachoSect("__TEXT", "__stubs", 0x1200, 0x30),
        ])
        macho = parse(image.data)
        sections = macho.sections()
        assert [(s.segment_name, s.section_name) for s in sections] == [
            ("__TEXT", "__text"),
            ("__TEXT", "__stubs"),
        ]
        assert sections[0].address == 0x1000
        assert sections[0].size == 0x200
        assert sections[0].range() == range(0x400, 0x600)

        assert macho.section_with_name("__TEXT", "__stubs") == sections[1]
        assert macho.section_with_name("__DATA", "__data") is None
        assert [i.name for i in macho.section_infos()] == ["__TEXT,__text", "__TEXT,__stubs"]

    def test_section_range_overflow(self):
        section = MachoSection("__TEXT", "__text", 0, 2 ** 63, 2 ** 63)
        with pytest.raises(MalformedInput):
            section.range()


class TestSymbols:
    def test_sizes_from_next_address(self):
        image = build_macho([
            MachoSym("_c", 0x10C0),
            MachoSym("_a", 0x1000),
            MachoSym("_b", 0x1040),
        ])
        symbols, text_size = parse(image.data).symbols()
        assert symbols == [
            Symbol(name="_a", address=0x1000, size=0x40),
            Symbol(name="_b", address=0x1040, size=0x80),
            Symbol(name="_c", address=0x10C0, size=0x40),
        ]
        assert text_size == 0x100

    def test_sizes_strictly_positive(self):
        addresses = [0x1000, 0x1001, 0x1010, 0x1011, 0x1080, 0x10FF]
        image = build_macho([MachoSym(f"_f{i}", a) for i, a in enumerate(addresses)])
        symbols = parse(image.data).symbols().symbols
        assert [s.address for s in symbols] == addresses
        assert all(s.size > 0 for s in symbols)
        assert sum(s.size for s in symbols) == 0x100

    def test_duplicate_addresses_coalesced(self):
        image = build_macho([
            MachoSym("_first", 0x1000),
            MachoSym("_alias", 0x1000),
            MachoSym("_next", 0x1080),
        ])
        symbols = parse(image.data).symbols().symbols
        assert symbols == [
            Symbol(name="_first", address=0x1000, size=0x80),
            Symbol(name="_next", address=0x1080, size=0x80),
        ]

    def test_filters(self):
        image = build_macho([
            MachoSym("_keep", 0x1000),
            MachoSym("_undefined", 0x1010, n_type=N_UNDF_EXT),
            MachoSym("_indirect", 0x1020, n_type=0x0B),
            MachoSym("_data", 0x1030, n_sect=2),
            MachoSym("", 0x1040),
            MachoSym("_zero", 0),
        ])
        symbols = parse(image.data).symbols().symbols
        assert [s.name for s in symbols] == ["_keep"]
        # Filtered symbols still bound the ones before them.
        assert symbols[0].size == 0x10

    def test_symbol_past_text_end_dropped(self):
        image = build_macho([MachoSym("_in", 0x1000), MachoSym("_out", 0x2000)])
        symbols = parse(image.data).symbols().symbols
        assert [s.name for s in symbols] == ["_in"]
        assert symbols[0].size == 0x1000

    def test_demangles_rust_names(self):
        image = build_macho([MachoSym("__ZN4core3fmt5write17h0123456789abcdefE", 0x1000)])
        assert parse(image.data).symbols().symbols[0].name == "core::fmt::write"

    def test_raw_names_with_custom_demangler(self):
        image = build_macho([MachoSym("_main", 0x1000)])
        assert parse(image.data).symbols(lambda n: n).symbols[0].name == "_main"

    def test_no_symtab_gives_empty_table(self):
        symbols, text_size = parse(build_macho(with_symtab=False).data).symbols()
        assert symbols == []
        assert text_size == 0


class TestMalformed:
    def test_empty(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse(b"")

    def test_truncated_header(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse(build_macho().data[:20])

    def test_truncated_commands(self):
        with pytest.raises(UnexpectedEndOfInput):
            parse(build_macho().data[:40])

    def test_undersized_load_command(self):
        image = build_macho(extra_commands=[(LC_UUID, b"\x00" * 16)])
        # header + segment with one section + LC_SYMTAB, then cmdsize
        offset = 32 + 72 + 80 + 24 + 4
        with pytest.raises(MalformedInput):
            parse(_patch_u32(image.data, offset, 4))

    def test_first_section_not_text(self):
        image = build_macho(
            [MachoSym("_a", 0x1000)],
            sections=[
                MachoSect("__DATA", "__data", 0x2000, 0x40),
                MachoSect("__TEXT", "__text", 0x1000, 0x100),
            ],
        )
        with pytest.raises(MalformedInput):
            parse(image.data).symbols()

    def test_no_sections(self):
        with pytest.raises(MalformedInput):
            parse(build_macho(sections=[]).data).symbols()

    def test_empty_text(self):
        image = build_macho(sections=[MachoSect("__TEXT", "__text", 0x1000, 0)])
        with pytest.raises(MalformedInput):
            parse(image.data).symbols()

    def test_symbol_table_past_end(self):
        image = build_macho([MachoSym("_a", 0x1000)])
        data = _patch_u32(image.data, image.symtab_command_offset + 8, len(image.data) + 16)
        with pytest.raises(UnexpectedEndOfInput):
            parse(data).symbols()

    def test_symbol_count_past_end(self):
        image = build_macho([MachoSym("_a", 0x1000)])
        data = _patch_u32(image.data, image.symtab_command_offset + 12, 1000)
        with pytest.raises(UnexpectedEndOfInput):
            parse(data).symbols()

    def test_string_table_past_end(self):
        image = build_macho([MachoSym("_a", 0x1000)])
        data = _patch_u32(image.data, image.symtab_command_offset + 20, 0xFFFFFFFF)
        with pytest.raises(UnexpectedEndOfInput):
            parse(data).symbols()
