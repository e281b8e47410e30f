"""
Symscope Parsers
=================

The checked byte cursor, container format detection and the ELF, Mach-O
and PE/COFF decoders.
"""

from symscope.parsers.cursor import ByteCursor, StringTable
from symscope.parsers.elf_parser import Elf32, Elf64, parse_elf32, parse_elf64
from symscope.parsers.macho_parser import Macho
from symscope.parsers.magic import detect_format
from symscope.parsers.pe_parser import PeFile

__all__ = [
    "ByteCursor",
    "Elf32",
    "Elf64",
    "Macho",
    "PeFile",
    "StringTable",
    "detect_format",
    "parse_elf32",
    "parse_elf64",
]
