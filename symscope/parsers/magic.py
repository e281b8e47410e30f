"""
Container Format Detection
===========================

Routes a raw buffer to the decoder that understands it by examining its
leading magic bytes.  ELF additionally reports its address class and
byte order from ``e_ident``.

Detection never reads past the available bytes: a buffer too short to
hold a signature is simply not matched.

References:
    - TIS Committee. (1995). ELF Specification, ``e_ident``.
    - Apple. ``mach-o/loader.h`` (``MH_MAGIC``, ``MH_MAGIC_64``).
    - Microsoft. (2024). PE Format -- MS-DOS stub.
"""

from __future__ import annotations

from symscope.core.models import BinaryFormat, ByteOrder, DetectedFormat


ELF_MAGIC: bytes = b"\x7fELF"
EI_CLASS: int = 4
EI_DATA: int = 5

ELFCLASS32: int = 1
ELFCLASS64: int = 2
ELFDATA2LSB: int = 1
ELFDATA2MSB: int = 2

MZ_MAGIC: bytes = b"MZ"

# MH_MAGIC / MH_CIGAM / MH_MAGIC_64 / MH_CIGAM_64 as they appear on disk
MACHO_MAGICS: frozenset[bytes] = frozenset({
    b"\xfe\xed\xfa\xce",
    b"\xce\xfa\xed\xfe",
    b"\xfe\xed\xfa\xcf",
    b"\xcf\xfa\xed\xfe",
})

UNRECOGNIZED = DetectedFormat(BinaryFormat.UNKNOWN)


def detect_format(data: bytes) -> DetectedFormat:
    """Identify which decoder applies to *data*.

    Args:
        data: Whole file contents.

    Returns:
        The detected format; ``BinaryFormat.UNKNOWN`` when nothing matches
        or the ELF class / data-encoding bytes are invalid.
    """
    if data[:4] == ELF_MAGIC:
        return _detect_elf(data)
    if data[:4] in MACHO_MAGICS:
        return DetectedFormat(BinaryFormat.MACHO)
    if data[:2] == MZ_MAGIC:
        return DetectedFormat(BinaryFormat.PE)
    return UNRECOGNIZED


def _detect_elf(data: bytes) -> DetectedFormat:
    if len(data) <= EI_DATA:
        return UNRECOGNIZED

    if data[EI_DATA] == ELFDATA2LSB:
        order = ByteOrder.LITTLE
    elif data[EI_DATA] == ELFDATA2MSB:
        order = ByteOrder.BIG
    else:
        return UNRECOGNIZED

    if data[EI_CLASS] == ELFCLASS32:
        return DetectedFormat(BinaryFormat.ELF32, order)
    if data[EI_CLASS] == ELFCLASS64:
        return DetectedFormat(BinaryFormat.ELF64, order)
    return UNRECOGNIZED
