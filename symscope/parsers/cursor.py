"""
Checked Byte Cursor
====================

A forward-only read position over an immutable byte buffer.  Every read,
skip and sub-slice is bounds-checked before the position moves, so a
truncated or hostile input raises :class:`UnexpectedEndOfInput` instead of
``struct.error`` or a silently short slice.

Fixed-width integers are described by :class:`RawNumber` values (``U8`` to
``U64`` and ``I8`` to ``I64``); ``cursor.read(U32)`` decodes one honouring
the cursor's byte order.

Usage::

    cur = ByteCursor(data, ByteOrder.LITTLE)
    magic = cur.read(U32)
    cur.skip(U16)
    name = cur.read_bytes(16)
"""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from typing import Optional

from symscope.core.errors import MalformedInput, UnexpectedEndOfInput
from symscope.core.models import ByteOrder


# Largest offset the host can address; wider on-disk values are malformed.
HOST_MAX_OFFSET: int = sys.maxsize


@dataclass(frozen=True, slots=True)
class RawNumber:
    """A fixed-width integer layout.

    Attributes:
        code: :mod:`struct` format character.
        size: Width in bytes.
    """
    code: str
    size: int


U8 = RawNumber("B", 1)
U16 = RawNumber("H", 2)
U32 = RawNumber("I", 4)
U64 = RawNumber("Q", 8)
I8 = RawNumber("b", 1)
I16 = RawNumber("h", 2)
I32 = RawNumber("i", 4)
I64 = RawNumber("q", 8)

_STRUCTS: dict[tuple[ByteOrder, RawNumber], struct.Struct] = {
    (order, number): struct.Struct(order.struct_prefix + number.code)
    for order in ByteOrder
    for number in (U8, U16, U32, U64, I8, I16, I32, I64)
}


class ByteCursor:
    """Bounds-checked reader over ``data[start:end]``.

    The cursor never copies the underlying buffer; :meth:`take` hands out
    a narrower cursor over the same bytes.  Invariant: ``start <= offset
    <= end <= len(data)``.
    """

    __slots__ = ("_data", "_view", "_offset", "_end", "_order")

    def __init__(
        self,
        data: bytes,
        order: ByteOrder = ByteOrder.LITTLE,
        *,
        end: Optional[int] = None,
    ) -> None:
        self._data = data
        self._view = memoryview(data)
        self._offset = 0
        self._end = len(data) if end is None else min(end, len(data))
        self._order = order

    @classmethod
    def at(cls, data: bytes, offset: int, order: ByteOrder = ByteOrder.LITTLE) -> ByteCursor:
        """Create a cursor positioned at *offset*.

        Raises:
            UnexpectedEndOfInput: If *offset* is not inside *data*.
        """
        if offset < 0 or offset >= len(data):
            raise UnexpectedEndOfInput(
                f"Offset 0x{offset:x} is outside a {len(data)}-byte buffer"
            )
        cur = cls(data, order)
        cur._offset = offset
        return cur

    @classmethod
    def window(cls, data: bytes, bounds: range, order: ByteOrder = ByteOrder.LITTLE) -> ByteCursor:
        """Create a cursor over ``data[bounds.start:bounds.stop]``.

        Raises:
            UnexpectedEndOfInput: If *bounds* is not inside *data*.
        """
        if bounds.start < 0 or bounds.start > bounds.stop or bounds.stop > len(data):
            raise UnexpectedEndOfInput(
                f"Window 0x{bounds.start:x}..0x{bounds.stop:x} exceeds "
                f"{len(data)}-byte input"
            )
        cur = cls(data, order, end=bounds.stop)
        cur._offset = bounds.start
        return cur

    # ------------------------------------------------------------------ #
    #  Position
    # ------------------------------------------------------------------ #

    @property
    def offset(self) -> int:
        """Absolute position within the backing buffer."""
        return self._offset

    @property
    def order(self) -> ByteOrder:
        return self._order

    def remaining(self) -> int:
        return max(self._end - self._offset, 0)

    def at_end(self) -> bool:
        return self._offset >= self._end

    def _advance(self, length: int) -> int:
        """Move forward *length* bytes and return the previous position."""
        if length < 0 or length > self._end - self._offset:
            raise UnexpectedEndOfInput(
                f"Need {length} bytes at 0x{self._offset:x}, "
                f"{self.remaining()} available"
            )
        start = self._offset
        self._offset = start + length
        return start

    # ------------------------------------------------------------------ #
    #  Reads
    # ------------------------------------------------------------------ #

    def read(self, number: RawNumber) -> int:
        """Decode one fixed-width integer and advance past it."""
        start = self._advance(number.size)
        return _STRUCTS[self._order, number].unpack_from(self._data, start)[0]

    def skip(self, number: RawNumber) -> None:
        """Advance past one fixed-width field without decoding it."""
        self._advance(number.size)

    def skip_len(self, length: int) -> None:
        self._advance(length)

    def read_bytes(self, length: int) -> memoryview:
        """Return a view of the next *length* bytes and advance past them.

        The view shares the backing buffer; call ``.tobytes()`` to keep a copy.
        """
        start = self._advance(length)
        return self._view[start:start + length]

    def take(self, length: int) -> ByteCursor:
        """Consume *length* bytes and return a cursor limited to them."""
        start = self._advance(length)
        sub = ByteCursor(self._data, self._order, end=start + length)
        sub._offset = start
        return sub


# ---------------------------------------------------------------------------
# Strings and ranges
# ---------------------------------------------------------------------------

def parse_null_string(data: bytes, start: int, end: Optional[int] = None) -> Optional[str]:
    """Read a NUL-terminated UTF-8 string from ``data[start:end]``.

    Returns ``None`` when *start* is out of range, no terminator occurs
    before *end*, the string is empty, or the bytes are not valid UTF-8.
    """
    limit = len(data) if end is None else min(end, len(data))
    if start < 0 or start >= limit:
        return None
    nul = data.find(b"\x00", start, limit)
    if nul <= start:
        return None
    try:
        return data[start:nul].decode("utf-8")
    except UnicodeDecodeError:
        return None


class StringTable:
    """A NUL-terminated string blob addressed by byte offset.

    The table is a window over the backing buffer; lookups never copy more
    than the string being returned.
    """

    __slots__ = ("_data", "_start", "_end")

    def __init__(self, data: bytes, bounds: range) -> None:
        self._data = data
        self._start = bounds.start
        self._end = bounds.stop

    def get(self, offset: int) -> Optional[str]:
        """Return the string at *offset* within the table, if any."""
        if offset < 0 or offset > self._end - self._start:
            return None
        return parse_null_string(self._data, self._start + offset, self._end)

    def __len__(self) -> int:
        return self._end - self._start


def checked_range(offset: int, size: int) -> range:
    """Build ``range(offset, offset + size)`` with overflow checks.

    Raises:
        MalformedInput: If either value or their sum does not fit the host
            address width.
    """
    if offset > HOST_MAX_OFFSET or size > HOST_MAX_OFFSET:
        raise MalformedInput(f"Range 0x{offset:x}+0x{size:x} exceeds address width")
    end = offset + size
    if end > HOST_MAX_OFFSET:
        raise MalformedInput(f"Range 0x{offset:x}+0x{size:x} overflows")
    return range(offset, end)


def require_within(data: bytes, bounds: range) -> range:
    """Ensure *bounds* lies inside *data* before it is used for reads.

    Raises:
        UnexpectedEndOfInput: If the range passes the end of *data*.
    """
    if bounds.stop > len(data):
        raise UnexpectedEndOfInput(
            f"Range 0x{bounds.start:x}..0x{bounds.stop:x} exceeds {len(data)}-byte input"
        )
    return bounds
