"""
Symbol Size Inference
======================

Mach-O ``nlist`` entries and COFF symbols carry an address but no size.
The size of a function is recovered as the distance to the next *distinct*
address in address order; a boundary entry (the end of the code section)
closes the last function.

:class:`SizeInference` precomputes, in one backward pass, the next
distinct address after every position, so each lookup is O(1) even when
many entries share an address.  Entries sharing an address are coalesced:
the first one claimed keeps the size, later ones are rejected.
"""

from __future__ import annotations

from typing import Optional, Sequence


class SizeInference:
    """Size lookups over an address-ordered boundary list.

    Args:
        addresses: Entry addresses in the order the caller walks them,
            normally ascending with a trailing end-of-section boundary.

    Usage::

        inference = SizeInference([e.address for e in ordered] + [text_end])
        for i, entry in enumerate(ordered):
            size = inference.claim(i)
            if size is not None:
                ...
    """

    def __init__(self, addresses: Sequence[int]) -> None:
        self._addresses: list[int] = list(addresses)
        self._successors: list[Optional[int]] = _distinct_successors(self._addresses)
        self._claimed: set[int] = set()

    def size_at(self, index: int) -> Optional[int]:
        """Inferred size of the entry at *index*.

        ``None`` when no later entry has a greater, distinct address: the
        entry is unbounded and its size cannot be known.
        """
        address = self._addresses[index]
        successor = self._successors[index]
        if successor is None or successor <= address:
            return None
        return successor - address

    def claim(self, index: int) -> Optional[int]:
        """Size of the entry at *index*, coalescing shared addresses.

        Returns ``None`` if the entry is unbounded or another entry at the
        same address was already claimed.
        """
        address = self._addresses[index]
        if address in self._claimed:
            return None
        size = self.size_at(index)
        if size is not None:
            self._claimed.add(address)
        return size


def _distinct_successors(addresses: Sequence[int]) -> list[Optional[int]]:
    """For each position, the first later address that differs from it."""
    successors: list[Optional[int]] = [None] * len(addresses)
    for i in range(len(addresses) - 2, -1, -1):
        if addresses[i + 1] != addresses[i]:
            successors[i] = addresses[i + 1]
        else:
            successors[i] = successors[i + 1]
    return successors
