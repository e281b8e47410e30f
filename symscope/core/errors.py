"""
Decode Errors
==============

Every decoding entry point either returns a usable result or raises one of
the two :class:`ParseError` subclasses below.  The byte cursor only ever
raises :class:`UnexpectedEndOfInput`; structural problems detected by the
format decoders raise :class:`MalformedInput`.
"""

from __future__ import annotations

import enum


class ParseErrorKind(str, enum.Enum):
    """The two failure kinds a decoder can report."""
    UNEXPECTED_END_OF_INPUT = "unexpected_end_of_input"
    MALFORMED_INPUT = "malformed_input"


class ParseError(Exception):
    """Base class for all decode failures.

    Attributes:
        kind: Which of the two failure kinds this is.
    """

    kind: ParseErrorKind
    default_message: str = "Parse error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UnexpectedEndOfInput(ParseError):
    """A read, skip or seek ran past the available bytes."""

    kind = ParseErrorKind.UNEXPECTED_END_OF_INPUT
    default_message = "Unexpected end of file"


class MalformedInput(ParseError):
    """The input is structurally invalid.

    Raised for broken cross-references (a link to the wrong section kind),
    undersized load commands, missing required sections or commands, and
    on-disk values too wide for the host address space.
    """

    kind = ParseErrorKind.MALFORMED_INPUT
    default_message = "Malformed input file"
