"""
Symscope Core Module
=====================

Contains the data models and error types shared by every decoder.  The
decoding engine lives in :mod:`symscope.core.engine`.
"""

from symscope.core.errors import (
    MalformedInput,
    ParseError,
    ParseErrorKind,
    UnexpectedEndOfInput,
)
from symscope.core.models import (
    BinaryFormat,
    ByteOrder,
    DetectedFormat,
    SectionInfo,
    Symbol,
    SymbolReport,
    SymbolTable,
)

__all__ = [
    "BinaryFormat",
    "ByteOrder",
    "DetectedFormat",
    "MalformedInput",
    "ParseError",
    "ParseErrorKind",
    "SectionInfo",
    "Symbol",
    "SymbolReport",
    "SymbolTable",
    "UnexpectedEndOfInput",
]
