"""
Symbol Name Demangling
=======================

Turns raw linker names into display names.  Names go through Sentry's
``symbolic`` demangler first (Itanium C++, Rust legacy and v0, Swift,
MSVC).  When it leaves a name untouched, legacy Rust manglings
(``_ZN<len><ident>...17h<hash>E``) are decoded by hand, the trailing hash
segment dropped and the ``$..$`` escapes expanded.  Anything else passes
through unchanged, so :func:`demangle` never fails.

References:
    - symbolic, https://github.com/getsentry/symbolic (``symbolic_demangle``).
    - rustc symbol mangling (legacy scheme), ``rustc_symbol_mangling``.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from symbolic._lowlevel import ffi, lib
from symbolic.exceptions import SymbolicError
from symbolic.utils import decode_str, encode_str, rustcall

Demangler = Callable[[str], str]

_HASH_RE = re.compile(r"h[0-9a-f]{16}")
_HASH_SUFFIX_RE = re.compile(r"::h[0-9a-f]{16}$")
_DIGITS = "0123456789"

_ESCAPES: dict[str, str] = {
    "SP": "@",
    "BP": "*",
    "RF": "&",
    "LT": "<",
    "GT": ">",
    "LP": "(",
    "RP": ")",
    "C": ",",
}


def demangle(raw: str) -> str:
    """Return the display form of *raw*, or *raw* itself if unrecognised."""
    if not raw:
        return raw
    try:
        demangled = rustcall(lib.symbolic_demangle, encode_str(raw), ffi.NULL)
        name = decode_str(demangled, free=True).strip()
    # Builds without the demangle entry point fall back to the hand decoder.
    except (AttributeError, OSError, SymbolicError, UnicodeError):
        name = raw

    if not name or name == raw:
        decoded = demangle_rust_legacy(raw)
        return decoded if decoded is not None else raw
    # Rust names keep their hash segment when demangled as C++.
    return _HASH_SUFFIX_RE.sub("", name)


def identity(raw: str) -> str:
    """Demangler that keeps raw names."""
    return raw


def demangle_rust_legacy(raw: str) -> Optional[str]:
    """Decode a legacy Rust name, or return ``None`` if *raw* is not one."""
    # Mach-O prefixes every C-level symbol with an extra underscore.
    if raw.startswith("__ZN"):
        body = raw[4:]
    elif raw.startswith("_ZN"):
        body = raw[3:]
    else:
        return None

    parts: list[str] = []
    pos = 0
    while pos < len(body) and body[pos] != "E":
        digits = pos
        while pos < len(body) and body[pos] in _DIGITS:
            pos += 1
        if pos == digits:
            return None
        # Longer digit runs cannot fit in the remaining body.
        if pos - digits > len(str(len(body))):
            return None
        length = int(body[digits:pos])
        if length == 0 or pos + length > len(body):
            return None
        parts.append(body[pos:pos + length])
        pos += length

    if pos >= len(body) or not parts:
        return None
    suffix = body[pos + 1:]
    if suffix and not suffix.startswith("."):
        return None

    # Only names ending in a hash segment are Rust; plain C++ nested names
    # share the _ZN prefix.
    if not _HASH_RE.fullmatch(parts[-1]):
        return None
    parts.pop()

    decoded: list[str] = []
    for ident in parts:
        text = _unescape(ident)
        if text is None:
            return None
        decoded.append(text)
    return "::".join(decoded) + suffix


def _unescape(ident: str) -> Optional[str]:
    if ident.startswith("_$"):
        ident = ident[1:]

    out: list[str] = []
    pos = 0
    while pos < len(ident):
        ch = ident[pos]
        if ch == "$":
            close = ident.find("$", pos + 1)
            if close == -1:
                return None
            code = ident[pos + 1:close]
            if code in _ESCAPES:
                out.append(_ESCAPES[code])
            elif code.startswith("u") and len(code) > 1:
                try:
                    point = int(code[1:], 16)
                    char = chr(point)
                except (ValueError, OverflowError):
                    return None
                # Surrogates are not scalar values.
                if 0xD800 <= point <= 0xDFFF:
                    return None
                out.append(char)
            else:
                return None
            pos = close + 1
        elif ident.startswith("..", pos):
            out.append("::")
            pos += 2
        else:
            out.append(ch)
            pos += 1
    return "".join(out)
