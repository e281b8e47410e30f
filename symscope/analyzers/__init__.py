"""
Symscope Analyzers
===================

Helpers shared by the decoders: symbol size inference and name
demangling.
"""

from symscope.analyzers.demangle import Demangler, demangle, demangle_rust_legacy, identity
from symscope.analyzers.size_inference import SizeInference

__all__ = [
    "Demangler",
    "SizeInference",
    "demangle",
    "demangle_rust_legacy",
    "identity",
]
