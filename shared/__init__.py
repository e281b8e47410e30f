"""
Symscope Shared Module
======================

Configuration, structured logging and console helpers shared by the
symscope packages.
"""

from shared.config import ScopeConfig, get_config

__all__ = ["ScopeConfig", "get_config"]
