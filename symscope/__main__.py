"""
Symscope Module Entry Point
============================

Allows running the Symscope CLI via: python -m symscope
"""

from symscope.cli import main

if __name__ == "__main__":
    main()
