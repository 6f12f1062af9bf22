"""
Sage - execution kernel and context-aware autocomplete for a terminal code console.

Kept import-light: the introspection companion imports this package from
inside the user's interpreter, which may not have the console's dependencies.
"""

__version__ = "0.1.0"
__author__ = "Sage Team"

__all__ = ["__version__"]
