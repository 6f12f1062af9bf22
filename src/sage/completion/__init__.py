"""
Sage Completion Module

Context-aware autocomplete for the console: lexical cursor classification
(code / string / SQL string) and the ranked suggestion dropdown.
"""

from .context import CompletionRequest, parse_completion_request
from .engine import AutocompleteEngine, DropdownEntry, DropdownLayout
from .sql_context import CursorContext, classify_context, is_in_sql_context, is_in_string

__all__ = [
    'AutocompleteEngine',
    'DropdownEntry',
    'DropdownLayout',
    'CompletionRequest',
    'parse_completion_request',
    'CursorContext',
    'classify_context',
    'is_in_sql_context',
    'is_in_string',
]
