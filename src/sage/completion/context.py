"""
Completion request parsing - turn the text before the cursor into engine arguments.
"""

from dataclasses import dataclass
from typing import Optional

from sage.completion.sql_context import CursorContext, classify_context


@dataclass(frozen=True)
class CompletionRequest:
    """Arguments for AutocompleteEngine.update_with_context."""

    base_callable: Optional[str]
    prefix: str
    is_sql: bool
    context: CursorContext = CursorContext.CODE


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def trailing_identifier(text: str) -> str:
    i = len(text)
    while i > 0 and _is_ident_char(text[i - 1]):
        i -= 1
    return text[i:]


def trailing_dotted_name(text: str) -> str:
    """Trailing run of identifier characters and dots, without leading dots."""
    i = len(text)
    while i > 0 and (_is_ident_char(text[i - 1]) or text[i - 1] == "."):
        i -= 1
    return text[i:].lstrip(".")


def _matching_open_paren(text: str) -> int:
    """Index of the '(' balancing the ')' that ends ``text``, or -1."""
    depth = 0
    for j in range(len(text) - 1, -1, -1):
        ch = text[j]
        if ch == ")":
            depth += 1
        elif ch == "(":
            depth -= 1
            if depth == 0:
                return j
    return -1


def parse_completion_request(
    text_before_cursor: str,
    full_text: Optional[str] = None,
    cursor: Optional[int] = None,
) -> CompletionRequest:
    """
    Work out what the user is completing.

    - Inside a SQL string: the trailing identifier, SQL tier
    - Inside any other string: nothing (empty prefix hides the dropdown)
    - ``chain(...).par``: base callable ``chain``, prefix ``par``
    - ``(a + b).par``: nothing
    - ``mod.mem``: the whole dotted word, matched against dotted completions
    - Otherwise: the trailing identifier

    Args:
        text_before_cursor: Buffer text up to the cursor
        full_text: Whole buffer (defaults to text_before_cursor)
        cursor: Cursor offset in full_text (defaults to len(text_before_cursor))
    """
    full = text_before_cursor if full_text is None else full_text
    offset = len(text_before_cursor) if cursor is None else cursor

    word = trailing_identifier(text_before_cursor)
    context = classify_context(full, offset)

    if context is CursorContext.SQL:
        return CompletionRequest(None, word, True, context)
    if context is CursorContext.STRING:
        return CompletionRequest(None, "", False, context)

    dot = len(text_before_cursor) - len(word) - 1
    if dot < 0 or text_before_cursor[dot] != ".":
        return CompletionRequest(None, word, False, context)

    before_dot = text_before_cursor[:dot]
    if before_dot.endswith(")"):
        open_paren = _matching_open_paren(before_dot)
        chain = trailing_dotted_name(before_dot[:open_paren]) if open_paren >= 0 else ""
        if not chain:
            # Member of a parenthesized expression; its type is unknown
            return CompletionRequest(None, "", False, context)
        return CompletionRequest(chain, word, False, context)

    return CompletionRequest(None, trailing_dotted_name(text_before_cursor), False, context)
