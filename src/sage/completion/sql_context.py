"""
Lexical context detection - is the cursor inside a SQL string?

A narrow lexer, not a parser: it recognizes a string literal passed
directly to a known SQL-taking call (``db.sql("...")``, ``pd.read_sql("...")``)
by looking only at the text right before the string's opening quote.
Parentheses, comments and multi-argument calls are not tracked.

Each query rescans from the start of the buffer, so the cost is linear in
document length per keystroke.
"""

from enum import Enum

SQL_CALL_PATTERNS = (
    ".sql(",
    ".execute(",
    ".query(",
    ".read_sql(",
    ".read_sql_query(",
    ".read_sql_table(",
    "spark.sql(",
)

# How far before the opening quote to look for a call pattern
SEARCH_WINDOW = 1000

QUOTES = ('"', "'")


class CursorContext(Enum):
    """Lexical classification of a cursor position."""

    CODE = "code"
    STRING = "string"
    SQL = "sql"


def _clamp(text: str, cursor: int) -> int:
    return max(0, min(cursor, len(text)))


def is_in_string(text: str, cursor: int) -> bool:
    """
    Forward scan with a two-state quote toggle.

    A backslash consumes the next character without toggling.
    """
    if not isinstance(text, str) or not isinstance(cursor, int):
        return False

    end = _clamp(text, cursor)
    pos = 0
    in_double = False
    in_single = False

    while pos < end:
        ch = text[pos]
        if ch == "\\" and pos + 1 < len(text):
            pos += 2
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
        elif ch == "'" and not in_double:
            in_single = not in_single
        pos += 1

    return in_double or in_single


def _is_escaped(text: str, pos: int) -> bool:
    """True if the character at ``pos`` follows an odd run of backslashes."""
    count = 0
    check = pos
    while check > 0 and text[check - 1] == "\\":
        count += 1
        check -= 1
    return count % 2 == 1


def find_string_start(text: str, cursor: int) -> int:
    """
    Offset of the opening delimiter of the string enclosing ``cursor``.

    Walks backward to the nearest unescaped quote; a run of three identical
    quotes is one triple-quote delimiter. Returns -1 if there is none.
    """
    pos = _clamp(text, cursor)

    while pos > 0:
        pos -= 1
        ch = text[pos]
        if ch not in QUOTES or _is_escaped(text, pos):
            continue

        if pos >= 2 and text[pos - 1] == ch and text[pos - 2] == ch:
            return pos - 2
        return pos

    return -1


def is_in_sql_context(text: str, cursor: int) -> bool:
    """
    Whether the cursor sits inside a string literal passed to a SQL call.

    Args:
        text: Whole buffer
        cursor: Character offset of the cursor

    Returns:
        True for e.g. ``db.sql("SELECT * FROM |")``; False on any
        unexpected input.
    """
    if not is_in_string(text, cursor):
        return False

    string_start = find_string_start(text, cursor)
    if string_start < 0:
        return False

    anchor = string_start
    if anchor > 0 and text[anchor - 1] in ("f", "F"):
        anchor -= 1

    window = text[max(0, anchor - SEARCH_WINDOW):anchor].rstrip()
    return any(window.endswith(pattern) for pattern in SQL_CALL_PATTERNS)


def classify_context(text: str, cursor: int) -> CursorContext:
    """Classify the cursor as plain code, a generic string, or a SQL string."""
    if is_in_sql_context(text, cursor):
        return CursorContext.SQL
    if is_in_string(text, cursor):
        return CursorContext.STRING
    return CursorContext.CODE
