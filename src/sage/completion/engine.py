"""
Autocomplete engine - ranks suggestions and tracks dropdown selection.

Suggestions come from three tiers, tried in order:
1. SQL: keywords, then harvested tables, columns and functions
   (case-insensitive prefix match, no cross-category de-duplication)
2. Method chain: members of the type a callable returns
   (case-sensitive prefix match), with a name-based fallback
3. Plain: harvested namespace names, then static Python keywords
   (case-sensitive prefix match)
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sage.completion.vocabulary import PYTHON_COMPLETIONS, SQL_KEYWORDS
from sage.kernel.protocol import ExecutionResult, SqlMetadata, TypeRelationships
from sage.utils.logger import LogSink, NullSink

MAX_VISIBLE = 10
MIN_DROPDOWN_WIDTH = 20


@dataclass(frozen=True)
class DropdownEntry:
    """One row of the dropdown."""

    text: str
    index: int
    selected: bool


@dataclass(frozen=True)
class DropdownLayout:
    """Where and what the renderer should draw."""

    row: int
    col: int
    width: int
    entries: Tuple[DropdownEntry, ...]

    @property
    def height(self) -> int:
        return len(self.entries)


class AutocompleteEngine:
    """
    Suggestion list, selection and viewport state for the completion dropdown.

    State is owned by the single input loop that drives it; no locking.
    """

    def __init__(self, max_visible: int = MAX_VISIBLE, sink: Optional[LogSink] = None):
        """
        Args:
            max_visible: Rows shown at once (the viewport size)
            sink: Structured log sink (defaults to a no-op sink)
        """
        self.max_visible = max(1, max_visible)
        self.sink = sink or NullSink()
        self.suggestions: List[str] = []
        self.selected_index = 0
        self.viewport_offset = 0
        self.visible = False
        self.filter_text = ""
        self.dynamic_completions: List[str] = []
        self.completion_types: Dict[str, str] = {}
        self.type_relationships = TypeRelationships()
        self.sql_metadata = SqlMetadata()

    # --- Metadata from the kernel ---

    def set_dynamic_completions(self, completions: Iterable[str]):
        """Replace the harvested namespace names."""
        self.dynamic_completions = list(completions)

    def set_type_relationships(self, type_relationships: TypeRelationships):
        self.type_relationships = type_relationships

    def set_sql_metadata(self, sql_metadata: SqlMetadata):
        self.sql_metadata = sql_metadata

    def apply_result(self, result: ExecutionResult):
        """Take all harvested metadata from an execution."""
        self.set_dynamic_completions(result.completion_names())
        self.completion_types = {item.name: item.type for item in result.completions}
        self.set_type_relationships(result.type_relationships)
        self.set_sql_metadata(result.sql_metadata)

    def type_of(self, name: str) -> Optional[str]:
        """Runtime type name of a harvested completion, if known."""
        return self.completion_types.get(name) or None

    # --- Suggestion computation ---

    def update(self, prefix: str):
        """Update suggestions based on the word being typed."""
        self.update_with_context(None, prefix, False)

    def show(self, prefix: str):
        self.update(prefix)

    def update_with_context(self, base_callable: Optional[str], prefix: str, is_sql_context: bool):
        """
        Update suggestions with method-chain and SQL context.

        Args:
            base_callable: Callable the member access applies to
                (e.g. "duckdb.sql" for "duckdb.sql(...).p"), or None
            prefix: Text to match (e.g. "p")
            is_sql_context: Whether the cursor is inside a SQL string
        """
        prefix = prefix or ""
        self.filter_text = prefix

        if not prefix and base_callable is None and not is_sql_context:
            self.hide()
            return

        if is_sql_context:
            suggestions = self._sql_suggestions(prefix)
            self._set_suggestions(suggestions, visible=bool(suggestions))
            self._log_update("sql", base_callable, prefix)
            return

        if base_callable is not None:
            suggestions = self._method_suggestions(base_callable, prefix)
            if suggestions:
                self._set_suggestions(suggestions, visible=True)
                self._log_update("method", base_callable, prefix)
                return

        suggestions = self._plain_suggestions(prefix)
        self._set_suggestions(suggestions, visible=bool(suggestions))
        self._log_update("plain", base_callable, prefix)

    def _sql_suggestions(self, prefix: str) -> List[str]:
        lowered = prefix.lower()
        suggestions = []
        for group in (
            SQL_KEYWORDS,
            self.sql_metadata.tables,
            self.sql_metadata.columns,
            self.sql_metadata.functions,
        ):
            suggestions.extend(word for word in group if word.lower().startswith(lowered))
        return suggestions

    def _method_suggestions(self, base_callable: str, prefix: str) -> List[str]:
        return_type = self.type_relationships.return_types.get(base_callable)
        if return_type is not None:
            methods = self.type_relationships.type_methods.get(return_type, [])
            return [method for method in methods if method.startswith(prefix)]

        # Unknown return type: guess from types named after the module
        module_hint = base_callable.split(".")[0]
        if not module_hint:
            return []
        hint_lower = module_hint.lower()
        hint_initial = module_hint[0].upper()

        suggestions: List[str] = []
        seen = set()
        for type_name, methods in self.type_relationships.type_methods.items():
            if hint_lower not in type_name.lower() and not type_name.startswith(hint_initial):
                continue
            for method in methods:
                if method.startswith(prefix) and method not in seen:
                    seen.add(method)
                    suggestions.append(method)
        return suggestions

    def _plain_suggestions(self, prefix: str) -> List[str]:
        suggestions = [name for name in self.dynamic_completions if name.startswith(prefix)]
        present = set(suggestions)
        for keyword in PYTHON_COMPLETIONS:
            if keyword.startswith(prefix) and keyword not in present:
                present.add(keyword)
                suggestions.append(keyword)
        return suggestions

    def _set_suggestions(self, suggestions: List[str], visible: bool):
        self.suggestions = suggestions
        self.visible = visible and bool(suggestions)
        self.selected_index = 0
        self.viewport_offset = 0

    def _log_update(self, tier: str, base_callable: Optional[str], prefix: str):
        self.sink.debug(
            "COMPLETE",
            f"{tier}: base={base_callable!r} prefix={prefix!r} -> {len(self.suggestions)} suggestions",
            tier=tier,
            count=len(self.suggestions),
        )

    # --- Selection ---

    def hide(self):
        self.visible = False
        self.suggestions = []
        self.selected_index = 0
        self.viewport_offset = 0

    @property
    def is_visible(self) -> bool:
        return self.visible

    def select_previous(self):
        """Move selection up, wrapping to the last entry."""
        if not self.suggestions:
            return
        if self.selected_index == 0:
            self.selected_index = len(self.suggestions) - 1
        else:
            self.selected_index -= 1
        self._scroll_to_selection()

    def select_next(self):
        """Move selection down, wrapping to the first entry."""
        if not self.suggestions:
            return
        self.selected_index = (self.selected_index + 1) % len(self.suggestions)
        self._scroll_to_selection()

    def _scroll_to_selection(self):
        if self.selected_index < self.viewport_offset:
            self.viewport_offset = self.selected_index
        elif self.selected_index >= self.viewport_offset + self.max_visible:
            self.viewport_offset = max(0, self.selected_index - (self.max_visible - 1))

    def get_selected(self) -> Optional[str]:
        """Currently selected suggestion, or None when nothing is selectable."""
        if self.visible and 0 <= self.selected_index < len(self.suggestions):
            return self.suggestions[self.selected_index]
        return None

    def visible_window(self) -> List[Tuple[int, str]]:
        """(index, text) pairs inside the viewport."""
        end = min(self.viewport_offset + self.max_visible, len(self.suggestions))
        return [(i, self.suggestions[i]) for i in range(self.viewport_offset, end)]

    # --- Render contract ---

    def layout(
        self, cursor_row: int, cursor_col: int, max_row: int, max_col: int
    ) -> Optional[DropdownLayout]:
        """
        Position the dropdown relative to the cursor.

        Drawn below the cursor, or above it when there is not enough room;
        nudged left when it would overflow the right edge.

        Returns:
            DropdownLayout, or None when there is nothing to draw
        """
        if not self.visible or not self.suggestions:
            return None

        window = self.visible_window()
        height = len(window)

        if cursor_row + height + 1 < max_row:
            row = cursor_row + 1
        else:
            row = max(cursor_row - height, 0)

        content_width = max([len(text) for _, text in window] + [MIN_DROPDOWN_WIDTH])
        width = content_width + 2

        col = cursor_col
        if cursor_col + width > max_col:
            col = max(max_col - width, 0)

        entries = tuple(
            DropdownEntry(text=text, index=index, selected=index == self.selected_index)
            for index, text in window
        )
        return DropdownLayout(row=row, col=col, width=width, entries=entries)
