"""
Tests for the autocomplete engine.

These tests verify:
1. Tier selection and ordering (SQL, method chain, plain)
2. Selection wrap-around and viewport invariants
3. Dropdown layout
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sage.completion.engine import MAX_VISIBLE, MIN_DROPDOWN_WIDTH, AutocompleteEngine
from sage.completion.vocabulary import PYTHON_COMPLETIONS, SQL_KEYWORDS
from sage.kernel.protocol import (
    CompletionItem,
    ExecutionResult,
    SqlMetadata,
    TypeRelationships,
)


@pytest.fixture
def engine():
    return AutocompleteEngine()


def filled(count, max_visible=MAX_VISIBLE):
    engine = AutocompleteEngine(max_visible=max_visible)
    engine.set_dynamic_completions([f"item_{i:02d}" for i in range(count)])
    engine.update("item_")
    return engine


# =============================================================================
# Plain tier
# =============================================================================

class TestPlainTier:
    """Test namespace names merged with static keywords."""

    def test_dynamic_before_static_without_duplicates(self, engine):
        engine.set_dynamic_completions(["print_custom", "print"])
        engine.update("pri")
        assert engine.suggestions == ["print_custom", "print"]
        assert engine.is_visible

    def test_dynamic_first_then_static(self, engine):
        engine.set_dynamic_completions(["print_custom"])
        engine.update("pri")
        assert engine.suggestions == ["print_custom", "print"]

    def test_case_sensitive(self, engine):
        engine.set_dynamic_completions(["DataFrame", "data"])
        engine.update("d")
        assert "DataFrame" not in engine.suggestions
        assert engine.suggestions[0] == "data"

    def test_dotted_prefix_matches_dotted_names(self, engine):
        engine.set_dynamic_completions(["json", "json.dumps", "json.loads"])
        engine.update("json.d")
        assert engine.suggestions == ["json.dumps"]

    def test_empty_prefix_hides(self, engine):
        engine.set_dynamic_completions(["x"])
        engine.update("x")
        assert engine.is_visible

        engine.update_with_context(None, "", False)
        assert not engine.is_visible
        assert engine.suggestions == []
        assert engine.get_selected() is None

    def test_no_match_is_hidden(self, engine):
        engine.update("zzzqqq")
        assert engine.suggestions == []
        assert not engine.is_visible

    def test_static_only(self, engine):
        engine.update("lam")
        assert engine.suggestions == ["lambda"]

    def test_show_is_update(self, engine):
        engine.show("Tr")
        assert engine.suggestions == [w for w in PYTHON_COMPLETIONS if w.startswith("Tr")]


# =============================================================================
# SQL tier
# =============================================================================

class TestSqlTier:
    """Test the SQL branch."""

    def test_keywords_then_tables_columns_functions(self, engine):
        engine.set_sql_metadata(
            SqlMetadata(tables=["sales"], columns=["sales.amount", "amount"], functions=["sum", "sqrt"])
        )
        engine.update_with_context(None, "s", True)
        keywords = [k for k in SQL_KEYWORDS if k.lower().startswith("s")]
        assert engine.suggestions == keywords + ["sales", "sales.amount", "sum", "sqrt"]

    def test_case_insensitive(self, engine):
        engine.set_sql_metadata(SqlMetadata(tables=["Users"]))
        engine.update_with_context(None, "sel", True)
        assert engine.suggestions == ["SELECT"]

        engine.update_with_context(None, "us", True)
        assert "Users" in engine.suggestions
        assert "USING" in engine.suggestions

    def test_no_cross_category_dedup(self, engine):
        engine.set_sql_metadata(SqlMetadata(tables=["count"], functions=["count"]))
        engine.update_with_context(None, "count", True)
        assert engine.suggestions == ["COUNT", "count", "count"]

    def test_empty_prefix_lists_everything(self, engine):
        engine.update_with_context(None, "", True)
        assert engine.suggestions == list(SQL_KEYWORDS)
        assert engine.is_visible

    def test_short_circuits_other_tiers(self, engine):
        engine.set_dynamic_completions(["select_me"])
        engine.set_type_relationships(
            TypeRelationships(return_types={"f": "T"}, type_methods={"T": ["selection"]})
        )
        engine.update_with_context("f", "sel", True)
        assert engine.suggestions == ["SELECT"]


# =============================================================================
# Method tier
# =============================================================================

class TestMethodTier:
    """Test member suggestions after a call."""

    @pytest.fixture
    def typed(self, engine):
        engine.set_type_relationships(
            TypeRelationships(
                return_types={"duckdb.sql": "DuckDBPyRelation", "pd.read_csv": "DataFrame"},
                type_methods={
                    "DuckDBPyRelation": ["project", "pl", "df", "Project"],
                    "DataFrame": ["head", "groupby", "pivot"],
                    "Dialect": ["parse", "dump"],
                },
            )
        )
        return engine

    def test_exact_return_type(self, typed):
        typed.update_with_context("duckdb.sql", "p", False)
        assert typed.suggestions == ["project", "pl"]
        assert typed.is_visible

    def test_empty_prefix_lists_all_members(self, typed):
        typed.update_with_context("pd.read_csv", "", False)
        assert typed.suggestions == ["head", "groupby", "pivot"]

    def test_heuristic_by_module_name(self, typed):
        # No recorded return type: "DuckDBPyRelation" contains the module name,
        # "DataFrame" and "Dialect" start with its capitalized initial
        typed.update_with_context("duckdb.connect", "p", False)
        assert typed.suggestions == ["project", "pl", "pivot", "parse"]

    def test_heuristic_dedupes_across_types(self, engine):
        engine.set_type_relationships(
            TypeRelationships(type_methods={"Frame": ["head", "tail"], "FrameGroup": ["head", "agg"]})
        )
        engine.update_with_context("frames.load", "", False)
        assert engine.suggestions == ["head", "tail", "agg"]

    def test_falls_through_to_plain(self, typed):
        typed.set_dynamic_completions(["zeta"])
        typed.update_with_context("pd.read_csv", "ze", False)
        assert typed.suggestions == ["zeta"]

    def test_empty_module_hint(self, typed):
        typed.set_dynamic_completions(["value"])
        typed.update_with_context(".weird", "valu", False)
        assert typed.suggestions == ["value"]


# =============================================================================
# Selection and viewport
# =============================================================================

class TestSelection:
    """Test wrap-around selection and the visible window."""

    def test_wraps_forward_and_backward(self):
        engine = filled(3)
        engine.select_previous()
        assert engine.selected_index == 2
        engine.select_next()
        assert engine.selected_index == 0

    def test_get_selected(self):
        engine = filled(3)
        engine.select_next()
        assert engine.get_selected() == "item_01"
        engine.hide()
        assert engine.get_selected() is None

    def test_empty_list_is_noop(self, engine):
        engine.select_next()
        engine.select_previous()
        assert engine.selected_index == 0
        assert engine.get_selected() is None

    def test_viewport_invariant(self):
        engine = filled(25)
        for _ in range(60):
            engine.select_next()
            assert 0 <= engine.selected_index < len(engine.suggestions)
            assert engine.viewport_offset <= engine.selected_index < engine.viewport_offset + MAX_VISIBLE
        for _ in range(60):
            engine.select_previous()
            assert engine.viewport_offset <= engine.selected_index < engine.viewport_offset + MAX_VISIBLE

    def test_scrolls_minimally(self):
        engine = filled(25)
        for _ in range(10):
            engine.select_next()
        assert engine.selected_index == 10
        assert engine.viewport_offset == 1

        engine.select_previous()
        assert engine.viewport_offset == 1

    def test_wrap_to_end_moves_viewport(self):
        engine = filled(25)
        engine.select_previous()
        assert engine.selected_index == 24
        assert engine.viewport_offset == 15
        engine.select_next()
        assert (engine.selected_index, engine.viewport_offset) == (0, 0)

    def test_visible_window(self):
        engine = filled(12, max_visible=5)
        assert engine.visible_window() == [(i, f"item_{i:02d}") for i in range(5)]

    def test_update_is_idempotent(self):
        engine = filled(25)
        engine.select_previous()
        engine.update("item_")
        first = (list(engine.suggestions), engine.selected_index, engine.viewport_offset)
        engine.select_next()
        engine.update("item_")
        second = (list(engine.suggestions), engine.selected_index, engine.viewport_offset)
        assert first == second
        assert first[1:] == (0, 0)


# =============================================================================
# Metadata and layout
# =============================================================================

class TestMetadata:
    def test_apply_result(self, engine):
        result = ExecutionResult(
            completions=(CompletionItem("df", "DataFrame"), CompletionItem("df.head", "method")),
            type_relationships=TypeRelationships(type_methods={"DataFrame": ["head"]}),
            sql_metadata=SqlMetadata(tables=["t"]),
            success=True,
        )
        engine.apply_result(result)
        assert engine.dynamic_completions == ["df", "df.head"]
        assert engine.type_of("df") == "DataFrame"
        assert engine.type_of("missing") is None
        assert engine.sql_metadata.tables == ["t"]
        assert engine.type_relationships.type_methods == {"DataFrame": ["head"]}


class TestLayout:
    """Test the dropdown placement contract."""

    def test_hidden_has_no_layout(self, engine):
        assert engine.layout(0, 0, 40, 120) is None

    def test_below_cursor(self):
        engine = filled(3)
        layout = engine.layout(cursor_row=5, cursor_col=4, max_row=40, max_col=120)
        assert (layout.row, layout.col) == (6, 4)
        assert layout.height == 3
        assert layout.width == MIN_DROPDOWN_WIDTH + 2
        assert [entry.selected for entry in layout.entries] == [True, False, False]

    def test_above_cursor_when_no_room(self):
        engine = filled(12)
        layout = engine.layout(cursor_row=35, cursor_col=0, max_row=40, max_col=120)
        assert layout.height == MAX_VISIBLE
        assert layout.row == 35 - MAX_VISIBLE

    def test_nudged_left_at_right_edge(self):
        engine = filled(3)
        layout = engine.layout(cursor_row=0, cursor_col=70, max_row=40, max_col=80)
        assert layout.col == 80 - layout.width

    def test_width_fits_longest_entry(self, engine):
        engine.set_dynamic_completions(["x" * 30])
        engine.update("x")
        layout = engine.layout(0, 0, 40, 120)
        assert layout.width == 32

    def test_entries_follow_viewport(self):
        engine = filled(25)
        engine.select_previous()
        layout = engine.layout(0, 0, 40, 120)
        assert [entry.index for entry in layout.entries] == list(range(15, 25))
        assert layout.entries[-1].selected
