# Filter engine tests for vaultfx.
# Validates matching, ordering, type filtering and selection clamping.
# The view must always be a pure function of working set, query and type filter.
# nosec B101 - assert usage is intentional in test code

from __future__ import annotations

from types import SimpleNamespace

import pytest

from vaultfx.core.models import ItemType, VaultItem
from vaultfx.search.engine import (
    SUBSTRING_BASE,
    FilterEngine,
    _normalize_text,
    fuzzy_score,
    searchable_text,
    substring_score,
)


def names(engine: FilterEngine) -> list[str]:
    return [item.name for item in engine.view]


@pytest.fixture
def engine(scenario_items: list[VaultItem]) -> FilterEngine:
    engine = FilterEngine()
    engine.load(scenario_items)
    return engine


# =============================================================================
# SECTION 1: ORDERING WITHOUT A QUERY
# =============================================================================


@pytest.mark.unit
class TestDefaultOrdering:
    """Empty query shows every item, favorites first, then by name."""

    def test_name_order_is_case_insensitive(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login("1", "zeta"), factory.login("2", "Alpha"), factory.login("3", "beta")])
        assert names(engine) == ["Alpha", "beta", "zeta"]

    def test_favorites_come_first(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load(
            [
                factory.login("1", "Alpha"),
                factory.login("2", "Zulu", favorite=True),
                factory.note("3", "Mike", favorite=True),
                factory.login("4", "Bravo"),
            ]
        )
        assert names(engine) == ["Mike", "Zulu", "Alpha", "Bravo"]

    def test_empty_working_set_has_no_selection(self) -> None:
        engine = FilterEngine()
        engine.load([])
        assert engine.view == []
        assert engine.selected_index is None
        assert engine.selected_item is None


# =============================================================================
# SECTION 2: QUERY MATCHING
# =============================================================================


@pytest.mark.unit
class TestQueryMatching:
    """Validate the text query against the searchable fields."""

    def test_git_matches_github_only(self, engine: FilterEngine) -> None:
        engine.set_query("git")
        result = names(engine)
        assert "GitHub" in result
        assert "Amazon" not in result
        assert "Bank Note" not in result

    def test_clearing_query_restores_all_items(self, engine: FilterEngine) -> None:
        engine.set_query("git")
        engine.clear_query()
        assert names(engine) == ["Amazon", "Bank Note", "GitHub", "Gmail"]

    def test_append_and_delete_query_char(self, engine: FilterEngine) -> None:
        for char in "gmx":
            engine.append_query(char)
        assert engine.view == []
        engine.delete_query_char()
        assert engine.query == "gm"
        assert "Gmail" in names(engine)

    def test_matches_username(self, engine: FilterEngine) -> None:
        engine.set_query("shopper")
        assert names(engine) == ["Amazon"]

    def test_matches_uri_domain(self, engine: FilterEngine) -> None:
        engine.set_query("mail.google")
        assert names(engine) == ["Gmail"]

    def test_secrets_are_not_searched(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login("1", "Work", password="zyxwvut"), factory.note("2", "Memo", notes="zyxwvut")])
        engine.set_query("zyxwvut")
        assert engine.view == []

    def test_case_insensitive_by_default(self, engine: FilterEngine) -> None:
        engine.set_query("GITHUB")
        assert names(engine) == ["GitHub"]

    def test_case_sensitive_mode(self, scenario_items: list[VaultItem]) -> None:
        engine = FilterEngine(case_sensitive=True)
        engine.load(scenario_items)
        engine.set_query("GitH")
        assert names(engine) == ["GitHub"]
        engine.set_query("GITH")
        assert engine.view == []

    def test_accents_are_folded(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login("1", "Café Crème"), factory.login("2", "Tea")])
        engine.set_query("cafe")
        assert names(engine) == ["Café Crème"]

    def test_better_match_ranks_first(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login("1", "Go Ahead Later"), factory.login("2", "Gallery")])
        engine.set_query("gal")
        assert names(engine)[0] == "Gallery"

    def test_equal_scores_keep_load_order(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login("1", "Server B"), factory.login("2", "Server A")])
        engine.set_query("server")
        assert names(engine) == ["Server B", "Server A"]


@pytest.mark.unit
class TestSubstringMode:
    """With fuzzy matching off, the query must be contiguous."""

    def test_substring_requires_contiguous_match(self, scenario_items: list[VaultItem]) -> None:
        engine = FilterEngine(fuzzy=False)
        engine.load(scenario_items)
        engine.set_query("gthb")
        assert engine.view == []
        engine.set_query("hub")
        assert names(engine) == ["GitHub"]

    def test_earlier_match_ranks_higher(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine(fuzzy=False)
        engine.load([factory.login("1", "My Bank"), factory.login("2", "Bank")])
        engine.set_query("bank")
        assert names(engine) == ["Bank", "My Bank"]


# =============================================================================
# SECTION 3: TYPE FILTER
# =============================================================================


@pytest.mark.unit
class TestTypeFilter:
    """Type tabs restrict the view before matching."""

    def test_type_filter_restricts_view(self, engine: FilterEngine) -> None:
        engine.set_type_filter(ItemType.SECURE_NOTE)
        assert names(engine) == ["Bank Note"]

    def test_type_filter_combines_with_query(self, engine: FilterEngine) -> None:
        engine.set_type_filter(ItemType.LOGIN)
        engine.set_query("a")
        assert "Bank Note" not in names(engine)
        assert "Amazon" in names(engine)

    def test_none_shows_all_types(self, engine: FilterEngine) -> None:
        engine.set_type_filter(ItemType.CARD)
        assert engine.view == []
        engine.set_type_filter(None)
        assert len(engine) == 4


# =============================================================================
# SECTION 4: SELECTION
# =============================================================================


@pytest.mark.unit
class TestSelection:
    """Selection is an index into the view or None when it is empty."""

    def test_select_out_of_range_clamps_to_last(self, factory: SimpleNamespace) -> None:
        engine = FilterEngine()
        engine.load([factory.login(str(i), f"Item {i}") for i in range(3)])
        engine.select(2)
        engine.select(10)
        assert engine.selected_index == 2

    def test_select_negative_clamps_to_first(self, engine: FilterEngine) -> None:
        engine.select(-5)
        assert engine.selected_index == 0

    def test_next_wraps_to_first(self, engine: FilterEngine) -> None:
        engine.end()
        engine.next()
        assert engine.selected_index == 0

    def test_previous_wraps_to_last(self, engine: FilterEngine) -> None:
        engine.home()
        engine.previous()
        assert engine.selected_index == 3

    def test_page_moves_clamp(self, engine: FilterEngine) -> None:
        engine.page_down(10)
        assert engine.selected_index == 3
        engine.page_up(2)
        assert engine.selected_index == 1
        engine.page_up(10)
        assert engine.selected_index == 0

    def test_query_change_selects_best_match(self, engine: FilterEngine) -> None:
        engine.end()
        engine.set_query("g")
        assert engine.selected_index == 0

    def test_no_match_clears_selection(self, engine: FilterEngine) -> None:
        engine.set_query("qqqq")
        assert engine.selected_index is None
        engine.next()
        engine.page_down(3)
        assert engine.selected_index is None

    def test_reload_keeps_selected_item(self, engine: FilterEngine, scenario_items: list[VaultItem]) -> None:
        engine.select(2)
        selected = engine.selected_item
        assert selected is not None
        engine.load(list(reversed(scenario_items)))
        assert engine.selected_item is not None
        assert engine.selected_item.id == selected.id

    def test_reload_without_selected_item_clamps(self, engine: FilterEngine, scenario_items: list[VaultItem]) -> None:
        engine.end()
        engine.load(scenario_items[2:])
        assert engine.selected_index == 1

    def test_selection_always_valid(self, engine: FilterEngine) -> None:
        for query in ("", "g", "gi", "zz", "a", ""):
            engine.set_query(query)
            index = engine.selected_index
            if engine.view:
                assert index is not None and 0 <= index < len(engine)
            else:
                assert index is None


@pytest.mark.unit
class TestRecomputeIdempotence:
    """Recomputing with unchanged inputs yields the same view."""

    def test_same_inputs_same_view(self, engine: FilterEngine) -> None:
        engine.set_query("a")
        first = [item.id for item in engine.view]
        engine.set_query("a")
        assert [item.id for item in engine.view] == first

    def test_view_is_a_copy(self, engine: FilterEngine) -> None:
        view = engine.view
        view.clear()
        assert len(engine) == 4


# =============================================================================
# SECTION 5: SCORING HELPERS
# =============================================================================


@pytest.mark.unit
class TestScoringHelpers:
    """Validate the module-level scoring functions."""

    def test_fuzzy_score_requires_ordered_subsequence(self) -> None:
        assert fuzzy_score("github", "ghb") is not None
        assert fuzzy_score("github", "bhg") is None

    def test_fuzzy_empty_pattern_scores_zero(self) -> None:
        assert fuzzy_score("anything", "") == 0

    def test_consecutive_beats_scattered(self) -> None:
        contiguous = fuzzy_score("abc xyz", "abc")
        scattered = fuzzy_score("a b c xyz", "abc")
        assert contiguous is not None and scattered is not None
        assert contiguous > scattered

    def test_substring_score_prefers_early_offset(self) -> None:
        assert substring_score("bank", "bank") == SUBSTRING_BASE
        assert substring_score("my bank", "bank") == SUBSTRING_BASE - 3
        assert substring_score("bank", "card") is None

    def test_searchable_text_joins_fields(self, factory: SimpleNamespace) -> None:
        item = factory.login("1", "GitHub", username="Dev", uri="https://github.com/login")
        assert searchable_text(item) == "github dev github.com"

    def test_normalize_collapses_whitespace(self) -> None:
        assert _normalize_text("  Foo \t  Bar ") == "foo bar"
        assert _normalize_text("Foo", case_sensitive=True) == "Foo"
