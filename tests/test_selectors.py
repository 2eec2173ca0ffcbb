"""Tests for tiered selector resolution."""

import pytest

from twirl.document import HtmlDocument
from twirl.extractors.selectors import (
    SelectorStrategy,
    SelectorTier,
    safe_query_all,
    safe_query_one,
)


def make_document(present: int) -> HtmlDocument:
    items = "".join(f'<div class="present">item {i}</div>' for i in range(present))
    return HtmlDocument(f"<html><body><main>{items}</main></body></html>")


class TestSelectorTier:
    """Tests for SelectorTier."""

    def test_default_minimum(self):
        """Test tiers default to a minimum of one match."""
        assert SelectorTier((".a",)).minimum == 1

    def test_minimum_must_be_positive(self):
        """Test a zero minimum is rejected."""
        with pytest.raises(ValueError):
            SelectorTier((".a",), minimum=0)


class TestSelectorStrategy:
    """Tests for SelectorStrategy.resolve."""

    @pytest.fixture
    def strategy(self):
        return SelectorStrategy([
            SelectorTier((".missing",)),
            SelectorTier((".present",), minimum=2),
        ])

    def test_falls_through_to_second_tier(self, strategy):
        """Test an empty first tier hands over to the next tier."""
        found = strategy.resolve(make_document(2))
        assert len(found) == 2
        assert all(e.class_name == "present" for e in found)

    def test_below_minimum_is_rejected(self, strategy):
        """Test a match count under the tier minimum does not win."""
        assert strategy.resolve(make_document(1)) == []

    def test_first_winning_pattern_stops_search(self):
        """Test later patterns are not consulted after a winner."""
        document = HtmlDocument('<div class="a">one</div><div class="b">two</div><div class="b">three</div>')
        strategy = SelectorStrategy.of([".a", ".b"])
        found = strategy.resolve(document)
        assert [e.text for e in found] == ["one"]

    def test_invalid_pattern_counts_as_no_match(self):
        """Test an unevaluable pattern is skipped."""
        strategy = SelectorStrategy.of(["div[", ".present"])
        assert len(strategy.resolve(make_document(3))) == 3

    def test_nothing_matches(self):
        """Test an empty result when every tier fails."""
        strategy = SelectorStrategy.of([".x"], [".y"])
        assert strategy.resolve(make_document(3)) == []
        assert strategy.resolve_first(make_document(3)) is None

    def test_resolve_first(self, strategy):
        """Test resolve_first returns the first winning element."""
        element = strategy.resolve_first(make_document(2))
        assert element.text == "item 0"

    def test_resolve_within_element(self):
        """Test resolution can be scoped to an element."""
        document = HtmlDocument(
            '<main><div class="present">in</div></main><div class="present">out</div>'
        )
        main = document.query_one("main")
        found = SelectorStrategy.of([".present"]).resolve(main)
        assert [e.text for e in found] == ["in"]


class TestSafeQueries:
    """Tests for the pattern-error tolerant query helpers."""

    def test_safe_query_all_invalid(self):
        """Test invalid pattern yields an empty list."""
        assert safe_query_all(make_document(2), "div[") == []

    def test_safe_query_one_invalid(self):
        """Test invalid pattern yields None."""
        assert safe_query_one(make_document(2), "div[") is None

    def test_safe_query_one_valid(self):
        """Test a valid pattern still finds the element."""
        assert safe_query_one(make_document(2), ".present").text == "item 0"
