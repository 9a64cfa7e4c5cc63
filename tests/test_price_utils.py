"""Unit tests for dealsync.services.price_utils and keyword parsing."""

from types import SimpleNamespace

import pytest

from dealsync.schemas.rule import split_keywords
from dealsync.services.price_utils import (
    discount_percent,
    listing_satisfies,
    parse_price_loose,
    prices_differ,
    within_bounds,
)

from conftest import make_listing


# ============================================================================
# parse_price_loose
# ============================================================================
class TestParsePriceLoose:
    @pytest.mark.parametrize("inp,expected", [
        ("$1,299.99", 1299.99),
        ("USD 45", 45.0),
        ("US $ 12.5", 12.5),
        ("700.00", 700.0),
        (650, 650.0),
        (12.25, 12.25),
    ])
    def test_various_inputs(self, inp, expected):
        assert parse_price_loose(inp) == pytest.approx(expected)

    @pytest.mark.parametrize("inp", [None, "", "free", "n/a"])
    def test_unparseable(self, inp):
        assert parse_price_loose(inp) is None


# ============================================================================
# discount_percent
# ============================================================================
class TestDiscountPercent:
    @pytest.mark.parametrize("original,current,expected", [
        (1000, 700, 30),
        (1000, 650, 35),
        (99.99, 49.99, 50),
        (100, 100, 0),
        (100, 120, 0),   # price went up
        (0, 10, 0),
        (None, 10, 0),
    ])
    def test_values(self, original, current, expected):
        assert discount_percent(original, current) == expected


class TestPricesDiffer:
    def test_same_to_the_cent(self):
        assert not prices_differ(700.0, 700.001)

    def test_one_cent_apart(self):
        assert prices_differ(700.0, 700.01)

    def test_none_handling(self):
        assert not prices_differ(None, None)
        assert prices_differ(None, 1.0)


# ============================================================================
# within_bounds / listing_satisfies
# ============================================================================
class TestWithinBounds:
    def test_inclusive_edges(self):
        assert within_bounds(1000, 30, 0, 1000, 30)
        assert within_bounds(0, 30, 0, 1000, 30)

    def test_below_min_discount(self):
        assert not within_bounds(500, 29, 0, 1000, 30)

    def test_outside_price_range(self):
        assert not within_bounds(1000.01, 50, 0, 1000, 30)
        assert not within_bounds(49, 50, 50, 1000, 30)

    def test_missing_max_price_is_unbounded(self):
        assert within_bounds(250000, 40, 0, None, 30)

    def test_listing_satisfies_rule(self):
        rule = SimpleNamespace(min_price=0, max_price=1000, min_discount=30)
        assert listing_satisfies(rule, make_listing(price=700, original=1000))
        assert not listing_satisfies(rule, make_listing(price=800, original=1000))
        assert not listing_satisfies(rule, make_listing(price=1400, original=2500))


# ============================================================================
# split_keywords
# ============================================================================
class TestSplitKeywords:
    def test_comma_string(self):
        assert split_keywords(" gucci ,rolex,, ") == ["gucci", "rolex"]

    def test_list_dedup_case_insensitive(self):
        assert split_keywords(["Rolex", "rolex", "omega"]) == ["Rolex", "omega"]

    def test_none(self):
        assert split_keywords(None) == []
