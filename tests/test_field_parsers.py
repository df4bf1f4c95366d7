"""
Tests for the feed field parsers and popularity scoring.

Run with: pytest tests/test_field_parsers.py -v
"""

import pytest

from src.transformers.field_parsers import parse_price, parse_rating, parse_review_count
from src.transformers.popularity import (
    Popularity,
    calculate_popularity,
    popularity_score,
)


class TestParsePrice:
    """Prices arrive as "$1,234.50"-style strings."""

    def test_currency_and_thousands_separator(self):
        assert parse_price("$1,234.50") == 1234.50

    @pytest.mark.parametrize("value", ["Not Available", "", None, "   "])
    def test_missing_values_are_zero(self, value):
        assert parse_price(value) == 0

    def test_garbage_is_zero(self):
        assert parse_price("call for price") == 0
        assert parse_price("nan") == 0

    def test_multi_character_currency_prefix(self):
        assert parse_price("US$ 12.00") == 12.0

    def test_negative_price_is_zero(self):
        assert parse_price("-5") == 0

    def test_numeric_input_passes_through(self):
        assert parse_price(12.5) == 12.5
        assert parse_price(3) == 3.0


class TestParseReviewCount:
    """Comment counts arrive as "1,000+"-style strings."""

    def test_plus_suffix_and_separator(self):
        assert parse_review_count("1,000+") == 1000

    def test_plain_count(self):
        assert parse_review_count("1,240") == 1240
        assert parse_review_count("12") == 12

    @pytest.mark.parametrize("value", ["Not Available", "", None])
    def test_missing_values_are_zero(self, value):
        assert parse_review_count(value) == 0

    def test_unparseable_is_zero(self):
        assert parse_review_count("2.5k") == 0
        assert parse_review_count("many") == 0

    def test_result_is_int(self):
        assert isinstance(parse_review_count("99+"), int)


class TestParseRating:
    def test_decimal_rating(self):
        assert parse_rating("4.8") == 4.8

    @pytest.mark.parametrize("value", ["0", "Not Available", "", None, "n/a"])
    def test_missing_or_invalid_is_zero(self, value):
        assert parse_rating(value) == 0


class TestPopularity:
    """Score = rating/5*40 + min(reviews/1000*60, 60)."""

    def test_top_rated_and_reviewed_is_high(self):
        assert calculate_popularity(5, 1000) == Popularity.HIGH

    def test_nothing_is_low(self):
        assert calculate_popularity(0, 0) == Popularity.LOW

    def test_exactly_70_is_high(self):
        assert popularity_score(5, 500) == 70
        assert calculate_popularity(5, 500) == Popularity.HIGH

    def test_exactly_40_is_medium(self):
        assert popularity_score(5, 0) == 40
        assert calculate_popularity(5, 0) == Popularity.MEDIUM

    def test_just_below_40_is_low(self):
        assert calculate_popularity(0, 666) == Popularity.LOW

    def test_review_score_saturates(self):
        assert popularity_score(0, 1000) == popularity_score(0, 50000) == 60

    def test_non_decreasing_in_both_arguments(self):
        ratings = [0, 1, 2.5, 4, 4.8, 5]
        counts = [0, 10, 100, 500, 999, 1000, 5000]

        for rating in ratings:
            ranks = [calculate_popularity(rating, c).rank for c in counts]
            assert ranks == sorted(ranks), f"not monotonic in reviews at rating {rating}"

        for count in counts:
            ranks = [calculate_popularity(r, count).rank for r in ratings]
            assert ranks == sorted(ranks), f"not monotonic in rating at {count} reviews"
