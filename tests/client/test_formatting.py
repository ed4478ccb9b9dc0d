"""
Tests for display formatting helpers.
"""

from datetime import date, datetime, timezone

import pytest

from client.formatting import (
    format_book_line, format_count, format_date, format_rating,
    format_stars, page_numbers, parse_datetime, shelf_label
)


class TestDates:
    """Test date parsing and formatting."""

    @pytest.mark.parametrize("value", [
        "2024-03-02",
        "2024-03-02T18:45:00Z",
        "2024-03-02T18:45:00+00:00",
        date(2024, 3, 2),
        datetime(2024, 3, 2, 18, 45, tzinfo=timezone.utc),
    ])
    def test_parse_datetime(self, value):
        assert parse_datetime(value) == date(2024, 3, 2)

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_datetime_invalid(self, value):
        assert parse_datetime(value) is None

    def test_format_date(self):
        assert format_date("2024-03-02T00:00:00Z") == "Mar 02, 2024"
        assert format_date("2024-03-02", fmt="%Y/%m/%d") == "2024/03/02"

    def test_format_missing_date(self):
        assert format_date(None) == "N/A"


def test_format_rating():
    assert format_rating(4.25) == "4.2/5"
    assert format_rating(5) == "5.0/5"
    assert format_rating(None) == "0.0/5"


def test_format_stars():
    assert format_stars(4) == "★★★★☆"
    assert format_stars(0) == "☆☆☆☆☆"
    assert format_stars(None) == "☆☆☆☆☆"
    assert format_stars(9) == "★★★★★"


def test_format_count():
    assert format_count(1234567) == "1,234,567"
    assert format_count(None) == "0"


def test_shelf_label():
    assert shelf_label("currently-reading") == "Currently Reading"
    assert shelf_label("to-read") == "To Read"
    assert shelf_label("wishlist") == "wishlist"
    assert shelf_label(None) == "Unknown"


class TestPageNumbers:
    """Test pagination links."""

    def test_nothing_to_paginate(self):
        assert page_numbers(1, 0) == []
        assert page_numbers(1, 1) == []

    def test_few_pages(self):
        assert page_numbers(2, 4) == [1, 2, 3, 4]

    def test_middle(self):
        assert page_numbers(5, 10) == [1, "...", 3, 4, 5, 6, 7, "...", 10]

    def test_start(self):
        assert page_numbers(1, 10) == [1, 2, 3, 4, 5, "...", 10]

    def test_end(self):
        assert page_numbers(10, 10) == [1, "...", 6, 7, 8, 9, 10]

    def test_no_ellipsis_for_adjacent_pages(self):
        assert page_numbers(4, 10) == [1, 2, 3, 4, 5, 6, "...", 10]
        assert page_numbers(7, 10) == [1, "...", 5, 6, 7, 8, 9, 10]

    def test_current_page_always_shown(self):
        for total in (6, 12, 50):
            for current in range(1, total + 1):
                assert current in page_numbers(current, total)


def test_format_book_line():
    line = format_book_line({
        "bookId": 7, "title": "Dune", "author": "Frank Herbert",
        "exclusiveShelf": "read", "rating": 5
    })
    assert line == "#7 Dune by Frank Herbert [Read] ★★★★★"
