"""Tests for research_queue/quarters.py — quarter tokens."""

from __future__ import annotations

from datetime import date

import pytest

from research_queue.quarters import (
    current_quarter,
    is_quarter,
    next_quarter,
    parse_quarter,
    previous_quarter,
    storage_key,
)


class TestCurrentQuarter:
    @pytest.mark.parametrize(
        "day, expected",
        [
            (date(2024, 1, 1), "2024-Q1"),
            (date(2024, 3, 31), "2024-Q1"),
            (date(2024, 4, 1), "2024-Q2"),
            (date(2024, 9, 30), "2024-Q3"),
            (date(2024, 12, 31), "2024-Q4"),
        ],
    )
    def test_month_to_quarter(self, day, expected):
        assert current_quarter(day) == expected

    def test_defaults_to_today(self):
        assert is_quarter(current_quarter())


class TestParseQuarter:
    def test_well_formed(self):
        parts = parse_quarter("2025-Q3")
        assert parts.year == 2025
        assert parts.quarter == 3
        assert parts.is_valid

    def test_garbage_does_not_raise(self):
        parts = parse_quarter("garbage")
        assert parts.quarter is None
        assert not parts.is_valid

    def test_missing_quarter_number(self):
        assert parse_quarter("2024-Q").quarter is None

    def test_out_of_range_quarter_is_invalid(self):
        parts = parse_quarter("2024-Q7")
        assert parts.quarter == 7
        assert not parts.is_valid


class TestStepping:
    def test_next_within_year(self):
        assert next_quarter("2024-Q2") == "2024-Q3"

    def test_previous_within_year(self):
        assert previous_quarter("2024-Q3") == "2024-Q2"

    def test_next_rolls_over_year(self):
        assert next_quarter("2024-Q4") == "2025-Q1"

    def test_previous_rolls_over_year(self):
        assert previous_quarter("2025-Q1") == "2024-Q4"

    @pytest.mark.parametrize("token", ["2023-Q1", "2023-Q2", "2023-Q3", "2023-Q4"])
    def test_steps_are_inverse(self, token):
        assert previous_quarter(next_quarter(token)) == token
        assert next_quarter(previous_quarter(token)) == token

    def test_malformed_token_raises(self):
        with pytest.raises(ValueError):
            next_quarter("soon")


class TestHelpers:
    def test_is_quarter(self):
        assert is_quarter("2024-Q1")
        assert not is_quarter("2024-Q5")
        assert not is_quarter("24-Q1")
        assert not is_quarter(None)

    def test_storage_key(self):
        assert storage_key("2024-Q2") == "research-queue-2024-Q2"
