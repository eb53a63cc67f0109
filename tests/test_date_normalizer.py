"""
Unit tests for the date normalizer.
"""
from datetime import date

import pytest

from collection_schedule.date_normalizer import parse_collection_date, resolve_zone


@pytest.mark.parametrize(
    "text",
    [
        "11/09/2025",
        "11/9/2025",
        "11/09/25",
        "11 Sep 2025",
        "11 September 2025",
        "2025-09-11",
        "Thursday 11/09/2025",
        "  11/09/2025  ",
    ],
)
def test_supported_formats_resolve_to_the_same_date(text):
    """All supported spellings of a date give the same calendar date."""
    assert parse_collection_date(text, "Europe/London") == date(2025, 9, 11)


@pytest.mark.parametrize("text", ["", None, "General Waste", "31/02/2025", "99/99/9999", "next week"])
def test_unrecognised_text_returns_none(text):
    """Text without a valid date returns None instead of raising."""
    assert parse_collection_date(text, "Europe/London") is None


def test_day_comes_before_month():
    """Slash dates are read day first."""
    assert parse_collection_date("02/03/2025", "Europe/London") == date(2025, 3, 2)


def test_iso_datetime_with_offset_uses_the_configured_zone():
    """A timestamp late on the 11th UTC is already the 12th in Sydney."""
    assert parse_collection_date("2025-09-11T23:30:00+00:00", "Australia/Sydney") == date(2025, 9, 12)
    assert parse_collection_date("2025-09-11T23:30:00+00:00", "UTC") == date(2025, 9, 11)


def test_unknown_zone_falls_back_without_raising():
    """An unknown zone name still parses plain dates."""
    assert parse_collection_date("11/09/2025", "Not/AZone") == date(2025, 9, 11)


def test_resolve_zone():
    """Known zone names resolve and unknown ones do not."""
    assert resolve_zone("Europe/London") is not None
    assert resolve_zone("Not/AZone") is None
