"""
This module normalizes the date strings found on the collection results page.

Rows use several formats depending on how the form renders them, e.g. "11/09/2025",
"11/9/25", "11 Sep 2025" or "2025-09-11". Every successful parse is reduced to a
calendar date in the configured time zone.
"""
import logging
import re
from datetime import date, datetime, tzinfo
from typing import Optional, Union

from dateutil import tz

from .config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

# Tried in order; the first format that matches the whole string wins.
DATE_FORMATS = (
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d %b %Y",
    "%d %B %Y",
)

embedded_date_pattern = re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4})\b")

# Used to spot candidate dates in free text.
loose_date_pattern = re.compile(
    r"(\b\d{1,2}/\d{1,2}/\d{2,4}\b)|(\b\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4}\b)|(\b\d{4}-\d{2}-\d{2}\b)"
)


def resolve_zone(zone: Union[str, tzinfo, None]) -> Optional[tzinfo]:
    """Returns a tzinfo for a zone name, or None if the name is unknown."""
    if zone is None:
        return tz.gettz(DEFAULT_TIMEZONE)
    if isinstance(zone, tzinfo):
        return zone
    return tz.gettz(zone)


def _parse_iso(text: str, zone: tzinfo) -> Optional[date]:
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(zone)
    return parsed.date()


def parse_collection_date(text: Optional[str], zone: Union[str, tzinfo, None] = None) -> Optional[date]:
    """
    Parses a collection date into a calendar date.

    Args:
        text: The raw date text from a table cell or a line of page text.
        zone: Time zone name or tzinfo the date belongs to.

    Returns:
        The calendar date, or None if nothing recognisable was found.
    """
    value = str(text or "").strip()
    if not value:
        return None

    resolved = resolve_zone(zone)
    if resolved is None:
        logger.warning(f"Unknown time zone '{zone}', falling back to {DEFAULT_TIMEZONE}.")
        resolved = tz.gettz(DEFAULT_TIMEZONE)

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    iso_date = _parse_iso(value, resolved)
    if iso_date is not None:
        return iso_date

    match = embedded_date_pattern.search(value)
    if match:
        try:
            return datetime.strptime(match.group(1), "%d/%m/%Y").date()
        except ValueError:
            pass

    return None
