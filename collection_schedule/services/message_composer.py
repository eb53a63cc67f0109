"""
This module builds the subject and bodies of collection reminder emails.
"""
from datetime import date
from html import escape
from typing import Optional, Sequence

from ..models import ComposedMessage


def ordinal_suffix(day: int) -> str:
    """Returns the English ordinal suffix for a day of the month."""
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_long_date(day: date) -> str:
    """Formats a date like '11th September 2025'."""
    return f"{day.day}{ordinal_suffix(day.day)} {day.strftime('%B %Y')}"


def _escape_multiline(text: str) -> str:
    return escape(text).replace("\n", "<br>")


def compose_message(
    announce_date: date,
    is_target_date: bool,
    label: str,
    bins: Sequence[str],
    suffix: Optional[str] = None,
    table_html: Optional[str] = None,
    aside: Optional[str] = None,
) -> ComposedMessage:
    """
    Builds the reminder for one address.

    Args:
        announce_date: The collection date being announced.
        is_target_date: True when the collection is tomorrow.
        label: The address label.
        bins: The bins collected on that date.
        suffix: Optional closing line from configuration.
        table_html: The scraped results table, included verbatim in the HTML body.
        aside: Optional joke of the day.

    Returns:
        The subject, plain-text body and HTML body.
    """
    long_date = format_long_date(announce_date)
    when = "tomorrow" if is_target_date else f"on {long_date}"
    bins_text = ", ".join(bins)
    summary = f"Collection {when} for {label} ({long_date}): {bins_text}"
    suffix = (suffix or "").strip()

    text_parts = [summary, suffix]
    if aside:
        text_parts.append(f"Dad joke of the day: {aside}")
    plain_text = "\n\n".join(part for part in text_parts if part).strip()

    html_parts = []
    if table_html:
        html_parts.append(table_html)
    else:
        html_parts.append(f"<p>{escape(summary)}</p>")
    if suffix:
        html_parts.append(f"<p>{_escape_multiline(suffix)}</p>")
    if aside:
        html_parts.append(f"<p><em>Dad joke of the day:</em> {escape(aside)}</p>")

    return ComposedMessage(
        subject=f"{bins_text} collection on {long_date} - {label}",
        plain_text=plain_text,
        html_body="\n".join(html_parts),
    )
