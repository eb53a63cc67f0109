"""
Unit tests for the ScheduleExtractor.
"""
from datetime import date

from collection_schedule.models import RenderedResults
from collection_schedule.services.schedule_extractor import ScheduleExtractor

RESULTS_HTML = """
<html><body>
<table id="layout"><tr><td>Logo</td></tr></table>
<table id="table2">
  <tr><th>Collection Date</th><th>Bin Type</th></tr>
  <tr><td>Thursday<br>11/09/2025</td><td>General   Waste</td></tr>
  <tr><td>11/09/2025</td><td>Food Waste</td></tr>
  <tr><td>11 Sep 2025</td><td>General Waste</td></tr>
  <tr><td>18/09/2025</td><td>Recycling</td></tr>
  <tr><td>Not a date</td><td>Garden Waste</td></tr>
  <tr><td></td><td>Empty date</td></tr>
</table>
</body></html>
"""

UNLABELLED_TABLE_HTML = """
<table class="results">
  <tr><td>25/12/2025</td><td>Recycling</td></tr>
</table>
"""

NO_TABLE_TEXT = """
Your bin collections

General waste bin
12/09/2025
Collected fortnightly
"""


def extractor():
    return ScheduleExtractor(zone="Europe/London")


def test_extracts_and_merges_table_rows():
    """Rows on the same date merge with bins in first-seen order and no duplicates."""
    schedule = extractor().extract(RenderedResults(html=RESULTS_HTML, text=""))

    assert [e.local_date for e in schedule.entries] == [date(2025, 9, 11), date(2025, 9, 18)]
    assert schedule.entries[0].bins == ("General Waste", "Food Waste")
    assert schedule.entries[1].bins == ("Recycling",)


def test_keeps_the_winning_table_markup():
    """The results table markup is retained for the email body."""
    schedule = extractor().extract(RenderedResults(html=RESULTS_HTML, text=""))

    assert schedule.table_html.startswith('<table id="table2">')
    assert "Recycling" in schedule.table_html


def test_falls_back_to_first_table_with_rows():
    """Without the known table id, the first table with two-cell rows is used."""
    schedule = extractor().extract(RenderedResults(html=UNLABELLED_TABLE_HTML, text=""))

    assert len(schedule.entries) == 1
    assert schedule.entries[0].local_date == date(2025, 12, 25)
    assert schedule.entries[0].bins == ("Recycling",)


def test_text_fallback_when_table_has_no_dates():
    """With no usable table rows, dated lines in the page text become entries."""
    html = "<table><tr><td>Nothing</td><td>here</td></tr></table>"
    schedule = extractor().extract(RenderedResults(html=html, text=NO_TABLE_TEXT))

    assert len(schedule.entries) == 1
    entry = schedule.entries[0]
    assert entry.local_date == date(2025, 9, 12)
    assert entry.bins == ("General waste bin 12/09/2025 Collected fortnightly",)


def test_text_fallback_deduplicates_context():
    """Repeated identical context for a date is kept once."""
    text = "Refuse\n12/09/2025\nRefuse\n12/09/2025\nRefuse"
    schedule = extractor().extract(RenderedResults(html="", text=text))

    assert len(schedule.entries) == 1
    assert schedule.entries[0].bins == ("Refuse 12/09/2025 Refuse",)


def test_nothing_found_returns_empty_schedule():
    """A page with no dates at all gives an empty schedule."""
    schedule = extractor().extract(RenderedResults(html="<p>Sorry</p>", text="Sorry, try again later"))

    assert schedule.entries == ()
    assert schedule.table_html is None
