"""
This module defines the ScheduleExtractor, which turns the rendered results page into a Schedule.
"""
import logging
import re
from datetime import date
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from ..date_normalizer import loose_date_pattern, parse_collection_date
from ..models import CollectionEntry, RenderedResults, Schedule

logger = logging.getLogger(__name__)

RESULTS_TABLE_ID = "table2"

header_date_pattern = re.compile(r"collection\s*date", re.IGNORECASE)
header_bin_pattern = re.compile(r"bin\s*type", re.IGNORECASE)


def normalize_whitespace(value: str) -> str:
    return " ".join((value or "").split())


def _group_by_date(rows: List[Tuple[date, str]]) -> Tuple[CollectionEntry, ...]:
    """Merges rows sharing a date, keeping bins in first-seen order without duplicates."""
    by_date: Dict[date, List[str]] = {}
    for local_date, text in rows:
        bins = by_date.setdefault(local_date, [])
        if text not in bins:
            bins.append(text)
    return tuple(
        CollectionEntry(local_date=local_date, bins=tuple(bins))
        for local_date, bins in by_date.items()
    )


class ScheduleExtractor:
    """Reads collection dates and bin types from the results frame."""

    def __init__(self, zone: str, table_id: str = RESULTS_TABLE_ID):
        self.zone = zone
        self.table_id = table_id

    def extract(self, results: RenderedResults) -> Schedule:
        """
        Extracts the collection schedule from the rendered results.

        The results table is read first. If none of its rows carries a usable date,
        the visible page text is scanned line by line instead.

        Args:
            results: HTML and visible text of the results frame.

        Returns:
            A Schedule, possibly empty.
        """
        soup = BeautifulSoup(results.html or "", "html.parser")
        rows, table_html = self._read_table_rows(soup)

        parsed: List[Tuple[date, str]] = []
        for date_text, bins_text in rows:
            local_date = parse_collection_date(date_text, self.zone)
            if local_date is None:
                logger.debug(f"Skipping row with unparseable date '{date_text}'.")
                continue
            parsed.append((local_date, bins_text))

        if parsed:
            entries = _group_by_date(parsed)
            logger.info(f"Extracted {len(entries)} collection dates from the results table.")
            return Schedule(entries=entries, table_html=table_html)

        entries = self._scan_text(results.text)
        if entries:
            logger.info(
                f"Results table yielded nothing; extracted {len(entries)} dates from page text."
            )
        else:
            logger.warning("No collection dates found in the results.")
        return Schedule(entries=entries, table_html=table_html)

    def _candidate_tables(self, soup: BeautifulSoup) -> List[Tag]:
        tables: List[Tag] = []
        known = soup.find(id=self.table_id)
        if isinstance(known, Tag):
            tables.append(known)
        for table in soup.find_all("table"):
            if not any(table is seen for seen in tables):
                tables.append(table)
        return tables

    def _read_table_rows(self, soup: BeautifulSoup) -> Tuple[List[Tuple[str, str]], Optional[str]]:
        """Returns the (date text, bin text) rows of the first table that has any."""
        for table in self._candidate_tables(soup):
            rows = []
            for tr in table.find_all("tr"):
                cells = tr.find_all(["td", "th"])
                if len(cells) < 2:
                    continue
                date_text = normalize_whitespace(cells[0].get_text(" "))
                bins_text = normalize_whitespace(cells[1].get_text(" "))
                if header_date_pattern.search(date_text) and header_bin_pattern.search(bins_text):
                    continue
                if date_text and bins_text:
                    rows.append((date_text, bins_text))
            if rows:
                return rows, str(table).strip() or None
        return [], None

    def _scan_text(self, text: str) -> Tuple[CollectionEntry, ...]:
        lines = [line.strip() for line in (text or "").splitlines()]
        lines = [line for line in lines if line]

        found: List[Tuple[date, str]] = []
        for i, line in enumerate(lines):
            match = loose_date_pattern.search(line)
            if not match:
                continue
            local_date = parse_collection_date(match.group(0), self.zone)
            if local_date is None:
                continue
            window = lines[max(i - 1, 0) : i + 2]
            found.append((local_date, " ".join(window)))
        return _group_by_date(found)
