"""
This module defines the data models for the bin-day notifier.
"""

import enum
import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional, Tuple


def address_key(label: str) -> str:
    """Compute the SHA256 digest used as the storage key for an address label."""
    return hashlib.sha256(label.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CollectionEntry:
    """A single collection day and the bins collected on it."""

    local_date: date
    bins: Tuple[str, ...]


@dataclass(frozen=True)
class Schedule:
    """The collection entries scraped for one address."""

    entries: Tuple[CollectionEntry, ...] = ()
    table_html: Optional[str] = None

    def has_date(self, day: date) -> bool:
        return any(entry.local_date == day for entry in self.entries)

    def bins_on(self, day: date) -> List[str]:
        """Returns the de-duplicated bins for a date, in first-seen order."""
        bins: List[str] = []
        for entry in self.entries:
            if entry.local_date != day:
                continue
            for name in entry.bins:
                if name not in bins:
                    bins.append(name)
        return bins

    def all_bins(self) -> List[str]:
        bins: List[str] = []
        for entry in self.entries:
            for name in entry.bins:
                if name not in bins:
                    bins.append(name)
        return bins

    def to_snapshot(self) -> Dict[str, Any]:
        """Serializable view of the schedule, stored alongside the notification state."""
        return {
            "collections": [
                {"localDate": entry.local_date.isoformat(), "bins": list(entry.bins)}
                for entry in self.entries
            ],
            "tableHtml": self.table_html,
        }


@dataclass(frozen=True)
class RenderedResults:
    """The results frame as captured after the form finished rendering."""

    html: str
    text: str


@dataclass(frozen=True)
class AddressConfig:
    """An address to check and the people to notify about it."""

    label: str
    recipients: Tuple[str, ...]


@dataclass(frozen=True)
class RunConfig:
    """Configuration loaded once per run."""

    addresses: Tuple[AddressConfig, ...]
    timezone: str
    message_suffix: str = ""


@dataclass
class NotificationState:
    """Durable per-address record of the last announced collection."""

    address_key: str
    last_notified_date: Optional[date] = None
    last_snapshot: str = ""


@dataclass(frozen=True)
class RunContext:
    """The clock and mode a run is evaluated against."""

    now_local: datetime
    target_date: date
    force_mode: bool = False

    @classmethod
    def create(
        cls, zone: tzinfo, force_mode: bool = False, now: Optional[datetime] = None
    ) -> "RunContext":
        """Builds a context whose target date is tomorrow in the given zone."""
        now_local = (now or datetime.now(zone)).astimezone(zone)
        return cls(
            now_local=now_local,
            target_date=now_local.date() + timedelta(days=1),
            force_mode=force_mode,
        )

    @property
    def today(self) -> date:
        return self.now_local.date()


@dataclass(frozen=True)
class GateDecision:
    """The outcome of checking one address against the notification rules."""

    notify: bool
    reason: str
    address_key: str
    announce_date: Optional[date] = None
    is_target_date: bool = False
    bins: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComposedMessage:
    subject: str
    plain_text: str
    html_body: Optional[str]


class OutcomeStatus(enum.Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AddressOutcome:
    """What happened to one address during a run."""

    label: str
    status: OutcomeStatus
    reason: str = ""
    announce_date: Optional[date] = None
    sent_to: List[str] = field(default_factory=list)
    failed_to: List[str] = field(default_factory=list)
    state_recorded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "status": self.status.value,
            "reason": self.reason,
            "announceDate": self.announce_date.isoformat() if self.announce_date else None,
            "sentTo": list(self.sent_to),
            "failedTo": list(self.failed_to),
            "stateRecorded": self.state_recorded,
        }


@dataclass
class RunSummary:
    """Per-address outcomes collected over a run."""

    target_date: date
    force_mode: bool
    outcomes: List[AddressOutcome] = field(default_factory=list)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetDate": self.target_date.isoformat(),
            "forceMode": self.force_mode,
            "sent": self.count(OutcomeStatus.SENT),
            "skipped": self.count(OutcomeStatus.SKIPPED),
            "failed": self.count(OutcomeStatus.FAILED),
            "addresses": [outcome.to_dict() for outcome in self.outcomes],
        }
