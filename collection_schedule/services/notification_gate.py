"""
This module defines the NotificationGate, which decides whether an address is due a notification.
"""

import logging
from typing import List, Optional

from ..exceptions import StateStoreError
from ..models import (GateDecision, NotificationState, RunContext, Schedule,
                      address_key)
from .persistence_service import PersistenceService, truncate_snapshot

logger = logging.getLogger(__name__)


class NotificationGate:
    """
    Applies the once-per-address-per-date rule.

    Under normal operation an address is announced only when its schedule has a
    collection on the target date (tomorrow) and the stored state does not already
    record that date. Force mode skips both checks and announces the next upcoming
    collection instead.
    """

    def __init__(self, persistence_service: PersistenceService):
        self.persistence = persistence_service

    def _already_notified(self, key: str, context: RunContext) -> bool:
        try:
            with self.persistence as p:
                state = p.get_state(key)
        except StateStoreError as e:
            # A failed read must not suppress a due notification.
            logger.error(f"Could not read notification state for {key}, assuming not notified: {e}")
            return False
        return state is not None and state.last_notified_date == context.target_date

    def decide(self, label: str, schedule: Schedule, context: RunContext) -> GateDecision:
        """
        Decides whether to announce a collection for one address.

        Args:
            label: The address label.
            schedule: The scraped schedule for the address.
            context: The run's clock and mode.

        Returns:
            A GateDecision; notify is False with a reason when nothing should be sent.
        """
        key = address_key(label)
        has_target = schedule.has_date(context.target_date)

        if not context.force_mode:
            if not has_target:
                return GateDecision(False, f"no collection on {context.target_date}", key)
            if self._already_notified(key, context):
                return GateDecision(False, f"already notified for {context.target_date}", key)

        if has_target:
            announce_date = context.target_date
        else:
            upcoming = sorted(
                entry.local_date for entry in schedule.entries if entry.local_date >= context.today
            )
            if not upcoming:
                return GateDecision(False, "no upcoming collections", key)
            announce_date = upcoming[0]

        bins: List[str] = schedule.bins_on(announce_date) or schedule.all_bins()
        return GateDecision(
            notify=True,
            reason="collection due" if announce_date == context.target_date else "forced",
            address_key=key,
            announce_date=announce_date,
            is_target_date=announce_date == context.target_date,
            bins=tuple(bins),
        )

    def should_record(self, decision: GateDecision, context: RunContext) -> bool:
        return decision.notify and decision.is_target_date and not context.force_mode

    def record(self, decision: GateDecision, schedule: Schedule, context: RunContext) -> bool:
        """
        Persists the announced date once a send has succeeded.

        Only target-date announcements outside force mode are recorded.

        Returns:
            True if state was written.

        Raises:
            StateStoreError: If the write fails.
        """
        if not self.should_record(decision, context):
            return False
        state = NotificationState(
            address_key=decision.address_key,
            last_notified_date=context.target_date,
            last_snapshot=truncate_snapshot(schedule.to_snapshot()),
        )
        with self.persistence as p:
            written = p.put_state(state)
        if written:
            logger.info(f"Recorded notification for {decision.address_key} on {context.target_date}.")
        else:
            logger.warning(
                f"Kept a later stored date for {decision.address_key}; {context.target_date} not recorded."
            )
        return written

    def log_send(
        self,
        decision: GateDecision,
        recipient: str,
        status: str,
        error_message: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> None:
        """Records a send attempt; failures to log are reported but not raised."""
        try:
            with self.persistence as p:
                p.log_send(
                    decision.address_key,
                    recipient,
                    decision.announce_date,
                    status,
                    error_message=error_message,
                    message_id=message_id,
                )
        except StateStoreError as e:
            logger.warning(f"Could not log send to {recipient}: {e}")
