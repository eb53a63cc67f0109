"""
This module defines the RunOrchestrator, the central entry point for a daily bin check.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Callable, List, Optional

from .config import JOKE_ENABLED, JOKE_TIMEOUT_SECONDS, SOURCE_URL
from .date_normalizer import resolve_zone
from .deadline import RunDeadline
from .exceptions import NavigationError, SendError, StateStoreError
from .models import (AddressConfig, AddressOutcome, GateDecision,
                     OutcomeStatus, RunConfig, RunContext, RunSummary,
                     Schedule)
from .services.email_service import GmailEmailService
from .services.joke_service import fetch_joke
from .services.message_composer import compose_message
from .services.notification_gate import NotificationGate
from .services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

email_like_pattern = re.compile(r".+@.+\..+")


class SupplementaryText:
    """A background fetch that is awaited at most once and never fails the run."""

    def __init__(self, task: Optional["asyncio.Task[Optional[str]]"]):
        self._task = task
        self._resolved = task is None
        self._value: Optional[str] = None

    async def get(self) -> Optional[str]:
        if not self._resolved:
            self._resolved = True
            try:
                self._value = await self._task
                if self._value:
                    logger.info("Joke of the day fetched.")
            except asyncio.TimeoutError:
                logger.warning("Joke fetch timed out.")
            except Exception as e:
                logger.warning(f"Joke fetch failed: {e}")
        return self._value

    def close(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        elif not self._task.cancelled():
            # Mark any stored exception as retrieved.
            self._task.exception()


class RunOrchestrator:
    """
    Runs the daily check across every configured address.

    Addresses are processed one at a time against a single browser. A failure while
    scraping, deciding or sending is recorded in that address's outcome and the run
    moves on; only configuration errors and a browser that cannot be launched stop it.
    """

    def __init__(
        self,
        schedule_service: ScheduleService,
        notification_gate: NotificationGate,
        email_service: GmailEmailService,
        source_url: str = SOURCE_URL,
        joke_fetcher: Optional[Callable[[float], Optional[str]]] = fetch_joke if JOKE_ENABLED else None,
        joke_timeout: float = JOKE_TIMEOUT_SECONDS,
    ):
        self.schedule_service = schedule_service
        self.notification_gate = notification_gate
        self.email_service = email_service
        self.source_url = source_url
        self.joke_fetcher = joke_fetcher
        self.joke_timeout = joke_timeout

    def _start_supplementary_fetch(self) -> SupplementaryText:
        if self.joke_fetcher is None:
            return SupplementaryText(None)
        task = asyncio.ensure_future(
            asyncio.wait_for(asyncio.to_thread(self.joke_fetcher, self.joke_timeout), self.joke_timeout)
        )
        return SupplementaryText(task)

    async def run(
        self,
        config: RunConfig,
        force_mode: bool = False,
        deadline: Optional[RunDeadline] = None,
        now: Optional[datetime] = None,
    ) -> RunSummary:
        """
        Checks every address and sends any due reminders.

        Args:
            config: The addresses, time zone and message suffix.
            force_mode: Announce the next collection regardless of date and state.
            deadline: Overall time budget; addresses left when it passes are skipped.
            now: Override of the current time, for manual runs.

        Returns:
            A RunSummary with one outcome per address.

        Raises:
            BrowserLaunchError: If the browser cannot be started.
        """
        deadline = deadline or RunDeadline()
        context = RunContext.create(resolve_zone(config.timezone), force_mode, now)
        logger.info(
            f"Daily bin check starting: now={context.now_local.isoformat()}, "
            f"target={context.target_date}, force={force_mode}, addresses={len(config.addresses)}."
        )

        summary = RunSummary(target_date=context.target_date, force_mode=force_mode)
        aside = self._start_supplementary_fetch()
        try:
            async with self.schedule_service.launch() as browser:
                total = len(config.addresses)
                for position, address in enumerate(config.addresses, start=1):
                    logger.info(f"--- Processing address {position}/{total}: {address.label} ---")
                    if deadline.expired():
                        logger.warning(f"Run deadline reached; skipping {address.label}.")
                        summary.outcomes.append(
                            AddressOutcome(address.label, OutcomeStatus.SKIPPED, "run deadline reached")
                        )
                        continue
                    try:
                        outcome = await self.process_address(
                            browser, address, config, context, deadline, aside
                        )
                    except Exception as e:
                        logger.exception(f"Unexpected error processing {address.label}: {e}")
                        outcome = AddressOutcome(address.label, OutcomeStatus.FAILED, str(e))
                    logger.info(f"{address.label}: {outcome.status.value} ({outcome.reason}).")
                    summary.outcomes.append(outcome)
        finally:
            aside.close()

        logger.info(
            f"Daily bin check completed: {summary.count(OutcomeStatus.SENT)} sent, "
            f"{summary.count(OutcomeStatus.SKIPPED)} skipped, {summary.count(OutcomeStatus.FAILED)} failed."
        )
        return summary

    async def process_address(
        self,
        browser: Any,
        address: AddressConfig,
        config: RunConfig,
        context: RunContext,
        deadline: RunDeadline,
        aside: SupplementaryText,
    ) -> AddressOutcome:
        """Scrapes, decides, composes and sends for a single address."""
        label = address.label
        try:
            schedule = await self.schedule_service.fetch_schedule(browser, self.source_url, label, deadline)
        except NavigationError as e:
            logger.error(f"Failed to scrape collections for {label}: {e}")
            return AddressOutcome(label, OutcomeStatus.FAILED, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error scraping collections for {label}: {e}")
            return AddressOutcome(label, OutcomeStatus.FAILED, str(e))
        logger.info(f"Scraped {len(schedule.entries)} collections for {label}.")

        try:
            decision = self.notification_gate.decide(label, schedule, context)
        except Exception as e:
            logger.exception(f"Failed to decide on a notification for {label}: {e}")
            return AddressOutcome(label, OutcomeStatus.FAILED, str(e))
        if not decision.notify:
            return AddressOutcome(label, OutcomeStatus.SKIPPED, decision.reason)

        recipients = valid_recipients(address.recipients)
        if not recipients:
            logger.warning(f"No valid email addresses configured for {label}.")
            return AddressOutcome(
                label, OutcomeStatus.SKIPPED, "no valid recipients", announce_date=decision.announce_date
            )

        message = compose_message(
            announce_date=decision.announce_date,
            is_target_date=decision.is_target_date,
            label=label,
            bins=decision.bins,
            suffix=config.message_suffix,
            table_html=schedule.table_html,
            aside=await aside.get(),
        )
        logger.info(f"Email subject: {message.subject}")

        outcome = AddressOutcome(
            label, OutcomeStatus.SENT, decision.reason, announce_date=decision.announce_date
        )
        for recipient in recipients:
            try:
                message_id = await asyncio.to_thread(
                    self.email_service.send, recipient, message.subject, message.plain_text, message.html_body
                )
            except SendError as e:
                logger.error(f"Failed to send email to {recipient}: {e}")
                outcome.failed_to.append(recipient)
                self.notification_gate.log_send(decision, recipient, "failure", error_message=str(e))
                continue
            except Exception as e:
                logger.exception(f"Unexpected error sending email to {recipient}: {e}")
                outcome.failed_to.append(recipient)
                self.notification_gate.log_send(decision, recipient, "failure", error_message=str(e))
                continue
            outcome.sent_to.append(recipient)
            self.notification_gate.log_send(
                decision, recipient, "sent" if message_id else "dry-run", message_id=message_id
            )

        if not outcome.sent_to:
            outcome.status = OutcomeStatus.FAILED
            outcome.reason = "all sends failed"
            return outcome

        outcome.state_recorded = self._record(decision, schedule, context)
        return outcome

    def _record(self, decision: GateDecision, schedule: Schedule, context: RunContext) -> bool:
        try:
            return self.notification_gate.record(decision, schedule, context)
        except StateStoreError as e:
            logger.error(f"Failed to mark {decision.address_key} as notified: {e}")
            return False


def valid_recipients(recipients) -> List[str]:
    """Drops anything that does not look like an email address."""
    valid = [r.strip() for r in recipients if email_like_pattern.match(str(r or "").strip())]
    dropped = len(recipients) - len(valid)
    if dropped:
        logger.warning(f"Ignoring {dropped} recipient(s) that are not email addresses.")
    return valid
