"""
This module defines the FormNavigator, which drives the council's bin-day form.

The form is an AchieveForms page embedded in an iframe. It loads asynchronously and its
markup shifts between deployments, so every step polls with its own timeout and falls
back to heuristics when the expected element is not there:

    PageLoaded -> FrameLocated -> FormOpened -> AddressTyped
               -> SuggestionSelected -> ResultsRendered
"""
import asyncio
import enum
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import (DEBUG_ARTIFACT_DIR, FRAME_TIMEOUT_SECONDS,
                      RESULTS_TIMEOUT_SECONDS, SUGGESTION_TIMEOUT_SECONDS)
from ..deadline import RunDeadline
from ..exceptions import (AddressInputNotFound, FrameNotFound,
                          NavigationError, NoSuggestionPopulated,
                          ResultsTimeout, RunDeadlineExceeded)
from ..models import RenderedResults

logger = logging.getLogger(__name__)

FORM_FRAME_SELECTOR = "#fillform-frame-1"
START_LABELS = ("Section 1", "Start", "Begin", "Check your bin day", "Next", "Continue")
SUGGESTION_SELECTOR = 'select[name="YourAddress"], select#YourAddress'
RESULTS_TABLE_SELECTOR = "#table2"
CANDIDATE_ATTRIBUTE = "data-bin-days-candidate"


class NavigationState(str, enum.Enum):
    PAGE_LOADED = "PageLoaded"
    FRAME_LOCATED = "FrameLocated"
    FORM_OPENED = "FormOpened"
    ADDRESS_TYPED = "AddressTyped"
    SUGGESTION_SELECTED = "SuggestionSelected"
    RESULTS_RENDERED = "ResultsRendered"


# --- Address control scoring ---

address_token_pattern = re.compile(r"address|lookup|find|search")
text_type_pattern = re.compile(r"text|search")
date_type_pattern = re.compile(r"date|time")

NON_TEXT_INPUT_TYPES = {"hidden", "submit", "button", "checkbox", "radio", "image", "reset", "file"}


@dataclass(frozen=True)
class InputCandidate:
    """Snapshot of one visible input-like element inside the form frame."""

    index: int
    tag: str = "input"
    name: str = ""
    id: str = ""
    role: str = ""
    aria_label: str = ""
    placeholder: str = ""
    class_name: str = ""
    type: str = ""
    container_text: str = ""
    in_auto_lookup: bool = False

    @classmethod
    def from_snapshot(cls, raw: dict) -> "InputCandidate":
        return cls(
            index=int(raw.get("index", 0)),
            tag=str(raw.get("tag") or ""),
            name=str(raw.get("name") or ""),
            id=str(raw.get("id") or ""),
            role=str(raw.get("role") or ""),
            aria_label=str(raw.get("ariaLabel") or ""),
            placeholder=str(raw.get("placeholder") or ""),
            class_name=str(raw.get("className") or ""),
            type=str(raw.get("type") or "").lower(),
            container_text=str(raw.get("containerText") or ""),
            in_auto_lookup=bool(raw.get("inAutoLookup")),
        )


def score_address_candidate(candidate: InputCandidate) -> int:
    """Scores how likely an element is to be the address lookup field."""
    attrs = " ".join(
        value
        for value in (
            candidate.name,
            candidate.id,
            candidate.role,
            candidate.aria_label,
            candidate.placeholder,
            candidate.class_name,
        )
        if value
    ).lower()

    score = 0
    if address_token_pattern.search(attrs):
        score += 5
    if text_type_pattern.search(candidate.type):
        score += 2
    if date_type_pattern.search(candidate.type):
        score -= 3
    container = candidate.container_text.lower()
    if "address" in container:
        score += 3
    if "postcode" in container:
        score += 1
    if candidate.in_auto_lookup:
        score += 2
    return score


def rank_address_candidates(candidates: Sequence[InputCandidate]) -> List[InputCandidate]:
    """
    Orders candidate controls from most to least plausible address field.

    Controls that cannot take text are dropped. Ties keep document order.
    """
    usable = [c for c in candidates if c.type not in NON_TEXT_INPUT_TYPES]
    return sorted(usable, key=score_address_candidate, reverse=True)


# --- Browser-side snippets ---

SNAPSHOT_CANDIDATES_JS = """
(attribute) => {
  const isVisible = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return !!(rect.width && rect.height) && style.visibility !== 'hidden' && style.display !== 'none';
  };
  const out = [];
  const nodes = document.querySelectorAll('input, [role="combobox"], [contenteditable="true"]');
  for (const el of nodes) {
    if (!isVisible(el)) continue;
    const index = out.length;
    el.setAttribute(attribute, String(index));
    const container = el.closest('.field, .fieldContent, .af-block, fieldset, form');
    out.push({
      index,
      tag: el.tagName.toLowerCase(),
      name: el.getAttribute('name') || '',
      id: el.id || '',
      role: el.getAttribute('role') || '',
      ariaLabel: el.getAttribute('aria-label') || '',
      placeholder: el.getAttribute('placeholder') || '',
      className: typeof el.className === 'string' ? el.className : '',
      type: el.tagName === 'INPUT' ? (el.getAttribute('type') || 'text') : '',
      containerText: container ? (container.textContent || '').slice(0, 2000) : '',
      inAutoLookup: !!el.closest('[data-type="autoLookup"], [data-field-type="autoLookup"]'),
    });
  }
  return out;
}
"""

CLICK_BY_TEXT_JS = """
(wanted) => {
  const norm = (s) => (s || '').trim().toLowerCase();
  const target = norm(wanted);
  const nodes = Array.from(document.querySelectorAll(
    'button, a, [role="button"], .btn, .af-action, .af-button, div, span'));
  let el = nodes.find((node) => norm(node.textContent) === target);
  if (!el) {
    const partial = nodes.filter((node) => norm(node.textContent).includes(target));
    partial.sort((a, b) => norm(a.textContent).length - norm(b.textContent).length);
    el = partial[0];
  }
  if (!el) return false;
  el.dispatchEvent(new MouseEvent('mousedown', { bubbles: true }));
  el.dispatchEvent(new MouseEvent('click', { bubbles: true }));
  return true;
}
"""

HAS_INPUT_JS = """
() => !!document.querySelector('input, [role="combobox"], [contenteditable="true"]')
"""

FRAME_HAS_INPUTS_JS = """
() => !!document && document.querySelectorAll('input').length > 0
"""

CLEAR_VALUE_JS = """
(el) => {
  el.value = '';
  el.dispatchEvent(new Event('input', { bubbles: true }));
  return true;
}
"""

FIRST_OPTION_JS = """
(selector) => {
  const select = document.querySelector(selector);
  if (!select) return null;
  const option = Array.from(select.querySelectorAll('option'))
    .find((o) => (o.value || '').trim() !== '');
  return option ? { value: option.value, text: (option.textContent || '').trim() } : null;
}
"""

SELECT_OPTION_JS = """
([selector, value]) => {
  const select = document.querySelector(selector);
  if (!select) return false;
  select.value = value;
  select.dispatchEvent(new Event('change', { bubbles: true }));
  select.dispatchEvent(new Event('input', { bubbles: true }));
  return true;
}
"""

RESULTS_READY_JS = """
(selector) => {
  const table = document.querySelector(selector);
  return !!table && table.querySelectorAll('tr td, tr th').length > 0;
}
"""


# --- Polling ---

async def poll_until(
    probe: Callable[[], Awaitable[Any]],
    timeout: float,
    interval: float = 0.5,
    max_interval: Optional[float] = None,
) -> Any:
    """
    Calls probe until it returns something truthy or the timeout elapses.

    The interval doubles after every miss when max_interval is given, up to that cap.

    Returns:
        The first truthy probe result, or None on timeout.
    """
    loop = asyncio.get_running_loop()
    end = loop.time() + max(timeout, 0.0)
    delay = interval
    while True:
        result = await probe()
        if result:
            return result
        remaining = end - loop.time()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(delay, remaining))
        if max_interval is not None:
            delay = min(delay * 2, max_interval)


def _millis(deadline: RunDeadline, seconds: float) -> float:
    """Playwright treats a zero timeout as unbounded, so never pass less than 1ms."""
    return max(deadline.clamp(seconds) * 1000, 1)


class DebugRecorder:
    """Saves page screenshots and frame HTML to help diagnose navigation failures."""

    def __init__(self, directory: Optional[str] = DEBUG_ARTIFACT_DIR):
        self.directory = directory

    async def capture(self, page: Any, frame: Any, label: str) -> None:
        if not self.directory:
            return
        stamp = int(time.time() * 1000)
        try:
            os.makedirs(self.directory, exist_ok=True)
            await page.screenshot(
                path=os.path.join(self.directory, f"debug-{stamp}-{label}.png"), full_page=True
            )
            if frame is not None:
                html = await frame.content()
                path = os.path.join(self.directory, f"debug-{stamp}-{label}.html")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(html)
            logger.info(f"Saved debug artifacts for '{label}' to {self.directory}.")
        except (PlaywrightError, OSError) as e:
            logger.warning(f"Could not save debug artifacts for '{label}': {e}")


class FormNavigator:
    """Walks the bin-day form from a loaded page to a rendered results table."""

    def __init__(
        self,
        frame_selector: str = FORM_FRAME_SELECTOR,
        start_labels: Sequence[str] = START_LABELS,
        suggestion_selector: str = SUGGESTION_SELECTOR,
        results_selector: str = RESULTS_TABLE_SELECTOR,
        frame_timeout: float = FRAME_TIMEOUT_SECONDS,
        suggestion_timeout: float = SUGGESTION_TIMEOUT_SECONDS,
        results_timeout: float = RESULTS_TIMEOUT_SECONDS,
        settle_delay: float = 0.7,
        click_delay: float = 1.0,
        keystroke_delay_ms: int = 60,
        recorder: Optional[DebugRecorder] = None,
    ):
        self.frame_selector = frame_selector
        self.start_labels = tuple(start_labels)
        self.suggestion_selector = suggestion_selector
        self.results_selector = results_selector
        self.frame_timeout = frame_timeout
        self.suggestion_timeout = suggestion_timeout
        self.results_timeout = results_timeout
        self.settle_delay = settle_delay
        self.click_delay = click_delay
        self.keystroke_delay_ms = keystroke_delay_ms
        self.recorder = recorder or DebugRecorder()

    async def navigate(self, page: Any, label: str, deadline: Optional[RunDeadline] = None) -> RenderedResults:
        """
        Drives the form for one address and captures the rendered results.

        Args:
            page: A Playwright page that has already loaded the form URL.
            label: The address text to look up.
            deadline: The run's remaining budget; bounds every wait.

        Returns:
            The results frame's HTML and visible text.

        Raises:
            NavigationError: A subclass naming the state that could not be reached.
        """
        deadline = deadline or RunDeadline()
        frame = None
        try:
            frame = await self.locate_frame(page, deadline)
            await self.open_form(frame, deadline)
            await self.type_address(page, frame, label, deadline)
            await self.select_suggestion(frame, deadline)
            await self.wait_for_results(frame, deadline)
            results = await self.read_results(frame, deadline)
        except NavigationError as e:
            logger.warning(f"Form navigation for '{label}' stopped: {e}")
            await self.recorder.capture(page, frame, e.state)
            raise
        logger.info(f"Results rendered for '{label}'.")
        return results

    def _timed_out(
        self, error_cls: type, state: NavigationState, message: str, deadline: RunDeadline
    ) -> NavigationError:
        if deadline.expired():
            return RunDeadlineExceeded(state.value, f"Run deadline reached: {message}")
        return error_cls(state.value, message)

    async def locate_frame(self, page: Any, deadline: RunDeadline) -> Any:
        """Finds the form frame by its container id, else by scanning every frame for inputs."""
        state = NavigationState.FRAME_LOCATED
        try:
            handle = await page.wait_for_selector(
                self.frame_selector, timeout=_millis(deadline, self.frame_timeout)
            )
            frame = await handle.content_frame() if handle else None
            if frame is not None:
                await asyncio.sleep(min(self.click_delay, deadline.remaining()))
                logger.info(f"Located form frame via '{self.frame_selector}'.")
                return frame
        except PlaywrightTimeoutError:
            logger.warning(f"'{self.frame_selector}' did not appear; scanning all frames.")
        except PlaywrightError as e:
            logger.warning(f"Lookup of '{self.frame_selector}' failed ({e}); scanning all frames.")

        async def frame_with_inputs():
            for candidate in page.frames:
                try:
                    if await candidate.evaluate(FRAME_HAS_INPUTS_JS):
                        return candidate
                except PlaywrightError:
                    continue
            return None

        frame = await poll_until(frame_with_inputs, deadline.clamp(self.frame_timeout), interval=0.5)
        if frame is None:
            raise self._timed_out(
                FrameNotFound, state, "Could not find a loaded form frame with inputs", deadline
            )
        logger.info("Located form frame by scanning for inputs.")
        return frame

    async def open_form(self, frame: Any, deadline: Optional[RunDeadline] = None) -> bool:
        """
        Clicks through any start page in front of the form.

        Best effort: returns False when no start label led to an input, which is
        expected when the form is already open.
        """
        deadline = deadline or RunDeadline()
        for text in self.start_labels:
            if deadline.expired():
                logger.warning("Run deadline reached while opening the form.")
                break
            try:
                if not await frame.evaluate(CLICK_BY_TEXT_JS, text):
                    continue
                await asyncio.sleep(min(self.click_delay, deadline.remaining()))
                if await frame.evaluate(HAS_INPUT_JS):
                    logger.info(f"Opened form via '{text}'.")
                    return True
            except PlaywrightError as e:
                logger.debug(f"Start action '{text}' failed: {e}")
        logger.info("No start action needed or found; assuming the form is open.")
        return False

    async def type_address(self, page: Any, frame: Any, label: str, deadline: RunDeadline) -> InputCandidate:
        """Picks the most plausible address control, clears it and types the label."""
        state = NavigationState.ADDRESS_TYPED
        try:
            snapshot = await frame.evaluate(SNAPSHOT_CANDIDATES_JS, CANDIDATE_ATTRIBUTE)
        except PlaywrightError as e:
            raise AddressInputNotFound(state.value, f"Could not inspect form controls: {e}") from e

        ranked = rank_address_candidates([InputCandidate.from_snapshot(raw) for raw in snapshot or []])
        if not ranked:
            raise AddressInputNotFound(state.value, "Address input not found")
        best = ranked[0]
        logger.info(
            f"Using address control #{best.index} (name='{best.name}', id='{best.id}', "
            f"score={score_address_candidate(best)})."
        )

        control = frame.locator(f'[{CANDIDATE_ATTRIBUTE}="{best.index}"]')
        typing_seconds = 10 + len(label) * self.keystroke_delay_ms / 1000
        try:
            await control.scroll_into_view_if_needed(timeout=_millis(deadline, 5))
            await control.click(delay=50, timeout=_millis(deadline, 10))
            await control.focus(timeout=_millis(deadline, 5))
        except PlaywrightError as e:
            logger.debug(f"Could not click the address control: {e}")

        try:
            await control.evaluate(CLEAR_VALUE_JS, timeout=_millis(deadline, 5))
        except PlaywrightError:
            await page.keyboard.press("Control+A")
            await page.keyboard.press("Backspace")

        try:
            await control.press_sequentially(
                label, delay=self.keystroke_delay_ms, timeout=_millis(deadline, typing_seconds)
            )
        except PlaywrightError:
            await page.keyboard.type(label, delay=self.keystroke_delay_ms)
        return best

    async def select_suggestion(self, frame: Any, deadline: RunDeadline) -> str:
        """Waits for the address list to populate and picks its first real option."""
        state = NavigationState.SUGGESTION_SELECTED
        await asyncio.sleep(min(self.settle_delay, deadline.remaining()))

        async def first_option():
            try:
                return await frame.evaluate(FIRST_OPTION_JS, self.suggestion_selector)
            except PlaywrightError:
                return None

        option = await poll_until(first_option, deadline.clamp(self.suggestion_timeout), interval=0.5)
        if not option:
            raise self._timed_out(
                NoSuggestionPopulated, state, "Address select dropdown not populated", deadline
            )

        try:
            selected = await frame.evaluate(SELECT_OPTION_JS, [self.suggestion_selector, option["value"]])
        except PlaywrightError as e:
            raise NoSuggestionPopulated(state.value, f"Could not select the address option: {e}") from e
        if not selected:
            raise NoSuggestionPopulated(state.value, "Address select disappeared before selection")
        logger.info(f"Selected address option '{option.get('text') or option['value']}'.")
        return option["value"]

    async def wait_for_results(self, frame: Any, deadline: RunDeadline) -> None:
        state = NavigationState.RESULTS_RENDERED

        async def results_ready():
            try:
                return await frame.evaluate(RESULTS_READY_JS, self.results_selector)
            except PlaywrightError:
                return False

        ready = await poll_until(
            results_ready, deadline.clamp(self.results_timeout), interval=0.5, max_interval=4.0
        )
        if not ready:
            raise self._timed_out(
                ResultsTimeout, state, "Results table did not render in time", deadline
            )

    async def read_results(self, frame: Any, deadline: RunDeadline) -> RenderedResults:
        """Captures the results frame's HTML and visible text."""
        try:
            html = await frame.content()
            text = await frame.inner_text("body", timeout=_millis(deadline, 10))
        except PlaywrightError as e:
            raise NavigationError(
                NavigationState.RESULTS_RENDERED.value, f"Could not read the results frame: {e}"
            ) from e
        return RenderedResults(html=html, text=text)
