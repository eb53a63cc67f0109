"""
This module defines the ScheduleService for scraping collection schedules with a headless browser.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from ..config import HEADLESS, PAGE_LOAD_TIMEOUT_SECONDS, USER_AGENT
from ..deadline import RunDeadline
from ..exceptions import BrowserLaunchError, NavigationError
from ..models import Schedule
from .form_navigator import FormNavigator, NavigationState
from .schedule_extractor import ScheduleExtractor

logger = logging.getLogger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-dev-shm-usage"]
VIEWPORT = {"width": 1280, "height": 1024}


class ScheduleService:
    """Handles launching the browser and scraping one address at a time."""

    def __init__(
        self,
        navigator: FormNavigator,
        extractor: ScheduleExtractor,
        headless: bool = HEADLESS,
        page_load_timeout: float = PAGE_LOAD_TIMEOUT_SECONDS,
        settle_delay: float = 1.5,
    ):
        self.navigator = navigator
        self.extractor = extractor
        self.headless = headless
        self.page_load_timeout = page_load_timeout
        self.settle_delay = settle_delay

    @asynccontextmanager
    async def launch(self) -> AsyncIterator[Any]:
        """
        Starts Chromium for the duration of a run.

        Raises:
            BrowserLaunchError: If Playwright or the browser cannot be started.
        """
        try:
            playwright = await async_playwright().start()
        except PlaywrightError as e:
            raise BrowserLaunchError(f"Could not start Playwright: {e}") from e
        try:
            try:
                browser = await playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            except PlaywrightError as e:
                raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e
            logger.info(f"Browser launched (headless={self.headless}).")
            try:
                yield browser
            finally:
                await browser.close()
                logger.info("Browser closed.")
        finally:
            await playwright.stop()

    async def fetch_schedule(
        self, browser: Any, url: str, label: str, deadline: Optional[RunDeadline] = None
    ) -> Schedule:
        """
        Scrapes the collection schedule for one address.

        Args:
            browser: The browser returned by launch().
            url: The collection form URL.
            label: The address text to look up.
            deadline: The run's remaining budget.

        Returns:
            The extracted Schedule, possibly empty.

        Raises:
            NavigationError: If the form could not be driven to its results.
        """
        deadline = deadline or RunDeadline()
        context = await browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
        try:
            page = await context.new_page()
            timeout_ms = max(deadline.clamp(self.page_load_timeout) * 1000, 1)
            try:
                await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
            except PlaywrightError as e:
                raise NavigationError(NavigationState.PAGE_LOADED.value, f"Could not load {url}: {e}") from e
            await asyncio.sleep(min(self.settle_delay, deadline.remaining()))

            results = await self.navigator.navigate(page, label, deadline)
            return self.extractor.extract(results)
        finally:
            await context.close()
