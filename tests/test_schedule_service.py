"""
Unit tests for the ScheduleService.
"""
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from collection_schedule.deadline import RunDeadline
from collection_schedule.exceptions import (BrowserLaunchError,
                                            NavigationError, ResultsTimeout)
from collection_schedule.models import RenderedResults
from collection_schedule.services.schedule_extractor import ScheduleExtractor
from collection_schedule.services.schedule_service import ScheduleService

RESULTS = RenderedResults(
    html="<table id='table2'><tr><td>11/09/2025</td><td>General Waste</td></tr></table>",
    text="",
)


@pytest.fixture
def browser():
    """A browser mock whose context yields a single page."""
    page = MagicMock()
    page.goto = AsyncMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    return browser


@pytest.fixture
def navigator():
    navigator = MagicMock()
    navigator.navigate = AsyncMock(return_value=RESULTS)
    return navigator


def make_service(navigator):
    return ScheduleService(navigator, ScheduleExtractor("Europe/London"), settle_delay=0)


@pytest.mark.asyncio
async def test_fetch_schedule_returns_extracted_schedule(browser, navigator):
    """Tests that a loaded page is navigated, extracted and its context closed."""
    schedule = await make_service(navigator).fetch_schedule(
        browser, "https://example.invalid/form", "1 Example Road", RunDeadline(60)
    )

    assert schedule.has_date(date(2025, 9, 11))
    context = browser.new_context.return_value
    page = context.new_page.return_value
    assert page.goto.call_args.kwargs["wait_until"] == "networkidle"
    navigator.navigate.assert_awaited_once()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_page_load_failure_raises_navigation_error(browser, navigator):
    """Tests that a failed page load is reported at the PageLoaded state."""
    page = browser.new_context.return_value.new_page.return_value
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(NavigationError) as exc_info:
        await make_service(navigator).fetch_schedule(browser, "https://example.invalid/form", "Home")

    assert exc_info.value.state == "PageLoaded"
    navigator.navigate.assert_not_awaited()
    browser.new_context.return_value.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_navigation_error_propagates_and_context_closes(browser, navigator):
    navigator.navigate.side_effect = ResultsTimeout("ResultsRendered", "Results table did not render in time")

    with pytest.raises(ResultsTimeout):
        await make_service(navigator).fetch_schedule(browser, "https://example.invalid/form", "Home")

    browser.new_context.return_value.close.assert_awaited_once()


@pytest.mark.asyncio
@patch("collection_schedule.services.schedule_service.async_playwright")
async def test_launch_closes_browser_and_stops_playwright(mock_async_playwright, navigator):
    """Tests that the browser and Playwright are shut down after use."""
    playwright = MagicMock()
    playwright.stop = AsyncMock()
    chromium_browser = MagicMock()
    chromium_browser.close = AsyncMock()
    playwright.chromium.launch = AsyncMock(return_value=chromium_browser)
    mock_async_playwright.return_value.start = AsyncMock(return_value=playwright)

    async with make_service(navigator).launch() as launched:
        assert launched is chromium_browser

    chromium_browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()


@pytest.mark.asyncio
@patch("collection_schedule.services.schedule_service.async_playwright")
async def test_launch_failure_raises_browser_launch_error(mock_async_playwright, navigator):
    """Tests that a browser that cannot start is reported as BrowserLaunchError."""
    playwright = MagicMock()
    playwright.stop = AsyncMock()
    playwright.chromium.launch = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
    mock_async_playwright.return_value.start = AsyncMock(return_value=playwright)

    with pytest.raises(BrowserLaunchError):
        async with make_service(navigator).launch():
            pass

    playwright.stop.assert_awaited_once()
