"""
This module fetches the joke of the day appended to reminders.
"""
import logging
from typing import Optional

import requests

from ..config import JOKE_API_URL, JOKE_TIMEOUT_SECONDS
from ..exceptions import SupplementaryFetchError

logger = logging.getLogger(__name__)

USER_AGENT = "bin-day-notifier/1.0"


def fetch_joke(timeout: float = JOKE_TIMEOUT_SECONDS, url: str = JOKE_API_URL) -> Optional[str]:
    """
    Fetches a single joke.

    Returns:
        The joke text, or None if the response carried none.

    Raises:
        SupplementaryFetchError: If the request fails or times out.
    """
    try:
        response = requests.get(
            url,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.Timeout as e:
        raise SupplementaryFetchError(f"Joke fetch timed out after {timeout}s") from e
    except (requests.exceptions.RequestException, ValueError) as e:
        raise SupplementaryFetchError(f"Joke fetch failed: {e}") from e

    joke = payload.get("joke") if isinstance(payload, dict) else None
    if isinstance(joke, str) and joke.strip():
        return joke.strip()
    logger.info("Joke fetch completed but no joke was returned.")
    return None
