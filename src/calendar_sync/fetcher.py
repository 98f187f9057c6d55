"""
HTTP fetcher for calendar feeds.
"""
from typing import Optional

import requests

from ..utils.errors import FetchError
from ..utils.logger import get_logger
from config.settings import app_config


class HttpCalendarFetcher:
    """Retrieves raw iCal text over HTTP."""

    USER_AGENT = "reservation-sync/1.0"

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.logger = get_logger("calendar_fetcher")
        self.timeout = timeout if timeout is not None else app_config.calendar_fetch_timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.USER_AGENT)

    def fetch(self, url: str) -> str:
        """
        Download a calendar feed.

        Args:
            url: Feed URL

        Returns:
            Raw feed text

        Raises:
            FetchError: on timeout, connection failure or non-2xx response
        """
        self.logger.debug("Fetching calendar", url=url, timeout=self.timeout)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchError(f"Timed out fetching calendar after {self.timeout}s", url=url) from e
        except requests.RequestException as e:
            raise FetchError(f"Error fetching calendar: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"Error fetching calendar: HTTP {response.status_code} {response.reason}",
                url=url,
                status_code=response.status_code,
            )

        self.logger.debug("Calendar fetched", url=url, size=len(response.text))
        return response.text
