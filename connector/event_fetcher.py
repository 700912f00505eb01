"""Calendar fetcher for the SimplyOrg event-calendar endpoint."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from connector.exceptions import (
    DecodeError,
    TransportError,
    UnexpectedStatusError,
)
from connector.session import SessionManager
from processor.models import RawScheduleRecord

logger = logging.getLogger(__name__)


class EventFetcher:
    """Fetches raw schedule rows for a date window."""

    FETCH_PATH = 'de/event-calendar/calendar/fetchdata'
    # Statuses that mean the session cookies are no longer accepted
    AUTH_FAILURE_STATUSES = (401, 403, 419)

    def __init__(self, session_manager: SessionManager, timeout: int = 60):
        """
        Initialize the calendar fetcher.

        Args:
            session_manager: Manager owning the authenticated session
            timeout: HTTP request timeout in seconds (default: 60)
        """
        self.session_manager = session_manager
        self.timeout = timeout

    def fetch(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch calendar events within the date range.

        Authenticates first when the session is not yet authenticated;
        authentication errors propagate unchanged.

        Args:
            start_date: Start date in YYYY-MM-DD format (default: Jan 1)
            end_date: End date in YYYY-MM-DD format (default: Dec 31)

        Returns:
            List of raw schedule items from the response body

        Raises:
            AuthenticationError: If the handshake fails
            FetchError: If the calendar request fails
        """
        if not self.session_manager.is_authenticated():
            self.session_manager.authenticate()

        year = datetime.now(timezone.utc).year
        if start_date is None:
            start_date = f"{year}-01-01"
        if end_date is None:
            end_date = f"{year}-12-31"

        session = self.session_manager.session
        url = session.url(self.FETCH_PATH)
        body = self._build_request_body(start_date, end_date)

        logger.info(f"Fetching calendar events from {start_date} to {end_date}")
        logger.debug(f"Calendar request to {url} with cookies {session.cookie_header()[:20]}...")

        try:
            response = requests.post(
                url,
                json=body,
                headers={
                    'Cookie': session.cookie_header(),
                    'X-CSRF-Token': session.xsrf_token,
                    'Accept': 'application/json',
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to fetch calendar events: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"Calendar request returned status {response.status_code}: "
                f"{response.text[:500]}"
            )
            if response.status_code in self.AUTH_FAILURE_STATUSES:
                self.session_manager.reset()
            raise UnexpectedStatusError(response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"Failed to decode API response: {e}") from e

        if not isinstance(data, dict):
            raise DecodeError("API response is not a JSON object")

        items = data.get('body')
        if items is None:
            items = []
        if not isinstance(items, list):
            raise DecodeError("API response body is not a list")

        logger.info(f"Fetched {len(items)} schedule records")
        return items

    def fetch_records(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> List[RawScheduleRecord]:
        """Fetch and wrap the raw items as RawScheduleRecord objects."""
        items = self.fetch(start_date, end_date)
        return [
            RawScheduleRecord.from_api(item)
            for item in items
            if isinstance(item, dict)
        ]

    @staticmethod
    def _build_request_body(start_date: str, end_date: str) -> Dict[str, str]:
        # The endpoint expects the literal strings "null"/"undefined" for
        # filters that are not applied.
        return {
            'event_id': 'null',
            'location_id': 'null',
            'event_category_id': 'null',
            'project_support': 'undefined',
            'planned_by': 'undefined',
            'serminar_manager': 'undefined',
            'contact_person': 'undefined',
            'trainer_id': 'null',
            'status': 'null',
            'viewType': 'month',
            'start': start_date,
            'end': end_date,
        }
