"""
Incremental Google Calendar event sync.

Per invocation:
1. Mode: INCREMENTAL when the calendar has a stored sync token,
   otherwise FULL_WINDOW (now - 90 days .. now + 90 days, recurring
   events expanded into single instances). Incremental requests keep
   singleEvents so the token is used with the parameters that issued it.
2. Page through events.list until there is no nextPageToken. The last
   page carries the nextSyncToken.
3. If Google answers 410 (CursorExpired), drop everything fetched so far
   and start over in FULL_WINDOW mode. This happens at most once; a
   second 410 is a ProviderError.
4. Hand the events to the ingestion callback, then store the new sync
   token (last write wins). A failing callback leaves the old token.
   When Google sends no new token the previous one is left in place, so
   the next run falls back to whatever that token yields, or to a full
   sync once it expires.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional, Union

from sqlalchemy.orm import Session

from app.services import store
from app.services.errors import ProviderError
from app.services.google_client import CursorExpired, GoogleCalendarGateway
from app.services.tokens import TokenManager

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "primary"
FULL_SYNC_WINDOW_DAYS = 90
MAX_CURSOR_RECOVERIES = 1


class SyncMode(str, Enum):
    """How the events request is scoped."""
    INCREMENTAL = "incremental"
    FULL_WINDOW = "full_window"


@dataclass
class ExternalEvent:
    """Normalized Google event handed to the ingestion side."""
    id: str
    start: Optional[str]
    end: Optional[str]
    status: Optional[str]
    title: str = "Untitled"
    all_day: bool = False


@dataclass
class SyncResult:
    events_count: int
    sync_token: Optional[str]
    mode: SyncMode
    events: list[ExternalEvent] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "synced": True,
            "events_count": self.events_count,
            "sync_token": self.sync_token,
        }


@dataclass
class _Fetched:
    items: list[dict[str, Any]]
    sync_token: Optional[str]


def _event_time(value: Optional[dict]) -> Optional[str]:
    if not value:
        return None
    return value.get("dateTime") or value.get("date")


def normalize_event(item: dict[str, Any]) -> ExternalEvent:
    """Convert a Google event resource into an ExternalEvent."""
    start = item.get("start") or {}
    return ExternalEvent(
        id=item.get("id", ""),
        start=_event_time(start),
        end=_event_time(item.get("end")),
        status=item.get("status"),
        title=item.get("summary") or "Untitled",
        all_day="date" in start
    )


def _rfc3339(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class EventSyncEngine:
    def __init__(
        self,
        db: Session,
        gateway: GoogleCalendarGateway,
        tokens: TokenManager,
        window_days: int = FULL_SYNC_WINDOW_DAYS,
        on_events: Optional[Callable[[str, str, list[ExternalEvent]], None]] = None,
        clock: Callable[[], datetime] = store.utcnow
    ):
        self.db = db
        self.gateway = gateway
        self.tokens = tokens
        self.window_days = window_days
        self.on_events = on_events
        self.clock = clock

    def sync_calendar(self, user_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> SyncResult:
        """
        Sync one calendar and persist the new cursor.

        Raises:
            Unauthorized: no usable Google credential for the user
            ProviderError: Google failed, or rejected the cursor twice
            StoreError: the new cursor could not be saved
        """
        calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        access_token = self.tokens.get_valid_access_token(user_id)

        calendar = store.get_calendar(self.db, user_id, calendar_id)
        cursor = calendar.sync_token if calendar else None
        mode = SyncMode.INCREMENTAL if cursor else SyncMode.FULL_WINDOW

        for attempt in range(MAX_CURSOR_RECOVERIES + 1):
            outcome = self._fetch_all(access_token, calendar_id, mode, cursor)
            if isinstance(outcome, _Fetched):
                break
            logger.warning(
                "Sync token rejected for calendar %s (user %s, attempt %d): %s",
                calendar_id, user_id, attempt + 1, outcome.message
            )
            mode, cursor = SyncMode.FULL_WINDOW, None
        else:
            raise ProviderError(410, "Sync token rejected again after a full resync")

        # Events are handed off before the cursor moves past them
        events = [normalize_event(item) for item in outcome.items]
        if self.on_events is not None:
            self.on_events(user_id, calendar_id, events)

        if outcome.sync_token:
            if not store.set_sync_token(self.db, user_id, calendar_id, outcome.sync_token):
                logger.info("Calendar %s not in local catalog, sync token not stored", calendar_id)

        logger.info(
            "Synced calendar %s for user %s: %d events (%s)",
            calendar_id, user_id, len(events), mode.value
        )
        return SyncResult(
            events_count=len(events),
            sync_token=outcome.sync_token,
            mode=mode,
            events=events
        )

    def _base_params(self, mode: SyncMode, cursor: Optional[str]) -> dict[str, Any]:
        if mode is SyncMode.INCREMENTAL:
            # Must match the parameters of the sync that issued the token
            return {"syncToken": cursor, "singleEvents": True}

        now = self.clock()
        return {
            "timeMin": _rfc3339(now - timedelta(days=self.window_days)),
            "timeMax": _rfc3339(now + timedelta(days=self.window_days)),
            "singleEvents": True,
        }

    def _fetch_all(
        self,
        access_token: str,
        calendar_id: str,
        mode: SyncMode,
        cursor: Optional[str]
    ) -> Union[_Fetched, CursorExpired]:
        """Run the page loop once. Partial results are dropped on CursorExpired."""
        params = self._base_params(mode, cursor)
        items: list[dict[str, Any]] = []
        sync_token = None

        while True:
            page = self.gateway.list_events(access_token, calendar_id, dict(params))
            if isinstance(page, CursorExpired):
                return page

            items.extend(page.items)
            sync_token = page.next_sync_token or sync_token

            if not page.next_page_token:
                return _Fetched(items=items, sync_token=sync_token)
            params["pageToken"] = page.next_page_token
