"""
Calendar catalog: mirror the user's Google calendar list locally.

Upsert rule (merge_calendar):
- summary / time_zone always come from Google
- selected, sync_token and watch_* are local and never cleared by a refresh
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models import GoogleCalendar
from app.models.google_calendar import PROVIDER_FIELDS, LOCAL_FIELDS
from app.services import store
from app.services.errors import BadRequest, NotFound
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager

logger = logging.getLogger(__name__)


def calendar_fields(calendar: Optional[GoogleCalendar]) -> dict[str, Any]:
    """Snapshot of the mergeable fields of a stored calendar."""
    if calendar is None:
        return {}
    return {name: getattr(calendar, name) for name in PROVIDER_FIELDS + LOCAL_FIELDS}


def from_google(item: dict[str, Any]) -> dict[str, Any]:
    """Map a calendarList entry to provider fields."""
    return {
        "summary": item.get("summaryOverride") or item.get("summary"),
        "time_zone": item.get("timeZone"),
    }


def merge_calendar(existing: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """
    Merge an incoming provider record into an existing local one.

    Args:
        existing: Current local fields ({} for a calendar seen for the first time)
        incoming: Provider fields from the calendar list

    Returns:
        The full set of field values to store
    """
    merged = {name: incoming.get(name) for name in PROVIDER_FIELDS}

    for name in LOCAL_FIELDS:
        if name in existing:
            merged[name] = existing[name]

    if merged.get("selected") is None:
        merged["selected"] = True

    return merged


class CatalogSynchronizer:
    def __init__(self, db: Session, gateway: GoogleCalendarGateway, tokens: TokenManager):
        self.db = db
        self.gateway = gateway
        self.tokens = tokens

    def refresh_calendar_list(self, user_id: str) -> list[GoogleCalendar]:
        """
        Pull the calendar list from Google and upsert it locally.

        Returns:
            Every stored calendar for the user (old and new), with selection state
        """
        access_token = self.tokens.get_valid_access_token(user_id)
        items = self.gateway.list_calendars(access_token)

        for item in items:
            gcal_id = item.get("id")
            if not gcal_id:
                continue
            existing = calendar_fields(store.get_calendar(self.db, user_id, gcal_id))
            store.save_calendar(self.db, user_id, gcal_id, merge_calendar(existing, from_google(item)))

        logger.info("Refreshed %d Google calendars for user %s", len(items), user_id)
        return store.list_calendars(self.db, user_id)

    def list_calendars(self, user_id: str) -> list[GoogleCalendar]:
        return store.list_calendars(self.db, user_id)

    def set_selected(self, user_id: str, gcal_id: Optional[str], selected: bool) -> None:
        if not gcal_id:
            raise BadRequest("Missing gcal_id")
        if not store.set_selected(self.db, user_id, gcal_id, selected):
            raise NotFound(f"Calendar {gcal_id} not found")
