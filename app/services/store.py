"""
Database access layer for tokens, calendars and event links.

Plain read/write/upsert helpers over a SQLAlchemy session. No business
rules live here except the key constraints of each table:
- google_tokens: one row per user_id
- google_calendars: one row per (user_id, gcal_id)

Write failures are rolled back and raised as StoreError so callers never
continue with local state that disagrees with Google.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import GoogleToken, GoogleCalendar, GoogleEventLink
from app.services.errors import StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Store write failed (%s): %s", action, e)
        raise StoreError(f"Failed to {action}") from e


# ============ TOKEN OPERATIONS ============

def get_token(db: Session, user_id: str) -> Optional[GoogleToken]:
    return db.scalars(
        select(GoogleToken).where(GoogleToken.user_id == user_id)
    ).first()


def upsert_token(
    db: Session,
    user_id: str,
    access_token: str,
    expires_at: datetime,
    refresh_token: Optional[str] = None,
    scope: Optional[str] = None,
    token_type: Optional[str] = None
) -> GoogleToken:
    """
    Insert or replace the user's token record.

    A missing refresh_token keeps the stored one (Google only issues it
    on the first consent unless prompt=consent is used).
    """
    token = get_token(db, user_id)

    if token is None:
        token = GoogleToken(user_id=user_id)
        db.add(token)

    token.access_token = access_token
    token.expires_at = expires_at
    token.refresh_token = refresh_token or token.refresh_token
    token.scope = scope or token.scope
    token.token_type = token_type or token.token_type

    _commit(db, "save Google token")
    db.refresh(token)
    return token


def update_access_token(
    db: Session,
    user_id: str,
    access_token: str,
    expires_at: datetime,
    refresh_token: Optional[str] = None
) -> Optional[GoogleToken]:
    """Persist a refreshed access token. Returns None if the record vanished."""
    token = get_token(db, user_id)
    if token is None:
        return None

    token.access_token = access_token
    token.expires_at = expires_at
    if refresh_token:
        token.refresh_token = refresh_token

    _commit(db, "update Google token")
    db.refresh(token)
    return token


def delete_token(db: Session, user_id: str) -> int:
    result = db.execute(delete(GoogleToken).where(GoogleToken.user_id == user_id))
    _commit(db, "delete Google token")
    return result.rowcount


# ============ CALENDAR OPERATIONS ============

def get_calendar(db: Session, user_id: str, gcal_id: str) -> Optional[GoogleCalendar]:
    return db.scalars(
        select(GoogleCalendar).where(
            GoogleCalendar.user_id == user_id,
            GoogleCalendar.gcal_id == gcal_id
        )
    ).first()


def list_calendars(db: Session, user_id: str) -> list[GoogleCalendar]:
    return list(db.scalars(
        select(GoogleCalendar)
        .where(GoogleCalendar.user_id == user_id)
        .order_by(GoogleCalendar.id)
    ).all())


def save_calendar(db: Session, user_id: str, gcal_id: str, values: dict[str, Any]) -> GoogleCalendar:
    """
    Write a fully merged calendar record.

    The caller decides the final value of every field; this only handles
    insert-vs-update on the (user_id, gcal_id) key.
    """
    calendar = get_calendar(db, user_id, gcal_id)

    if calendar is None:
        calendar = GoogleCalendar(user_id=user_id, gcal_id=gcal_id)
        db.add(calendar)

    for field, value in values.items():
        setattr(calendar, field, value)

    _commit(db, "save calendar")
    db.refresh(calendar)
    return calendar


def set_sync_token(db: Session, user_id: str, gcal_id: str, sync_token: str) -> bool:
    """Store the new cursor. Last write wins. Returns False if no such calendar."""
    calendar = get_calendar(db, user_id, gcal_id)
    if calendar is None:
        return False

    calendar.sync_token = sync_token
    _commit(db, "store sync token")
    return True


def set_selected(db: Session, user_id: str, gcal_id: str, selected: bool) -> bool:
    calendar = get_calendar(db, user_id, gcal_id)
    if calendar is None:
        return False

    calendar.selected = selected
    _commit(db, "update calendar selection")
    return True


def set_watch(
    db: Session,
    calendar: GoogleCalendar,
    channel_id: Optional[str],
    resource_id: Optional[str],
    token: Optional[str],
    expires_at: Optional[datetime]
) -> GoogleCalendar:
    calendar.watch_channel_id = channel_id
    calendar.watch_resource_id = resource_id
    calendar.watch_token = token
    calendar.watch_expires_at = expires_at

    _commit(db, "update watch registration")
    db.refresh(calendar)
    return calendar


def find_calendar_by_watch(db: Session, resource_id: str, channel_id: str) -> Optional[GoogleCalendar]:
    return db.scalars(
        select(GoogleCalendar).where(
            GoogleCalendar.watch_resource_id == resource_id,
            GoogleCalendar.watch_channel_id == channel_id
        )
    ).first()


def delete_calendars(db: Session, user_id: str) -> int:
    result = db.execute(delete(GoogleCalendar).where(GoogleCalendar.user_id == user_id))
    _commit(db, "delete calendars")
    return result.rowcount


# ============ EVENT LINK OPERATIONS ============

def delete_event_links(db: Session, user_id: str) -> int:
    result = db.execute(delete(GoogleEventLink).where(GoogleEventLink.user_id == user_id))
    _commit(db, "delete event links")
    return result.rowcount
