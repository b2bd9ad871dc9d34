"""
Calendar catalog and watch management endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_gateway, get_google_config
from app.config import GoogleOAuthConfig
from app.database import get_db
from app.services.catalog import CatalogSynchronizer
from app.services.event_sync import DEFAULT_CALENDAR_ID
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager
from app.services.watch import WatchManager


class CalendarsResponse(BaseModel):
    calendars: list[dict]


class SelectionRequest(BaseModel):
    gcal_id: Optional[str] = None
    selected: bool = True


class WatchRequest(BaseModel):
    gcal_id: str = DEFAULT_CALENDAR_ID


class WatchResponse(BaseModel):
    gcal_id: str
    channel_id: Optional[str]
    resource_id: Optional[str]
    expires_at: Optional[str]


class SuccessResponse(BaseModel):
    success: bool


router = APIRouter(prefix="/google/calendars", tags=["Google Calendars"])


@router.get("", response_model=CalendarsResponse)
def list_calendars(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """Stored calendars with selection state (no Google call)."""
    catalog = CatalogSynchronizer(db, gateway, TokenManager(db, gateway))
    return CalendarsResponse(calendars=[c.to_dict() for c in catalog.list_calendars(user_id)])


@router.patch("", response_model=SuccessResponse)
def update_selection(
    payload: SelectionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """Select or deselect a calendar for display in the portal."""
    catalog = CatalogSynchronizer(db, gateway, TokenManager(db, gateway))
    catalog.set_selected(user_id, payload.gcal_id, payload.selected)
    return SuccessResponse(success=True)


@router.post("/watch", response_model=WatchResponse)
def start_watch(
    payload: WatchRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """
    Register Google push notifications for a calendar.

    Prerequisites:
    1. GOOGLE_WEBHOOK_URL points at /api/v1/google/webhook over HTTPS
    2. The domain is verified for the Google Cloud project
    """
    manager = WatchManager(db, config, gateway, TokenManager(db, gateway))
    calendar = manager.start_watch(user_id, payload.gcal_id)
    return WatchResponse(
        gcal_id=calendar.gcal_id,
        channel_id=calendar.watch_channel_id,
        resource_id=calendar.watch_resource_id,
        expires_at=calendar.watch_expires_at.isoformat() if calendar.watch_expires_at else None
    )


@router.delete("/watch", response_model=SuccessResponse)
def stop_watch(
    gcal_id: str = Query(DEFAULT_CALENDAR_ID, description="Google calendar id"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """Stop push notifications for a calendar."""
    WatchManager(db, config, gateway, TokenManager(db, gateway)).stop_watch(user_id, gcal_id)
    return SuccessResponse(success=True)
