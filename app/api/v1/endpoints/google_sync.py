"""
Manual calendar sync endpoint.

The portal calls this on demand; webhook-triggered syncs run the same
engine from the background worker.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_gateway, get_google_config
from app.config import GoogleOAuthConfig
from app.database import get_db
from app.services.event_sync import EventSyncEngine, DEFAULT_CALENDAR_ID
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager


class SyncRequest(BaseModel):
    gcal_id: Optional[str] = None


class SyncResponse(BaseModel):
    synced: bool
    events_count: int
    sync_token: Optional[str]


router = APIRouter(prefix="/google", tags=["Google Sync"])


@router.post("/sync", response_model=SyncResponse)
def sync(
    payload: Optional[SyncRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """
    Sync events for one calendar (default "primary").

    Uses the stored sync token for an incremental sync, or a +/- 90 day
    window when there is none. Google errors pass through with their status.
    """
    gcal_id = (payload.gcal_id if payload else None) or DEFAULT_CALENDAR_ID
    engine = EventSyncEngine(
        db,
        gateway,
        TokenManager(db, gateway),
        window_days=config.full_sync_window_days
    )
    return engine.sync_calendar(user_id, gcal_id).to_response()
