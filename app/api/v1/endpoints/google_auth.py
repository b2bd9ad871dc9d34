"""
Google account connection endpoints.

Flow:
1. POST /google/connect -> returns the Google consent URL
2. Google redirects the browser to the portal with ?code=...
3. POST /google/callback {code} -> exchanges the code and stores tokens
4. GET /google/status -> refreshes token + calendar list, returns catalog
5. POST /google/disconnect -> revokes and deletes everything
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_gateway, get_google_config
from app.config import GoogleOAuthConfig
from app.database import get_db
from app.services.authorization import AuthorizationController
from app.services.catalog import CatalogSynchronizer
from app.services.errors import NoCredential, RefreshFailed
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager


# Request / Response Models
class ConnectResponse(BaseModel):
    """Consent screen URL for the frontend to redirect to."""
    authorization_url: str


class CallbackRequest(BaseModel):
    code: Optional[str] = None
    state: Optional[str] = None


class ConnectionResponse(BaseModel):
    connected: bool


class StatusResponse(BaseModel):
    """Connection state plus the user's calendar catalog."""
    connected: bool
    calendars: list[dict] = []
    message: Optional[str] = None


router = APIRouter(prefix="/google", tags=["Google Auth"])


@router.post("/connect", response_model=ConnectResponse)
def connect(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """Start OAuth flow - returns the Google consent URL."""
    controller = AuthorizationController(db, config, gateway)
    return ConnectResponse(authorization_url=controller.begin_authorization(user_id))


@router.post("/callback", response_model=ConnectionResponse)
def callback(
    payload: Optional[CallbackRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """
    OAuth callback - exchanges authorization code for tokens.

    Returns 400 when the code is missing or Google rejects it.
    """
    controller = AuthorizationController(db, config, gateway)
    controller.complete_authorization(user_id, payload.code if payload else None)
    return ConnectionResponse(connected=True)


@router.get("/status", response_model=StatusResponse)
def status(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """
    Check connection status.

    Side effects: refreshes an expired token and the calendar catalog.
    """
    tokens = TokenManager(db, gateway)
    catalog = CatalogSynchronizer(db, gateway, tokens)

    try:
        calendars = catalog.refresh_calendar_list(user_id)
    except NoCredential:
        return StatusResponse(connected=False, message="No Google connection found")
    except RefreshFailed:
        return StatusResponse(connected=False, message="Token refresh failed")

    return StatusResponse(connected=True, calendars=[c.to_dict() for c in calendars])


@router.post("/disconnect", response_model=ConnectionResponse)
def disconnect(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    config: GoogleOAuthConfig = Depends(get_google_config),
    gateway: GoogleCalendarGateway = Depends(get_gateway)
):
    """
    Delete stored Google data (logout).

    Succeeds even if Google could not revoke the token.
    """
    AuthorizationController(db, config, gateway).disconnect(user_id)
    return ConnectionResponse(connected=False)
