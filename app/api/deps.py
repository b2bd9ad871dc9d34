"""
Shared FastAPI dependencies.

Caller identity comes from the X-User-ID header, which the portal's auth
gateway sets after validating the user's session. Config and the Google
gateway are injected here so tests can override them.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from app.config import GoogleOAuthConfig, load_google_config
from app.services.errors import Unauthorized
from app.services.google_client import GoogleCalendarGateway
from app.services.sync_queue import SyncQueue


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise Unauthorized()
    return x_user_id.strip()


def get_google_config() -> GoogleOAuthConfig:
    return load_google_config()


def get_gateway(config: GoogleOAuthConfig = Depends(get_google_config)) -> GoogleCalendarGateway:
    return GoogleCalendarGateway(config)


def get_sync_queue(request: Request) -> SyncQueue:
    return request.app.state.sync_queue
