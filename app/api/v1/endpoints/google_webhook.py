"""
Google Calendar Push Notification Webhook

Google calls this endpoint whenever a watched calendar changes.

Pipeline:
1. Validate X-Goog-Resource-ID / X-Goog-Channel-ID headers
2. Ignore the initial "sync" handshake
3. Match the channel to a stored calendar (and its verification token)
4. Queue a background sync and acknowledge immediately
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.api.deps import get_sync_queue
from app.database import get_db
from app.services.sync_queue import SyncQueue
from app.services.webhook import WebhookHandler

router = APIRouter(prefix="/google", tags=["Google Push"])


@router.post("/webhook", response_class=PlainTextResponse)
def google_webhook(
    request: Request,
    db: Session = Depends(get_db),
    sync_queue: SyncQueue = Depends(get_sync_queue)
):
    """
    Webhook endpoint for Google Calendar push notifications.

    No caller identity is available here; correlation is by watch channel.
    Returns "OK" for every structurally valid notification.
    """
    WebhookHandler(db, sync_queue).handle_notification(request.headers)
    return PlainTextResponse("OK")
