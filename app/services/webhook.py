"""
Google Calendar push notification handling.

Google sends a POST with X-Goog-* headers whenever a watched calendar
changes. The handler only correlates the notification with a stored
watch registration and queues a sync; it never syncs inline.
"""

import hmac
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from app.services import store
from app.services.errors import BadRequest
from app.services.sync_queue import SyncJob, SyncQueue

logger = logging.getLogger(__name__)

RESOURCE_ID_HEADER = "X-Goog-Resource-ID"
CHANNEL_ID_HEADER = "X-Goog-Channel-ID"
RESOURCE_STATE_HEADER = "X-Goog-Resource-State"
CHANNEL_TOKEN_HEADER = "X-Goog-Channel-Token"


class WebhookOutcome(str, Enum):
    """What the handler did with a notification (always acknowledged)."""
    HANDSHAKE = "handshake"
    UNKNOWN_CHANNEL = "unknown_channel"
    TOKEN_MISMATCH = "token_mismatch"
    QUEUED = "queued"
    ALREADY_QUEUED = "already_queued"


@dataclass
class WebhookNotification:
    resource_id: str
    channel_id: str
    resource_state: Optional[str] = None
    channel_token: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "WebhookNotification":
        """
        Parse the Google headers.

        Raises:
            BadRequest: resource id or channel id header missing
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        resource_id = lowered.get(RESOURCE_ID_HEADER.lower())
        channel_id = lowered.get(CHANNEL_ID_HEADER.lower())

        if not resource_id or not channel_id:
            raise BadRequest("Missing required headers")

        return cls(
            resource_id=resource_id,
            channel_id=channel_id,
            resource_state=lowered.get(RESOURCE_STATE_HEADER.lower()),
            channel_token=lowered.get(CHANNEL_TOKEN_HEADER.lower())
        )


class WebhookHandler:
    def __init__(self, db: Session, sync_queue: SyncQueue):
        self.db = db
        self.sync_queue = sync_queue

    def handle_notification(self, headers: Mapping[str, str]) -> WebhookOutcome:
        notification = WebhookNotification.from_headers(headers)
        logger.info(
            "Webhook received: resource=%s channel=%s state=%s",
            notification.resource_id, notification.channel_id, notification.resource_state
        )

        # First message after a watch is created
        if notification.resource_state == "sync":
            return WebhookOutcome.HANDSHAKE

        calendar = store.find_calendar_by_watch(self.db, notification.resource_id, notification.channel_id)
        if calendar is None:
            # Google can keep delivering for a channel we already dropped
            logger.info("Calendar not found for watch channel %s", notification.channel_id)
            return WebhookOutcome.UNKNOWN_CHANNEL

        if calendar.watch_token and not hmac.compare_digest(
            calendar.watch_token, notification.channel_token or ""
        ):
            logger.warning("Channel token mismatch for watch channel %s", notification.channel_id)
            return WebhookOutcome.TOKEN_MISMATCH

        queued = self.sync_queue.enqueue(SyncJob(user_id=calendar.user_id, gcal_id=calendar.gcal_id))
        logger.info("Sync %s for calendar %s", "queued" if queued else "already pending", calendar.gcal_id)
        return WebhookOutcome.QUEUED if queued else WebhookOutcome.ALREADY_QUEUED
