"""
Watch channel registration for Google Calendar push notifications.

Each channel gets a random id and a random verification token. Google
echoes the token back in X-Goog-Channel-Token on every notification, which
the webhook handler checks before queuing any work.
"""

import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.config import GoogleOAuthConfig
from app.models import GoogleCalendar
from app.services import store
from app.services.errors import ConfigurationError, NotFound, ProviderError
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager

logger = logging.getLogger(__name__)


def _expiration(value: Optional[str]) -> Optional[datetime]:
    """Google reports channel expiration in epoch milliseconds (as a string)."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class WatchManager:
    def __init__(
        self,
        db: Session,
        config: GoogleOAuthConfig,
        gateway: GoogleCalendarGateway,
        tokens: TokenManager
    ):
        self.db = db
        self.config = config
        self.gateway = gateway
        self.tokens = tokens

    def _calendar(self, user_id: str, gcal_id: str) -> GoogleCalendar:
        calendar = store.get_calendar(self.db, user_id, gcal_id)
        if calendar is None:
            raise NotFound(f"Calendar {gcal_id} not found")
        return calendar

    def start_watch(self, user_id: str, gcal_id: str) -> GoogleCalendar:
        """
        Register (or re-register) a push channel for one calendar.

        Important:
        - Channels expire (Google picks the TTL) and must be renewed
        - Any previous channel for the calendar is stopped first
        """
        if not self.config.webhook_url:
            raise ConfigurationError("GOOGLE_WEBHOOK_URL not configured")

        calendar = self._calendar(user_id, gcal_id)
        access_token = self.tokens.get_valid_access_token(user_id)

        self._stop_existing(access_token, calendar)

        channel_id = str(uuid.uuid4())
        verification_token = secrets.token_urlsafe(32)
        response = self.gateway.watch_events(
            access_token,
            gcal_id,
            channel_id=channel_id,
            address=self.config.webhook_url,
            token=verification_token
        )

        calendar = store.set_watch(
            self.db,
            calendar,
            channel_id=response.get("id", channel_id),
            resource_id=response.get("resourceId"),
            token=verification_token,
            expires_at=_expiration(response.get("expiration"))
        )
        logger.info("Watch registered for calendar %s (channel %s)", gcal_id, calendar.watch_channel_id)
        return calendar

    def stop_watch(self, user_id: str, gcal_id: str) -> GoogleCalendar:
        calendar = self._calendar(user_id, gcal_id)
        if calendar.watch_channel_id:
            access_token = self.tokens.get_valid_access_token(user_id)
            self._stop_existing(access_token, calendar)

        return store.set_watch(self.db, calendar, None, None, None, None)

    def _stop_existing(self, access_token: str, calendar: GoogleCalendar) -> None:
        if not (calendar.watch_channel_id and calendar.watch_resource_id):
            return
        try:
            self.gateway.stop_channel(access_token, calendar.watch_channel_id, calendar.watch_resource_id)
        except ProviderError as e:
            # Channel may have expired already
            logger.warning("Failed to stop watch channel %s: %s", calendar.watch_channel_id, e.message)
