"""
Google account connect / disconnect.

Flow:
1. begin_authorization -> consent URL (state = user id)
2. Google redirects the browser to the portal with ?code=...
3. complete_authorization exchanges the code and stores the token pair
4. disconnect revokes with Google (best effort) and purges local data
"""

import logging

from sqlalchemy.orm import Session

from app.config import GoogleOAuthConfig
from app.services import store
from app.services.errors import ConfigurationError, MissingCode, ProviderError
from app.services.google_client import GoogleCalendarGateway

logger = logging.getLogger(__name__)


class AuthorizationController:
    def __init__(self, db: Session, config: GoogleOAuthConfig, gateway: GoogleCalendarGateway):
        self.db = db
        self.config = config
        self.gateway = gateway

    def begin_authorization(self, user_id: str) -> str:
        if not self.config.is_configured:
            raise ConfigurationError()
        return self.gateway.authorization_url(state=user_id)

    def complete_authorization(self, user_id: str, code: str) -> None:
        if not code:
            raise MissingCode()
        if not self.config.is_configured:
            raise ConfigurationError()

        grant = self.gateway.exchange_code(code)
        store.upsert_token(
            self.db,
            user_id,
            access_token=grant.access_token,
            expires_at=grant.expires_at,
            refresh_token=grant.refresh_token,
            scope=grant.scope,
            token_type=grant.token_type
        )
        logger.info("Google account connected for user %s", user_id)

    def disconnect(self, user_id: str) -> None:
        """
        Revoke and purge everything stored for the user.

        Remote calls are best effort; local deletion always happens, child
        rows first so a partial failure never leaves a token that looks
        connected without its calendars.
        """
        token = store.get_token(self.db, user_id)

        if token is not None:
            self._stop_watches(user_id, token.access_token)
            try:
                self.gateway.revoke(token.access_token)
            except ProviderError as e:
                logger.warning("Token revoke failed for user %s: %s", user_id, e.message)

        calendars = store.delete_calendars(self.db, user_id)
        links = store.delete_event_links(self.db, user_id)
        store.delete_token(self.db, user_id)

        logger.info(
            "Google account disconnected for user %s (%d calendars, %d event links removed)",
            user_id, calendars, links
        )

    def _stop_watches(self, user_id: str, access_token: str) -> None:
        for calendar in store.list_calendars(self.db, user_id):
            if not (calendar.watch_channel_id and calendar.watch_resource_id):
                continue
            try:
                self.gateway.stop_channel(access_token, calendar.watch_channel_id, calendar.watch_resource_id)
            except ProviderError as e:
                logger.warning("Failed to stop watch for calendar %s: %s", calendar.gcal_id, e.message)
