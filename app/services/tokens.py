"""
Access token lifecycle: read, refresh when expired, persist.

Concurrent callers for the same user may both refresh; the last write
wins. A rejected refresh grant is final (RefreshFailed) and callers must
send the user back through the consent flow instead of retrying.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.services import store
from app.services.errors import NoCredential, RefreshFailed, StoreError
from app.services.google_client import GoogleCalendarGateway

logger = logging.getLogger(__name__)


class TokenManager:
    def __init__(self, db: Session, gateway: GoogleCalendarGateway):
        self.db = db
        self.gateway = gateway

    def get_valid_access_token(self, user_id: str) -> str:
        """
        Return a currently valid access token for the user.

        Raises:
            NoCredential: the user never connected Google
            RefreshFailed: Google rejected the refresh token
            ProviderError: the token endpoint could not be reached
            StoreError: the refreshed token could not be saved
        """
        token = store.get_token(self.db, user_id)
        if token is None:
            raise NoCredential()

        if store.as_utc(token.expires_at) > store.utcnow():
            return token.access_token

        return self._refresh(user_id, token.refresh_token)

    def _refresh(self, user_id: str, refresh_token: Optional[str]) -> str:
        if not refresh_token:
            raise RefreshFailed("No refresh token stored. Please reconnect your Google account.")

        logger.info("Refreshing expired Google token for user %s", user_id)
        grant = self.gateway.refresh(refresh_token)

        # Only a rotated refresh token replaces the stored one
        rotated = grant.refresh_token if grant.refresh_token != refresh_token else None
        saved = store.update_access_token(
            self.db,
            user_id,
            access_token=grant.access_token,
            expires_at=grant.expires_at,
            refresh_token=rotated
        )
        if saved is None:
            # Disconnected while we were refreshing
            raise StoreError("Google token disappeared during refresh")

        return grant.access_token
