"""
GoogleToken model - one OAuth token pair per portal user.

Written by the authorization flow (code exchange) and the token manager
(refresh). Deleted on disconnect.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from app.database import Base


class GoogleToken(Base):
    """
    OAuth credentials for a user's Google account.

    user_id is unique: at most one token record per user.
    """
    __tablename__ = "google_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    scope = Column(Text)
    token_type = Column(String(32))
    expires_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        # Never include token values
        return f"<GoogleToken(user_id={self.user_id}, expires_at={self.expires_at})>"
