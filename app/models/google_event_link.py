"""
GoogleEventLink model - maps local portal events to Google event ids.

The sync core only removes these rows (on disconnect); the event ingestion
side of the portal creates them.
"""

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.sql import func
from app.database import Base


class GoogleEventLink(Base):
    __tablename__ = "google_event_links"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    gcal_id = Column(String(255), nullable=False)
    google_event_id = Column(String(255), nullable=False)
    local_event_id = Column(String(64))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_event_links_user_event", "user_id", "google_event_id"),
    )

    def __repr__(self):
        return f"<GoogleEventLink(user_id={self.user_id}, google_event_id={self.google_event_id})>"
