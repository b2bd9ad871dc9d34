"""
GoogleCalendar model - the local catalog of a user's Google calendars.

Provider fields (summary, time_zone) are refreshed from the calendar list.
Local fields (selected, sync_token, watch_*) survive every refresh.
"""

from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.database import Base


# Fields owned by the provider's calendar list
PROVIDER_FIELDS = ("summary", "time_zone")

# Fields owned locally; a catalog refresh must never clear them
LOCAL_FIELDS = (
    "selected",
    "sync_token",
    "watch_resource_id",
    "watch_channel_id",
    "watch_token",
    "watch_expires_at",
)


class GoogleCalendar(Base):
    """
    One external calendar for one user.

    Keyed by (user_id, gcal_id).
    """
    __tablename__ = "google_calendars"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    gcal_id = Column(String(255), nullable=False)

    # ============ PROVIDER FIELDS ============
    summary = Column(String(255))
    time_zone = Column(String(64))

    # ============ LOCAL SELECTION ============
    selected = Column(Boolean, nullable=False, default=True)

    # ============ SYNC STATE ============
    sync_token = Column(Text)  # opaque cursor, None => full window sync

    # ============ WATCH REGISTRATION ============
    watch_resource_id = Column(String(255))
    watch_channel_id = Column(String(255))
    watch_token = Column(String(255))  # verification token echoed by Google
    watch_expires_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "gcal_id", name="uq_google_calendars_user_gcal"),
        Index("ix_google_calendars_watch", "watch_resource_id", "watch_channel_id"),
    )

    def __repr__(self):
        return f"<GoogleCalendar(user_id={self.user_id}, gcal_id={self.gcal_id})>"

    def to_dict(self) -> dict:
        """Client-facing view (the watch token stays server side)."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "gcal_id": self.gcal_id,
            "summary": self.summary,
            "time_zone": self.time_zone,
            "selected": self.selected,
            "sync_token": self.sync_token,
            "watch_resource_id": self.watch_resource_id,
            "watch_channel_id": self.watch_channel_id,
            "watch_expires_at": self.watch_expires_at.isoformat() if self.watch_expires_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
