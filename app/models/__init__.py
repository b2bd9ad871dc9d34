"""
SQLAlchemy models for the Google Calendar sync service.

This package contains:
- GoogleToken: Per-user OAuth token pair
- GoogleCalendar: Per-user calendar catalog with sync cursor and watch state
- GoogleEventLink: Links between local events and Google events
"""

from app.models.google_token import GoogleToken
from app.models.google_calendar import GoogleCalendar
from app.models.google_event_link import GoogleEventLink

__all__ = ["GoogleToken", "GoogleCalendar", "GoogleEventLink"]
