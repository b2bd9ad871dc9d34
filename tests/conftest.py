"""Shared fixtures: in-memory database, test config and a fake Google gateway."""

import os

# Must be set before app.database is imported
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import GoogleOAuthConfig
from app.database import Base
from app.models import GoogleToken, GoogleCalendar, GoogleEventLink
from app.services.errors import ProviderError
from app.services.google_client import TokenGrant

USER_ID = "user-123"


class FakeGateway:
    """Stands in for GoogleCalendarGateway; records every call."""

    def __init__(self):
        self.calendar_items = []
        self.event_results = []
        self.event_requests = []
        self.refresh_result = None
        self.refresh_error = None
        self.refresh_calls = []
        self.exchange_result = None
        self.exchange_error = None
        self.revoke_error = None
        self.revoked = []
        self.watch_response = None
        self.watch_requests = []
        self.stopped = []
        self.stop_error = None

    def authorization_url(self, state):
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"

    def exchange_code(self, code):
        if self.exchange_error:
            raise self.exchange_error
        return self.exchange_result

    def refresh(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.refresh_error:
            raise self.refresh_error
        return self.refresh_result

    def revoke(self, token):
        self.revoked.append(token)
        if self.revoke_error:
            raise self.revoke_error

    def list_calendars(self, access_token):
        return list(self.calendar_items)

    def list_events(self, access_token, calendar_id, params):
        self.event_requests.append((calendar_id, dict(params)))
        result = self.event_results.pop(0)
        if isinstance(result, ProviderError):
            raise result
        return result

    def watch_events(self, access_token, calendar_id, channel_id, address, token):
        self.watch_requests.append({
            "calendar_id": calendar_id,
            "channel_id": channel_id,
            "address": address,
            "token": token,
        })
        return self.watch_response or {
            "id": channel_id,
            "resourceId": "resource-1",
            "expiration": "1893456000000",
        }

    def stop_channel(self, access_token, channel_id, resource_id):
        self.stopped.append((channel_id, resource_id))
        if self.stop_error:
            raise self.stop_error


class RecordingQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, job):
        self.jobs.append(job)
        return True


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def config():
    return GoogleOAuthConfig(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/auth/callback",
        webhook_url="https://portal.example.com/api/v1/google/webhook",
        http_timeout=5.0
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def add_token(db):
    def _add(user_id=USER_ID, expires_in=timedelta(hours=1), access_token="ya29.current",
             refresh_token="1//refresh"):
        token = GoogleToken(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            scope="https://www.googleapis.com/auth/calendar.readonly",
            token_type="Bearer",
            expires_at=datetime.now(timezone.utc) + expires_in
        )
        db.add(token)
        db.commit()
        return token
    return _add


@pytest.fixture
def add_calendar(db):
    def _add(gcal_id="primary", user_id=USER_ID, **fields):
        calendar = GoogleCalendar(user_id=user_id, gcal_id=gcal_id, summary=fields.pop("summary", gcal_id), **fields)
        db.add(calendar)
        db.commit()
        return calendar
    return _add


@pytest.fixture
def add_event_link(db):
    def _add(google_event_id, user_id=USER_ID, gcal_id="primary"):
        link = GoogleEventLink(user_id=user_id, gcal_id=gcal_id, google_event_id=google_event_id)
        db.add(link)
        db.commit()
        return link
    return _add


@pytest.fixture
def grant():
    def _grant(access_token="ya29.new", expires_in=3600, refresh_token=None):
        return TokenGrant(
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=refresh_token,
            scope="https://www.googleapis.com/auth/calendar.readonly",
            token_type="Bearer"
        )
    return _grant
