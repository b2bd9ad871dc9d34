"""HTTP-level tests for the /api/v1/google endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_gateway, get_google_config
from app.database import get_db
from app.models import GoogleCalendar, GoogleToken
from app.services import store
from app.services.errors import ProviderError, RefreshFailed, TokenExchangeFailed
from app.services.google_client import CursorExpired, EventsPage
from app.services.sync_queue import SyncJob
from conftest import USER_ID, RecordingQueue
from main import app

AUTH = {"X-User-ID": USER_ID}


@pytest.fixture
def sync_queue():
    return RecordingQueue()


@pytest.fixture
def client(db, config, gateway, sync_queue):
    def override_db():
        yield db

    original_queue = app.state.sync_queue
    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_google_config] = lambda: config
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.state.sync_queue = sync_queue
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.sync_queue = original_queue


def test_health_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize("method,path", [
    ("post", "/api/v1/google/connect"),
    ("post", "/api/v1/google/callback"),
    ("get", "/api/v1/google/status"),
    ("post", "/api/v1/google/disconnect"),
    ("post", "/api/v1/google/sync"),
    ("get", "/api/v1/google/calendars"),
])
def test_endpoints_require_caller_identity(client, method, path):
    response = getattr(client, method)(path)

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


# ============ CONNECT / CALLBACK ============

def test_connect_returns_authorization_url(client):
    response = client.post("/api/v1/google/connect", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["authorization_url"].endswith(f"state={USER_ID}")


def test_connect_without_client_id_is_500(client, config):
    from dataclasses import replace
    app.dependency_overrides[get_google_config] = lambda: replace(config, client_id=None)

    response = client.post("/api/v1/google/connect", headers=AUTH)

    assert response.status_code == 500
    assert response.json()["error"] == "Configuration"


def test_callback_missing_code(client):
    response = client.post("/api/v1/google/callback", headers=AUTH, json={})

    assert response.status_code == 400
    assert response.json() == {"error": "BadRequest", "message": "Missing authorization code"}


def test_callback_exchange_failure_passes_description(client, gateway):
    gateway.exchange_error = TokenExchangeFailed("Malformed auth code.")

    response = client.post("/api/v1/google/callback", headers=AUTH, json={"code": "bad"})

    assert response.status_code == 400
    assert response.json() == {"error": "TokenExchange", "message": "Malformed auth code."}


def test_callback_connects(client, db, gateway, grant):
    gateway.exchange_result = grant(refresh_token="1//r")

    response = client.post("/api/v1/google/callback", headers=AUTH, json={"code": "4/code", "state": USER_ID})

    assert response.status_code == 200
    assert response.json() == {"connected": True}
    assert store.get_token(db, USER_ID) is not None


# ============ STATUS ============

def test_status_without_connection(client):
    response = client.get("/api/v1/google/status", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["connected"] is False
    assert body["calendars"] == []


def test_status_with_rejected_refresh(client, gateway, add_token):
    add_token(expires_in=timedelta(hours=-1))
    gateway.refresh_error = RefreshFailed("invalid_grant")

    response = client.get("/api/v1/google/status", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["connected"] is False
    assert response.json()["message"] == "Token refresh failed"


def test_status_refreshes_catalog(client, gateway, add_token, add_calendar):
    add_token()
    add_calendar("primary", sync_token="tok-7", selected=False)
    gateway.calendar_items = [
        {"id": "primary", "summary": "Me", "timeZone": "UTC"},
        {"id": "team", "summary": "Team", "timeZone": "UTC"},
    ]

    response = client.get("/api/v1/google/status", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["connected"] is True
    calendars = {c["gcal_id"]: c for c in body["calendars"]}
    assert calendars["primary"]["sync_token"] == "tok-7"
    assert calendars["primary"]["selected"] is False
    assert calendars["team"]["selected"] is True
    assert "watch_token" not in calendars["primary"]


# ============ DISCONNECT ============

def test_disconnect_succeeds_when_revoke_fails(client, db, gateway, add_token, add_calendar):
    add_token()
    add_calendar("primary")
    gateway.revoke_error = ProviderError(None, "Connection reset")

    response = client.post("/api/v1/google/disconnect", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"connected": False}
    assert db.query(GoogleToken).count() == 0
    assert db.query(GoogleCalendar).count() == 0


# ============ SYNC ============

def test_sync_defaults_to_primary(client, gateway, add_token, add_calendar):
    add_token()
    add_calendar("primary")
    gateway.event_results = [EventsPage(items=[{"id": "a"}, {"id": "b"}], next_sync_token="tok-1")]

    response = client.post("/api/v1/google/sync", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"synced": True, "events_count": 2, "sync_token": "tok-1"}
    assert gateway.event_requests[0][0] == "primary"


def test_sync_specific_calendar(client, gateway, add_token, add_calendar):
    add_token()
    add_calendar("team", sync_token="tok-7")
    gateway.event_results = [CursorExpired(), EventsPage(items=[{"id": "a"}], next_sync_token="tok-8")]

    response = client.post("/api/v1/google/sync", headers=AUTH, json={"gcal_id": "team"})

    assert response.status_code == 200
    assert response.json() == {"synced": True, "events_count": 1, "sync_token": "tok-8"}


def test_sync_passes_provider_status_through(client, gateway, add_token):
    add_token()
    gateway.event_results = [ProviderError(403, "Calendar usage limits exceeded.")]

    response = client.post("/api/v1/google/sync", headers=AUTH, json={})

    assert response.status_code == 403
    assert response.json() == {"error": "GoogleAPI", "message": "Calendar usage limits exceeded."}


def test_sync_without_connection(client):
    response = client.post("/api/v1/google/sync", headers=AUTH)

    assert response.status_code == 401
    assert response.json()["error"] == "NoCredential"


# ============ CALENDARS ============

def test_list_and_select_calendars(client, add_calendar):
    add_calendar("primary")

    response = client.patch("/api/v1/google/calendars", headers=AUTH, json={"gcal_id": "primary", "selected": False})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = client.get("/api/v1/google/calendars", headers=AUTH)
    assert response.status_code == 200
    assert [c["selected"] for c in response.json()["calendars"]] == [False]


def test_select_requires_gcal_id(client):
    response = client.patch("/api/v1/google/calendars", headers=AUTH, json={"selected": True})

    assert response.status_code == 400
    assert response.json() == {"error": "BadRequest", "message": "Missing gcal_id"}


def test_watch_start_and_stop(client, gateway, add_token, add_calendar):
    add_token()
    add_calendar("primary")

    response = client.post("/api/v1/google/calendars/watch", headers=AUTH, json={})
    assert response.status_code == 200
    body = response.json()
    assert body["gcal_id"] == "primary"
    assert body["resource_id"] == "resource-1"
    assert body["channel_id"] == gateway.watch_requests[0]["channel_id"]

    response = client.delete("/api/v1/google/calendars/watch", headers=AUTH, params={"gcal_id": "primary"})
    assert response.status_code == 200
    assert gateway.stopped == [(body["channel_id"], "resource-1")]


# ============ WEBHOOK ============

def _webhook_headers(**overrides):
    headers = {
        "X-Goog-Resource-ID": "res-1",
        "X-Goog-Channel-ID": "chan-1",
        "X-Goog-Resource-State": "exists",
        "X-Goog-Channel-Token": "verify-me",
    }
    headers.update(overrides)
    return headers


@pytest.fixture
def watched(add_calendar):
    return add_calendar("primary", watch_resource_id="res-1", watch_channel_id="chan-1", watch_token="verify-me")


def test_webhook_needs_no_caller_identity(client, sync_queue, watched):
    response = client.post("/api/v1/google/webhook", headers=_webhook_headers())

    assert response.status_code == 200
    assert response.text == "OK"
    assert sync_queue.jobs == [SyncJob(USER_ID, "primary")]


def test_webhook_missing_headers(client, sync_queue):
    response = client.post("/api/v1/google/webhook", headers={"X-Goog-Resource-State": "exists"})

    assert response.status_code == 400
    assert response.json() == {"error": "BadRequest", "message": "Missing required headers"}
    assert sync_queue.jobs == []


def test_webhook_handshake(client, sync_queue, watched):
    response = client.post("/api/v1/google/webhook", headers=_webhook_headers(**{"X-Goog-Resource-State": "sync"}))

    assert response.status_code == 200
    assert sync_queue.jobs == []


def test_webhook_unknown_channel(client, sync_queue, watched):
    response = client.post("/api/v1/google/webhook", headers=_webhook_headers(**{"X-Goog-Channel-ID": "stale"}))

    assert response.status_code == 200
    assert sync_queue.jobs == []
