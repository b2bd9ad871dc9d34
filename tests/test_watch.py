from dataclasses import replace
from datetime import datetime, timezone

import pytest

from app.services import store
from app.services.errors import ConfigurationError, NotFound, ProviderError
from app.services.tokens import TokenManager
from app.services.watch import WatchManager
from conftest import USER_ID


def _manager(db, config, gateway):
    return WatchManager(db, config, gateway, TokenManager(db, gateway))


@pytest.fixture(autouse=True)
def token(add_token):
    return add_token()


def test_start_watch_registers_channel_with_verification_token(db, config, gateway, add_calendar):
    add_calendar("primary", sync_token="tok-1")

    calendar = _manager(db, config, gateway).start_watch(USER_ID, "primary")

    request = gateway.watch_requests[0]
    assert request["calendar_id"] == "primary"
    assert request["address"] == config.webhook_url
    assert len(request["token"]) >= 32
    assert calendar.watch_channel_id == request["channel_id"]
    assert calendar.watch_resource_id == "resource-1"
    assert calendar.watch_token == request["token"]
    assert store.as_utc(calendar.watch_expires_at) == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert calendar.sync_token == "tok-1"


def test_each_watch_gets_fresh_identifiers(db, config, gateway, add_calendar):
    add_calendar("primary")
    manager = _manager(db, config, gateway)

    first = manager.start_watch(USER_ID, "primary")
    first_channel, first_resource = first.watch_channel_id, first.watch_resource_id
    manager.start_watch(USER_ID, "primary")

    assert gateway.watch_requests[0]["channel_id"] != gateway.watch_requests[1]["channel_id"]
    assert gateway.watch_requests[0]["token"] != gateway.watch_requests[1]["token"]
    # Old channel stopped before the new one is registered
    assert gateway.stopped == [(first_channel, first_resource)]


def test_start_watch_requires_webhook_url(db, config, gateway, add_calendar):
    add_calendar("primary")

    with pytest.raises(ConfigurationError):
        _manager(db, replace(config, webhook_url=None), gateway).start_watch(USER_ID, "primary")

    assert gateway.watch_requests == []


def test_start_watch_unknown_calendar(db, config, gateway):
    with pytest.raises(NotFound):
        _manager(db, config, gateway).start_watch(USER_ID, "missing")


def test_stop_watch_clears_registration(db, config, gateway, add_calendar):
    add_calendar("primary", watch_channel_id="chan-1", watch_resource_id="res-1", watch_token="t")

    calendar = _manager(db, config, gateway).stop_watch(USER_ID, "primary")

    assert gateway.stopped == [("chan-1", "res-1")]
    assert calendar.watch_channel_id is None
    assert calendar.watch_resource_id is None
    assert calendar.watch_token is None


def test_stop_watch_clears_even_if_google_fails(db, config, gateway, add_calendar):
    add_calendar("primary", watch_channel_id="chan-1", watch_resource_id="res-1")
    gateway.stop_error = ProviderError(404, "Channel 'chan-1' not found for project")

    calendar = _manager(db, config, gateway).stop_watch(USER_ID, "primary")

    assert calendar.watch_channel_id is None
