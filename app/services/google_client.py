"""
Google OAuth + Calendar API gateway.

All network calls to Google go through GoogleCalendarGateway:
- OAuth consent URL and authorization-code exchange (google_auth_oauthlib Flow)
- Refresh-token grant (google.oauth2 Credentials)
- Token revocation (requests)
- Calendar list, events list and watch channels (googleapiclient)

Library exceptions are translated here into the service error taxonomy.
A 410 Gone from events.list is not an error: it comes back as CursorExpired
so the sync engine can decide how to recover.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import httplib2
import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from app.config import GoogleOAuthConfig, SCOPES, TOKEN_URI, REVOKE_URI
from app.services.errors import ProviderError, RefreshFailed, TokenExchangeFailed

logger = logging.getLogger(__name__)

# Google may grant scopes in a different order or add previously granted ones
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

DEFAULT_EXPIRES_IN = 3600
MAX_RESULTS_PER_PAGE = 250


# ============ RESULT TYPES ============

@dataclass
class TokenGrant:
    """Result of a code exchange or refresh grant."""
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None


@dataclass
class EventsPage:
    """One page of events.list."""
    items: list[dict[str, Any]] = field(default_factory=list)
    next_page_token: Optional[str] = None
    next_sync_token: Optional[str] = None


@dataclass
class CursorExpired:
    """Google rejected the sync token (HTTP 410); a full sync is required."""
    message: str = "Sync token is no longer valid"


EventsFetchResult = Union[EventsPage, CursorExpired]


class _TimeoutRequest(GoogleRequest):
    """google-auth transport that applies a default timeout."""

    def __init__(self, timeout: float):
        super().__init__()
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url, method=method, body=body, headers=headers,
            timeout=timeout or self._timeout, **kwargs
        )


def _scope_to_str(scope: Any) -> Optional[str]:
    if scope is None:
        return None
    if isinstance(scope, (list, tuple)):
        return " ".join(scope)
    return str(scope)


def _http_error_message(e: HttpError) -> str:
    reason = getattr(e, "reason", None)
    return reason or str(e)


class GoogleCalendarGateway:
    """Thin, synchronous wrapper over the Google endpoints we use."""

    def __init__(self, config: GoogleOAuthConfig):
        self.config = config

    # ============ OAUTH ============

    def _flow(self) -> Flow:
        flow = Flow.from_client_config(
            self.config.client_config(),
            scopes=SCOPES,
            redirect_uri=self.config.redirect_uri
        )
        # Each request is stateless, so there is nowhere to keep a PKCE verifier
        flow.autogenerate_code_verifier = False
        flow.code_verifier = None
        return flow

    def authorization_url(self, state: str) -> str:
        """Build the consent screen URL."""
        flow = self._flow()
        auth_url, _ = flow.authorization_url(
            access_type="offline",  # Get refresh token
            prompt="consent",  # Force consent to get refresh token
            state=state
        )
        return auth_url

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair."""
        flow = self._flow()
        try:
            token = flow.fetch_token(code=code, timeout=self.config.http_timeout)
        except OAuth2Error as e:
            raise TokenExchangeFailed(e.description or e.error or "Failed to exchange code") from e
        except requests.RequestException as e:
            raise ProviderError(None, f"Token exchange request failed: {e}") from e

        expires_in = int(token.get("expires_in") or DEFAULT_EXPIRES_IN)
        return TokenGrant(
            access_token=token["access_token"],
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=token.get("refresh_token"),
            scope=_scope_to_str(token.get("scope")),
            token_type=token.get("token_type")
        )

    def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Run the refresh-token grant.

        Raises:
            RefreshFailed: Google rejected the refresh token
            ProviderError: The token endpoint could not be reached
        """
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scopes=SCOPES
        )
        try:
            creds.refresh(_TimeoutRequest(self.config.http_timeout))
        except RefreshError as e:
            raise RefreshFailed(f"Token refresh failed: {e}") from e
        except TransportError as e:
            raise ProviderError(None, f"Token refresh request failed: {e}") from e

        # google-auth reports expiry as naive UTC
        expiry = creds.expiry
        if expiry is None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=DEFAULT_EXPIRES_IN)
        else:
            expires_at = expiry.replace(tzinfo=timezone.utc)

        return TokenGrant(
            access_token=creds.token,
            expires_at=expires_at,
            refresh_token=creds.refresh_token
        )

    def revoke(self, token: str) -> None:
        try:
            response = requests.post(
                REVOKE_URI,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.http_timeout
            )
        except requests.RequestException as e:
            raise ProviderError(None, f"Token revoke request failed: {e}") from e

        if not response.ok:
            raise ProviderError(response.status_code, f"Token revoke failed: {response.text}")

    # ============ CALENDAR API ============

    def _service(self, access_token: str):
        creds = Credentials(token=access_token)
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=self.config.http_timeout))
        return build("calendar", "v3", http=http, cache_discovery=False)

    def _execute(self, request, action: str) -> dict:
        try:
            return request.execute()
        except HttpError as e:
            raise ProviderError(e.resp.status, _http_error_message(e)) from e
        except RefreshError as e:
            raise ProviderError(401, f"Google rejected the access token while trying to {action}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise ProviderError(None, f"Failed to {action}: {e}") from e

    def list_calendars(self, access_token: str) -> list[dict[str, Any]]:
        """Fetch every entry of the user's calendar list (all pages)."""
        service = self._service(access_token)
        items: list[dict[str, Any]] = []
        page_token = None

        while True:
            response = self._execute(
                service.calendarList().list(pageToken=page_token),
                "fetch calendars from Google"
            )
            items.extend(response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                return items

    def list_events(self, access_token: str, calendar_id: str, params: dict[str, Any]) -> EventsFetchResult:
        """
        Fetch one page of events.

        Returns:
            EventsPage on success, CursorExpired when the sync token is gone

        Raises:
            ProviderError: any other failure
        """
        service = self._service(access_token)
        request = service.events().list(
            calendarId=calendar_id,
            maxResults=MAX_RESULTS_PER_PAGE,
            **params
        )
        try:
            response = request.execute()
        except HttpError as e:
            if e.resp.status == 410:
                return CursorExpired(_http_error_message(e))
            raise ProviderError(e.resp.status, _http_error_message(e)) from e
        except RefreshError as e:
            raise ProviderError(401, "Google rejected the access token") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise ProviderError(None, f"Failed to fetch events: {e}") from e

        return EventsPage(
            items=response.get("items", []),
            next_page_token=response.get("nextPageToken"),
            next_sync_token=response.get("nextSyncToken")
        )

    def watch_events(
        self,
        access_token: str,
        calendar_id: str,
        channel_id: str,
        address: str,
        token: str
    ) -> dict[str, Any]:
        """Register a web_hook channel for event changes on a calendar."""
        service = self._service(access_token)
        body = {
            "id": channel_id,
            "type": "web_hook",
            "address": address,
            "token": token,
        }
        return self._execute(
            service.events().watch(calendarId=calendar_id, body=body),
            "register calendar watch"
        )

    def stop_channel(self, access_token: str, channel_id: str, resource_id: str) -> None:
        service = self._service(access_token)
        self._execute(
            service.channels().stop(body={"id": channel_id, "resourceId": resource_id}),
            "stop calendar watch"
        )
