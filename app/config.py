"""
Configuration for the Google Calendar integration.

Values come from the environment (optionally via a .env file) and are
collected once into a frozen GoogleOAuthConfig. Services receive the
config object at construction; nothing below the API layer reads os.environ.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_REDIRECT_URI = "http://localhost:3000/auth/callback"

SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"


@dataclass(frozen=True)
class GoogleOAuthConfig:
    """OAuth client settings plus provider call limits."""
    client_id: Optional[str]
    client_secret: Optional[str]
    redirect_uri: str = DEFAULT_REDIRECT_URI
    webhook_url: Optional[str] = None
    http_timeout: float = 30.0
    full_sync_window_days: int = 90

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id)

    def client_config(self) -> dict:
        """Client config in the shape google_auth_oauthlib expects."""
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@lru_cache
def load_google_config() -> GoogleOAuthConfig:
    """Build the config from environment variables (cached)."""
    return GoogleOAuthConfig(
        client_id=_blank_to_none(os.getenv("GOOGLE_CLIENT_ID")),
        client_secret=_blank_to_none(os.getenv("GOOGLE_CLIENT_SECRET")),
        redirect_uri=os.getenv("GOOGLE_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        webhook_url=_blank_to_none(os.getenv("GOOGLE_WEBHOOK_URL")),
        http_timeout=float(os.getenv("GOOGLE_HTTP_TIMEOUT", "30")),
    )


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
