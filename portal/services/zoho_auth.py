import logging
import time
from typing import Any, Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

# Refresh slightly before Zoho's stated expiry
TOKEN_EXPIRY_BUFFER_SECONDS = 10


class ZohoAuthError(Exception):
    """Raised when a Zoho OAuth token cannot be obtained"""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class ZohoAuth:
    """OAuth client shared by Zoho Sign, Billing and CRM calls"""

    def __init__(
        self,
        region: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ):
        self.region = region or config.ZOHO_REGION
        self.client_id = client_id or config.ZOHO_CLIENT_ID
        self.client_secret = client_secret or config.ZOHO_CLIENT_SECRET
        self.refresh_token = refresh_token or config.ZOHO_REFRESH_TOKEN
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def token_url(self) -> str:
        return f"https://accounts.zoho.{self.region}/oauth/v2/token"

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0

    async def get_access_token(self) -> str:
        """Return a cached access token, refreshing it when missing or about to expire"""
        if self._access_token and time.monotonic() < self._expires_at:
            return self._access_token

        if not self.is_available():
            raise ZohoAuthError("Zoho OAuth credentials are not configured")

        logger.info("🔄 Refreshing Zoho access token...")
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                },
            )
        data = safe_json(response)

        token = data.get("access_token")
        if response.status_code != 200 or not token:
            logger.error(f"❌ Zoho token refresh failed: HTTP {response.status_code} {data.get('error')}")
            raise ZohoAuthError("Failed to refresh Zoho access token", details=data)

        expires_in = int(data.get("expires_in") or 3600)
        self._access_token = token
        self._expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_BUFFER_SECONDS, 0)
        logger.info(f"✅ Zoho access token refreshed (expires in {expires_in}s)")
        return token

    async def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an authorization code for access + refresh tokens"""
        if not (self.client_id and self.client_secret):
            raise ZohoAuthError("Missing ZOHO_CLIENT_ID or ZOHO_CLIENT_SECRET in environment")

        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": redirect_uri,
                },
            )
        data = safe_json(response)

        # Zoho reports some failures with HTTP 200 and an "error" field
        if response.status_code != 200 or data.get("error") or not data.get("access_token"):
            logger.error(f"❌ Zoho code exchange failed: {data.get('error')}")
            raise ZohoAuthError(data.get("error") or "Zoho token exchange failed", details=data)
        return data


def safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}


zoho_auth = ZohoAuth()
