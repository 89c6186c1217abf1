"""OAuth client-credentials token handling for SAP AI Core."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from aicore_llm.errors import TransportError
from aicore_llm.types import ServiceKey

# Refresh this many seconds before the server-side expiry.
_EXPIRY_MARGIN_S = 60.0

logger = logging.getLogger(__name__)


class TokenProvider:
    """Fetches and caches a bearer token for one service key."""

    def __init__(self, client: httpx.AsyncClient, service_key: ServiceKey) -> None:
        self._client = client
        self._service_key = service_key
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def headers(self, resource_group: str) -> dict[str, str]:
        """Return request headers carrying a valid bearer token."""
        token = await self.token()
        return {
            "Authorization": f"Bearer {token}",
            "AI-Resource-Group": resource_group,
        }

    async def token(self) -> str:
        async with self._lock:
            if self._token is None or time.monotonic() >= self._expires_at:
                self._token, lifetime = await self._fetch()
                self._expires_at = time.monotonic() + max(lifetime - _EXPIRY_MARGIN_S, 0.0)
            return self._token

    def invalidate(self) -> None:
        self._token = None

    async def _fetch(self) -> tuple[str, float]:
        try:
            response = await self._client.post(
                self._service_key.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self._service_key.clientid, self._service_key.clientsecret),
            )
        except httpx.HTTPError as exc:
            raise TransportError("oauth", str(exc) or type(exc).__name__) from exc

        if response.status_code >= 400:
            raise TransportError(
                "oauth",
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as exc:
            raise TransportError("oauth", f"invalid token response: {exc}") from exc
        token = data.get("access_token")
        if not token:
            raise TransportError("oauth", "token response has no access_token")
        logger.debug("Fetched AI Core access token")
        return token, float(data.get("expires_in", 3600))
