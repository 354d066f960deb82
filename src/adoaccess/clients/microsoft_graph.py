"""httpx client for Microsoft Graph (the external directory)."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Optional

import httpx

from ..config import GraphConfig
from ..exceptions import ConfigurationError, GroupNotFoundError, TransportError
from ..interfaces import DirectoryApi
from ..logging import safe_preview

logger = logging.getLogger(__name__)

# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_MARGIN_S = 60.0


class MicrosoftGraphClient(DirectoryApi):
    """DirectoryApi backed by Microsoft Graph.

    Authenticates with the client credentials grant; the access token is
    cached until shortly before it expires.
    """

    def __init__(
        self,
        config: GraphConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _access_token(self) -> str:
        if not self._config.configured:
            raise ConfigurationError("Microsoft Graph credentials are not configured")
        async with self._token_lock:
            if self._token and time.monotonic() < self._expires_at:
                return self._token

            payload = {
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "scope": self._config.scope,
                "grant_type": "client_credentials",
            }
            try:
                response = await self._client.post(self._config.token_endpoint, data=payload)
            except httpx.HTTPError as e:
                raise TransportError(f"Token request failed: {e}") from e
            if response.is_error:
                raise TransportError(
                    f"Token request returned HTTP {response.status_code}: {safe_preview(response.text)}",
                    status_code=response.status_code,
                )
            body = response.json()
            token = body.get("access_token")
            if not isinstance(token, str) or not token.strip():
                raise TransportError("Token response did not contain an access token")

            expires_in = float(body.get("expires_in", 3600))
            self._token = token
            self._expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_S, 0.0)
            logger.debug("Acquired Microsoft Graph token (expires in %ss)", int(expires_in))
            return token

    async def _pages(self, url: str, params: Optional[dict[str, Any]] = None):
        """Yield the ``value`` items of each page, following ``@odata.nextLink``."""
        next_url: Optional[str] = url
        while next_url:
            token = await self._access_token()
            try:
                response = await self._client.get(
                    next_url,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                raise TransportError(f"GET {next_url} failed: {e}", url=next_url) from e
            if response.status_code == 404:
                raise GroupNotFoundError(f"Directory object behind '{url}' does not exist.", url=url)
            if response.is_error:
                raise TransportError(
                    f"GET {next_url} returned HTTP {response.status_code}: {safe_preview(response.text)}",
                    status_code=response.status_code,
                    url=next_url,
                )
            payload = response.json()
            for item in payload.get("value") or []:
                yield item
            # nextLink already carries the query
            next_url = payload.get("@odata.nextLink")
            params = None

    async def is_direct_member(self, group_origin_id: str, member_origin_id: str) -> bool:
        url = f"{self._config.base_url.rstrip('/')}/groups/{group_origin_id}/members"
        async with contextlib.aclosing(self._pages(url, params={"$select": "id"})) as members:
            async for member in members:
                if member.get("id") == member_origin_id:
                    return True
        return False


__all__ = ["MicrosoftGraphClient", "TOKEN_EXPIRY_MARGIN_S"]
