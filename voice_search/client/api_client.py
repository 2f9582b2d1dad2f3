"""
HTTP client for the voice search server.

Used by the transports to obtain provider credentials and by the tool-call bridge
to run business searches. Every call carries a bounded timeout so a slow server
cannot block a provider that is waiting for a tool result.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from voice_search.client.errors import CredentialError
from voice_search.config.constants import LOGGER_NAME
from voice_search.models.search_schemas import (
    SearchResponse,
    SessionTokenResponse,
    SignedUrlResponse,
)

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_SERVER_URL = "http://localhost:3001"
DEFAULT_TIMEOUT = 10.0


class ServerApiClient:
    """Async client for the /api endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def _post_for_credential(self, path: str) -> Dict[str, Any]:
        try:
            response = await self._get_client().post(path)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise CredentialError(f"Server rejected credential request ({e.response.status_code})") from e
        except (httpx.HTTPError, ValueError) as e:
            raise CredentialError(f"Could not reach the server: {e}") from e

    async def fetch_session_token(self) -> str:
        """
        Obtain an ephemeral OpenAI Realtime token.

        Returns:
            str: Bearer token for the WebRTC SDP exchange
        """
        data = await self._post_for_credential("/api/session")
        try:
            return SessionTokenResponse(**data).client_secret.value
        except (TypeError, ValidationError) as e:
            raise CredentialError("Server returned an invalid session token") from e

    async def fetch_signed_url(self) -> str:
        """
        Obtain a signed ElevenLabs WebSocket URL.

        Returns:
            str: The wss:// URL to open
        """
        data = await self._post_for_credential("/api/elevenlabs/session")
        try:
            return SignedUrlResponse(**data).signed_url
        except (TypeError, ValidationError) as e:
            raise CredentialError("Server returned an invalid signed URL") from e

    async def search(self, query: str, latitude: float, longitude: float) -> SearchResponse:
        """
        Run a business search.

        Raises:
            httpx.HTTPError: On transport failures, timeouts or non-2xx responses
            ValidationError: If the response body does not match SearchResponse
        """
        response = await self._get_client().post(
            "/api/search",
            json={"query": query, "latitude": latitude, "longitude": longitude},
        )
        response.raise_for_status()
        return SearchResponse(**response.json())

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
