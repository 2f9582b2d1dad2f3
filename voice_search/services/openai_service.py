"""
OpenAI REST integration: ephemeral Realtime sessions and text embeddings.

The browser-side session must never hold the long-lived API key, so the server
mints a short-lived client secret that the WebRTC transport uses as its bearer
credential for the SDP exchange.
"""

import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from voice_search.config.constants import LOGGER_NAME, OPENAI_API_URL
from voice_search.config.settings import Settings
from voice_search.models.openai_schemas import RealtimeSessionResponse
from voice_search.services.exceptions import ProviderError

logger = logging.getLogger(LOGGER_NAME)

PROVIDER = "openai"


class OpenAIService:
    """Thin async client for the OpenAI endpoints used by the server."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self.settings.openai_api_key:
            raise ProviderError(PROVIDER, "OPENAI_API_KEY is not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=OPENAI_API_URL,
                headers={
                    "Authorization": f"Bearer {self.settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.http_timeout,
            )
        return self._client

    async def create_ephemeral_token(self) -> str:
        """
        Create a Realtime session and return its ephemeral client secret.

        Returns:
            str: The short-lived token value

        Raises:
            ProviderError: If the key is missing or OpenAI rejects the request
        """
        client = self._get_client()
        try:
            response = await client.post(
                "/realtime/sessions",
                json={
                    "model": self.settings.openai_realtime_model,
                    "voice": self.settings.openai_voice,
                },
            )
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"Failed to create session: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(PROVIDER, f"Failed to create session: {response.text}")

        try:
            session = RealtimeSessionResponse(**response.json())
        except (ValueError, ValidationError) as e:
            raise ProviderError(PROVIDER, f"Unexpected session response: {e}") from e

        logger.info("Created ephemeral OpenAI Realtime session")
        return session.client_secret.value

    async def create_embedding(self, text: str) -> List[float]:
        """
        Create an embedding vector for the given text.

        Args:
            text: Text to embed

        Returns:
            List[float]: The embedding vector
        """
        client = self._get_client()
        try:
            response = await client.post(
                "/embeddings",
                json={"model": self.settings.openai_embedding_model, "input": text},
            )
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"Failed to create embedding: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(PROVIDER, f"Failed to create embedding: {response.text}")

        try:
            return response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(PROVIDER, f"Unexpected embedding response: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
