"""
ElevenLabs Conversational AI integration.

Provides the signed WebSocket URL used by the socket transport, plus the agent
provisioning calls used by the configure_agent.py script to create or update the
agent and register the business search webhook tool.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from voice_search.config.constants import (
    ELEVENLABS_API_URL,
    LOGGER_NAME,
    SEARCH_TOOL_NAME,
)
from voice_search.config.settings import Settings
from voice_search.models.elevenlabs_schemas import AgentSettings, SignedUrlPayload
from voice_search.models.openai_schemas import SEARCH_QUERY_DESCRIPTION, SEARCH_TOOL_DESCRIPTION
from voice_search.services.exceptions import ProviderError

logger = logging.getLogger(LOGGER_NAME)

PROVIDER = "elevenlabs"
DEFAULT_AGENT_NAME = "Business Finder"


class ElevenLabsService:
    """Async client for the ElevenLabs endpoints used by the server and setup script."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self.settings.elevenlabs_api_key:
            raise ProviderError(PROVIDER, "ELEVENLABS_API_KEY is not configured")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=ELEVENLABS_API_URL,
                headers={
                    "xi-api-key": self.settings.elevenlabs_api_key,
                    "Content-Type": "application/json",
                },
                timeout=self.settings.http_timeout,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"{method} {path} failed: {e}") from e
        if response.status_code >= 400:
            raise ProviderError(PROVIDER, f"{method} {path} failed: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(PROVIDER, f"{method} {path} returned invalid JSON") from e

    async def get_signed_url(self) -> str:
        """
        Get a signed URL for a Conversational AI WebSocket connection.

        Returns:
            str: The signed wss:// URL
        """
        agent_id = self.settings.elevenlabs_agent_id
        if not agent_id:
            raise ProviderError(PROVIDER, "ELEVENLABS_AGENT_ID is not configured")

        data = await self._request(
            "GET",
            "/v1/convai/conversation/get_signed_url",
            params={"agent_id": agent_id},
        )
        try:
            payload = SignedUrlPayload(**data)
        except ValidationError as e:
            raise ProviderError(PROVIDER, f"Unexpected signed URL response: {e}") from e

        logger.info("Obtained ElevenLabs signed URL")
        return payload.signed_url

    async def configure_agent(self, agent: AgentSettings) -> Dict[str, Any]:
        """
        Update the configured agent, or create one if no agent id is set.

        Args:
            agent: Prompt, greeting, language and voice to apply

        Returns:
            Dict[str, Any]: The agent as returned by ElevenLabs
        """
        config = agent.to_conversation_config()
        agent_id = self.settings.elevenlabs_agent_id

        if agent_id:
            logger.info(f"Updating ElevenLabs agent {agent_id}")
            return await self._request("PATCH", f"/v1/convai/agents/{agent_id}", json=config)

        logger.info("Creating new ElevenLabs agent")
        data = await self._request(
            "POST",
            "/v1/convai/agents",
            json={"name": DEFAULT_AGENT_NAME, **config},
        )
        logger.info(f"Created ElevenLabs agent with ID: {data.get('agent_id')}")
        return data

    async def add_search_tool(self, webhook_url: str) -> Dict[str, Any]:
        """
        Register the business search webhook tool on the configured agent.

        Args:
            webhook_url: Public URL of this server's /api/search endpoint

        Returns:
            Dict[str, Any]: The tool as returned by ElevenLabs
        """
        agent_id = self.settings.elevenlabs_agent_id
        if not agent_id:
            raise ProviderError(PROVIDER, "ELEVENLABS_AGENT_ID is not configured")

        tool_config = {
            "type": "webhook",
            "name": SEARCH_TOOL_NAME,
            "description": SEARCH_TOOL_DESCRIPTION,
            "url": webhook_url,
            "method": "POST",
            "parameters": {
                "query": {
                    "type": "string",
                    "description": SEARCH_QUERY_DESCRIPTION,
                    "required": True,
                },
                "latitude": {
                    "type": "number",
                    "description": "User latitude coordinate",
                    "required": False,
                },
                "longitude": {
                    "type": "number",
                    "description": "User longitude coordinate",
                    "required": False,
                },
            },
        }
        logger.info(f"Registering {SEARCH_TOOL_NAME} tool -> {webhook_url}")
        return await self._request("POST", f"/v1/convai/agents/{agent_id}/tools", json=tool_config)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
