"""
Bridge between provider tool calls and the server's search endpoint.

When the realtime provider asks for `search_nearby_business`, the bridge resolves
the coordinate to search around, calls POST /api/search and packages the outcome
as a ToolResult. Only the narration text goes back to the provider so it speaks
one natural sentence; failures are returned as a structured failure payload so the
provider can apologize instead of waiting forever.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

from voice_search.client.api_client import ServerApiClient
from voice_search.config.constants import (
    LOGGER_NAME,
    REGION_CENTER_LATITUDE,
    REGION_CENTER_LONGITUDE,
    SEARCH_TOOL_NAME,
)
from voice_search.models.session_events import SessionEvent, ToolResult

logger = logging.getLogger(LOGGER_NAME)

Coordinate = Tuple[float, float]


def failure_output(error: str) -> str:
    return json.dumps({"success": False, "error": error})


def _coordinate(latitude: Any, longitude: Any) -> Optional[Coordinate]:
    if latitude is None or longitude is None:
        return None
    try:
        return float(latitude), float(longitude)
    except (TypeError, ValueError):
        return None


class ToolCallBridge:
    """Executes tool calls for one session, one at a time."""

    def __init__(
        self,
        api_client: ServerApiClient,
        default_location: Coordinate = (REGION_CENTER_LATITUDE, REGION_CENTER_LONGITUDE),
    ):
        self.api_client = api_client
        self.default_location = default_location
        self._lock = asyncio.Lock()

    def resolve_location(
        self, arguments: Dict[str, Any], user_location: Optional[Coordinate]
    ) -> Coordinate:
        """Explicit tool arguments, then the session's location, then the region center."""
        explicit = _coordinate(arguments.get("latitude"), arguments.get("longitude"))
        if explicit is not None:
            return explicit
        if user_location is not None:
            return user_location
        return self.default_location

    async def handle(self, event: SessionEvent, user_location: Optional[Coordinate] = None) -> ToolResult:
        """
        Execute a tool call request.

        Args:
            event: A TOOL_CALL_REQUEST event
            user_location: The session's most recent coordinate, if any

        Returns:
            ToolResult: Narration on success, failure payload otherwise
        """
        async with self._lock:
            return await self._execute(event, user_location)

    async def _execute(self, event: SessionEvent, user_location: Optional[Coordinate]) -> ToolResult:
        call_id = event.call_id or ""
        logger.info(f"Function call: {event.tool_name}")

        if event.tool_name != SEARCH_TOOL_NAME:
            logger.warning(f"Unsupported tool requested: {event.tool_name}")
            return ToolResult(
                call_id=call_id,
                success=False,
                output=failure_output(f"Unknown tool: {event.tool_name}"),
            )

        query = event.arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            return ToolResult(
                call_id=call_id,
                success=False,
                output=failure_output("Missing search query"),
            )

        latitude, longitude = self.resolve_location(event.arguments, user_location)
        logger.info(f"Executing search: {query} at {latitude}, {longitude}")
        try:
            response = await self.api_client.search(query.strip(), latitude, longitude)
        except Exception as e:
            logger.error(f"Error handling function call: {e}")
            return ToolResult(call_id=call_id, success=False, output=failure_output(str(e) or "Search failed"))

        logger.info(f"Search completed, found {len(response.results)} results")
        return ToolResult(
            call_id=call_id,
            success=True,
            output=response.voiceResponse,
            results=response.results,
        )
