"""
Business search pipeline.

Given a free-text query and the user's coordinate, the orchestrator:
1. embeds the query,
2. runs a vector similarity search over the business catalogue,
3. falls back to a region-restricted Places search when too few matches are found,
4. merges (catalogue matches first) and caps the result list,
5. builds a one-sentence narration about the top result for the voice assistant.

The pipeline never raises to its caller: any internal failure produces an empty
result list and an apologetic narration.
"""

import logging
from typing import List

from voice_search.config.constants import LOGGER_NAME
from voice_search.config.settings import Settings
from voice_search.models.search_schemas import BusinessResult, SearchResponse
from voice_search.services.openai_service import OpenAIService
from voice_search.services.places_service import PlacesService
from voice_search.services.vector_store import VectorStore

logger = logging.getLogger(LOGGER_NAME)


def extract_street_address(full_address: str) -> str:
    """Street part of an address: everything before the first comma."""
    if not full_address:
        return ""
    return full_address.split(",")[0].strip()


def no_results_response(query: str, region_name: str) -> str:
    return (
        f"I couldn't find any results for {query} in {region_name}. "
        "Could you try a different search term?"
    )


def error_response(query: str) -> str:
    return f"I'm sorry, I encountered an error while searching for {query}. Please try again."


def build_voice_response(results: List[BusinessResult], query: str, region_name: str) -> str:
    """
    Narrate only the first result: name, description, street address.

    Args:
        results: Final ordered result list
        query: The user's query
        region_name: Region mentioned in the no-results message

    Returns:
        str: A single sentence for speech synthesis
    """
    if not results:
        return no_results_response(query, region_name)

    first = results[0]
    parts = [first.name]
    if first.description:
        parts.append(first.description)
    street = extract_street_address(first.address or "")
    if street:
        parts.append(f"located at {street}")
    return f"The best match for {query} is " + ", ".join(parts) + "."


class SearchOrchestrator:
    """Runs the embed -> vector search -> fallback -> narration pipeline."""

    def __init__(
        self,
        settings: Settings,
        openai_service: OpenAIService,
        vector_store: VectorStore,
        places_service: PlacesService,
    ):
        self.settings = settings
        self.openai_service = openai_service
        self.vector_store = vector_store
        self.places_service = places_service

    async def search(self, query: str, latitude: float, longitude: float) -> SearchResponse:
        """
        Search for businesses near a coordinate.

        Args:
            query: Free text search query
            latitude: User latitude
            longitude: User longitude

        Returns:
            SearchResponse: Up to max_results results and the narration
        """
        logger.info(f"Searching for: \"{query}\" at {latitude}, {longitude}")
        try:
            embedding = await self.openai_service.create_embedding(query)

            results = await self.vector_store.search_businesses(
                embedding, self.settings.vector_match_count
            )
            logger.info(f"Vector store found {len(results)} results")

            if len(results) < self.settings.fallback_min_results:
                logger.info("Insufficient vector store results, searching places fallback")
                fallback = await self.places_service.search_places(query, latitude, longitude)
                results = results + fallback
                logger.info(f"Total results after places fallback: {len(results)}")

            results = results[: self.settings.max_results]
            return SearchResponse(
                results=results,
                voiceResponse=build_voice_response(results, query, self.settings.region.name),
            )
        except Exception as e:
            logger.error(f"Error in search pipeline: {e}", exc_info=True)
            return SearchResponse(results=[], voiceResponse=error_response(query))

    async def close(self) -> None:
        await self.openai_service.close()
        await self.vector_store.close()
        await self.places_service.close()
