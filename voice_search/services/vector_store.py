"""
Vector similarity search over the business catalogue.

The catalogue lives in a Supabase (PostgREST) database. Similarity matching is
done by the `match_business_embeddings` RPC, which returns business ids with a
cosine similarity score; full rows are then fetched from the `businesses` table.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from voice_search.config.constants import LOGGER_NAME
from voice_search.config.settings import Settings
from voice_search.models.search_schemas import BusinessResult, ResultSource
from voice_search.services.exceptions import ProviderError

logger = logging.getLogger(LOGGER_NAME)

PROVIDER = "supabase"
MATCH_FUNCTION = "match_business_embeddings"
BUSINESS_COLUMNS = "id,name,description,address,city,latitude,longitude,phone,website"


class VectorStore:
    """Async PostgREST client for the business embeddings store."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self.settings.supabase_url or not self.settings.supabase_service_key:
            raise ProviderError(PROVIDER, "SUPABASE_URL / SUPABASE_SERVICE_KEY are not configured")
        if self._client is None:
            key = self.settings.supabase_service_key
            self._client = httpx.AsyncClient(
                base_url=f"{self.settings.supabase_url.rstrip('/')}/rest/v1",
                headers={
                    "apikey": key,
                    "Authorization": f"Bearer {key}",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.http_timeout,
            )
        return self._client

    async def match_embeddings(self, embedding: List[float], limit: int) -> List[Dict[str, Any]]:
        """
        Find business ids whose embeddings are similar to the query embedding.

        Args:
            embedding: Query embedding vector
            limit: Maximum number of matches

        Returns:
            List of {"business_id", "similarity"} rows; empty on failure
        """
        try:
            client = self._get_client()
            response = await client.post(
                f"/rpc/{MATCH_FUNCTION}",
                json={
                    "query_embedding": embedding,
                    "match_threshold": self.settings.similarity_threshold,
                    "match_count": limit,
                },
            )
            response.raise_for_status()
            return response.json() or []
        except Exception as e:
            logger.error(f"Vector similarity search failed: {e}")
            return []

    async def get_business_details(self, business_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Fetch business rows by id.

        Args:
            business_ids: Ids returned by match_embeddings

        Returns:
            List of business rows; empty on failure
        """
        if not business_ids:
            return []

        id_filter = ",".join(str(business_id) for business_id in business_ids)
        try:
            client = self._get_client()
            response = await client.get(
                "/businesses",
                params={"select": BUSINESS_COLUMNS, "id": f"in.({id_filter})"},
            )
            response.raise_for_status()
            return response.json() or []
        except Exception as e:
            logger.error(f"Error fetching business details: {e}")
            return []

    async def search_businesses(self, embedding: List[float], limit: Optional[int] = None) -> List[BusinessResult]:
        """
        Combined search: similarity matches merged with their business details.

        Args:
            embedding: Query embedding vector
            limit: Maximum number of results (defaults to the configured match count)

        Returns:
            List[BusinessResult]: Matches ordered by descending similarity
        """
        matches = await self.match_embeddings(embedding, limit or self.settings.vector_match_count)
        if not matches:
            return []

        scores = {
            str(match.get("business_id")): match.get("similarity") or 0.0
            for match in matches
        }
        rows = await self.get_business_details(list(scores))

        results = []
        for row in rows:
            try:
                results.append(
                    BusinessResult(
                        **row,
                        source=ResultSource.VECTOR_STORE,
                        similarity=scores.get(str(row.get("id")), 0.0),
                    )
                )
            except Exception as e:
                logger.warning(f"Skipping malformed business row {row.get('id')}: {e}")

        results.sort(key=lambda result: result.similarity or 0.0, reverse=True)
        logger.debug(f"Vector store returned {len(results)} businesses")
        return results

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
