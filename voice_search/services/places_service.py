"""
Google Places text search used as the fallback when the vector store has too
few matches. Results are restricted to the configured region.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from voice_search.config.constants import GOOGLE_PLACES_TEXT_SEARCH_URL, LOGGER_NAME
from voice_search.config.settings import Settings
from voice_search.models.search_schemas import BusinessResult, ResultSource

logger = logging.getLogger(LOGGER_NAME)

ACCEPTED_STATUSES = ("OK", "ZERO_RESULTS")
STATE_ZIP = re.compile(r"^[A-Z]{2}\s+\d{5}")
ZIP_SUFFIX = re.compile(r"\d{5}.*")


def extract_city(address: Optional[str], default: str = "Sacramento") -> str:
    """Pull the city out of a "Street, City, State ZIP, Country" address."""
    if not address:
        return default
    parts = [part.strip() for part in address.split(",")]
    for index, part in enumerate(parts[1:], start=1):
        if STATE_ZIP.match(part):
            return parts[index - 1] or default
    if len(parts) >= 2:
        city = ZIP_SUFFIX.sub("", parts[1]).strip()
        return city or default
    return default


class PlacesService:
    """Async client for the Places text search endpoint."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._client

    def search_center(self, latitude: float, longitude: float) -> Tuple[float, float]:
        """User coordinate if inside the region, otherwise the region center."""
        if self.settings.region.contains(latitude, longitude):
            return latitude, longitude
        logger.info(
            f"User location {latitude}, {longitude} is outside {self.settings.region.name}, "
            "searching from the region center"
        )
        return self.settings.region.center

    async def search_places(self, query: str, latitude: float, longitude: float) -> List[BusinessResult]:
        """
        Search for places matching the query near the user.

        Args:
            query: Search query
            latitude: User latitude
            longitude: User longitude

        Returns:
            List[BusinessResult]: In-region places; empty on any failure
        """
        if not self.settings.google_places_api_key:
            logger.warning("GOOGLE_PLACES_API_KEY is not configured, skipping places fallback")
            return []

        center_lat, center_lng = self.search_center(latitude, longitude)
        try:
            client = self._get_client()
            response = await client.get(
                GOOGLE_PLACES_TEXT_SEARCH_URL,
                params={
                    "query": query,
                    "location": f"{center_lat},{center_lng}",
                    "radius": self.settings.places_radius_meters,
                    "key": self.settings.google_places_api_key,
                },
            )
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            logger.error(f"Error in places search: {e}")
            return []

        status = data.get("status")
        if status not in ACCEPTED_STATUSES:
            logger.error(f"Google Places API error: {status}")
            return []

        in_region = [
            place for place in data.get("results", []) if self._in_region(place)
        ]
        results = []
        for place in in_region[: self.settings.max_results]:
            result = self._to_result(place)
            if result is not None:
                results.append(result)
        logger.info(f"Places fallback returned {len(results)} in-region results")
        return results

    def _in_region(self, place: Dict[str, Any]) -> bool:
        try:
            location = place["geometry"]["location"]
            return self.settings.region.contains(float(location["lat"]), float(location["lng"]))
        except (KeyError, TypeError, ValueError):
            return False

    def _to_result(self, place: Dict[str, Any]) -> Optional[BusinessResult]:
        location = place["geometry"]["location"]
        address = place.get("formatted_address") or ""
        try:
            return BusinessResult(
                id=place["place_id"],
                name=place["name"],
                description=", ".join(place.get("types") or []),
                address=address,
                city=extract_city(address),
                latitude=location["lat"],
                longitude=location["lng"],
                phone=place.get("formatted_phone_number"),
                website=place.get("website"),
                source=ResultSource.PLACES_FALLBACK,
            )
        except Exception as e:
            logger.warning(f"Skipping malformed place {place.get('place_id')}: {e}")
            return None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
