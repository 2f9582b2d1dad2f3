"""
Unit tests for the business search pipeline and its narration.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from voice_search.models.search_schemas import ResultSource
from voice_search.services.exceptions import ProviderError
from voice_search.services.search_orchestrator import (
    SearchOrchestrator,
    build_voice_response,
    extract_street_address,
)


@pytest.fixture
def openai_service():
    service = MagicMock()
    service.create_embedding = AsyncMock(return_value=[0.1, 0.2, 0.3])
    service.close = AsyncMock()
    return service


@pytest.fixture
def vector_store():
    store = MagicMock()
    store.search_businesses = AsyncMock(return_value=[])
    store.close = AsyncMock()
    return store


@pytest.fixture
def places_service():
    places = MagicMock()
    places.search_places = AsyncMock(return_value=[])
    places.close = AsyncMock()
    return places


@pytest.fixture
def orchestrator(settings, openai_service, vector_store, places_service):
    return SearchOrchestrator(settings, openai_service, vector_store, places_service)


@pytest.mark.asyncio
async def test_enough_vector_results_skip_fallback(orchestrator, vector_store, places_service, business_factory):
    vector_store.search_businesses.return_value = [business_factory(i) for i in range(5)]

    response = await orchestrator.search("coffee", 38.58, -121.49)

    assert len(response.results) == 5
    assert all(r.source == ResultSource.VECTOR_STORE for r in response.results)
    places_service.search_places.assert_not_awaited()
    vector_store.search_businesses.assert_awaited_once_with([0.1, 0.2, 0.3], 5)


@pytest.mark.asyncio
async def test_three_vector_results_skip_fallback(orchestrator, vector_store, places_service, business_factory):
    vector_store.search_businesses.return_value = [business_factory(i) for i in range(3)]

    response = await orchestrator.search("coffee", 38.58, -121.49)

    assert len(response.results) == 3
    places_service.search_places.assert_not_awaited()


@pytest.mark.asyncio
async def test_few_vector_results_trigger_fallback_and_cap(
    orchestrator, vector_store, places_service, business_factory
):
    vector_store.search_businesses.return_value = [business_factory(1)]
    places_service.search_places.return_value = [
        business_factory(10 + i, source=ResultSource.PLACES_FALLBACK) for i in range(6)
    ]

    response = await orchestrator.search("coffee", 38.58, -121.49)

    places_service.search_places.assert_awaited_once_with("coffee", 38.58, -121.49)
    assert len(response.results) == 5
    assert response.results[0].source == ResultSource.VECTOR_STORE
    assert response.results[0].name == "Business 1"
    assert all(r.source == ResultSource.PLACES_FALLBACK for r in response.results[1:])


@pytest.mark.asyncio
async def test_zero_results_narration(orchestrator):
    response = await orchestrator.search("unicorn stable", 38.58, -121.49)

    assert response.results == []
    assert response.voiceResponse == (
        "I couldn't find any results for unicorn stable in Sacramento County. "
        "Could you try a different search term?"
    )


@pytest.mark.asyncio
async def test_narration_mentions_only_first_result(orchestrator, vector_store, business_factory):
    vector_store.search_businesses.return_value = [business_factory(i) for i in range(1, 4)]

    response = await orchestrator.search("coffee", 38.58, -121.49)

    assert "Business 1" in response.voiceResponse
    assert "Business 2" not in response.voiceResponse
    assert "Business 3" not in response.voiceResponse


@pytest.mark.asyncio
async def test_embedding_failure_returns_apology(orchestrator, openai_service, vector_store):
    openai_service.create_embedding.side_effect = ProviderError("openai", "rate limited")

    response = await orchestrator.search("coffee", 38.58, -121.49)

    assert response.results == []
    assert response.voiceResponse == (
        "I'm sorry, I encountered an error while searching for coffee. Please try again."
    )
    vector_store.search_businesses.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_closes_services(orchestrator, openai_service, vector_store, places_service):
    await orchestrator.close()
    openai_service.close.assert_awaited_once()
    vector_store.close.assert_awaited_once()
    places_service.close.assert_awaited_once()


def test_voice_response_full_sentence(business_factory):
    result = business_factory(1, name="Joe's Coffee", description="Cozy cafe", address="12 K St, Sacramento, CA")
    assert build_voice_response([result], "coffee", "Sacramento County") == (
        "The best match for coffee is Joe's Coffee, Cozy cafe, located at 12 K St."
    )


def test_voice_response_without_optional_fields(business_factory):
    result = business_factory(1, name="Joe's Coffee", description=None, address=None)
    assert build_voice_response([result], "coffee", "Sacramento County") == (
        "The best match for coffee is Joe's Coffee."
    )


@pytest.mark.parametrize(
    "address,expected",
    [
        ("1200 K St, Sacramento, CA 95814, USA", "1200 K St"),
        ("No commas here", "No commas here"),
        ("", ""),
    ],
)
def test_extract_street_address(address, expected):
    assert extract_street_address(address) == expected
