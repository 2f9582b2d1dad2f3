import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from voice_search.main import APP_TITLE, MISSING_PARAMETERS_ERROR, create_app
from voice_search.models.search_schemas import SearchResponse
from voice_search.services.exceptions import ProviderError


@pytest.fixture
def orchestrator(business_factory):
    mock = MagicMock()
    mock.search = AsyncMock(return_value=SearchResponse(
        results=[business_factory(1)],
        voiceResponse="The best match for coffee is Business 1, Description 1, located at 1 Main St.",
    ))
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def openai_service():
    mock = MagicMock()
    mock.create_ephemeral_token = AsyncMock(return_value="ek_test")
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def elevenlabs_service():
    mock = MagicMock()
    mock.get_signed_url = AsyncMock(return_value="wss://api.elevenlabs.io/v1/convai/conversation?token=t")
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def client(settings, orchestrator, openai_service, elevenlabs_service):
    app = create_app(
        settings,
        orchestrator=orchestrator,
        openai_service=openai_service,
        elevenlabs_service=elevenlabs_service,
    )
    with TestClient(app) as test_client:
        yield test_client


def test_health_check(client):
    """Test the health check endpoint returns correct response"""
    response = client.get("/api/health")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["status"] == "ok"
    assert "timestamp" in response_json


def test_root_endpoint(client):
    """Test the root endpoint returns the correct API information"""
    response = client.get("/")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["name"] == APP_TITLE
    assert response_json["version"] == "1.0.0"
    assert "/api/search" in response_json["endpoints"]
    assert "/api/health" in response_json["endpoints"]


def test_session_token(client, openai_service):
    response = client.post("/api/session")
    assert response.status_code == 200
    assert response.json() == {"client_secret": {"value": "ek_test"}}
    openai_service.create_ephemeral_token.assert_awaited_once()


def test_session_token_failure(client, openai_service):
    openai_service.create_ephemeral_token.side_effect = ProviderError("openai", "bad key")
    response = client.post("/api/session")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate session token"}


def test_elevenlabs_signed_url(client):
    response = client.post("/api/elevenlabs/session")
    assert response.status_code == 200
    assert response.json()["signed_url"].startswith("wss://")


def test_elevenlabs_signed_url_failure(client, elevenlabs_service):
    elevenlabs_service.get_signed_url.side_effect = ProviderError("elevenlabs", "no agent")
    response = client.post("/api/elevenlabs/session")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to get signed URL"}


def test_search_success(client, orchestrator):
    response = client.post("/api/search", json={"query": "coffee", "latitude": 38.58, "longitude": -121.49})
    assert response.status_code == 200

    body = response.json()
    assert body["results"][0]["name"] == "Business 1"
    assert body["results"][0]["source"] == "vector_store"
    assert body["voiceResponse"].startswith("The best match for coffee")
    orchestrator.search.assert_awaited_once_with("coffee", 38.58, -121.49)


@pytest.mark.parametrize(
    "payload",
    [
        {"query": "coffee", "longitude": -121.49},
        {"query": "coffee", "latitude": 38.58},
        {"latitude": 38.58, "longitude": -121.49},
        {"query": "   ", "latitude": 38.58, "longitude": -121.49},
        {"query": "coffee", "latitude": "north", "longitude": -121.49},
        ["coffee", 38.58, -121.49],
    ],
)
def test_search_rejects_missing_parameters(client, orchestrator, payload):
    response = client.post("/api/search", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": MISSING_PARAMETERS_ERROR}
    orchestrator.search.assert_not_awaited()


def test_search_rejects_invalid_json(client):
    response = client.post("/api/search", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_search_zero_coordinates_accepted(client, orchestrator):
    response = client.post("/api/search", json={"query": "coffee", "latitude": 0, "longitude": 0})
    assert response.status_code == 200
    orchestrator.search.assert_awaited_once_with("coffee", 0.0, 0.0)


def test_search_pipeline_apology_is_200(client, orchestrator):
    orchestrator.search.return_value = SearchResponse(
        results=[],
        voiceResponse="I'm sorry, I encountered an error while searching for coffee. Please try again.",
    )
    response = client.post("/api/search", json={"query": "coffee", "latitude": 38.58, "longitude": -121.49})
    assert response.status_code == 200
    assert response.json()["results"] == []


def test_search_unexpected_failure_is_500(client, orchestrator):
    orchestrator.search.side_effect = RuntimeError("boom")
    response = client.post("/api/search", json={"query": "coffee", "latitude": 38.58, "longitude": -121.49})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to execute search"}


def test_shutdown_closes_services(settings, orchestrator, openai_service, elevenlabs_service):
    app = create_app(
        settings,
        orchestrator=orchestrator,
        openai_service=openai_service,
        elevenlabs_service=elevenlabs_service,
    )
    with TestClient(app):
        pass

    orchestrator.close.assert_awaited_once()
    openai_service.close.assert_awaited_once()
    elevenlabs_service.close.assert_awaited_once()


def test_app_configuration(settings, orchestrator, openai_service, elevenlabs_service):
    """Test the app configuration"""
    app = create_app(
        settings,
        orchestrator=orchestrator,
        openai_service=openai_service,
        elevenlabs_service=elevenlabs_service,
    )
    assert app.title == APP_TITLE
    assert app.version == "1.0.0"

    route_paths = [route.path for route in app.routes]
    assert "/api/session" in route_paths
    assert "/api/elevenlabs/session" in route_paths
    assert "/api/search" in route_paths
    assert "/api/health" in route_paths
    assert "/" in route_paths
