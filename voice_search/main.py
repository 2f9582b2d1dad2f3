"""
FastAPI server for the voice business search assistant.

This module initializes and configures the FastAPI application that backs the
voice client. It mints short-lived provider credentials so the client never holds
a long-lived secret, and exposes the business search pipeline that realtime tool
calls are bridged to.

Endpoints:
- POST /api/session: ephemeral OpenAI Realtime token (WebRTC transport)
- POST /api/elevenlabs/session: signed ElevenLabs WebSocket URL (socket transport)
- POST /api/search: business search with a voice narration
- GET /api/health: liveness probe
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from voice_search.config.logging_config import configure_logging
from voice_search.config.settings import Settings
from voice_search.models.search_schemas import (
    ClientSecret,
    ErrorResponse,
    HealthResponse,
    SearchRequest,
    SessionTokenResponse,
    SignedUrlResponse,
)
from voice_search.services import (
    ElevenLabsService,
    OpenAIService,
    PlacesService,
    SearchOrchestrator,
    VectorStore,
)

# Configure logging
logger = configure_logging()

APP_TITLE = "Voice Business Search"
APP_VERSION = "1.0.0"
MISSING_PARAMETERS_ERROR = "Missing required parameters: query, latitude, longitude"

router = APIRouter(prefix="/api")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.post("/session")
async def create_session(request: Request):
    """Generate an ephemeral token for the OpenAI Realtime API (WebRTC)."""
    try:
        token = await request.app.state.openai_service.create_ephemeral_token()
    except Exception as e:
        logger.error(f"Error generating session token: {e}")
        return error_response(500, "Failed to generate session token")
    return SessionTokenResponse(client_secret=ClientSecret(value=token)).model_dump()


@router.post("/elevenlabs/session")
async def create_elevenlabs_session(request: Request):
    """Get a signed WebSocket URL for ElevenLabs Conversational AI."""
    try:
        signed_url = await request.app.state.elevenlabs_service.get_signed_url()
    except Exception as e:
        logger.error(f"Error getting ElevenLabs signed URL: {e}")
        return error_response(500, "Failed to get signed URL")
    return SignedUrlResponse(signed_url=signed_url).model_dump()


@router.post("/search")
async def search(request: Request):
    """
    Search for businesses near the user location.

    Missing or invalid parameters are rejected with 400 before the pipeline runs;
    pipeline failures are absorbed by the orchestrator and come back as an empty
    result list with an apology.
    """
    try:
        payload = await request.json()
    except ValueError:
        return error_response(400, MISSING_PARAMETERS_ERROR)

    if not isinstance(payload, dict):
        return error_response(400, MISSING_PARAMETERS_ERROR)

    try:
        search_request = SearchRequest(**payload)
    except ValidationError as e:
        logger.warning(f"Rejected search request: {e.errors()}")
        return error_response(400, MISSING_PARAMETERS_ERROR)

    try:
        response = await request.app.state.orchestrator.search(
            search_request.query, search_request.latitude, search_request.longitude
        )
    except Exception as e:
        logger.error(f"Error handling search request: {e}", exc_info=True)
        return error_response(500, "Failed to execute search")
    return response.model_dump(mode="json")


@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring system status.

    Returns:
        dict: Status and the current UTC timestamp
    """
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat()).model_dump()


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[SearchOrchestrator] = None,
    openai_service: Optional[OpenAIService] = None,
    elevenlabs_service: Optional[ElevenLabsService] = None,
) -> FastAPI:
    """
    Build the FastAPI application around an explicit Settings object.

    Args:
        settings: Configuration (read from the environment when omitted)
        orchestrator: Search pipeline override, mainly for tests
        openai_service: OpenAI client override
        elevenlabs_service: ElevenLabs client override

    Returns:
        FastAPI: The configured application
    """
    settings = settings or Settings.from_env()
    openai_service = openai_service or OpenAIService(settings)
    elevenlabs_service = elevenlabs_service or ElevenLabsService(settings)
    orchestrator = orchestrator or SearchOrchestrator(
        settings, openai_service, VectorStore(settings), PlacesService(settings)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await orchestrator.close()
        await openai_service.close()
        await elevenlabs_service.close()
        logger.info("Provider clients closed")

    app = FastAPI(
        title=APP_TITLE,
        description="Voice-driven business search backed by OpenAI Realtime and ElevenLabs",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.openai_service = openai_service
    app.state.elevenlabs_service = elevenlabs_service
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/")
    async def root():
        """Basic information about the API."""
        return {
            "name": APP_TITLE,
            "version": APP_VERSION,
            "endpoints": {
                "/api/session": "Ephemeral OpenAI Realtime token",
                "/api/elevenlabs/session": "Signed ElevenLabs WebSocket URL",
                "/api/search": "Business search",
                "/api/health": "Health check endpoint",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, http="h11")
