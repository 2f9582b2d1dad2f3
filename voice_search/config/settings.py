"""
Explicit runtime configuration.

Settings are read from the environment (and a local .env file when present)
exactly once at process start, then passed by reference to the components that
need them instead of being read from module globals.
"""

import os
from pathlib import Path
from typing import List, Optional

import dotenv
from pydantic import BaseModel, Field

from voice_search.config.constants import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_VOICE,
    FALLBACK_MIN_RESULTS,
    MAX_RESULTS,
    PLACES_RADIUS_METERS,
    SIMILARITY_THRESHOLD,
    VECTOR_MATCH_COUNT,
)
from voice_search.models.geo import GeoBounds

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


class Settings(BaseModel):
    """Configuration shared by the HTTP server and its services."""

    openai_api_key: Optional[str] = None
    openai_realtime_model: str = DEFAULT_REALTIME_MODEL
    openai_voice: str = DEFAULT_VOICE
    openai_embedding_model: str = DEFAULT_EMBEDDING_MODEL

    elevenlabs_api_key: Optional[str] = None
    elevenlabs_agent_id: Optional[str] = None

    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    google_places_api_key: Optional[str] = None

    region: GeoBounds = Field(default_factory=GeoBounds)
    similarity_threshold: float = SIMILARITY_THRESHOLD
    vector_match_count: int = VECTOR_MATCH_COUNT
    fallback_min_results: int = FALLBACK_MIN_RESULTS
    max_results: int = MAX_RESULTS
    places_radius_meters: int = PLACES_RADIUS_METERS

    http_timeout: float = 15.0
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env file to load first (defaults to ./.env if it exists)

        Returns:
            Settings: The populated configuration
        """
        env_path = env_file or Path(".") / ".env"
        if env_path.exists():
            dotenv.load_dotenv(env_path)

        origins = os.getenv("CORS_ORIGINS")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_realtime_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            openai_voice=os.getenv("OPENAI_VOICE", DEFAULT_VOICE),
            openai_embedding_model=os.getenv("OPENAI_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY"),
            elevenlabs_agent_id=os.getenv("ELEVENLABS_AGENT_ID"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
            google_places_api_key=os.getenv("GOOGLE_PLACES_API_KEY"),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "15")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else list(DEFAULT_CORS_ORIGINS)
            ),
        )
