"""
Pydantic models for the search and credential HTTP API.

This module defines the request and response bodies exchanged between the voice
client and the server, providing type validation and documentation for the
`/api/*` endpoints.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ResultSource(str, Enum):
    """Origin of a business result."""
    VECTOR_STORE = "vector_store"
    PLACES_FALLBACK = "places_fallback"


class SearchRequest(BaseModel):
    """Body of POST /api/search."""

    query: str = Field(..., description="Free text describing what the user is looking for")
    latitude: float = Field(..., description="User latitude")
    longitude: float = Field(..., description="User longitude")

    @field_validator("query")
    def validate_query(cls, v):
        """Validate that the query is not blank."""
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v.strip()


class BusinessResult(BaseModel):
    """A single business returned by the search pipeline."""

    id: str = Field(..., description="Vector store row id or Places place_id")
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    source: ResultSource
    similarity: Optional[float] = Field(
        None, description="Cosine similarity, only set for vector store matches"
    )

    @field_validator("id", mode="before")
    def coerce_id(cls, v):
        """Database ids may arrive as integers or UUID objects."""
        return str(v) if v is not None else v


class SearchResponse(BaseModel):
    """Response of POST /api/search."""

    results: List[BusinessResult] = Field(default_factory=list)
    voiceResponse: str = Field(..., description="One sentence narration for the assistant")


class ClientSecret(BaseModel):
    value: str


class SessionTokenResponse(BaseModel):
    """Response of POST /api/session."""
    client_secret: ClientSecret


class SignedUrlResponse(BaseModel):
    """Response of POST /api/elevenlabs/session."""
    signed_url: str


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
