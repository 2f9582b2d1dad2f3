"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the messages exchanged with the OpenAI Realtime API
over the WebRTC data channel, and for the REST responses used to mint ephemeral sessions.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from voice_search.config.constants import (
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VOICE,
    OPENAI_EVENT_ITEM_CREATE,
    OPENAI_EVENT_RESPONSE_CREATE,
    OPENAI_EVENT_SESSION_UPDATE,
    SEARCH_TOOL_NAME,
)

SEARCH_TOOL_DESCRIPTION = (
    "Search for businesses near the user location. Use this ONLY when the user explicitly "
    "asks to find, search for, or locate businesses, restaurants, shops, services, or any "
    "commercial establishments. DO NOT use for general questions or unrelated topics."
)

SEARCH_QUERY_DESCRIPTION = (
    'What the user is searching for (e.g., "barber shop", "russian cuisine", "coffee shop")'
)

ASSISTANT_INSTRUCTIONS = (
    "You are a voice assistant that helps users find businesses and services in Sacramento County, "
    "California. Always respond in the same language the user speaks to you.\n\n"
    "If the request is about finding a business, place, restaurant or service, call the "
    "search_nearby_business function and say exactly the text it returns. Do not read through "
    "individual results.\n\n"
    "If the request is unrelated, politely decline in a friendly way and offer to help find "
    "something nearby instead."
)


class TurnDetection(BaseModel):
    """Server-side voice activity detection parameters."""
    type: str = "server_vad"
    threshold: float = 0.5
    prefix_padding_ms: int = 300
    silence_duration_ms: int = 500


class InputAudioTranscription(BaseModel):
    model: str = DEFAULT_TRANSCRIPTION_MODEL


class FunctionTool(BaseModel):
    """Function tool schema advertised to the model."""
    type: Literal["function"] = "function"
    name: str
    description: str
    parameters: Dict[str, Any]


def search_tool_schema() -> FunctionTool:
    """Schema for the search_nearby_business function."""
    return FunctionTool(
        name=SEARCH_TOOL_NAME,
        description=SEARCH_TOOL_DESCRIPTION,
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": SEARCH_QUERY_DESCRIPTION},
                "latitude": {"type": "number", "description": "User latitude coordinate"},
                "longitude": {"type": "number", "description": "User longitude coordinate"},
            },
            "required": ["query"],
        },
    )


class SessionConfig(BaseModel):
    """Session configuration sent once when the data channel opens."""
    modalities: List[str] = Field(default_factory=lambda: ["text", "audio"])
    instructions: Optional[str] = ASSISTANT_INSTRUCTIONS
    voice: str = DEFAULT_VOICE
    input_audio_format: str = "pcm16"
    output_audio_format: str = "pcm16"
    input_audio_transcription: InputAudioTranscription = Field(
        default_factory=InputAudioTranscription
    )
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)
    tools: List[FunctionTool] = Field(default_factory=lambda: [search_tool_schema()])
    tool_choice: str = "auto"


class SessionUpdateMessage(BaseModel):
    type: Literal["session.update"] = OPENAI_EVENT_SESSION_UPDATE
    session: SessionConfig


class FunctionCallOutputItem(BaseModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ConversationItemCreateMessage(BaseModel):
    """Returns a function result to the model, keyed by call_id."""
    type: Literal["conversation.item.create"] = OPENAI_EVENT_ITEM_CREATE
    item: FunctionCallOutputItem


class ResponseCreateMessage(BaseModel):
    """Asks the model to continue generating after a tool result."""
    type: Literal["response.create"] = OPENAI_EVENT_RESPONSE_CREATE


class RealtimeClientSecret(BaseModel):
    value: str
    expires_at: Optional[int] = None


class RealtimeSessionResponse(BaseModel):
    """Response from the session creation endpoint."""
    client_secret: RealtimeClientSecret
    id: Optional[str] = None
