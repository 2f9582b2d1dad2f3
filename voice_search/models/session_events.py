"""
Normalized realtime session events.

Both realtime providers speak different dialects; the event routers translate
them into the small, provider independent vocabulary defined here so the session
and the caller never depend on provider specific payloads.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from voice_search.models.search_schemas import BusinessResult


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventKind(str, Enum):
    """Kinds of normalized session events."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    USER_TRANSCRIPT = "user_transcript"
    ASSISTANT_TRANSCRIPT_DELTA = "assistant_transcript_delta"
    ASSISTANT_TRANSCRIPT_FINAL = "assistant_transcript_final"
    AUDIO_CHUNK = "audio_chunk"
    TOOL_CALL_REQUEST = "tool_call_request"
    KEEPALIVE_PING = "keepalive_ping"
    INTERRUPTION = "interruption"


class SessionEvent(BaseModel):
    """A provider event after normalization."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: EventKind
    text: Optional[str] = None
    audio: Optional[np.ndarray] = Field(None, description="Mono float32 samples")
    sample_rate: Optional[int] = None
    call_id: Optional[str] = None
    tool_name: Optional[str] = None
    arguments: Dict[str, Any] = Field(default_factory=dict)
    event_id: Optional[Any] = None


class ToolResult(BaseModel):
    """Outcome of a tool call, ready to be returned to the provider."""

    call_id: str
    success: bool
    output: str = Field(..., description="Text handed back to the provider")
    results: List[BusinessResult] = Field(default_factory=list)
