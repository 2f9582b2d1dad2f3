"""
Pydantic models for ElevenLabs Conversational AI frames and agent configuration.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

from voice_search.config.constants import (
    ELEVENLABS_EVENT_CLIENT_TOOL_RESULT,
    ELEVENLABS_EVENT_PONG,
)


class UserAudioChunkMessage(BaseModel):
    """Outbound microphone frame (base64 PCM16)."""
    user_audio_chunk: str


class PongMessage(BaseModel):
    type: Literal["pong"] = ELEVENLABS_EVENT_PONG
    event_id: Optional[Any] = None


class ClientToolResultMessage(BaseModel):
    """Tool result returned to the agent."""
    type: Literal["client_tool_result"] = ELEVENLABS_EVENT_CLIENT_TOOL_RESULT
    tool_call_id: str
    result: str
    is_error: bool = False


class SignedUrlPayload(BaseModel):
    signed_url: str


class AgentSettings(BaseModel):
    """Subset of the agent conversation config managed by this project."""
    prompt: str
    first_message: str
    language: str = "en"
    voice_id: str = "21m00Tcm4TlvDq8ikWAM"

    def to_conversation_config(self) -> Dict[str, Any]:
        return {
            "conversation_config": {
                "agent": {
                    "prompt": {"prompt": self.prompt},
                    "first_message": self.first_message,
                    "language": self.language,
                },
                "tts": {"voice_id": self.voice_id},
            }
        }
