"""
Provider event normalization.

Each router turns one provider's raw frames into SessionEvent objects. Routers
are per-session: the assistant transcript buffer lives on the router instance and
is reset only by the terminating "done" event. Malformed frames are logged and
dropped; unknown event types are ignored so new provider events never break the
receive loop.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from voice_search.client.audio_bridge import decode_pcm16_base64
from voice_search.config.constants import (
    ELEVENLABS_EVENT_AGENT_RESPONSE,
    ELEVENLABS_EVENT_AUDIO,
    ELEVENLABS_EVENT_CLIENT_TOOL_CALL,
    ELEVENLABS_EVENT_ERROR,
    ELEVENLABS_EVENT_INITIATION,
    ELEVENLABS_EVENT_INTERRUPTION,
    ELEVENLABS_EVENT_PING,
    ELEVENLABS_EVENT_TOOL_CALL,
    ELEVENLABS_EVENT_USER_TRANSCRIPT,
    LOGGER_NAME,
    OPENAI_EVENT_ERROR,
    OPENAI_EVENT_FUNCTION_CALL_DONE,
    OPENAI_EVENT_SPEECH_STARTED,
    OPENAI_EVENT_TRANSCRIPT_DELTA,
    OPENAI_EVENT_TRANSCRIPT_DONE,
    OPENAI_EVENT_USER_TRANSCRIPT,
    SOCKET_SAMPLE_RATE,
)
from voice_search.models.session_events import EventKind, SessionEvent

logger = logging.getLogger(LOGGER_NAME)

# Type hint for handler functions
HandlerFunc = Callable[[Dict[str, Any]], List[SessionEvent]]


def _parse_arguments(arguments: Any) -> Dict[str, Any]:
    """Tool arguments arrive either as a dict or as a JSON string."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Could not decode tool call arguments: {arguments!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class SessionEventRouter:
    """Base router: JSON decoding, dispatch by "type" and the transcript buffer."""

    provider = "unknown"

    def __init__(self):
        self.assistant_transcript = ""
        self.handlers: Dict[str, HandlerFunc] = {}

    def route(self, data: Union[str, bytes]) -> List[SessionEvent]:
        """
        Decode one raw frame into zero or more normalized events.

        Never raises: undecodable or unexpected frames are logged and dropped.
        """
        try:
            if isinstance(data, (bytes, bytearray)):
                data = data.decode("utf-8")
            message = json.loads(data)
        except (UnicodeDecodeError, TypeError, json.JSONDecodeError):
            logger.warning(f"Dropping malformed {self.provider} frame: {str(data)[:100]}")
            return []

        if not isinstance(message, dict):
            logger.warning(f"Dropping non-object {self.provider} frame")
            return []

        try:
            return self._dispatch(message)
        except Exception as e:
            logger.error(f"Error processing {self.provider} message: {e}", exc_info=True)
            return []

    def _dispatch(self, message: Dict[str, Any]) -> List[SessionEvent]:
        message_type = message.get("type")
        handler = self.handlers.get(message_type)
        if handler is None:
            logger.debug(f"Ignoring {self.provider} event: {message_type}")
            return []
        return handler(message)

    def reset(self) -> None:
        self.assistant_transcript = ""


class OpenAIEventRouter(SessionEventRouter):
    """Routes OpenAI Realtime data-channel events."""

    provider = "openai"

    def __init__(self):
        super().__init__()
        self.handlers = {
            OPENAI_EVENT_USER_TRANSCRIPT: self._handle_user_transcript,
            OPENAI_EVENT_TRANSCRIPT_DELTA: self._handle_transcript_delta,
            OPENAI_EVENT_TRANSCRIPT_DONE: self._handle_transcript_done,
            OPENAI_EVENT_FUNCTION_CALL_DONE: self._handle_function_call,
            OPENAI_EVENT_SPEECH_STARTED: self._handle_speech_started,
            OPENAI_EVENT_ERROR: self._handle_error,
        }

    def _handle_user_transcript(self, message: Dict[str, Any]) -> List[SessionEvent]:
        transcript = message.get("transcript")
        if not transcript:
            return []
        return [SessionEvent(kind=EventKind.USER_TRANSCRIPT, text=transcript)]

    def _handle_transcript_delta(self, message: Dict[str, Any]) -> List[SessionEvent]:
        delta = message.get("delta")
        if not delta:
            return []
        self.assistant_transcript += delta
        return [SessionEvent(kind=EventKind.ASSISTANT_TRANSCRIPT_DELTA, text=delta)]

    def _handle_transcript_done(self, message: Dict[str, Any]) -> List[SessionEvent]:
        text = self.assistant_transcript or message.get("transcript") or ""
        self.assistant_transcript = ""
        if not text:
            return []
        return [SessionEvent(kind=EventKind.ASSISTANT_TRANSCRIPT_FINAL, text=text)]

    def _handle_function_call(self, message: Dict[str, Any]) -> List[SessionEvent]:
        call_id = message.get("call_id")
        if not call_id:
            logger.warning("Function call without call_id dropped")
            return []
        return [
            SessionEvent(
                kind=EventKind.TOOL_CALL_REQUEST,
                call_id=call_id,
                tool_name=message.get("name"),
                arguments=_parse_arguments(message.get("arguments")),
            )
        ]

    def _handle_speech_started(self, message: Dict[str, Any]) -> List[SessionEvent]:
        return [SessionEvent(kind=EventKind.INTERRUPTION)]

    def _handle_error(self, message: Dict[str, Any]) -> List[SessionEvent]:
        logger.error(f"OpenAI error: {message}")
        error = message.get("error")
        text = error.get("message") if isinstance(error, dict) else None
        return [SessionEvent(kind=EventKind.ERROR, text=text or "Unknown error")]


class ElevenLabsEventRouter(SessionEventRouter):
    """
    Routes ElevenLabs Conversational AI frames.

    Two shapes are accepted: the legacy flat shape keyed by payload name
    ("audio", "user_transcription", ...) and the typed envelope whose payload may
    sit at the top level or inside a nested "<name>_event" object.
    """

    provider = "elevenlabs"

    def __init__(self, sample_rate: int = SOCKET_SAMPLE_RATE):
        super().__init__()
        self.sample_rate = sample_rate
        self.handlers = {
            ELEVENLABS_EVENT_INITIATION: self._handle_initiation,
            ELEVENLABS_EVENT_USER_TRANSCRIPT: self._handle_user_transcript,
            ELEVENLABS_EVENT_AGENT_RESPONSE: self._handle_agent_response,
            ELEVENLABS_EVENT_AUDIO: self._handle_audio,
            ELEVENLABS_EVENT_INTERRUPTION: self._handle_interruption,
            ELEVENLABS_EVENT_PING: self._handle_ping,
            ELEVENLABS_EVENT_TOOL_CALL: self._handle_tool_call,
            ELEVENLABS_EVENT_CLIENT_TOOL_CALL: self._handle_tool_call,
            ELEVENLABS_EVENT_ERROR: self._handle_error,
        }

    def _dispatch(self, message: Dict[str, Any]) -> List[SessionEvent]:
        legacy = self._dispatch_legacy(message)
        if legacy is not None:
            return legacy
        return super()._dispatch(message)

    def _dispatch_legacy(self, message: Dict[str, Any]) -> Optional[List[SessionEvent]]:
        if isinstance(message.get("audio"), str):
            return self._audio_events(message["audio"])
        if "conversation_initiation_metadata_event" in message:
            return self._handle_initiation(message)
        if message.get("user_transcription"):
            return [SessionEvent(kind=EventKind.USER_TRANSCRIPT, text=message["user_transcription"])]
        if isinstance(message.get("agent_response"), str) and "type" not in message:
            return [SessionEvent(kind=EventKind.ASSISTANT_TRANSCRIPT_FINAL, text=message["agent_response"])]
        if message.get("interruption"):
            return self._handle_interruption(message)
        if isinstance(message.get("ping_event"), dict):
            return [SessionEvent(kind=EventKind.KEEPALIVE_PING, event_id=message["ping_event"].get("event_id"))]
        return None

    @staticmethod
    def _payload(message: Dict[str, Any], event_key: str) -> Dict[str, Any]:
        nested = message.get(event_key)
        return nested if isinstance(nested, dict) else message

    def _audio_events(self, encoded: str) -> List[SessionEvent]:
        try:
            samples = decode_pcm16_base64(encoded)
        except ValueError as e:
            logger.warning(f"Dropping undecodable audio frame: {e}")
            return []
        if samples.size == 0:
            return []
        return [SessionEvent(kind=EventKind.AUDIO_CHUNK, audio=samples, sample_rate=self.sample_rate)]

    def _handle_initiation(self, message: Dict[str, Any]) -> List[SessionEvent]:
        logger.info(f"Conversation initiated: {message}")
        return []

    def _handle_user_transcript(self, message: Dict[str, Any]) -> List[SessionEvent]:
        payload = self._payload(message, "user_transcription_event")
        transcript = payload.get("user_transcript")
        if not transcript:
            return []
        return [SessionEvent(kind=EventKind.USER_TRANSCRIPT, text=transcript)]

    def _handle_agent_response(self, message: Dict[str, Any]) -> List[SessionEvent]:
        payload = self._payload(message, "agent_response_event")
        response = payload.get("agent_response")
        if not response:
            return []
        self.assistant_transcript = ""
        return [SessionEvent(kind=EventKind.ASSISTANT_TRANSCRIPT_FINAL, text=response)]

    def _handle_audio(self, message: Dict[str, Any]) -> List[SessionEvent]:
        payload = self._payload(message, "audio_event")
        encoded = payload.get("audio_base_64")
        if not encoded:
            return []
        return self._audio_events(encoded)

    def _handle_interruption(self, message: Dict[str, Any]) -> List[SessionEvent]:
        logger.info("User interrupted")
        return [SessionEvent(kind=EventKind.INTERRUPTION)]

    def _handle_ping(self, message: Dict[str, Any]) -> List[SessionEvent]:
        payload = self._payload(message, "ping_event")
        return [SessionEvent(kind=EventKind.KEEPALIVE_PING, event_id=payload.get("event_id"))]

    def _handle_tool_call(self, message: Dict[str, Any]) -> List[SessionEvent]:
        payload = self._payload(message, "client_tool_call")
        call_id = payload.get("tool_call_id")
        if not call_id:
            logger.warning("Tool call without tool_call_id dropped")
            return []
        return [
            SessionEvent(
                kind=EventKind.TOOL_CALL_REQUEST,
                call_id=call_id,
                tool_name=payload.get("tool_name"),
                arguments=_parse_arguments(payload.get("parameters")),
            )
        ]

    def _handle_error(self, message: Dict[str, Any]) -> List[SessionEvent]:
        logger.error(f"ElevenLabs error: {message}")
        payload = self._payload(message, "error_event")
        text = payload.get("message") or message.get("message")
        return [SessionEvent(kind=EventKind.ERROR, text=text or "Unknown error")]
