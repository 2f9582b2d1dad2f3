"""
Transport strategy shared by the realtime session variants.

A RealtimeSession owns one transport. The transport knows how to obtain its
provider credential, open the channel, move microphone and speaker audio, and
shape outbound protocol messages; the session owns state, callbacks and tool
call orchestration and is identical for every provider.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Union

from voice_search.client.api_client import ServerApiClient
from voice_search.client.audio_devices import AudioBackend, PyAudioBackend
from voice_search.client.event_router import SessionEventRouter
from voice_search.config.constants import LOGGER_NAME
from voice_search.models.session_events import SessionEvent, ToolResult

logger = logging.getLogger(LOGGER_NAME)

# Callback types handed to RealtimeTransport.open
MessageCallback = Callable[[Union[str, bytes]], None]
ClosedCallback = Callable[[], None]
RemoteAudioCallback = Callable[[], None]


class RealtimeTransport(ABC):
    """Base class for provider transports."""

    provider = "unknown"

    def __init__(self, audio_backend: Optional[AudioBackend] = None):
        self._audio_backend = audio_backend
        self._owns_backend = audio_backend is None
        self.microphone_enabled = False

    def audio_backend(self) -> AudioBackend:
        """Return the injected backend or lazily create the PyAudio one."""
        if self._audio_backend is None:
            self._audio_backend = PyAudioBackend()
        return self._audio_backend

    def release_audio_backend(self) -> None:
        if self._owns_backend and self._audio_backend is not None:
            self._audio_backend.terminate()
            self._audio_backend = None

    @abstractmethod
    async def fetch_credential(self, api_client: ServerApiClient) -> str:
        """Obtain the provider credential from the voice search server."""

    @abstractmethod
    def create_router(self) -> SessionEventRouter:
        """Create a fresh event router for one connection."""

    @abstractmethod
    async def open(
        self,
        credential: str,
        on_message: MessageCallback,
        on_closed: ClosedCallback,
        on_remote_audio: RemoteAudioCallback,
    ) -> None:
        """
        Open the channel and acquire the microphone muted.

        Returns only once the channel can carry messages.

        Raises:
            HandshakeError: If the channel cannot be established
            MicrophoneUnavailableError: If audio capture cannot be acquired
        """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send(self, message: Dict[str, Any]) -> bool:
        """Send one JSON message; returns False when the channel is not open."""

    def set_microphone_enabled(self, enabled: bool) -> None:
        self.microphone_enabled = enabled

    @abstractmethod
    def tool_result_messages(self, result: ToolResult) -> List[Dict[str, Any]]:
        """Protocol messages that hand a tool result back to the provider."""

    def pong_message(self, event_id: Any) -> Optional[Dict[str, Any]]:
        """Reply to a keep-alive ping, if the protocol has one."""
        return None

    def play_audio(self, event: SessionEvent) -> None:
        """Queue an inbound AUDIO_CHUNK for play-out."""
        logger.debug(f"{self.provider} transport ignores inbound audio events")

    def interrupt(self) -> None:
        """Drop assistant audio that has not started playing."""

    @abstractmethod
    async def close(self) -> None:
        """Release the channel and audio devices; safe to call repeatedly."""
