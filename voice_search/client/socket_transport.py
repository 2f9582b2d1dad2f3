"""
ElevenLabs Conversational AI transport over a single WebSocket.

All traffic is JSON text. Microphone frames are captured at 16 kHz, converted to
base64 PCM16 and sent as `user_audio_chunk` messages only while the microphone is
enabled. Inbound agent audio arrives as base64 PCM16 and is played through a
PlayoutQueue so chunks never overlap.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from voice_search.client.api_client import ServerApiClient
from voice_search.client.audio_bridge import AudioChunk, PlayoutQueue, encode_pcm16_base64
from voice_search.client.audio_devices import AudioBackend, Microphone, Speaker
from voice_search.client.errors import HandshakeError
from voice_search.client.event_router import ElevenLabsEventRouter
from voice_search.client.transport import (
    ClosedCallback,
    MessageCallback,
    RealtimeTransport,
    RemoteAudioCallback,
)
from voice_search.config.constants import CAPTURE_FRAME_SIZE, LOGGER_NAME, SOCKET_SAMPLE_RATE
from voice_search.models.elevenlabs_schemas import (
    ClientToolResultMessage,
    PongMessage,
    UserAudioChunkMessage,
)
from voice_search.models.session_events import SessionEvent, ToolResult

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32
WS_PING_INTERVAL = 20


class SocketTransport(RealtimeTransport):
    """Realtime transport for ElevenLabs agents."""

    provider = "elevenlabs"

    def __init__(
        self,
        audio_backend: Optional[AudioBackend] = None,
        sample_rate: int = SOCKET_SAMPLE_RATE,
        connect_timeout: float = CONNECTION_TIMEOUT,
    ):
        super().__init__(audio_backend)
        self.sample_rate = sample_rate
        self.connect_timeout = connect_timeout
        self.ws = None
        self._microphone: Optional[Microphone] = None
        self._speaker: Optional[Speaker] = None
        self._playout: Optional[PlayoutQueue] = None
        self._recv_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None
        self._outbound: Optional[asyncio.Queue] = None
        self._on_message: Optional[MessageCallback] = None
        self._on_closed: Optional[ClosedCallback] = None
        self._on_remote_audio: Optional[RemoteAudioCallback] = None
        self._connection_active = False
        self._is_closing = False

    async def fetch_credential(self, api_client: ServerApiClient) -> str:
        return await api_client.fetch_signed_url()

    def create_router(self) -> ElevenLabsEventRouter:
        return ElevenLabsEventRouter(sample_rate=self.sample_rate)

    @property
    def is_open(self) -> bool:
        return self._connection_active and self.ws is not None

    async def open(
        self,
        credential: str,
        on_message: MessageCallback,
        on_closed: ClosedCallback,
        on_remote_audio: RemoteAudioCallback,
    ) -> None:
        self._is_closing = False
        self._on_message = on_message
        self._on_closed = on_closed
        self._on_remote_audio = on_remote_audio

        backend = self.audio_backend()
        self._microphone = backend.open_microphone(self.sample_rate, CAPTURE_FRAME_SIZE, self._on_capture_frame)
        self._speaker = backend.open_speaker(self.sample_rate)
        self._playout = PlayoutQueue(self._speaker)

        logger.info("Connecting to ElevenLabs conversation WebSocket")
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    credential,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    compression=None,
                ),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise HandshakeError(f"Failed to connect: timed out after {self.connect_timeout}s") from e
        except (OSError, WebSocketException, ValueError) as e:
            raise HandshakeError(f"Failed to connect: {e}") from e

        if self._is_closing:
            logger.info("Transport closed during handshake, dropping new connection")
            ws, self.ws = self.ws, None
            await ws.close()
            raise HandshakeError("Failed to connect: closed during handshake")

        self._connection_active = True
        self._outbound = asyncio.Queue()
        self._recv_task = asyncio.create_task(self._recv_loop())
        self._send_task = asyncio.create_task(self._send_loop())
        self._microphone.start()
        logger.info("ElevenLabs connection established")

    def _on_capture_frame(self, samples: np.ndarray) -> None:
        if not self.microphone_enabled or not self.is_open or self._outbound is None:
            return
        message = UserAudioChunkMessage(user_audio_chunk=encode_pcm16_base64(samples))
        self._outbound.put_nowait(message.model_dump())

    async def _send_loop(self) -> None:
        """Drain microphone frames in capture order."""
        while self.is_open:
            message = await self._outbound.get()
            await self.send(message)

    async def send(self, message: Dict[str, Any]) -> bool:
        if not self.is_open:
            logger.warning("Cannot send - connection not active")
            return False
        try:
            await asyncio.wait_for(self.ws.send(json.dumps(message)), timeout=SEND_TIMEOUT)
            return True
        except asyncio.TimeoutError:
            logger.warning("Timeout while sending message")
            return False
        except ConnectionClosedOK:
            logger.info("Connection closed normally while sending")
            self._connection_active = False
            return False
        except ConnectionClosedError as e:
            logger.warning(f"Connection closed while sending: {e}")
            self._connection_active = False
            return False

    async def _recv_loop(self) -> None:
        try:
            async for message in self.ws:
                if self._on_message is not None:
                    self._on_message(message)
        except ConnectionClosedOK:
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in receive loop: {e}", exc_info=True)

        self._connection_active = False
        logger.info("Receive loop exited, connection marked as inactive")
        if not self._is_closing and self._on_closed is not None:
            self._on_closed()

    def play_audio(self, event: SessionEvent) -> None:
        if self._playout is None or event.audio is None:
            return
        self._playout.enqueue(AudioChunk(samples=event.audio, sample_rate=event.sample_rate or self.sample_rate))
        if self._on_remote_audio is not None:
            self._on_remote_audio()

    def interrupt(self) -> None:
        if self._playout is not None:
            self._playout.clear()

    def tool_result_messages(self, result: ToolResult) -> List[Dict[str, Any]]:
        message = ClientToolResultMessage(
            tool_call_id=result.call_id,
            result=result.output,
            is_error=not result.success,
        )
        return [message.model_dump()]

    def pong_message(self, event_id: Any) -> Optional[Dict[str, Any]]:
        return PongMessage(event_id=event_id).model_dump()

    async def close(self) -> None:
        logger.info("Closing ElevenLabs transport")
        self._is_closing = True
        self._connection_active = False
        self.microphone_enabled = False

        if self._microphone is not None:
            self._microphone.stop()
            self._microphone = None

        for task in (self._recv_task, self._send_task):
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._recv_task = None
        self._send_task = None
        self._outbound = None

        if self.ws is not None:
            ws, self.ws = self.ws, None
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.warning(f"Error closing WebSocket: {e}")

        if self._playout is not None:
            await self._playout.close()
            self._playout = None
        if self._speaker is not None:
            self._speaker.close()
            self._speaker = None
        self.release_audio_backend()
