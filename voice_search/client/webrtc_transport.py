"""
OpenAI Realtime transport over WebRTC (aiortc).

Connection flow:
1. Obtain an ephemeral token from the voice search server
2. Create an RTCPeerConnection with the "oai-events" data channel and a microphone
   track that stays attached for the whole session
3. POST the SDP offer to the Realtime endpoint with the token as bearer and apply
   the SDP answer
4. Once the data channel opens, send the session configuration exactly once

Muting never renegotiates: a disabled microphone track keeps emitting silence.
The model's audio arrives as a remote media track and is played straight to the
speaker.
"""

import asyncio
import fractions
import json
import logging
import time
from typing import Any, Dict, List, Optional

import av
import httpx
import numpy as np
from aiortc import MediaStreamTrack, RTCPeerConnection, RTCSessionDescription
from aiortc.mediastreams import MediaStreamError

from voice_search.client.api_client import ServerApiClient
from voice_search.client.audio_bridge import AudioChunk, float_to_pcm16
from voice_search.client.audio_devices import AudioBackend, Microphone, Speaker
from voice_search.client.errors import HandshakeError
from voice_search.client.event_router import OpenAIEventRouter
from voice_search.client.transport import (
    ClosedCallback,
    MessageCallback,
    RealtimeTransport,
    RemoteAudioCallback,
)
from voice_search.config.constants import (
    CAPTURE_FRAME_SIZE,
    DEFAULT_REALTIME_MODEL,
    LOGGER_NAME,
    OPENAI_REALTIME_URL,
    WEBRTC_SAMPLE_RATE,
)
from voice_search.models.openai_schemas import (
    ConversationItemCreateMessage,
    FunctionCallOutputItem,
    ResponseCreateMessage,
    SessionConfig,
    SessionUpdateMessage,
)
from voice_search.models.session_events import ToolResult

logger = logging.getLogger(LOGGER_NAME)

DATA_CHANNEL_LABEL = "oai-events"
FRAME_DURATION = 0.02  # 20ms frames
CHANNEL_OPEN_TIMEOUT = 15.0  # seconds
SDP_TIMEOUT = 15.0  # seconds
MAX_BUFFERED_SECONDS = 1.0


class MicrophoneTrack(MediaStreamTrack):
    """
    Outbound audio track fed by the capture device.

    Captured samples are buffered and sliced into 20ms s16 frames paced in real
    time. While disabled the buffer is discarded and silence is sent instead.
    """

    kind = "audio"

    def __init__(self, sample_rate: int = WEBRTC_SAMPLE_RATE):
        super().__init__()
        self.sample_rate = sample_rate
        self.samples_per_frame = int(sample_rate * FRAME_DURATION)
        self.enabled = False
        self._buffer = np.zeros(0, dtype=np.float32)
        self._timestamp = 0
        self._start: Optional[float] = None

    def push(self, samples: np.ndarray) -> None:
        """Append captured samples; ignored while the track is disabled."""
        if not self.enabled:
            return
        self._buffer = np.concatenate([self._buffer, np.asarray(samples, dtype=np.float32)])
        limit = int(self.sample_rate * MAX_BUFFERED_SECONDS)
        if len(self._buffer) > limit:
            self._buffer = self._buffer[-limit:]

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self._buffer = np.zeros(0, dtype=np.float32)

    def next_samples(self) -> np.ndarray:
        """Take one frame of samples, padding with silence when short."""
        count = self.samples_per_frame
        if not self.enabled or len(self._buffer) == 0:
            return np.zeros(count, dtype=np.float32)
        samples, self._buffer = self._buffer[:count], self._buffer[count:]
        if len(samples) < count:
            samples = np.concatenate([samples, np.zeros(count - len(samples), dtype=np.float32)])
        return samples

    async def recv(self):
        if self.readyState != "live":
            raise MediaStreamError

        if self._start is None:
            self._start = time.time()
        else:
            wait = self._start + (self._timestamp / self.sample_rate) - time.time()
            if wait > 0:
                await asyncio.sleep(wait)

        pcm = float_to_pcm16(self.next_samples())
        frame = av.AudioFrame.from_ndarray(pcm.reshape(1, -1), format="s16", layout="mono")
        frame.sample_rate = self.sample_rate
        frame.pts = self._timestamp
        frame.time_base = fractions.Fraction(1, self.sample_rate)
        self._timestamp += self.samples_per_frame
        return frame


def frame_to_mono(frame) -> np.ndarray:
    """Convert a decoded s16 audio frame to mono float32 samples."""
    data = frame.to_ndarray()
    channels = len(frame.layout.channels)
    if frame.format.is_planar:
        data = data.reshape(channels, -1).mean(axis=0)
    else:
        data = data.reshape(-1, channels).mean(axis=1)
    return (data / 32768.0).astype(np.float32)


class WebRTCTransport(RealtimeTransport):
    """Realtime transport for the OpenAI Realtime API."""

    provider = "openai"

    def __init__(
        self,
        audio_backend: Optional[AudioBackend] = None,
        model: str = DEFAULT_REALTIME_MODEL,
        session_config: Optional[SessionConfig] = None,
        realtime_url: str = OPENAI_REALTIME_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        channel_open_timeout: float = CHANNEL_OPEN_TIMEOUT,
    ):
        super().__init__(audio_backend)
        self.model = model
        self.session_config = session_config or SessionConfig()
        self.realtime_url = realtime_url
        self.channel_open_timeout = channel_open_timeout
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self.pc: Optional[RTCPeerConnection] = None
        self.channel = None
        self.mic_track: Optional[MicrophoneTrack] = None
        self._microphone: Optional[Microphone] = None
        self._speaker: Optional[Speaker] = None
        self._player_task: Optional[asyncio.Task] = None
        self._channel_opened: Optional[asyncio.Event] = None
        self._session_configured = False
        self._is_closing = False

    async def fetch_credential(self, api_client: ServerApiClient) -> str:
        return await api_client.fetch_session_token()

    def create_router(self) -> OpenAIEventRouter:
        return OpenAIEventRouter()

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=SDP_TIMEOUT)
        return self._http_client

    @property
    def is_open(self) -> bool:
        return self.channel is not None and self.channel.readyState == "open"

    async def open(
        self,
        credential: str,
        on_message: MessageCallback,
        on_closed: ClosedCallback,
        on_remote_audio: RemoteAudioCallback,
    ) -> None:
        self._is_closing = False
        self._session_configured = False
        self._channel_opened = asyncio.Event()

        logger.info("Token received, creating peer connection...")
        self.pc = RTCPeerConnection()

        @self.pc.on("track")
        def on_track(track):
            if track.kind != "audio":
                return
            logger.info("Received remote audio track")
            self._player_task = asyncio.ensure_future(self._play_remote(track))
            on_remote_audio()

        @self.pc.on("connectionstatechange")
        async def on_connectionstatechange():
            logger.info(f"Connection state is {self.pc.connectionState if self.pc else 'closed'}")

        self.channel = self.pc.createDataChannel(DATA_CHANNEL_LABEL)

        @self.channel.on("open")
        def on_open():
            logger.info("Data channel opened")
            self._send_session_update()
            self._channel_opened.set()

        @self.channel.on("message")
        def on_channel_message(message):
            on_message(message)

        @self.channel.on("close")
        def on_close():
            logger.info("Data channel closed")
            if not self._is_closing:
                on_closed()

        backend = self.audio_backend()
        self.mic_track = MicrophoneTrack(WEBRTC_SAMPLE_RATE)
        self._microphone = backend.open_microphone(WEBRTC_SAMPLE_RATE, CAPTURE_FRAME_SIZE, self.mic_track.push)
        self._microphone.start()
        self.pc.addTrack(self.mic_track)

        offer = await self.pc.createOffer()
        await self.pc.setLocalDescription(offer)
        self._raise_if_closed()
        answer_sdp = await self._exchange_sdp(credential, self.pc.localDescription.sdp)
        self._raise_if_closed()
        try:
            await self.pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
        except ValueError as e:
            raise HandshakeError(f"Failed to connect: invalid SDP answer ({e})") from e

        try:
            await asyncio.wait_for(self._channel_opened.wait(), timeout=self.channel_open_timeout)
        except asyncio.TimeoutError as e:
            raise HandshakeError("Failed to connect: data channel did not open") from e
        self._raise_if_closed()
        logger.info("WebRTC connection established")

    def _raise_if_closed(self) -> None:
        if self._is_closing or self.pc is None:
            raise HandshakeError("Failed to connect: closed during handshake")

    async def _exchange_sdp(self, token: str, offer_sdp: str) -> str:
        """POST the SDP offer and return the answer SDP."""
        try:
            response = await self._get_http_client().post(
                self.realtime_url,
                params={"model": self.model},
                content=offer_sdp,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/sdp",
                },
            )
        except httpx.HTTPError as e:
            raise HandshakeError(f"Failed to connect: {e}") from e
        if not response.is_success:
            raise HandshakeError(f"Failed to connect: {response.reason_phrase or response.status_code}")
        return response.text

    def _send_session_update(self) -> None:
        if self._session_configured:
            return
        self._session_configured = True
        message = SessionUpdateMessage(session=self.session_config)
        self.channel.send(json.dumps(message.model_dump(exclude_none=True)))
        logger.debug("Session configuration sent")

    async def _play_remote(self, track) -> None:
        """Play the model's audio track until it ends."""
        try:
            while True:
                frame = await track.recv()
                if self._speaker is None:
                    self._speaker = self.audio_backend().open_speaker(frame.sample_rate)
                await self._speaker.play(AudioChunk(samples=frame_to_mono(frame), sample_rate=frame.sample_rate))
        except MediaStreamError:
            logger.info("Remote audio track ended")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error playing remote audio: {e}", exc_info=True)

    async def send(self, message: Dict[str, Any]) -> bool:
        if not self.is_open:
            logger.warning("Cannot send - data channel not open")
            return False
        self.channel.send(json.dumps(message))
        return True

    def set_microphone_enabled(self, enabled: bool) -> None:
        super().set_microphone_enabled(enabled)
        if self.mic_track is not None:
            self.mic_track.set_enabled(enabled)

    def tool_result_messages(self, result: ToolResult) -> List[Dict[str, Any]]:
        item = FunctionCallOutputItem(call_id=result.call_id, output=result.output)
        return [
            ConversationItemCreateMessage(item=item).model_dump(),
            ResponseCreateMessage().model_dump(),
        ]

    async def close(self) -> None:
        logger.info("Closing OpenAI WebRTC transport")
        self._is_closing = True
        self.microphone_enabled = False
        if self._channel_opened is not None:
            self._channel_opened.set()

        if self._microphone is not None:
            self._microphone.stop()
            self._microphone = None
        if self.mic_track is not None:
            self.mic_track.stop()
            self.mic_track = None

        if self._player_task is not None and not self._player_task.done():
            self._player_task.cancel()
            try:
                await self._player_task
            except asyncio.CancelledError:
                pass
        self._player_task = None

        if self.channel is not None:
            self.channel.close()
            self.channel = None
        if self.pc is not None:
            pc, self.pc = self.pc, None
            await pc.close()

        if self._speaker is not None:
            self._speaker.close()
            self._speaker = None
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        self.release_audio_backend()
