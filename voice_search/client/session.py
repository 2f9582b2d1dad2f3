"""
Provider independent realtime voice session.

RealtimeSession exposes one contract for both providers: connect, microphone
control, user location, teardown and single-slot callbacks. Provider specifics
live in the injected RealtimeTransport; normalized events come from the
transport's router and tool calls are executed through the ToolCallBridge.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from voice_search.client.api_client import ServerApiClient
from voice_search.client.errors import MicrophoneUnavailableError, VoiceSessionError
from voice_search.client.event_router import SessionEventRouter
from voice_search.client.tool_bridge import Coordinate, ToolCallBridge
from voice_search.client.transport import RealtimeTransport
from voice_search.config.constants import LOGGER_NAME
from voice_search.models.search_schemas import BusinessResult
from voice_search.models.session_events import ConnectionState, EventKind, SessionEvent

logger = logging.getLogger(LOGGER_NAME)

Callback = Optional[Callable[..., Any]]


class RealtimeSession:
    """
    A realtime voice conversation with one provider.

    Callbacks are plain callables registered with the on_* methods; registering
    again replaces the previous callback.
    """

    def __init__(
        self,
        transport: RealtimeTransport,
        api_client: Optional[ServerApiClient] = None,
        tool_bridge: Optional[ToolCallBridge] = None,
    ):
        self.transport = transport
        self.api_client = api_client or ServerApiClient()
        self._owns_api_client = api_client is None
        self.tool_bridge = tool_bridge or ToolCallBridge(self.api_client)
        self.state = ConnectionState.DISCONNECTED
        self.is_microphone_active = False
        self.user_location: Optional[Coordinate] = None
        self._router: Optional[SessionEventRouter] = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()

        self._on_connected: Callback = None
        self._on_disconnected: Callback = None
        self._on_error: Callback = None
        self._on_transcript: Callback = None
        self._on_assistant_transcript: Callback = None
        self._on_search_results: Callback = None
        self._on_audio_received: Callback = None
        self._on_microphone_state: Callback = None

    # Callback registration

    def on_connected(self, callback: Callable[[], Any]) -> None:
        self._on_connected = callback

    def on_disconnected(self, callback: Callable[[], Any]) -> None:
        self._on_disconnected = callback

    def on_error(self, callback: Callable[[str], Any]) -> None:
        self._on_error = callback

    def on_transcript(self, callback: Callable[[str], Any]) -> None:
        self._on_transcript = callback

    def on_assistant_transcript(self, callback: Callable[[str], Any]) -> None:
        self._on_assistant_transcript = callback

    def on_search_results(self, callback: Callable[[List[BusinessResult]], Any]) -> None:
        self._on_search_results = callback

    def on_audio_received(self, callback: Callable[[], Any]) -> None:
        self._on_audio_received = callback

    def on_microphone_state(self, callback: Callable[[bool], Any]) -> None:
        self._on_microphone_state = callback

    def _fire(self, callback: Callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in session callback: {e}", exc_info=True)

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED and self.transport.is_open

    # Lifecycle

    async def connect(self) -> bool:
        """
        Connect to the realtime provider.

        Fetches the credential from the server, opens the transport and acquires
        the microphone muted. On failure on_error receives a readable message and
        the session is left disconnected.

        Returns:
            bool: True if the session is connected
        """
        if self.state != ConnectionState.DISCONNECTED:
            logger.warning(f"Connect called while {self.state.value}")
            return self.is_connected

        self.state = ConnectionState.CONNECTING
        self._generation += 1
        generation = self._generation
        self._router = self.transport.create_router()
        logger.info(f"Connecting {self.transport.provider} session...")

        try:
            credential = await self.transport.fetch_credential(self.api_client)
            if generation != self._generation:
                return False
            await self.transport.open(
                credential,
                on_message=self._handle_message,
                on_closed=self._handle_closed,
                on_remote_audio=self._handle_remote_audio,
            )
        except Exception as e:
            if generation != self._generation:
                logger.info("Connect aborted by disconnect")
                await self.transport.close()
                return False
            message = self._connect_error_message(e)
            logger.error(f"Error connecting: {message}")
            await self._teardown()
            self._fire(self._on_error, message)
            return False

        if generation != self._generation:
            await self.transport.close()
            return False

        self.state = ConnectionState.CONNECTED
        logger.info(f"{self.transport.provider} session connected")
        self._fire(self._on_connected)
        return True

    @staticmethod
    def _connect_error_message(error: Exception) -> str:
        if isinstance(error, MicrophoneUnavailableError):
            return str(error)
        message = str(error) or error.__class__.__name__
        if isinstance(error, VoiceSessionError) and message.startswith("Failed to connect"):
            return message
        return f"Failed to connect: {message}"

    async def disconnect(self) -> None:
        """Tear the session down; safe from any state and when called repeatedly."""
        if self.state == ConnectionState.DISCONNECTED:
            return
        was_connected = self.state == ConnectionState.CONNECTED
        logger.info(f"Disconnecting {self.transport.provider} session")

        if self.is_microphone_active:
            self.transport.set_microphone_enabled(False)
            self.is_microphone_active = False
            self._fire(self._on_microphone_state, False)

        await self._teardown()
        if was_connected:
            self._fire(self._on_disconnected)

    async def _teardown(self) -> None:
        self._generation += 1
        self.state = ConnectionState.DISCONNECTED
        self.is_microphone_active = False

        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()

        await self.transport.close()
        if self._router is not None:
            self._router.reset()
            self._router = None
        if self._owns_api_client:
            await self.api_client.close()

    # Microphone

    async def start_microphone(self) -> None:
        if not self.is_connected or self.is_microphone_active:
            return
        self.transport.set_microphone_enabled(True)
        self.is_microphone_active = True
        logger.info("Microphone started")
        self._fire(self._on_microphone_state, True)

    async def stop_microphone(self) -> None:
        if not self.is_connected or not self.is_microphone_active:
            return
        self.transport.set_microphone_enabled(False)
        self.is_microphone_active = False
        logger.info("Microphone stopped")
        self._fire(self._on_microphone_state, False)

    async def toggle_microphone(self) -> None:
        if self.is_microphone_active:
            await self.stop_microphone()
        else:
            await self.start_microphone()

    def set_user_location(self, latitude: float, longitude: float) -> None:
        """Store the coordinate used by later tool calls."""
        self.user_location = (latitude, longitude)
        logger.info(f"User location updated: {latitude}, {longitude}")

    # Inbound traffic

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _handle_message(self, data: Union[str, bytes]) -> None:
        if self._router is None:
            return
        for event in self._router.route(data):
            self._dispatch_event(event)

    def _dispatch_event(self, event: SessionEvent) -> None:
        if event.kind == EventKind.USER_TRANSCRIPT:
            self._fire(self._on_transcript, event.text)
        elif event.kind == EventKind.ASSISTANT_TRANSCRIPT_FINAL:
            self._fire(self._on_assistant_transcript, event.text)
        elif event.kind == EventKind.AUDIO_CHUNK:
            self.transport.play_audio(event)
        elif event.kind == EventKind.INTERRUPTION:
            self.transport.interrupt()
        elif event.kind == EventKind.KEEPALIVE_PING:
            pong = self.transport.pong_message(event.event_id)
            if pong is not None:
                self._spawn(self.transport.send(pong))
        elif event.kind == EventKind.TOOL_CALL_REQUEST:
            self._spawn(self._run_tool_call(event, self._generation))
        elif event.kind == EventKind.ERROR:
            self._fire(self._on_error, event.text)

    async def _run_tool_call(self, event: SessionEvent, generation: int) -> None:
        result = await self.tool_bridge.handle(event, self.user_location)
        if generation != self._generation or not self.transport.is_open:
            logger.info(f"Discarding tool result for {result.call_id}: session was torn down")
            return
        if result.success:
            self._fire(self._on_search_results, result.results)
        for message in self.transport.tool_result_messages(result):
            await self.transport.send(message)

    def _handle_remote_audio(self) -> None:
        self._fire(self._on_audio_received)

    def _handle_closed(self) -> None:
        if self.state == ConnectionState.DISCONNECTED:
            return
        logger.info(f"{self.transport.provider} channel closed by remote")
        self._spawn(self.disconnect())


PROVIDERS = ("openai", "elevenlabs")


def create_session(
    provider: str,
    api_client: Optional[ServerApiClient] = None,
    audio_backend=None,
) -> RealtimeSession:
    """
    Build a session for the named provider.

    Args:
        provider: "openai" (WebRTC) or "elevenlabs" (WebSocket)
        api_client: Client for the voice search server
        audio_backend: Audio device factory; defaults to PyAudio

    Returns:
        RealtimeSession: A disconnected session
    """
    from voice_search.client.socket_transport import SocketTransport
    from voice_search.client.webrtc_transport import WebRTCTransport

    if provider == "openai":
        transport = WebRTCTransport(audio_backend=audio_backend)
    elif provider == "elevenlabs":
        transport = SocketTransport(audio_backend=audio_backend)
    else:
        raise ValueError(f"Unknown provider: {provider} (expected one of {', '.join(PROVIDERS)})")
    return RealtimeSession(transport, api_client=api_client)
