"""
Unit tests for the provider independent RealtimeSession.

The transport is replaced by FakeTransport (see conftest.py) so these tests
exercise state transitions, callbacks and tool-call orchestration only.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from voice_search.client.errors import CredentialError, HandshakeError, MicrophoneUnavailableError
from voice_search.client.session import RealtimeSession, create_session
from voice_search.client.socket_transport import SocketTransport
from voice_search.client.webrtc_transport import WebRTCTransport
from voice_search.models.session_events import ConnectionState, EventKind, SessionEvent, ToolResult
from conftest import FakeAudioBackend, FakeTransport


@pytest.fixture
def api_client():
    return MagicMock()


@pytest.fixture
def tool_bridge():
    bridge = MagicMock()
    bridge.handle = AsyncMock(return_value=ToolResult(call_id="call_1", success=True, output="narration"))
    return bridge


@pytest.fixture
def session(fake_transport, api_client, tool_bridge):
    return RealtimeSession(fake_transport, api_client=api_client, tool_bridge=tool_bridge)


def openai_frame(**payload):
    return json.dumps(payload)


@pytest.mark.asyncio
async def test_connect_success(session, fake_transport):
    connected = MagicMock()
    session.on_connected(connected)

    assert await session.connect() is True

    assert session.state == ConnectionState.CONNECTED
    assert session.is_connected
    assert session.is_microphone_active is False
    assert fake_transport.opened_with == "fake-credential"
    connected.assert_called_once_with()


@pytest.mark.asyncio
async def test_connect_credential_failure(api_client, tool_bridge):
    transport = FakeTransport(credential_error=CredentialError("Server rejected credential request (500)"))
    session = RealtimeSession(transport, api_client=api_client, tool_bridge=tool_bridge)
    errors = []
    session.on_error(errors.append)

    assert await session.connect() is False

    assert session.state == ConnectionState.DISCONNECTED
    assert errors == ["Failed to connect: Server rejected credential request (500)"]
    assert transport.close_calls == 1


@pytest.mark.asyncio
async def test_connect_handshake_failure_message_not_double_prefixed(api_client, tool_bridge):
    transport = FakeTransport(open_error=HandshakeError("Failed to connect: Unauthorized"))
    session = RealtimeSession(transport, api_client=api_client, tool_bridge=tool_bridge)
    errors = []
    session.on_error(errors.append)

    assert await session.connect() is False
    assert errors == ["Failed to connect: Unauthorized"]


@pytest.mark.asyncio
async def test_connect_microphone_denied(api_client, tool_bridge):
    transport = FakeTransport(open_error=MicrophoneUnavailableError())
    session = RealtimeSession(transport, api_client=api_client, tool_bridge=tool_bridge)
    errors = []
    session.on_error(errors.append)

    assert await session.connect() is False
    assert errors == ["Microphone access was denied or is unavailable"]
    assert session.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_toggle_before_connect_is_noop(session):
    states = []
    session.on_microphone_state(states.append)

    await session.toggle_microphone()
    await session.start_microphone()

    assert session.is_microphone_active is False
    assert states == []


@pytest.mark.asyncio
async def test_toggle_twice_fires_alternating_states(session, fake_transport):
    states = []
    session.on_microphone_state(states.append)
    await session.connect()

    await session.toggle_microphone()
    assert fake_transport.microphone_enabled is True
    await session.toggle_microphone()

    assert states == [True, False]
    assert session.is_microphone_active is False
    assert fake_transport.microphone_enabled is False


@pytest.mark.asyncio
async def test_start_when_already_active_is_noop(session):
    states = []
    session.on_microphone_state(states.append)
    await session.connect()

    await session.start_microphone()
    await session.start_microphone()
    await session.stop_microphone()
    await session.stop_microphone()

    assert states == [True, False]


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(session, fake_transport):
    disconnected = MagicMock()
    states = []
    session.on_disconnected(disconnected)
    session.on_microphone_state(states.append)
    await session.connect()
    await session.start_microphone()

    await session.disconnect()
    await session.disconnect()

    assert session.state == ConnectionState.DISCONNECTED
    assert fake_transport.close_calls == 1
    disconnected.assert_called_once_with()
    assert states == [True, False]


@pytest.mark.asyncio
async def test_disconnect_before_connect_is_noop(session, fake_transport):
    await session.disconnect()
    assert fake_transport.close_calls == 0


@pytest.mark.asyncio
async def test_disconnect_mid_handshake(api_client, tool_bridge):
    transport = FakeTransport()
    gate = asyncio.Event()

    async def slow_credential(client):
        await gate.wait()
        return "late-credential"

    transport.fetch_credential = slow_credential
    session = RealtimeSession(transport, api_client=api_client, tool_bridge=tool_bridge)
    connected = MagicMock()
    session.on_connected(connected)

    connect_task = asyncio.ensure_future(session.connect())
    await asyncio.sleep(0)
    assert session.state == ConnectionState.CONNECTING

    await session.disconnect()
    gate.set()

    assert await connect_task is False
    assert session.state == ConnectionState.DISCONNECTED
    assert transport.opened_with is None
    connected.assert_not_called()


@pytest.mark.asyncio
async def test_disconnect_while_transport_opening(api_client, tool_bridge):
    transport = FakeTransport()
    gate = asyncio.Event()
    open_channel = transport.open

    async def slow_open(credential, on_message, on_closed, on_remote_audio):
        await gate.wait()
        await open_channel(credential, on_message, on_closed, on_remote_audio)
        raise HandshakeError("Failed to connect: closed during handshake")

    transport.open = slow_open
    session = RealtimeSession(transport, api_client=api_client, tool_bridge=tool_bridge)
    connected, errors = MagicMock(), MagicMock()
    session.on_connected(connected)
    session.on_error(errors)

    connect_task = asyncio.ensure_future(session.connect())
    await asyncio.sleep(0.01)
    await session.disconnect()
    gate.set()

    assert await connect_task is False
    assert session.state == ConnectionState.DISCONNECTED
    assert not transport.is_open
    assert transport.close_calls == 2
    connected.assert_not_called()
    errors.assert_not_called()


@pytest.mark.asyncio
async def test_owned_api_client_closed_on_disconnect(fake_transport, tool_bridge):
    session = RealtimeSession(fake_transport, tool_bridge=tool_bridge)
    session.api_client.close = AsyncMock()

    await session.connect()
    await session.disconnect()

    session.api_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_injected_api_client_left_open(session, api_client):
    await session.connect()
    await session.disconnect()

    api_client.close.assert_not_called()


@pytest.mark.asyncio
async def test_transcripts_are_forwarded(session, fake_transport):
    user, assistant = [], []
    session.on_transcript(user.append)
    session.on_assistant_transcript(assistant.append)
    await session.connect()

    fake_transport.on_message(openai_frame(
        type="conversation.item.input_audio_transcription.completed", transcript="find tacos",
    ))
    fake_transport.on_message(openai_frame(type="response.audio_transcript.delta", delta="Sure, "))
    fake_transport.on_message(openai_frame(type="response.audio_transcript.delta", delta="searching."))
    fake_transport.on_message(openai_frame(type="response.audio_transcript.done"))

    assert user == ["find tacos"]
    assert assistant == ["Sure, searching."]


@pytest.mark.asyncio
async def test_provider_error_keeps_connection(session, fake_transport):
    errors = []
    session.on_error(errors.append)
    await session.connect()

    fake_transport.on_message(openai_frame(type="error", error={"message": "Invalid event"}))

    assert errors == ["Invalid event"]
    assert session.is_connected


@pytest.mark.asyncio
async def test_interruption_clears_playout(session, fake_transport):
    await session.connect()
    fake_transport.on_message(openai_frame(type="input_audio_buffer.speech_started"))
    assert fake_transport.interrupted == 1


@pytest.mark.asyncio
async def test_audio_chunk_is_played(session, fake_transport):
    await session.connect()
    event = SessionEvent(kind=EventKind.AUDIO_CHUNK, audio=np.zeros(4, dtype=np.float32), sample_rate=16000)
    session._dispatch_event(event)
    assert len(fake_transport.played) == 1
    assert fake_transport.played[0] is event


@pytest.mark.asyncio
async def test_remote_audio_fires_callback(session, fake_transport):
    audio_received = MagicMock()
    session.on_audio_received(audio_received)
    await session.connect()

    fake_transport.on_remote_audio()

    audio_received.assert_called_once_with()


@pytest.mark.asyncio
async def test_ping_is_answered(session, fake_transport):
    await session.connect()
    session._dispatch_event(SessionEvent(kind=EventKind.KEEPALIVE_PING, event_id=42))
    await asyncio.sleep(0)
    assert fake_transport.sent == [{"type": "pong", "event_id": 42}]


@pytest.mark.asyncio
async def test_tool_call_round_trip(session, fake_transport, tool_bridge, business_factory):
    results_seen = []
    session.on_search_results(results_seen.append)
    session.set_user_location(38.6, -121.4)
    tool_bridge.handle.return_value = ToolResult(
        call_id="call_1", success=True, output="narration", results=[business_factory(1)],
    )
    await session.connect()

    fake_transport.on_message(openai_frame(
        type="response.function_call_arguments.done",
        call_id="call_1",
        name="search_nearby_business",
        arguments='{"query": "coffee"}',
    ))
    await asyncio.sleep(0.01)

    event, location = tool_bridge.handle.await_args.args
    assert event.arguments == {"query": "coffee"}
    assert location == (38.6, -121.4)
    assert fake_transport.sent == [{"type": "tool_result", "call_id": "call_1", "output": "narration"}]
    assert len(results_seen) == 1
    assert results_seen[0][0].name == "Business 1"


@pytest.mark.asyncio
async def test_failed_tool_call_does_not_emit_results(session, fake_transport, tool_bridge):
    results_seen = []
    session.on_search_results(results_seen.append)
    tool_bridge.handle.return_value = ToolResult(
        call_id="call_1", success=False, output='{"success": false, "error": "boom"}',
    )
    await session.connect()

    session._dispatch_event(SessionEvent(kind=EventKind.TOOL_CALL_REQUEST, call_id="call_1", tool_name="x"))
    await asyncio.sleep(0.01)

    assert results_seen == []
    assert fake_transport.sent[0]["output"] == '{"success": false, "error": "boom"}'


@pytest.mark.asyncio
async def test_tool_result_after_disconnect_is_discarded(session, fake_transport, tool_bridge):
    gate = asyncio.Event()

    async def slow_handle(event, location):
        await gate.wait()
        return ToolResult(call_id="call_1", success=True, output="late")

    tool_bridge.handle = AsyncMock(side_effect=slow_handle)
    results_seen = []
    session.on_search_results(results_seen.append)
    await session.connect()

    session._dispatch_event(SessionEvent(kind=EventKind.TOOL_CALL_REQUEST, call_id="call_1", tool_name="x"))
    await asyncio.sleep(0)
    await session.disconnect()
    gate.set()
    await asyncio.sleep(0.01)

    assert fake_transport.sent == []
    assert results_seen == []


@pytest.mark.asyncio
async def test_remote_close_disconnects(session, fake_transport):
    disconnected = MagicMock()
    session.on_disconnected(disconnected)
    await session.connect()

    fake_transport.on_closed()
    await asyncio.sleep(0.01)

    assert session.state == ConnectionState.DISCONNECTED
    disconnected.assert_called_once_with()


@pytest.mark.asyncio
async def test_callback_errors_do_not_break_session(session):
    def broken():
        raise RuntimeError("ui crashed")

    session.on_connected(broken)
    assert await session.connect() is True


@pytest.mark.asyncio
async def test_registering_callback_replaces_previous(session):
    first, second = MagicMock(), MagicMock()
    session.on_connected(first)
    session.on_connected(second)

    await session.connect()

    first.assert_not_called()
    second.assert_called_once_with()


def test_create_session_selects_transport():
    backend = FakeAudioBackend()
    assert isinstance(create_session("openai", MagicMock(), backend).transport, WebRTCTransport)
    assert isinstance(create_session("elevenlabs", MagicMock(), backend).transport, SocketTransport)
    with pytest.raises(ValueError):
        create_session("unknown", MagicMock(), backend)
