import asyncio
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from voice_search.client.audio_bridge import AudioChunk
from voice_search.client.event_router import OpenAIEventRouter
from voice_search.client.transport import RealtimeTransport
from voice_search.config.settings import Settings
from voice_search.models.search_schemas import BusinessResult, ResultSource
from voice_search.models.session_events import ToolResult


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def settings():
    """Settings with placeholder credentials for every provider."""
    return Settings(
        openai_api_key="test-openai-key",
        elevenlabs_api_key="test-elevenlabs-key",
        elevenlabs_agent_id="agent-123",
        supabase_url="https://example.supabase.co",
        supabase_service_key="test-supabase-key",
        google_places_api_key="test-places-key",
    )


def make_business(index: int, source: ResultSource = ResultSource.VECTOR_STORE, **overrides) -> BusinessResult:
    data = {
        "id": f"biz-{index}",
        "name": f"Business {index}",
        "description": f"Description {index}",
        "address": f"{index} Main St, Sacramento, CA 95814, USA",
        "city": "Sacramento",
        "latitude": 38.58,
        "longitude": -121.49,
        "source": source,
        "similarity": 0.9 - index * 0.01 if source == ResultSource.VECTOR_STORE else None,
    }
    data.update(overrides)
    return BusinessResult(**data)


@pytest.fixture
def business_factory():
    return make_business


class FakeMicrophone:
    def __init__(self, sample_rate, frame_size, on_frame, fail=False):
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.on_frame = on_frame
        self.fail = fail
        self.started = False
        self.stopped = False

    def start(self):
        if self.fail:
            from voice_search.client.errors import MicrophoneUnavailableError
            raise MicrophoneUnavailableError()
        self.started = True

    def stop(self):
        self.stopped = True

    def emit(self, samples):
        """Simulate a capture callback already marshalled onto the loop."""
        self.on_frame(np.asarray(samples, dtype=np.float32))


class FakeSpeaker:
    def __init__(self, sample_rate=16000, delay=0.0):
        self.sample_rate = sample_rate
        self.delay = delay
        self.played: List[AudioChunk] = []
        self.started: List[AudioChunk] = []
        self.closed = False

    async def play(self, chunk):
        self.started.append(chunk)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.played.append(chunk)

    def close(self):
        self.closed = True


class FakeAudioBackend:
    """In-memory stand-in for the PyAudio backend."""

    def __init__(self, fail_microphone=False):
        self.fail_microphone = fail_microphone
        self.microphones: List[FakeMicrophone] = []
        self.speakers: List[FakeSpeaker] = []
        self.terminated = False

    def open_microphone(self, sample_rate, frame_size, on_frame):
        microphone = FakeMicrophone(sample_rate, frame_size, on_frame, fail=self.fail_microphone)
        self.microphones.append(microphone)
        return microphone

    def open_speaker(self, sample_rate):
        speaker = FakeSpeaker(sample_rate)
        self.speakers.append(speaker)
        return speaker

    def terminate(self):
        self.terminated = True


@pytest.fixture
def audio_backend():
    return FakeAudioBackend()


class FakeTransport(RealtimeTransport):
    """Transport that records traffic instead of talking to a provider."""

    provider = "fake"

    def __init__(self, open_error: Optional[Exception] = None, credential_error: Optional[Exception] = None):
        super().__init__(audio_backend=FakeAudioBackend())
        self.open_error = open_error
        self.credential_error = credential_error
        self.sent: List[Dict[str, Any]] = []
        self.played = []
        self.interrupted = 0
        self.close_calls = 0
        self.opened_with: Optional[str] = None
        self._open = False
        self.on_message = None
        self.on_closed = None
        self.on_remote_audio = None

    async def fetch_credential(self, api_client):
        if self.credential_error:
            raise self.credential_error
        return "fake-credential"

    def create_router(self):
        return OpenAIEventRouter()

    async def open(self, credential, on_message, on_closed, on_remote_audio):
        if self.open_error:
            raise self.open_error
        self.opened_with = credential
        self.on_message = on_message
        self.on_closed = on_closed
        self.on_remote_audio = on_remote_audio
        self._open = True

    @property
    def is_open(self):
        return self._open

    async def send(self, message):
        if not self._open:
            return False
        self.sent.append(message)
        return True

    def tool_result_messages(self, result: ToolResult):
        return [{"type": "tool_result", "call_id": result.call_id, "output": result.output}]

    def pong_message(self, event_id):
        return {"type": "pong", "event_id": event_id}

    def play_audio(self, event):
        self.played.append(event)

    def interrupt(self):
        self.interrupted += 1

    async def close(self):
        self.close_calls += 1
        self._open = False


@pytest.fixture
def fake_transport():
    return FakeTransport()
