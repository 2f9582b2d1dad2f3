"""
Local audio devices backed by PyAudio.

PyAudio is an optional dependency (install the `audio` extra); it is imported when
a backend is created so the server and the tests never need PortAudio. Capture
callbacks run on the PortAudio thread and only convert the buffer and hand it to
the event loop with call_soon_threadsafe.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

import numpy as np

from voice_search.client.audio_bridge import AudioChunk
from voice_search.client.errors import MicrophoneUnavailableError
from voice_search.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# Type hint for capture consumers; always invoked on the event loop thread
FrameCallback = Callable[[np.ndarray], None]


class Microphone(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


class Speaker(Protocol):
    async def play(self, chunk: AudioChunk) -> None:
        ...

    def close(self) -> None:
        ...


class AudioBackend(Protocol):
    """Factory for capture and playback devices."""

    def open_microphone(self, sample_rate: int, frame_size: int, on_frame: FrameCallback) -> Microphone:
        ...

    def open_speaker(self, sample_rate: int) -> Speaker:
        ...

    def terminate(self) -> None:
        ...


class MicrophoneCapture:
    """Mono float32 capture stream delivering fixed-size frames to the event loop."""

    def __init__(self, pyaudio_module: Any, pa: Any, sample_rate: int, frame_size: int, on_frame: FrameCallback):
        self._pyaudio = pyaudio_module
        self._pa = pa
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.on_frame = on_frame
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self) -> None:
        """
        Open the default input device and start capturing.

        Raises:
            MicrophoneUnavailableError: If the device cannot be opened
        """
        if self._stream is not None:
            return
        self._loop = asyncio.get_running_loop()
        try:
            self._stream = self._pa.open(
                format=self._pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.frame_size,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except OSError as e:
            logger.error(f"Could not open microphone: {e}")
            self._stream = None
            raise MicrophoneUnavailableError() from e
        logger.info(f"Microphone initialized: {self.sample_rate}Hz, 1 channel")

    def _callback(self, in_data, frame_count, time_info, status):
        samples = np.frombuffer(in_data, dtype=np.float32).copy()
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.on_frame, samples)
        return (None, self._pyaudio.paContinue)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop_stream()
            stream.close()
        except OSError as e:
            logger.warning(f"Error closing microphone stream: {e}")
        logger.info("Microphone stopped")


class SpeakerOutput:
    """Blocking PyAudio output stream driven from a worker thread."""

    def __init__(self, pyaudio_module: Any, pa: Any, sample_rate: int):
        self.sample_rate = sample_rate
        self._stream = pa.open(
            format=pyaudio_module.paFloat32,
            channels=1,
            rate=sample_rate,
            output=True,
        )

    async def play(self, chunk: AudioChunk) -> None:
        """Write the chunk and return once the device has accepted all of it."""
        if self._stream is None:
            return
        data = np.asarray(chunk.samples, dtype=np.float32).tobytes()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._stream.write, data)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop_stream()
            stream.close()
        except OSError as e:
            logger.warning(f"Error closing speaker stream: {e}")


class PyAudioBackend:
    """Default audio backend using the system's default input and output devices."""

    def __init__(self):
        try:
            import pyaudio
        except ImportError as e:
            raise MicrophoneUnavailableError(
                "PyAudio is not installed; install the 'audio' extra to use local devices"
            ) from e
        self._pyaudio = pyaudio
        self._pa = pyaudio.PyAudio()

    def open_microphone(self, sample_rate: int, frame_size: int, on_frame: FrameCallback) -> MicrophoneCapture:
        return MicrophoneCapture(self._pyaudio, self._pa, sample_rate, frame_size, on_frame)

    def open_speaker(self, sample_rate: int) -> SpeakerOutput:
        try:
            return SpeakerOutput(self._pyaudio, self._pa, sample_rate)
        except OSError as e:
            raise MicrophoneUnavailableError(f"Audio output device is unavailable: {e}") from e

    def terminate(self) -> None:
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
