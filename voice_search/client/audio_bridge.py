"""
Audio format conversion and sequential play-out.

Platform audio works with float32 samples in [-1.0, 1.0]; the realtime wire
protocols carry 16-bit signed little-endian PCM, usually base64 encoded. The
conversion is asymmetric (x32768 for negative samples, x32767 for positive ones)
so both ends of the int16 range are reachable without wraparound.
"""

import asyncio
import base64
import binascii
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Protocol

import numpy as np

from voice_search.config.constants import (
    LOGGER_NAME,
    PCM16_MAX_NEGATIVE,
    PCM16_MAX_POSITIVE,
)

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class AudioChunk:
    """A block of mono float32 samples at a fixed sample rate."""
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Convert float samples to 16-bit signed PCM.

    Args:
        samples: Float samples, nominally in [-1.0, 1.0]

    Returns:
        np.ndarray: int16 samples
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    clipped = np.clip(values, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * PCM16_MAX_NEGATIVE, clipped * PCM16_MAX_POSITIVE)
    return scaled.astype(np.int16)


def pcm16_to_float(samples: np.ndarray) -> np.ndarray:
    """
    Convert 16-bit signed PCM to float32 samples in [-1.0, 1.0].

    Args:
        samples: int16 samples

    Returns:
        np.ndarray: float32 samples
    """
    values = np.asarray(samples, dtype=np.int16).astype(np.float32)
    return np.where(values < 0, values / PCM16_MAX_NEGATIVE, values / PCM16_MAX_POSITIVE).astype(np.float32)


def encode_pcm16_base64(samples: np.ndarray) -> str:
    """Float samples -> little-endian PCM16 bytes -> base64 text."""
    pcm = float_to_pcm16(samples).astype("<i2")
    return base64.b64encode(pcm.tobytes()).decode("utf-8")


def decode_pcm16_base64(data: str) -> np.ndarray:
    """
    Base64 text -> little-endian PCM16 -> float32 samples.

    A trailing odd byte cannot form a sample and is dropped.

    Raises:
        ValueError: If the payload is not valid base64
    """
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"Invalid base64 audio payload: {e}") from e
    usable = len(raw) - (len(raw) % 2)
    pcm = np.frombuffer(raw[:usable], dtype="<i2")
    return pcm16_to_float(pcm)


class AudioSink(Protocol):
    """Anything that can play a chunk and return when it has finished."""

    async def play(self, chunk: AudioChunk) -> None:
        ...


class PlayoutQueue:
    """
    Strict FIFO play-out of inbound audio chunks.

    Only one chunk plays at a time; the next one starts when the current one
    finishes. clear() discards chunks that have not started yet and leaves the
    chunk already handed to the sink alone.
    """

    def __init__(self, sink: AudioSink):
        self.sink = sink
        self._queue: Deque[AudioChunk] = deque()
        self._pump_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_playing(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, chunk: AudioChunk) -> None:
        """Append a chunk and start playback if idle."""
        if self._closed:
            return
        self._queue.append(chunk)
        if not self.is_playing:
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    def clear(self) -> None:
        """Drop every chunk that has not started playing."""
        dropped = len(self._queue)
        self._queue.clear()
        if dropped:
            logger.debug(f"Cleared {dropped} queued audio chunks")

    async def _pump(self) -> None:
        while self._queue and not self._closed:
            chunk = self._queue.popleft()
            try:
                await self.sink.play(chunk)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error playing audio chunk: {e}")

    async def close(self) -> None:
        """Stop play-out and discard everything queued."""
        self._closed = True
        self._queue.clear()
        task, self._pump_task = self._pump_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
