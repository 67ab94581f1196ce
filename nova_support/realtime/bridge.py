"""
WebSocket Audio Bridge.
The browser acts as microphone and speaker for a voice session.

Capture arrives as binary PCM16 frames at INPUT_SAMPLE_RATE. Playback is
sent back as JSON events; start times are on a server-side clock that
starts when playback opens, and the client offsets them onto its own
audio clock.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

import numpy as np
from fastapi import WebSocket

from nova_support.config import get_settings
from nova_support.core.exceptions import AudioDeviceException
from nova_support.realtime.audio import encode_pcm16, pcm16_to_float
from nova_support.realtime.contracts import AudioChunk

logger = logging.getLogger(__name__)
settings = get_settings()


class EventChannel:
    """Outbound JSON events for one WebSocket, written by a single task."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def put(self, event: Dict[str, Any]):
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self):
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def drain(self, websocket: WebSocket):
        """Send queued events until the channel is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            await websocket.send_json(event)


class WebSocketCapture:
    """Microphone fed by binary frames from the client."""

    def __init__(self, sample_rate: Optional[int] = None, chunk_size: Optional[int] = None):
        self.sample_rate = sample_rate or settings.INPUT_SAMPLE_RATE
        self.chunk_size = chunk_size or settings.CAPTURE_CHUNK_SIZE
        self._open = False
        self._on_chunk: Optional[Callable[[AudioChunk], None]] = None

    async def open(self):
        self._open = True

    def start(self, on_chunk: Callable[[AudioChunk], None]):
        if not self._open:
            raise AudioDeviceException("microphone", "capture is not open")
        self._on_chunk = on_chunk

    def feed(self, data: bytes):
        """Handle one binary frame. Frames before start() are ignored."""
        if not self._open or self._on_chunk is None:
            return

        samples = pcm16_to_float(data)
        for offset in range(0, samples.size, self.chunk_size):
            self._on_chunk(AudioChunk(
                samples=samples[offset:offset + self.chunk_size],
                sample_rate=self.sample_rate
            ))

    async def close(self):
        self._open = False
        self._on_chunk = None


class WebSocketPlayback:
    """Speaker that forwards scheduled fragments to the client."""

    def __init__(self, events: EventChannel, clock: Callable[[], float] = time.monotonic):
        self._events = events
        self._clock = clock
        self._origin: Optional[float] = None
        self._next_handle = 0

    async def open(self):
        self._origin = self._clock()

    @property
    def is_open(self) -> bool:
        return self._origin is not None

    @property
    def current_time(self) -> float:
        if self._origin is None:
            return 0.0
        return self._clock() - self._origin

    def play(self, samples: np.ndarray, sample_rate: int, start_time: float) -> int:
        if self._origin is None:
            raise AudioDeviceException("speaker", "playback is not open")

        self._next_handle += 1
        self._events.put({
            "type": "audio",
            "id": self._next_handle,
            "start_time": round(start_time, 4),
            "sample_rate": sample_rate,
            "data": encode_pcm16(samples, sample_rate).data
        })
        return self._next_handle

    def stop(self, handle: int):
        self._events.put({"type": "audio_stop", "id": handle})

    async def close(self):
        if self._origin is not None:
            self._events.put({"type": "audio_stop", "id": None})
        self._origin = None
