"""
Live Session Contracts.
Abstract model connection and audio devices used by the voice session.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

import numpy as np

from nova_support.tools.registry import ToolCall, ToolResponse


@dataclass
class AudioBlob:
    """Base64 PCM16 audio as exchanged with the model."""
    data: str
    sample_rate: int

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "mimeType": self.mime_type}


@dataclass
class AudioChunk:
    """One block of captured microphone samples, float32 in [-1, 1]."""
    samples: np.ndarray
    sample_rate: int


@dataclass
class LiveMessage:
    """
    Inbound event from the live model.

    A message may carry a tool-call batch, an audio fragment, an
    interruption signal, or any combination of them.
    """
    tool_calls: List[ToolCall] = field(default_factory=list)
    audio: Optional[AudioBlob] = None
    interrupted: bool = False
    transcript: Optional[str] = None


@dataclass
class LiveConfig:
    """What the live model needs to know before the handshake."""
    system_instruction: str
    tools: List[Dict[str, Any]]
    voice: str
    language: str = "en"
    response_modality: str = "audio"
    input_sample_rate: int = 16000
    output_sample_rate: int = 24000


@dataclass
class LiveCallbacks:
    """Session lifecycle hooks, awaited by the connector."""
    on_open: Callable[[], Awaitable[None]]
    on_message: Callable[[LiveMessage], Awaitable[None]]
    on_close: Callable[[Optional[str]], Awaitable[None]]
    on_error: Callable[[BaseException], Awaitable[None]]


class LiveSession(Protocol):
    """An open full-duplex conversation with the model."""

    def send_realtime_audio(self, blob: AudioBlob) -> None:
        """Queue one capture chunk. Must not block; may raise when closed."""
        ...

    async def send_text(self, text: str) -> None:
        ...

    async def send_tool_results(self, responses: Sequence[ToolResponse]) -> None:
        """Deliver a tool-result batch. Raises SessionClosedException when closed."""
        ...

    async def close(self) -> None:
        ...


class LiveConnector(Protocol):
    """Opens live sessions."""

    async def connect(self, config: LiveConfig, callbacks: LiveCallbacks) -> LiveSession:
        ...


class AudioCapture(Protocol):
    """Microphone path."""

    async def open(self) -> None:
        """Acquire the input device. Raises AudioDeviceException on failure."""
        ...

    def start(self, on_chunk: Callable[[AudioChunk], None]) -> None:
        """Begin delivering chunks."""
        ...

    async def close(self) -> None:
        ...


class AudioPlayback(Protocol):
    """Speaker path with its own clock, in seconds."""

    async def open(self) -> None:
        """Acquire the output device. Raises AudioDeviceException on failure."""
        ...

    @property
    def current_time(self) -> float:
        ...

    def play(self, samples: np.ndarray, sample_rate: int, start_time: float) -> int:
        """Schedule samples at `start_time`; return a fragment handle."""
        ...

    def stop(self, handle: int) -> None:
        ...

    async def close(self) -> None:
        ...
