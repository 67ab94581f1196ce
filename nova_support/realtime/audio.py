"""
Audio Utilities.
PCM16 codecs, volume metering and gapless playback scheduling.
"""

import base64
import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import soundfile as sf

from nova_support.config import get_settings
from nova_support.realtime.contracts import AudioBlob, AudioPlayback

logger = logging.getLogger(__name__)
settings = get_settings()


# =========================
# PCM Codecs
# =========================

def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Float samples in [-1, 1] to little-endian 16-bit PCM."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """Little-endian 16-bit PCM to float32 samples in [-1, 1]."""
    if len(data) % 2:
        data = data[:-1]
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0


def encode_pcm16(samples: np.ndarray, sample_rate: int) -> AudioBlob:
    """Encode float samples as a base64 PCM16 blob."""
    return AudioBlob(
        data=base64.b64encode(float_to_pcm16(samples)).decode("ascii"),
        sample_rate=sample_rate
    )


def decode_pcm16(blob: AudioBlob) -> np.ndarray:
    """Decode a base64 PCM16 blob into float samples."""
    return pcm16_to_float(base64.b64decode(blob.data))


def rms_volume(samples: np.ndarray, scale: Optional[float] = None) -> float:
    """Root-mean-square level scaled into [0, 1] for the volume meter."""
    scale = settings.VOLUME_SCALE if scale is None else scale
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(samples))))
    return min(rms * scale, 1.0)


# =========================
# WAV Containers
# =========================

def pcm_to_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Wrap mono float samples in a 16-bit WAV container."""
    buffer = io.BytesIO()
    sf.write(buffer, np.clip(samples, -1.0, 1.0), sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def wav_to_pcm(wav_bytes: bytes) -> Tuple[np.ndarray, int]:
    """Read a WAV into mono float samples and its sample rate."""
    data, sample_rate = sf.read(io.BytesIO(wav_bytes), dtype="float32")

    # Convert to mono if stereo
    if len(data.shape) > 1:
        data = np.mean(data, axis=1).astype(np.float32)
    return data, sample_rate


def split_fragments(
    samples: np.ndarray,
    sample_rate: int,
    fragment_ms: Optional[int] = None
) -> List[np.ndarray]:
    """Cut synthesized speech into playback-sized fragments."""
    fragment_ms = fragment_ms or settings.PLAYBACK_FRAGMENT_MS
    size = max(1, int(sample_rate * fragment_ms / 1000))
    return [samples[i:i + size] for i in range(0, len(samples), size)]


# =========================
# Playback Scheduling
# =========================

@dataclass
class ScheduledFragment:
    """A fragment handed to the playback device."""
    handle: int
    start_time: float
    duration: float

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class PlaybackScheduler:
    """
    Queues output fragments back to back on the playback clock.

    Each fragment starts at the later of the cursor and the device's
    current time, and the cursor then moves past it. `interrupt()` stops
    everything still scheduled and pulls the cursor back to "now".
    """

    def __init__(self, playback: AudioPlayback):
        self.playback = playback
        self.next_start_time = 0.0
        self._scheduled: Dict[int, ScheduledFragment] = {}

    @property
    def scheduled(self) -> List[ScheduledFragment]:
        return list(self._scheduled.values())

    def schedule(self, samples: np.ndarray, sample_rate: int) -> ScheduledFragment:
        self._prune()

        start_time = max(self.next_start_time, self.playback.current_time)
        duration = len(samples) / float(sample_rate)
        handle = self.playback.play(samples, sample_rate, start_time)

        fragment = ScheduledFragment(handle=handle, start_time=start_time, duration=duration)
        self._scheduled[handle] = fragment
        self.next_start_time = start_time + duration
        return fragment

    def interrupt(self) -> int:
        """Stop every scheduled fragment. Returns how many were stopped."""
        stopped = 0
        for fragment in list(self._scheduled.values()):
            try:
                self.playback.stop(fragment.handle)
                stopped += 1
            except Exception as e:
                logger.debug(f"Fragment {fragment.handle} already stopped: {e}")

        self._scheduled.clear()
        self.next_start_time = self.playback.current_time
        logger.info(f"Playback interrupted, {stopped} fragment(s) stopped")
        return stopped

    def reset(self):
        self._scheduled.clear()
        self.next_start_time = 0.0

    def _prune(self):
        now = self.playback.current_time
        finished = [h for h, f in self._scheduled.items() if f.end_time <= now]
        for handle in finished:
            del self._scheduled[handle]
