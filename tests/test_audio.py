"""Tests for PCM codecs, volume metering, playback scheduling and the WebSocket bridge."""

import asyncio
import io

import numpy as np
import pytest
import soundfile as sf

from nova_support.core.exceptions import AudioDeviceException
from nova_support.realtime.audio import (
    PlaybackScheduler,
    decode_pcm16,
    encode_pcm16,
    float_to_pcm16,
    pcm16_to_float,
    pcm_to_wav,
    rms_volume,
    split_fragments,
    wav_to_pcm
)
from nova_support.realtime.bridge import EventChannel, WebSocketCapture, WebSocketPlayback

from tests.conftest import FakePlayback


class TestPcmCodec:
    def test_blob_metadata(self):
        blob = encode_pcm16(np.zeros(160, dtype=np.float32), 16000)
        assert blob.mime_type == "audio/pcm;rate=16000"
        assert blob.to_dict()["mimeType"] == "audio/pcm;rate=16000"

    def test_full_scale_is_clipped(self):
        data = float_to_pcm16(np.array([2.0, -2.0], dtype=np.float32))
        assert np.frombuffer(data, dtype="<i2").tolist() == [32767, -32767]

    def test_decode_is_close_to_input(self):
        samples = np.linspace(-0.9, 0.9, 64).astype(np.float32)
        decoded = decode_pcm16(encode_pcm16(samples, 24000))
        assert np.allclose(decoded, samples, atol=1e-3)

    def test_odd_byte_is_dropped(self):
        assert pcm16_to_float(b"\x00\x00\x01").size == 1


class TestVolume:
    def test_silence(self):
        assert rms_volume(np.zeros(100, dtype=np.float32)) == 0.0

    def test_empty_chunk(self):
        assert rms_volume(np.array([], dtype=np.float32)) == 0.0

    def test_scaled_rms(self):
        samples = np.full(100, 0.1, dtype=np.float32)
        assert rms_volume(samples, scale=5.0) == pytest.approx(0.5)

    def test_saturates_at_one(self):
        samples = np.full(100, 0.9, dtype=np.float32)
        assert rms_volume(samples, scale=5.0) == 1.0


class TestWav:
    def test_wav_round_trip_keeps_rate(self):
        samples = np.linspace(-0.5, 0.5, 240).astype(np.float32)
        decoded, rate = wav_to_pcm(pcm_to_wav(samples, 24000))
        assert rate == 24000
        assert decoded.size == 240

    def test_stereo_is_mixed_to_mono(self):
        left = np.full(100, 0.5, dtype=np.float32)
        right = np.zeros(100, dtype=np.float32)
        buffer = io.BytesIO()
        sf.write(buffer, np.stack([left, right], axis=1), 16000, format="WAV", subtype="PCM_16")

        decoded, rate = wav_to_pcm(buffer.getvalue())

        assert rate == 16000
        assert decoded.shape == (100,)
        assert np.allclose(decoded, 0.25, atol=1e-3)

    def test_out_of_range_samples_are_clipped(self):
        decoded, _ = wav_to_pcm(pcm_to_wav(np.array([3.0, -3.0], dtype=np.float32), 24000))
        assert np.allclose(decoded, [1.0, -1.0], atol=1e-3)

    def test_split_fragments(self):
        samples = np.zeros(24000 + 100, dtype=np.float32)
        fragments = split_fragments(samples, 24000, fragment_ms=500)
        assert [f.size for f in fragments] == [12000, 12000, 100]


class TestPlaybackScheduler:
    def test_fragments_play_back_to_back(self):
        playback = FakePlayback()
        scheduler = PlaybackScheduler(playback)

        first = scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)
        second = scheduler.schedule(np.zeros(24000, dtype=np.float32), 24000)

        assert first.start_time == 0.0
        assert second.start_time == pytest.approx(0.5)
        assert scheduler.next_start_time == pytest.approx(1.5)

    def test_late_fragment_starts_now(self):
        playback = FakePlayback()
        scheduler = PlaybackScheduler(playback)
        scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)

        playback.time = 3.0
        fragment = scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)

        assert fragment.start_time == 3.0
        assert scheduler.next_start_time == pytest.approx(3.5)

    def test_finished_fragments_are_pruned(self):
        playback = FakePlayback()
        scheduler = PlaybackScheduler(playback)
        scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)

        playback.time = 1.0
        scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)

        assert [f.handle for f in scheduler.scheduled] == [2]

    def test_interrupt_stops_everything_and_rewinds(self):
        playback = FakePlayback()
        scheduler = PlaybackScheduler(playback)
        first = scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)
        second = scheduler.schedule(np.zeros(12000, dtype=np.float32), 24000)
        assert (first.start_time, second.start_time) == (0.0, 0.5)

        playback.time = 0.3
        stopped = scheduler.interrupt()

        assert stopped == 2
        assert sorted(playback.stopped) == [1, 2]
        assert scheduler.scheduled == []
        assert scheduler.next_start_time == 0.3

        fragment = scheduler.schedule(np.zeros(2400, dtype=np.float32), 24000)
        assert fragment.start_time == 0.3

    def test_interrupt_survives_stop_errors(self):
        class FlakyPlayback(FakePlayback):
            def stop(self, handle):
                raise RuntimeError("already ended")

        scheduler = PlaybackScheduler(FlakyPlayback())
        scheduler.schedule(np.zeros(100, dtype=np.float32), 24000)

        assert scheduler.interrupt() == 0
        assert scheduler.scheduled == []


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestWebSocketBridge:
    def test_capture_splits_frames_into_chunks(self):
        capture = WebSocketCapture(sample_rate=16000, chunk_size=4)
        chunks = []

        asyncio.run(capture.open())
        capture.start(chunks.append)
        capture.feed(float_to_pcm16(np.zeros(10, dtype=np.float32)))

        assert [c.samples.size for c in chunks] == [4, 4, 2]
        assert chunks[0].sample_rate == 16000

    def test_capture_ignores_frames_before_start(self):
        capture = WebSocketCapture(chunk_size=4)
        chunks = []
        capture.feed(b"\x00\x00" * 8)
        assert chunks == []

    def test_capture_start_requires_open(self):
        capture = WebSocketCapture()
        with pytest.raises(AudioDeviceException):
            capture.start(lambda chunk: None)

    def test_playback_events(self):
        events = EventChannel()
        clock = FakeClock()
        playback = WebSocketPlayback(events, clock=clock)

        assert playback.current_time == 0.0
        asyncio.run(playback.open())
        clock.now = 100.25
        assert playback.current_time == pytest.approx(0.25)

        handle = playback.play(np.zeros(10, dtype=np.float32), 24000, 0.5)
        playback.stop(handle)
        asyncio.run(playback.close())

        queued = []
        while not events._queue.empty():
            queued.append(events._queue.get_nowait())
        assert queued[0]["type"] == "audio"
        assert queued[0]["id"] == handle
        assert queued[0]["start_time"] == 0.5
        assert queued[1] == {"type": "audio_stop", "id": handle}
        assert queued[2] == {"type": "audio_stop", "id": None}

    def test_playback_requires_open(self):
        playback = WebSocketPlayback(EventChannel())
        with pytest.raises(AudioDeviceException):
            playback.play(np.zeros(10, dtype=np.float32), 24000, 0.0)

    def test_closed_channel_drops_events(self):
        events = EventChannel()
        events.close()
        events.put({"type": "pong"})
        assert events._queue.qsize() == 1
