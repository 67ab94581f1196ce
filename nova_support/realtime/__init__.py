"""
Real-time voice channel.

- contracts: abstract live session and audio devices
- audio: PCM16 codecs, volume meter, playback scheduler
- session: VoiceSession state machine
- groq_live: live session adapter over Groq speech and chat APIs
- bridge: WebSocket-backed capture and playback
"""

from nova_support.realtime.contracts import (
    AudioBlob,
    AudioChunk,
    LiveCallbacks,
    LiveConfig,
    LiveMessage
)
from nova_support.realtime.audio import PlaybackScheduler
from nova_support.realtime.session import ConnectionStatus, VoiceSession

__all__ = [
    "AudioBlob",
    "AudioChunk",
    "LiveCallbacks",
    "LiveConfig",
    "LiveMessage",
    "PlaybackScheduler",
    "ConnectionStatus",
    "VoiceSession"
]
