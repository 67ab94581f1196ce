"""
Voice WebSocket Endpoints.
Live full-duplex voice conversations with the support agent.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from nova_support.config import get_settings
from nova_support.realtime.bridge import EventChannel, WebSocketCapture, WebSocketPlayback
from nova_support.realtime.session import ConnectionStatus, VoiceSession

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


@router.websocket("/live")
async def voice_live(websocket: WebSocket):
    """
    WebSocket endpoint for live voice sessions.

    Protocol:
    1. Client connects and sends {"type": "start"}
    2. Server answers with status events (connecting, connected, ...)
    3. Client streams microphone audio as binary frames
       (16-bit PCM, mono, INPUT_SAMPLE_RATE)
    4. Server streams agent speech as "audio" events and cancels queued
       speech with "audio_stop" events on barge-in
    5. Client sends {"type": "stop"} or disconnects to end the session

    Server events:
    - {"type": "status", "status": "...", "message": "..."}
    - {"type": "volume", "level": 0.0-1.0}
    - {"type": "audio", "id": n, "start_time": s, "sample_rate": hz, "data": base64}
    - {"type": "audio_stop", "id": n | null}
    """
    await websocket.accept()

    app = websocket.app
    support = app.state.support
    events = EventChannel()

    def on_status(status: ConnectionStatus):
        event = {"type": "status", "status": status.value}
        if status == ConnectionStatus.ERROR:
            event["message"] = voice.error_message
        events.put(event)

    def on_volume(level: float):
        events.put({"type": "volume", "level": round(level, 3)})

    voice = VoiceSession(
        connector=app.state.live_connector,
        registry=app.state.tool_registry,
        context=support.tool_context,
        capture=WebSocketCapture(),
        playback=WebSocketPlayback(events),
        on_status=on_status,
        on_volume=on_volume,
        agent_logger=app.state.agent_logger
    )
    writer = asyncio.create_task(events.drain(websocket))

    events.put({"type": "status", "status": voice.status.value})

    try:
        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect()

            # Microphone audio
            if message.get("bytes") is not None:
                voice.capture.feed(message["bytes"])
                continue

            if message.get("text") is None:
                continue

            try:
                data = json.loads(message["text"])
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON message: {message['text']}")
                continue

            msg_type = data.get("type")

            if msg_type == "start":
                if app.state.agent_logger:
                    await app.state.agent_logger.log_session_start(
                        f"voice-{voice.epoch + 1}",
                        support.customer_id,
                        support.language,
                        channel="voice"
                    )
                await voice.start(support.customer, support.language)

            elif msg_type == "stop":
                await voice.stop()

            elif msg_type == "ping":
                events.put({"type": "pong"})

    except WebSocketDisconnect:
        logger.info("Voice WebSocket disconnected")

    finally:
        await voice.stop()
        events.close()
        try:
            await asyncio.wait_for(writer, timeout=1.0)
        except Exception as e:
            logger.debug(f"Voice event writer stopped: {type(e).__name__}")
