"""
Voice Session.
Explicit state machine for a full-duplex voice conversation.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from nova_support.config import get_settings
from nova_support.core.exceptions import SessionClosedException, user_message_for
from nova_support.db.models import Customer
from nova_support.realtime.audio import PlaybackScheduler, decode_pcm16, encode_pcm16, rms_volume
from nova_support.realtime.contracts import (
    AudioCapture,
    AudioChunk,
    AudioPlayback,
    LiveCallbacks,
    LiveConfig,
    LiveConnector,
    LiveMessage,
    LiveSession
)
from nova_support.services.llm.prompts import build_voice_instruction, greeting_for
from nova_support.tools.registry import ToolCall, ToolContext, ToolRegistry

logger = logging.getLogger(__name__)
settings = get_settings()


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


StatusListener = Callable[[ConnectionStatus], None]
VolumeListener = Callable[[float], None]


class VoiceSession:
    """
    Voice channel with three resources: capture, playback and the live
    model session.

    Transitions:
        DISCONNECTED/ERROR -> CONNECTING     start()
        CONNECTING -> CONNECTED              handshake completes
        CONNECTING/CONNECTED -> DISCONNECTED stop() or remote close
        * -> ERROR                           acquisition or transport fault

    Every exit path runs the same teardown. Each start bumps an epoch;
    callbacks and tool results from an older epoch are ignored.
    """

    def __init__(
        self,
        connector: LiveConnector,
        registry: ToolRegistry,
        context: ToolContext,
        capture: AudioCapture,
        playback: AudioPlayback,
        on_status: Optional[StatusListener] = None,
        on_volume: Optional[VolumeListener] = None,
        agent_logger=None,
        volume_scale: Optional[float] = None
    ):
        self.connector = connector
        self.registry = registry
        self.context = context
        self.capture = capture
        self.playback = playback
        self.agent_logger = agent_logger
        self.volume_scale = settings.VOLUME_SCALE if volume_scale is None else volume_scale

        self._on_status = on_status
        self._on_volume = on_volume

        self.status = ConnectionStatus.DISCONNECTED
        self.volume = 0.0
        self.error_message: Optional[str] = None
        self.scheduler = PlaybackScheduler(playback)

        self._live: Optional[LiveSession] = None
        self._epoch = 0
        self._language = settings.DEFAULT_LANGUAGE
        self._greeting_pending = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_active(self) -> bool:
        return self.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED)

    # =========================
    # Lifecycle
    # =========================

    async def start(self, customer: Customer, language: str):
        """Connect. A no-op while already connecting or connected."""
        if self.is_active:
            return

        self._epoch += 1
        epoch = self._epoch
        self._language = language
        self.error_message = None
        self._greeting_pending = False
        await self._set_status(ConnectionStatus.CONNECTING)

        config = LiveConfig(
            system_instruction=build_voice_instruction(customer, language),
            tools=self.registry.get_tool_schemas(),
            voice=settings.TTS_VOICE,
            language=language,
            input_sample_rate=settings.INPUT_SAMPLE_RATE,
            output_sample_rate=settings.OUTPUT_SAMPLE_RATE
        )
        callbacks = LiveCallbacks(
            on_open=lambda: self._handle_open(epoch),
            on_message=lambda message: self._handle_message(epoch, message),
            on_close=lambda reason: self._handle_close(epoch, reason),
            on_error=lambda error: self._handle_error(epoch, error)
        )

        try:
            await self.capture.open()
            await self.playback.open()
            self.scheduler.reset()
            live = await self.connector.connect(config, callbacks)
        except Exception as e:
            if epoch == self._epoch:
                await self._fail(e)
            return

        if epoch != self._epoch:
            # stop() ran while the handshake was in flight
            await self._close_live(live)
            return

        self._live = live
        logger.info(f"Voice session connected for {customer.id} ({language})")

        if self._greeting_pending:
            self._greeting_pending = False
            await self._send_greeting(epoch)

    async def stop(self):
        """Disconnect. Safe to call repeatedly and from error handlers."""
        self._epoch += 1
        await self._teardown()
        await self._set_status(ConnectionStatus.DISCONNECTED)

    # =========================
    # Live Session Callbacks
    # =========================

    async def _handle_open(self, epoch: int):
        if epoch != self._epoch or self.status != ConnectionStatus.CONNECTING:
            return

        await self._set_status(ConnectionStatus.CONNECTED)
        self.capture.start(self._on_capture_chunk)

        if self._live is None:
            # Handshake finished before connect() returned
            self._greeting_pending = True
        else:
            await self._send_greeting(epoch)

    async def _handle_message(self, epoch: int, message: LiveMessage):
        if epoch != self._epoch or self.status != ConnectionStatus.CONNECTED:
            return

        if message.tool_calls:
            self._spawn(self._dispatch_tools(epoch, message.tool_calls))

        if message.audio is not None:
            samples = decode_pcm16(message.audio)
            self.scheduler.schedule(samples, message.audio.sample_rate)

        if message.interrupted:
            self.scheduler.interrupt()

    async def _handle_close(self, epoch: int, reason: Optional[str]):
        if epoch != self._epoch or self._live is None:
            return
        logger.info(f"Live session closed by remote: {reason}")
        await self.stop()

    async def _handle_error(self, epoch: int, error: BaseException):
        if epoch != self._epoch:
            return
        await self._fail(error)

    # =========================
    # Audio and Tools
    # =========================

    def _on_capture_chunk(self, chunk: AudioChunk):
        live = self._live
        if live is None or self.status != ConnectionStatus.CONNECTED:
            return

        self.volume = rms_volume(chunk.samples, self.volume_scale)
        if self._on_volume:
            self._on_volume(self.volume)

        try:
            live.send_realtime_audio(encode_pcm16(chunk.samples, chunk.sample_rate))
        except Exception as e:
            logger.debug(f"Dropped capture chunk: {e}")

    async def _dispatch_tools(self, epoch: int, calls: List[ToolCall]):
        logger.info(f"Voice tool batch: {[call.name for call in calls]}")
        responses = await self.registry.dispatch_batch(calls, self.context)

        if self.agent_logger:
            for response in responses:
                await self.agent_logger.log_tool_call(
                    f"voice-{epoch}",
                    response.name,
                    response.arguments or {},
                    response.result.to_dict(),
                    latency_ms=response.latency_ms
                )

        live = self._live
        if epoch != self._epoch or live is None:
            logger.info("Discarding tool results for a closed voice session")
            return

        try:
            await live.send_tool_results(responses)
        except SessionClosedException:
            logger.info("Live session closed before tool results were delivered")
        except Exception as e:
            logger.debug(f"Dropped tool results: {e}")

    async def _send_greeting(self, epoch: int):
        live = self._live
        if live is None or epoch != self._epoch:
            return
        try:
            await live.send_text(greeting_for(self._language))
        except SessionClosedException:
            logger.info("Live session closed before the greeting was sent")

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_tasks(self):
        """Wait for in-flight tool dispatches."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================
    # Teardown
    # =========================

    async def _fail(self, error: BaseException):
        logger.error(f"Voice session error: {type(error).__name__}: {error}")
        self.error_message = user_message_for(error, self._language)
        if self.agent_logger:
            await self.agent_logger.log_error(f"voice-{self._epoch}", type(error).__name__, str(error))

        self._epoch += 1
        await self._teardown()
        await self._set_status(ConnectionStatus.ERROR)

    async def _teardown(self):
        live, self._live = self._live, None
        self._greeting_pending = False

        try:
            await self.capture.close()
        except Exception as e:
            logger.warning(f"Error closing capture: {e}")

        if self.scheduler.scheduled:
            self.scheduler.interrupt()
        try:
            await self.playback.close()
        except Exception as e:
            logger.warning(f"Error closing playback: {e}")

        if live is not None:
            await self._close_live(live)

        self._set_volume(0.0)

    async def _close_live(self, live: LiveSession):
        try:
            await live.close()
        except Exception as e:
            logger.warning(f"Error closing live session: {e}")

    async def _set_status(self, status: ConnectionStatus):
        if status == self.status:
            return

        previous = self.status
        self.status = status
        logger.info(f"Voice status: {previous.value} -> {status.value}")

        if previous == ConnectionStatus.CONNECTED:
            self._set_volume(0.0)

        if self._on_status:
            self._on_status(status)
        if self.agent_logger:
            await self.agent_logger.log_voice_status(f"voice-{self._epoch}", previous.value, status.value)

    def _set_volume(self, volume: float):
        if self.volume == volume:
            return
        self.volume = volume
        if self._on_volume:
            self._on_volume(volume)
