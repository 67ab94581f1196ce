"""
Groq Live Session.
Full-duplex voice on top of Groq's Whisper, chat and speech endpoints.

Captured audio goes through an energy-based end-of-utterance detector;
each utterance is transcribed, answered by the chat model (with tools)
and spoken back as a series of PCM16 fragments. User speech that starts
while the agent is still answering or speaking cancels the answer and
emits an interruption signal.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

import numpy as np
from groq import AsyncGroq

from nova_support.config import get_settings
from nova_support.core.conversation import EXHAUSTED_RESPONSES
from nova_support.core.exceptions import ConfigurationException, SessionClosedException
from nova_support.realtime.audio import (
    decode_pcm16,
    encode_pcm16,
    pcm_to_wav,
    split_fragments,
    wav_to_pcm
)
from nova_support.realtime.contracts import AudioBlob, LiveCallbacks, LiveConfig, LiveMessage
from nova_support.services.llm import call_groq, close_pending_tool_calls, parse_tool_arguments
from nova_support.tools.registry import ToolCall, ToolResponse, ToolResult

logger = logging.getLogger(__name__)
settings = get_settings()


class GroqLiveSession:
    """One voice conversation. Created by GroqLiveConnector."""

    def __init__(
        self,
        client: AsyncGroq,
        config: LiveConfig,
        callbacks: LiveCallbacks,
        model: Optional[str] = None
    ):
        self._client = client
        self._config = config
        self._callbacks = callbacks
        self._model = model or settings.LLM_MODEL_ID
        self._messages: List[Dict[str, Any]] = [
            {"role": "system", "content": config.system_instruction}
        ]

        # End-of-utterance detection
        self._utterance: List[np.ndarray] = []
        self._in_speech = False
        self._silence_ms = 0.0

        self._response_task: Optional[asyncio.Task] = None
        self._pending_results: Optional[asyncio.Future] = None
        self._speaking_until = 0.0
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self):
        """Check the credentials with a cheap call, then report the session open."""
        await call_groq(self._client.models.list(), settings.LLM_TIMEOUT_SECONDS)
        await self._callbacks.on_open()

    # =========================
    # Inbound from the client
    # =========================

    def send_realtime_audio(self, blob: AudioBlob) -> None:
        if self._closed:
            raise SessionClosedException()

        samples = decode_pcm16(blob)
        if samples.size == 0:
            return

        level = float(np.sqrt(np.mean(np.square(samples))))
        chunk_ms = 1000.0 * samples.size / blob.sample_rate

        if level >= settings.VAD_RMS_THRESHOLD:
            if not self._in_speech:
                self._in_speech = True
                if self._agent_busy():
                    self._barge_in()
            self._silence_ms = 0.0
            self._utterance.append(samples)
            return

        if not self._in_speech:
            return

        self._utterance.append(samples)
        self._silence_ms += chunk_ms
        if self._silence_ms >= settings.VAD_SILENCE_MS:
            utterance = np.concatenate(self._utterance)
            self._utterance = []
            self._in_speech = False
            self._silence_ms = 0.0
            self._start_response(self._respond_to_audio(utterance, blob.sample_rate))

    async def send_text(self, text: str) -> None:
        if self._closed:
            raise SessionClosedException()
        self._start_response(self._respond(text))

    async def send_tool_results(self, responses: Sequence[ToolResponse]) -> None:
        if self._closed:
            raise SessionClosedException()

        future = self._pending_results
        if future is None or future.done():
            logger.debug("Tool results arrived with no round waiting for them")
            return
        future.set_result(list(responses))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

        if self._pending_results is not None and not self._pending_results.done():
            self._pending_results.cancel()

        self._utterance = []
        logger.info("Groq live session closed")

    # =========================
    # Response pipeline
    # =========================

    async def _respond_to_audio(self, samples: np.ndarray, sample_rate: int):
        result = await call_groq(
            self._client.audio.transcriptions.create(
                file=("speech.wav", pcm_to_wav(samples, sample_rate)),
                model=settings.STT_MODEL_ID,
                language=self._config.language,
                response_format="json"
            ),
            settings.LLM_TIMEOUT_SECONDS
        )

        text = (result.text or "").strip()
        if not text:
            logger.debug("Empty transcription, ignoring utterance")
            return

        logger.info(f"Voice transcription: {text}")
        await self._respond(text)

    async def _respond(self, text: str):
        close_pending_tool_calls(self._messages)
        self._messages.append({"role": "user", "content": text})

        rounds = 0
        while True:
            response = await call_groq(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=self._messages,
                    tools=self._config.tools,
                    tool_choice="auto",
                    temperature=settings.LLM_TEMPERATURE,
                    max_tokens=settings.LLM_MAX_TOKENS
                ),
                settings.LLM_TIMEOUT_SECONDS
            )
            message = response.choices[0].message
            content = message.content or ""

            if not message.tool_calls:
                break
            if rounds >= settings.MAX_TOOL_ROUNDS:
                logger.warning(f"Voice tool round limit reached ({settings.MAX_TOOL_ROUNDS}), ending response")
                if not content.strip():
                    content = EXHAUSTED_RESPONSES.get(self._config.language, EXHAUSTED_RESPONSES["en"])
                break

            rounds += 1
            self._messages.append({
                "role": "assistant",
                "content": content or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.function.name, "arguments": tc.function.arguments}
                    }
                    for tc in message.tool_calls
                ]
            })

            calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=parse_tool_arguments(tc.function.arguments)
                )
                for tc in message.tool_calls
            ]
            for result in await self._request_tool_results(calls):
                self._messages.append({
                    "role": "tool",
                    "tool_call_id": result.call_id,
                    "content": json.dumps(result.to_dict()["response"])
                })

        self._messages.append({"role": "assistant", "content": content})
        if content.strip():
            await self._speak(content.strip())

    async def _request_tool_results(self, calls: List[ToolCall]) -> List[ToolResponse]:
        """Surface a tool batch to the client and wait for its results."""
        future = asyncio.get_running_loop().create_future()
        self._pending_results = future

        try:
            await self._callbacks.on_message(LiveMessage(tool_calls=calls))
            return await asyncio.wait_for(future, timeout=settings.TOOL_RESULT_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out waiting for tool results: {[c.name for c in calls]}")
            return [
                ToolResponse(
                    call_id=call.id,
                    name=call.name,
                    arguments=call.arguments,
                    result=ToolResult.fail("The tool did not respond in time.", error="TIMEOUT")
                )
                for call in calls
            ]
        finally:
            self._pending_results = None

    async def _speak(self, text: str):
        response = await call_groq(
            self._client.audio.speech.create(
                model=settings.TTS_MODEL_ID,
                voice=self._config.voice,
                input=text,
                response_format="wav"
            ),
            settings.LLM_TIMEOUT_SECONDS
        )
        samples, sample_rate = wav_to_pcm(await response.read())

        await self._callbacks.on_message(LiveMessage(transcript=text))

        loop = asyncio.get_running_loop()
        self._speaking_until = max(self._speaking_until, loop.time()) + samples.size / sample_rate

        for fragment in split_fragments(samples, sample_rate):
            if self._closed:
                return
            await self._callbacks.on_message(
                LiveMessage(audio=encode_pcm16(fragment, sample_rate))
            )

    # =========================
    # Task management
    # =========================

    def _agent_busy(self) -> bool:
        if self._response_task is not None and not self._response_task.done():
            return True
        return asyncio.get_running_loop().time() < self._speaking_until

    def _barge_in(self):
        logger.info("Barge-in detected, cancelling the current response")
        if self._response_task is not None and not self._response_task.done():
            self._response_task.cancel()
        self._response_task = None
        self._speaking_until = 0.0
        self._spawn(self._callbacks.on_message(LiveMessage(interrupted=True)))

    def _start_response(self, coro):
        if self._response_task is not None and not self._response_task.done():
            self._response_task.cancel()
        self._response_task = self._spawn(self._guard(coro))

    async def _guard(self, coro):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except SessionClosedException:
            logger.debug("Response dropped, session closed")
        except Exception as e:
            if self._closed:
                return
            logger.error(f"Live session fault: {type(e).__name__}: {e}")
            await self._callbacks.on_error(e)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


class GroqLiveConnector:
    """
    Opens GroqLiveSession instances.

    Missing credentials fail at connect time, which the voice session
    reports as a configuration error.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self._model = model or settings.LLM_MODEL_ID
        self._client: Optional[AsyncGroq] = None

    async def connect(self, config: LiveConfig, callbacks: LiveCallbacks) -> GroqLiveSession:
        if not self._api_key:
            raise ConfigurationException("GROQ_API_KEY")

        if self._client is None:
            self._client = AsyncGroq(api_key=self._api_key)

        session = GroqLiveSession(self._client, config, callbacks, model=self._model)
        await session.open()
        logger.info(f"Groq live session opened (voice={config.voice}, language={config.language})")
        return session

    async def cleanup(self):
        if self._client is not None:
            await self._client.close()
        self._client = None
