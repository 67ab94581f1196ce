"""
Turn-Based Conversation Loop.
Drives one text-channel turn through model calls and tool dispatch rounds.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from nova_support.config import get_settings
from nova_support.core.exceptions import NovaSupportException, user_message_for
from nova_support.db.models import Customer
from nova_support.services.llm import ChatModel, ChatSession, ModelResponse
from nova_support.tools.registry import ToolContext, ToolRegistry, ToolResponse

logger = logging.getLogger(__name__)
settings = get_settings()


class TurnState(str, Enum):
    """Where a turn is, or how it ended."""
    IDLE = "idle"
    SENT = "sent"
    DISPATCH = "dispatch"
    SENT_WITH_RESULTS = "sent_with_results"
    FINAL = "final"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    DISCARDED = "discarded"


EXHAUSTED_RESPONSES = {
    "en": "I'm sorry, I wasn't able to finish that request. Could you try asking in a different way?",
    "fr": "Je suis désolée, je n'ai pas pu terminer cette demande. Pourriez-vous reformuler votre question ?"
}


@dataclass
class TurnResult:
    """Outcome of one user message."""
    state: TurnState
    text: str
    rounds: int = 0
    tool_responses: List[ToolResponse] = field(default_factory=list)
    error_code: Optional[str] = None
    processing_time_ms: Optional[float] = None

    @property
    def is_error(self) -> bool:
        return self.state == TurnState.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "text": self.text,
            "rounds": self.rounds,
            "tool_calls": [
                {
                    "name": r.name,
                    "arguments": r.arguments,
                    "success": r.result.success
                }
                for r in self.tool_responses
            ],
            "error_code": self.error_code,
            "processing_time_ms": self.processing_time_ms
        }


class _Stale(Exception):
    """The conversation was reset while a turn was in flight."""


class TextConversation:
    """
    Request-then-response loop for the text channel.

    Each user message is sent to the model; while the reply carries tool
    calls and fewer than `max_rounds` rounds have run, the whole batch is
    dispatched in order and the results go back as one follow-up message.

    `reset()` drops the chat session and bumps an epoch. A turn that
    resumes after a reset sees the new epoch and ends as DISCARDED without
    delivering anything further to the model.
    """

    def __init__(
        self,
        chat_model: ChatModel,
        registry: ToolRegistry,
        context: ToolContext,
        customer: Customer,
        language: Optional[str] = None,
        max_rounds: Optional[int] = None,
        agent_logger=None
    ):
        self.chat_model = chat_model
        self.registry = registry
        self.context = context
        self.max_rounds = max_rounds if max_rounds is not None else settings.MAX_TOOL_ROUNDS
        self.agent_logger = agent_logger

        self._customer = customer
        self._language = language or settings.DEFAULT_LANGUAGE
        self._chat: Optional[ChatSession] = None
        self._epoch = 0
        self._turn_lock = asyncio.Lock()
        self.state = TurnState.IDLE

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def language(self) -> str:
        return self._language

    @property
    def session_id(self) -> str:
        return f"text-{self._customer.id}-{self._epoch}"

    def reset(self, customer: Optional[Customer] = None, language: Optional[str] = None):
        """Start over, optionally for a different customer or language."""
        if customer is not None:
            self._customer = customer
        if language is not None:
            self._language = language

        self._epoch += 1
        self._chat = None
        self.state = TurnState.IDLE
        logger.info(f"Conversation reset for {self._customer.id} ({self._language}), epoch {self._epoch}")

    async def send(self, text: str) -> TurnResult:
        """
        Run one user message to completion.

        Turns are serialized: a message sent while another turn is running
        waits for it. A message queued before a reset is discarded.
        """
        start_time = time.time()
        epoch = self._epoch

        async with self._turn_lock:
            if epoch != self._epoch:
                logger.info(f"Dropping message queued before reset (epoch {epoch})")
                return TurnResult(state=TurnState.DISCARDED, text="")
            return await self._run_turn(text, epoch, start_time)

    async def _run_turn(self, text: str, epoch: int, start_time: float) -> TurnResult:
        rounds = 0
        responses: List[ToolResponse] = []

        try:
            chat = self._ensure_chat()

            self.state = TurnState.SENT
            response = await chat.send_message(text)
            self._check_epoch(epoch)

            while response.tool_calls:
                if rounds >= self.max_rounds:
                    logger.warning(f"Tool round limit reached ({self.max_rounds}), ending turn")
                    return self._finish(
                        TurnState.EXHAUSTED,
                        self._exhausted_text(response),
                        rounds,
                        responses,
                        start_time
                    )

                rounds += 1
                self.state = TurnState.DISPATCH
                batch = await self.registry.dispatch_batch(response.tool_calls, self.context)
                self._check_epoch(epoch)

                responses.extend(batch)
                await self._log_tools(batch)

                self.state = TurnState.SENT_WITH_RESULTS
                response = await chat.send_message(batch)
                self._check_epoch(epoch)

            final_text = (response.text or "").strip()
            if not final_text:
                logger.error("Model returned no response text")
                return self._finish(
                    TurnState.FAILED,
                    user_message_for(None, self._language),
                    rounds,
                    responses,
                    start_time,
                    error_code="EMPTY_RESPONSE"
                )

            return self._finish(TurnState.FINAL, final_text, rounds, responses, start_time)

        except _Stale:
            logger.info(f"Discarding turn from epoch {epoch}")
            return TurnResult(
                state=TurnState.DISCARDED,
                text="",
                rounds=rounds,
                tool_responses=responses,
                processing_time_ms=(time.time() - start_time) * 1000
            )

        except NovaSupportException as e:
            if epoch != self._epoch:
                return TurnResult(state=TurnState.DISCARDED, text="", rounds=rounds)
            logger.error(f"Conversation error: {e.error_code} - {e.message}")
            await self._log_error(e.error_code, e.message)
            return self._finish(
                TurnState.FAILED,
                user_message_for(e, self._language),
                rounds,
                responses,
                start_time,
                error_code=e.error_code
            )

        except Exception as e:
            if epoch != self._epoch:
                return TurnResult(state=TurnState.DISCARDED, text="", rounds=rounds)
            logger.exception(f"Unexpected conversation error: {e}")
            await self._log_error(type(e).__name__, str(e))
            return self._finish(
                TurnState.FAILED,
                user_message_for(e, self._language),
                rounds,
                responses,
                start_time,
                error_code="INTERNAL_ERROR"
            )

    # =========================
    # Internals
    # =========================

    def _ensure_chat(self) -> ChatSession:
        if self._chat is None:
            self._chat = self.chat_model.start_chat(self._customer, self._language)
        return self._chat

    def _check_epoch(self, epoch: int):
        if epoch != self._epoch:
            raise _Stale()

    def _exhausted_text(self, response: ModelResponse) -> str:
        partial = (response.text or "").strip()
        if partial:
            return partial
        return EXHAUSTED_RESPONSES.get(self._language, EXHAUSTED_RESPONSES["en"])

    def _finish(
        self,
        state: TurnState,
        reply: str,
        rounds: int,
        responses: List[ToolResponse],
        start_time: float,
        error_code: Optional[str] = None
    ) -> TurnResult:
        self.state = state
        result = TurnResult(
            state=state,
            text=reply,
            rounds=rounds,
            tool_responses=responses,
            error_code=error_code,
            processing_time_ms=(time.time() - start_time) * 1000
        )
        logger.info(f"Turn {state.value} after {rounds} tool round(s) in {result.processing_time_ms:.0f}ms")
        return result

    async def _log_tools(self, batch: List[ToolResponse]):
        if not self.agent_logger:
            return
        for response in batch:
            await self.agent_logger.log_tool_call(
                self.session_id,
                response.name,
                response.arguments or {},
                response.result.to_dict(),
                latency_ms=response.latency_ms
            )

    async def _log_error(self, error_type: str, message: str):
        if self.agent_logger:
            await self.agent_logger.log_error(self.session_id, error_type, message)

    async def log_turn(self, user_text: str, result: TurnResult):
        """Record a completed turn in the execution log."""
        if not self.agent_logger:
            return
        await self.agent_logger.log_turn_complete(
            self.session_id,
            user_text=user_text,
            agent_text=result.text,
            language=self._language,
            state=result.state.value,
            tool_names=[r.name for r in result.tool_responses],
            latency_ms=result.processing_time_ms
        )
