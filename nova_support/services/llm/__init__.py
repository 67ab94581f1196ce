"""
Chat Model Service using Groq API.
Turn-based chat sessions with tool/function calling.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import groq
from groq import AsyncGroq

from nova_support.config import get_settings
from nova_support.core.exceptions import (
    ConfigurationException,
    ModelAuthException,
    ModelRateLimitException,
    ModelRequestException,
    ModelTimeoutException,
    ModelTransportException
)
from nova_support.db.models import Customer
from nova_support.services.llm.prompts import build_chat_instruction
from nova_support.tools.registry import ToolCall, ToolResponse, ToolResult

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ModelResponse:
    """One reply from the model: text, tool calls, or both."""
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    processing_time_ms: Optional[float] = None


ChatInput = Union[str, Sequence[ToolResponse]]


class ChatSession(Protocol):
    """A stateful conversation with the model."""

    async def send_message(self, message: ChatInput) -> ModelResponse:
        """Send user text or a batch of tool results; return the next reply."""
        ...


class ChatModel(Protocol):
    """Factory for chat sessions bound to a customer and language."""

    def start_chat(self, customer: Customer, language: str) -> ChatSession:
        ...


def parse_tool_arguments(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JSON argument string. Malformed payloads give None."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool arguments: {raw!r}")
        return None
    return decoded if isinstance(decoded, dict) else None


def close_pending_tool_calls(messages: List[Dict[str, Any]]) -> List[str]:
    """
    Answer tool calls that a finished turn left without results.

    The API rejects a history where an assistant `tool_calls` message is
    not followed by a `tool` message for every call id. A turn that stops
    at the round limit, or is cancelled while waiting for results, leaves
    such a message behind; each open call gets a NOT_EXECUTED result.

    Returns the ids that were closed.
    """
    answered = set()
    pending: List[str] = []

    for message in reversed(messages):
        if message["role"] == "tool":
            answered.add(message["tool_call_id"])
            continue
        if message["role"] == "assistant" and message.get("tool_calls"):
            pending = [tc["id"] for tc in message["tool_calls"] if tc["id"] not in answered]
        break

    for call_id in pending:
        result = ToolResult.fail("Not executed: the turn ended before this tool ran.", error="NOT_EXECUTED")
        messages.append({
            "role": "tool",
            "tool_call_id": call_id,
            "content": json.dumps({"result": result.to_dict()})
        })

    if pending:
        logger.info(f"Closed {len(pending)} unanswered tool call(s): {pending}")
    return pending


async def call_groq(coro, timeout: float):
    """Await a Groq SDK call, translating its errors into ours."""
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        raise ModelTimeoutException(timeout)
    except (groq.AuthenticationError, groq.PermissionDeniedError) as e:
        raise ModelAuthException(str(e))
    except groq.BadRequestError as e:
        raise ModelRequestException(str(e))
    except groq.RateLimitError:
        raise ModelRateLimitException()
    except groq.APIError as e:
        raise ModelTransportException(str(e))


class GroqChatSession:
    """
    Chat session that keeps the full message history locally.

    Tool results are sent as `tool` messages answering the assistant
    message that requested them. Calls left open by a turn that ended at
    the round limit are closed before the next user message.
    """

    def __init__(
        self,
        client: AsyncGroq,
        system_prompt: str,
        tools: List[Dict[str, Any]],
        model: Optional[str] = None
    ):
        self._client = client
        self._tools = tools
        self._model = model or settings.LLM_MODEL_ID
        self._messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt}
        ]

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return list(self._messages)

    async def send_message(self, message: ChatInput) -> ModelResponse:
        if isinstance(message, str):
            close_pending_tool_calls(self._messages)
            self._messages.append({"role": "user", "content": message})
        else:
            for response in message:
                self._messages.append({
                    "role": "tool",
                    "tool_call_id": response.call_id,
                    "content": json.dumps(response.to_dict()["response"])
                })

        return await self._complete()

    async def _complete(self) -> ModelResponse:
        start_time = time.time()

        kwargs = {
            "model": self._model,
            "messages": self._messages,
            "temperature": settings.LLM_TEMPERATURE,
            "max_tokens": settings.LLM_MAX_TOKENS
        }
        if self._tools:
            kwargs["tools"] = self._tools
            kwargs["tool_choice"] = "auto"

        response = await call_groq(
            self._client.chat.completions.create(**kwargs),
            settings.LLM_TIMEOUT_SECONDS
        )

        choice = response.choices[0]
        content = choice.message.content or ""

        tool_calls = []
        if choice.message.tool_calls:
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=parse_tool_arguments(tc.function.arguments)
                )
                for tc in choice.message.tool_calls
            ]
            self._messages.append({
                "role": "assistant",
                "content": content or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.function.name,
                            "arguments": tc.function.arguments
                        }
                    }
                    for tc in choice.message.tool_calls
                ]
            })
        else:
            self._messages.append({"role": "assistant", "content": content})

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens
            }

        return ModelResponse(
            text=content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=usage,
            processing_time_ms=(time.time() - start_time) * 1000
        )


class GroqChatModel:
    """
    Groq-backed chat model.

    The client is created on first use so the application can start
    without credentials; starting a chat without them is a configuration
    error.
    """

    def __init__(
        self,
        tools: List[Dict[str, Any]],
        api_key: Optional[str] = None,
        model: Optional[str] = None
    ):
        self._tools = tools
        self._api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self._model = model or settings.LLM_MODEL_ID
        self._client: Optional[AsyncGroq] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def start_chat(self, customer: Customer, language: str) -> GroqChatSession:
        if not self._api_key:
            raise ConfigurationException("GROQ_API_KEY")

        if self._client is None:
            self._client = AsyncGroq(api_key=self._api_key)
            logger.info(f"Chat model initialized with model: {self._model}")

        return GroqChatSession(
            self._client,
            build_chat_instruction(customer, language),
            self._tools,
            model=self._model
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.close()
        self._client = None
        logger.info("Chat model cleaned up")
