"""Tests for the Groq chat and live adapters, against a fake SDK client."""

import asyncio
import json
from types import SimpleNamespace

import groq
import httpx
import numpy as np
import pytest

from nova_support.core.conversation import EXHAUSTED_RESPONSES, TextConversation, TurnState
from nova_support.core.exceptions import (
    ConfigurationException,
    ModelAuthException,
    ModelTimeoutException,
    SessionClosedException
)
from nova_support.db.models import Customer
from nova_support.realtime.audio import encode_pcm16, pcm_to_wav
from nova_support.realtime.contracts import LiveCallbacks, LiveConfig
from nova_support.realtime.groq_live import GroqLiveConnector, GroqLiveSession
from nova_support.services.llm import (
    GroqChatModel,
    GroqChatSession,
    call_groq,
    close_pending_tool_calls,
    parse_tool_arguments
)
from nova_support.tools.registry import ToolResponse, ToolResult


# =========================
# Fake SDK
# =========================

def completion(content=None, tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    )


def sdk_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return self.replies.pop(0)


class FakeTranscriptions:
    def __init__(self, text):
        self.text = text
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(text=self.text)


class FakeSpeechResponse:
    def __init__(self, wav_bytes):
        self._wav = wav_bytes

    async def read(self):
        return self._wav


class FakeSpeech:
    def __init__(self, seconds=0.6, sample_rate=24000):
        self.samples = np.zeros(int(seconds * sample_rate), dtype=np.float32)
        self.sample_rate = sample_rate
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return FakeSpeechResponse(pcm_to_wav(self.samples, self.sample_rate))


class FakeModels:
    async def list(self):
        return SimpleNamespace(data=[])


class FakeGroqClient:
    def __init__(self, replies=(), transcript=""):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))
        self.audio = SimpleNamespace(
            transcriptions=FakeTranscriptions(transcript),
            speech=FakeSpeech()
        )
        self.models = FakeModels()


# =========================
# Chat adapter
# =========================

class TestParseToolArguments:
    def test_valid_object(self):
        assert parse_tool_arguments('{"query": "red"}') == {"query": "red"}

    def test_empty_means_no_arguments(self):
        assert parse_tool_arguments("") == {}
        assert parse_tool_arguments(None) == {}

    def test_malformed_json(self):
        assert parse_tool_arguments("{query: red") is None

    def test_non_object(self):
        assert parse_tool_arguments("[1, 2]") is None


class TestCallGroq:
    def test_timeout(self):
        with pytest.raises(ModelTimeoutException):
            asyncio.run(call_groq(asyncio.sleep(1), timeout=0.01))

    def test_auth_error(self):
        async def rejected():
            request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
            raise groq.AuthenticationError(
                "Invalid API Key",
                response=httpx.Response(401, request=request),
                body=None
            )

        with pytest.raises(ModelAuthException):
            asyncio.run(call_groq(rejected(), timeout=1))


class TestGroqChatModel:
    def test_missing_key_is_a_configuration_error(self):
        model = GroqChatModel([], api_key="")
        assert model.is_configured is False
        with pytest.raises(ConfigurationException):
            model.start_chat(Customer("C1", "Alice Johnson", "alice@example.com"), "en")


class TestGroqChatSession:
    def test_text_reply(self):
        client = FakeGroqClient([completion("Hello there!")])
        session = GroqChatSession(client, "system prompt", tools=[{"type": "function"}], model="m")

        reply = asyncio.run(session.send_message("hi"))

        assert reply.text == "Hello there!"
        assert reply.tool_calls == []
        assert reply.usage["total_tokens"] == 15
        request = client.chat.completions.requests[0]
        assert request["tool_choice"] == "auto"
        assert [m["role"] for m in request["messages"]] == ["system", "user", "assistant"]

    def test_tool_call_round_trip(self):
        client = FakeGroqClient([
            completion(tool_calls=[sdk_tool_call("t1", "search_products", '{"category": "Jeans"}')]),
            completion("We have jeans."),
        ])
        session = GroqChatSession(client, "system prompt", tools=[], model="m")

        async def scenario():
            first = await session.send_message("jeans?")
            call = first.tool_calls[0]
            assert call.name == "search_products"
            assert call.arguments == {"category": "Jeans"}
            result = ToolResponse(call.id, call.name, call.arguments, ToolResult.ok("Found 1 matching products."))
            return await session.send_message([result])

        reply = asyncio.run(scenario())

        assert reply.text == "We have jeans."
        roles = [m["role"] for m in session.messages]
        assert roles == ["system", "user", "assistant", "tool", "assistant"]
        assert session.messages[2]["tool_calls"][0]["id"] == "t1"
        assert session.messages[3]["tool_call_id"] == "t1"
        assert "tools" not in client.chat.completions.requests[0]

    def test_open_tool_calls_are_closed_before_next_user_message(self):
        client = FakeGroqClient([
            completion(tool_calls=[sdk_tool_call("t5", "search_products", "{}")]),
            completion("Sure, what else?"),
        ])
        session = GroqChatSession(client, "system prompt", tools=[], model="m")

        async def scenario():
            await session.send_message("loop")
            return await session.send_message("next question")

        reply = asyncio.run(scenario())

        assert reply.text == "Sure, what else?"
        roles = [m["role"] for m in session.messages]
        assert roles == ["system", "user", "assistant", "tool", "user", "assistant"]
        closing = session.messages[3]
        assert closing["tool_call_id"] == "t5"
        assert json.loads(closing["content"])["result"]["error"] == "NOT_EXECUTED"


class TestCloseToolCalls:
    def test_answered_calls_are_left_alone(self):
        messages = [
            {"role": "assistant", "content": None, "tool_calls": [{"id": "a"}, {"id": "b"}]},
            {"role": "tool", "tool_call_id": "a", "content": "{}"},
        ]
        assert close_pending_tool_calls(messages) == ["b"]
        assert messages[-1]["tool_call_id"] == "b"

    def test_nothing_open(self):
        messages = [{"role": "system", "content": "x"}, {"role": "assistant", "content": "hi"}]
        assert close_pending_tool_calls(messages) == []
        assert len(messages) == 2


class GroqBackedModel:
    """Chat model handing out GroqChatSession over a fake client."""

    is_configured = True

    def __init__(self, client):
        self.client = client

    def start_chat(self, customer, language):
        return GroqChatSession(self.client, "system prompt", tools=[], model="m")


class TestExhaustedTurnOverGroq:
    def test_next_turn_after_round_limit_succeeds(self, registry, context, customers):
        client = FakeGroqClient(
            [completion(tool_calls=[sdk_tool_call(f"t{i}", "search_products", "{}")]) for i in range(6)]
            + [completion("Here is your answer.")]
        )
        conversation = TextConversation(
            GroqBackedModel(client),
            registry,
            context,
            customers.get_by_id("C1"),
            max_rounds=5
        )

        async def scenario():
            first = await conversation.send("loop")
            second = await conversation.send("next question")
            return first, second

        first, second = asyncio.run(scenario())

        assert first.state == TurnState.EXHAUSTED
        assert second.state == TurnState.FINAL
        history = client.chat.completions.requests[-1]["messages"]
        requested = {tc["id"] for m in history if m.get("tool_calls") for tc in m["tool_calls"]}
        answered = {m["tool_call_id"] for m in history if m["role"] == "tool"}
        assert requested == answered


# =========================
# Live adapter
# =========================

class Recorder:
    """Collects live callbacks; answers tool batches when asked to."""

    def __init__(self, answer_tools=True):
        self.answer_tools = answer_tools
        self.session = None
        self.opened = 0
        self.messages = []
        self.errors = []

    def callbacks(self):
        return LiveCallbacks(
            on_open=self.on_open,
            on_message=self.on_message,
            on_close=self.on_close,
            on_error=self.on_error
        )

    async def on_open(self):
        self.opened += 1

    async def on_message(self, message):
        self.messages.append(message)
        if message.tool_calls and self.answer_tools:
            await self.session.send_tool_results([
                ToolResponse(c.id, c.name, c.arguments, ToolResult.ok("done"))
                for c in message.tool_calls
            ])

    async def on_close(self, reason):
        pass

    async def on_error(self, error):
        self.errors.append(error)


def live_config():
    return LiveConfig(system_instruction="voice prompt", tools=[], voice="Celeste-PlayAI", language="en")


def make_live(client, recorder):
    session = GroqLiveSession(client, live_config(), recorder.callbacks(), model="m")
    recorder.session = session
    return session


class TestGroqLiveConnector:
    def test_missing_key(self):
        connector = GroqLiveConnector(api_key="")
        with pytest.raises(ConfigurationException):
            asyncio.run(connector.connect(live_config(), Recorder().callbacks()))


class TestGroqLiveSession:
    def test_open_reports_handshake(self):
        recorder = Recorder()
        session = make_live(FakeGroqClient(), recorder)
        asyncio.run(session.open())
        assert recorder.opened == 1

    def test_text_is_answered_with_speech(self):
        client = FakeGroqClient([completion("Hello Alice, how can I help?")])
        recorder = Recorder()
        session = make_live(client, recorder)

        async def scenario():
            await session.send_text("Hello")
            await session._response_task

        asyncio.run(scenario())

        transcripts = [m.transcript for m in recorder.messages if m.transcript]
        fragments = [m.audio for m in recorder.messages if m.audio is not None]
        assert transcripts == ["Hello Alice, how can I help?"]
        assert len(fragments) == 2
        assert fragments[0].sample_rate == 24000
        assert client.audio.speech.requests[0]["voice"] == "Celeste-PlayAI"

    def test_tool_round_waits_for_client_results(self):
        client = FakeGroqClient([
            completion(tool_calls=[sdk_tool_call("t1", "get_my_orders", "{}")]),
            completion("Your order has shipped."),
        ])
        recorder = Recorder()
        session = make_live(client, recorder)

        async def scenario():
            await session.send_text("Where is my order?")
            await session._response_task

        asyncio.run(scenario())

        tool_messages = [m for m in recorder.messages if m.tool_calls]
        assert tool_messages[0].tool_calls[0].name == "get_my_orders"
        history = client.chat.completions.requests[1]["messages"]
        tool_results = [m for m in history if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_results] == ["t1"]
        assert history[-1] == {"role": "assistant", "content": "Your order has shipped."}

    def test_round_limit_speaks_a_fallback(self):
        client = FakeGroqClient(
            [completion(tool_calls=[sdk_tool_call(f"t{i}", "search_products", "{}")]) for i in range(6)]
        )
        recorder = Recorder()
        session = make_live(client, recorder)

        async def scenario():
            await session.send_text("loop")
            await session._response_task

        asyncio.run(scenario())

        tool_batches = [m for m in recorder.messages if m.tool_calls]
        transcripts = [m.transcript for m in recorder.messages if m.transcript]
        assert len(tool_batches) == 5
        assert transcripts == [EXHAUSTED_RESPONSES["en"]]
        assert client.audio.speech.requests[0]["input"] == EXHAUSTED_RESPONSES["en"]

    def test_cancelled_round_is_closed_on_next_utterance(self):
        client = FakeGroqClient([
            completion(tool_calls=[sdk_tool_call("t1", "get_my_orders", "{}")]),
            completion("Hello again."),
        ])
        recorder = Recorder(answer_tools=False)
        session = make_live(client, recorder)

        async def scenario():
            await session.send_text("Where is my order?")
            while not recorder.messages:
                await asyncio.sleep(0)
            await session.send_text("Never mind")
            await session._response_task

        asyncio.run(scenario())

        history = client.chat.completions.requests[1]["messages"]
        tool_results = [m for m in history if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_results] == ["t1"]
        assert json.loads(tool_results[0]["content"])["result"]["error"] == "NOT_EXECUTED"

    def test_end_of_utterance_triggers_transcription(self):
        client = FakeGroqClient([completion("It shipped yesterday.")], transcript="Where is my order?")
        recorder = Recorder()
        session = make_live(client, recorder)

        async def scenario():
            session.send_realtime_audio(encode_pcm16(np.full(1600, 0.5, dtype=np.float32), 16000))
            session.send_realtime_audio(encode_pcm16(np.zeros(16000, dtype=np.float32), 16000))
            await session._response_task

        asyncio.run(scenario())

        assert client.audio.transcriptions.requests[0]["language"] == "en"
        user_messages = [
            m for m in client.chat.completions.requests[0]["messages"] if m["role"] == "user"
        ]
        assert user_messages[-1]["content"] == "Where is my order?"

    def test_quiet_input_is_ignored(self):
        client = FakeGroqClient()
        session = make_live(client, Recorder())

        async def scenario():
            session.send_realtime_audio(encode_pcm16(np.zeros(16000, dtype=np.float32), 16000))

        asyncio.run(scenario())

        assert client.audio.transcriptions.requests == []

    def test_speech_while_agent_talks_interrupts(self):
        recorder = Recorder()
        session = make_live(FakeGroqClient(), recorder)

        async def scenario():
            session._speaking_until = asyncio.get_running_loop().time() + 10
            session.send_realtime_audio(encode_pcm16(np.full(1600, 0.5, dtype=np.float32), 16000))
            for _ in range(3):
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert any(m.interrupted for m in recorder.messages)

    def test_model_fault_is_reported(self):
        client = FakeGroqClient()
        recorder = Recorder()
        session = make_live(client, recorder)

        async def failing_create(**kwargs):
            raise RuntimeError("backend down")

        client.chat.completions.create = failing_create

        async def scenario():
            await session.send_text("Hello")
            await session._response_task

        asyncio.run(scenario())

        assert isinstance(recorder.errors[0], RuntimeError)

    def test_closed_session_rejects_input(self):
        session = make_live(FakeGroqClient(), Recorder())

        async def scenario():
            await session.close()
            with pytest.raises(SessionClosedException):
                session.send_realtime_audio(encode_pcm16(np.zeros(10, dtype=np.float32), 16000))
            with pytest.raises(SessionClosedException):
                await session.send_tool_results([])

        asyncio.run(scenario())
        assert session.is_closed
