"""Pytest fixtures and fakes for nova_support tests."""

import os

# Settings are cached on first import; keep tests fast and off the filesystem
os.environ.setdefault("ENABLE_AGENT_LOG", "false")
os.environ.setdefault("ESCALATION_DELAY_SECONDS", "0")
os.environ.setdefault("SURVEY_DELAY_SECONDS", "0")
os.environ.setdefault("INTEGRATION_DELAY_SECONDS", "0")
os.environ.setdefault("ANALYTICS_DELAY_SECONDS", "0")

import random

import numpy as np
import pytest

from nova_support.core.cart import CartStateMachine
from nova_support.core.exceptions import SessionClosedException
from nova_support.db.models import Customer, Order, OrderItem, Product
from nova_support.db.repositories import InMemoryCustomerRepository, InMemoryProductRepository
from nova_support.realtime.contracts import AudioChunk
from nova_support.services.catalog import CatalogService
from nova_support.services.integrations import IntegrationService
from nova_support.services.llm import ModelResponse
from nova_support.tools.registry import ToolCall, ToolContext, ToolRegistry


# =========================
# Catalog and customers
# =========================

def make_products():
    return [
        Product("T1", "Basic White T-Shirt", "T-Shirt", 20.0),
        Product("J1", "Slim Blue Jeans", "Jeans", 50.0),
        Product("S1", "Urban Black Sneakers", "Sneakers", 80.0),
        Product("H1", "Cozy Grey Hoodie", "Hoodie", 45.0),
        Product("D1", "Summer Red Dress", "Dress", 60.0),
        Product("K1", "Classic Navy Jacket", "Jacket", 90.0),
        Product("C1", "Vintage Green Hat", "Hat", 25.0),
        Product("T2", "Graphic Black T-Shirt", "T-Shirt", 30.0),
    ]


def make_customers():
    return [
        Customer(id="ADMIN", name="System Admin", email="admin@technova.com", role="admin"),
        Customer(
            id="C1",
            name="Alice Johnson",
            email="alice@example.com",
            orders=[
                Order(
                    id="ORD-9921",
                    date="2023-11-02",
                    status="Processing",
                    items=(OrderItem("H1", 1),),
                    total=45.0
                )
            ]
        ),
        Customer(id="C2", name="Bob Smith", email="bob@example.com"),
    ]


@pytest.fixture
def products():
    return InMemoryProductRepository(make_products())


@pytest.fixture
def customers():
    return InMemoryCustomerRepository(make_customers())


@pytest.fixture
def catalog(products, customers):
    return CatalogService(products, customers, search_limit=5)


@pytest.fixture
def active_customer():
    """Mutable holder for the id the cart and tools read at call time."""
    return {"id": "C1"}


@pytest.fixture
def cart(products, customers, active_customer):
    return CartStateMachine(
        products,
        customers,
        lambda: active_customer["id"],
        rng=random.Random(7)
    )


@pytest.fixture
def integrations():
    return IntegrationService(
        escalation_delay=0,
        survey_delay=0,
        integration_delay=0,
        analytics_delay=0,
        rng=random.Random(3)
    )


@pytest.fixture
def context(catalog, cart, integrations, active_customer):
    return ToolContext(
        catalog=catalog,
        cart=cart,
        integrations=integrations,
        customer_id=lambda: active_customer["id"]
    )


@pytest.fixture
def registry():
    return ToolRegistry().initialize()


# =========================
# Chat model fakes
# =========================

def tool_call(name, call_id=None, **arguments):
    return ToolCall(id=call_id or f"call-{name}", name=name, arguments=arguments)


class ScriptedChatSession:
    """Replays scripted replies; records everything sent to it."""

    def __init__(self, replies):
        self.replies = replies
        self.sent = []

    async def send_message(self, message):
        self.sent.append(message)
        if not self.replies:
            return ModelResponse(text="")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply(message)
        return reply


class FakeChatModel:
    """Chat model whose sessions share one reply script."""

    is_configured = True

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.sessions = []
        self.started = []

    def start_chat(self, customer, language):
        if self.error is not None:
            raise self.error
        self.started.append((customer.id, language))
        session = ScriptedChatSession(self.replies)
        self.sessions.append(session)
        return session


@pytest.fixture
def chat_model():
    return FakeChatModel()


# =========================
# Voice fakes
# =========================

class FakeCapture:
    def __init__(self, error=None):
        self.error = error
        self.is_open = False
        self.close_calls = 0
        self._on_chunk = None

    async def open(self):
        if self.error is not None:
            raise self.error
        self.is_open = True

    def start(self, on_chunk):
        self._on_chunk = on_chunk

    def emit(self, samples, sample_rate=16000):
        if self._on_chunk is not None:
            self._on_chunk(AudioChunk(np.asarray(samples, dtype=np.float32), sample_rate))

    async def close(self):
        self.close_calls += 1
        self.is_open = False
        self._on_chunk = None


class FakePlayback:
    def __init__(self, error=None):
        self.error = error
        self.time = 0.0
        self.is_open = False
        self.close_calls = 0
        self.played = []
        self.stopped = []

    async def open(self):
        if self.error is not None:
            raise self.error
        self.is_open = True

    @property
    def current_time(self):
        return self.time

    def play(self, samples, sample_rate, start_time):
        handle = len(self.played) + 1
        self.played.append({
            "handle": handle,
            "start_time": start_time,
            "duration": len(samples) / sample_rate
        })
        return handle

    def stop(self, handle):
        self.stopped.append(handle)

    async def close(self):
        self.close_calls += 1
        self.is_open = False


class FakeLiveSession:
    def __init__(self):
        self.audio = []
        self.texts = []
        self.tool_results = []
        self.closed = False
        self.close_calls = 0
        self.fail_audio = False

    def send_realtime_audio(self, blob):
        if self.fail_audio:
            raise ConnectionError("socket closed")
        self.audio.append(blob)

    async def send_text(self, text):
        if self.closed:
            raise SessionClosedException()
        self.texts.append(text)

    async def send_tool_results(self, responses):
        if self.closed:
            raise SessionClosedException()
        self.tool_results.append(list(responses))

    async def close(self):
        self.close_calls += 1
        self.closed = True


class FakeConnector:
    def __init__(self, error=None, open_on_connect=True):
        self.error = error
        self.open_on_connect = open_on_connect
        self.sessions = []
        self.config = None
        self.callbacks = None

    async def connect(self, config, callbacks):
        self.config = config
        self.callbacks = callbacks
        if self.error is not None:
            raise self.error
        session = FakeLiveSession()
        self.sessions.append(session)
        if self.open_on_connect:
            await callbacks.on_open()
        return session

    @property
    def live(self):
        return self.sessions[-1]


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def playback():
    return FakePlayback()


@pytest.fixture
def connector():
    return FakeConnector()
