"""
Support Session.
Active customer and language, the shared cart, and the text conversation bound to them.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from nova_support.config import get_settings
from nova_support.core.cart import CartStateMachine
from nova_support.core.conversation import TextConversation, TurnResult, TurnState
from nova_support.core.exceptions import CustomerNotFoundException, UnsupportedLanguageException
from nova_support.db.models import Customer
from nova_support.db.repositories import CatalogRepository, CustomerRepository
from nova_support.services.catalog import CatalogService
from nova_support.services.integrations import IntegrationService
from nova_support.services.llm import ChatModel
from nova_support.tools.registry import ToolContext, ToolRegistry

logger = logging.getLogger(__name__)
settings = get_settings()


WELCOME_MESSAGES = {
    "en": "Hello {name}! I'm Nova. How can I help you with your TechNova products today?",
    "fr": "Bonjour {name} ! Je suis Nova. Comment puis-je vous aider avec vos produits TechNova aujourd'hui ?"
}

PROACTIVE_OPTIONS = {
    "en": {
        "trackOrder": "Track my order",
        "browseProducts": "Browse Products",
        "returnPolicy": "Return Policy"
    },
    "fr": {
        "trackOrder": "Suivre ma commande",
        "browseProducts": "Voir les produits",
        "returnPolicy": "Politique de retour"
    }
}


@dataclass
class ConversationTurn:
    """Single turn in the chat transcript."""
    role: str  # "user", "assistant", "system"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    language: Optional[str] = None

    # Tool call metadata
    tool_names: List[str] = field(default_factory=list)

    # Outcome metadata
    state: Optional[str] = None
    processing_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert turn to dictionary."""
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "language": self.language,
            "tool_names": self.tool_names,
            "state": self.state,
            "processing_time_ms": self.processing_time_ms
        }


class SupportSession:
    """
    The single active support session.

    Owns the cart and the text conversation. The cart and the tool handlers
    read the active customer through `customer_id` at call time, so switching
    customer takes effect for the very next tool call. Switching customer or
    language resets the conversation and clears the transcript; the cart is
    kept.
    """

    def __init__(
        self,
        products: CatalogRepository,
        customers: CustomerRepository,
        chat_model: ChatModel,
        registry: ToolRegistry,
        integrations: IntegrationService,
        customer_id: Optional[str] = None,
        language: Optional[str] = None,
        agent_logger=None,
        rng: Optional[random.Random] = None,
        max_turns: Optional[int] = None
    ):
        self.customers = customers
        self.integrations = integrations
        self.agent_logger = agent_logger
        self.max_turns = max_turns or settings.MAX_CONVERSATION_TURNS

        self._customer = self._lookup(customer_id or settings.DEFAULT_CUSTOMER_ID)
        self._language = self._validate_language(language or settings.DEFAULT_LANGUAGE)
        self._turns: List[ConversationTurn] = []

        self.catalog = CatalogService(products, customers)
        self.cart = CartStateMachine(products, customers, self._current_customer_id, rng=rng)
        self.tool_context = ToolContext(
            catalog=self.catalog,
            cart=self.cart,
            integrations=integrations,
            customer_id=self._current_customer_id
        )
        self.conversation = TextConversation(
            chat_model,
            registry,
            self.tool_context,
            self._customer,
            language=self._language,
            agent_logger=agent_logger
        )

    # =========================
    # Identity
    # =========================

    @property
    def customer(self) -> Customer:
        return self._customer

    @property
    def customer_id(self) -> str:
        return self._customer.id

    @property
    def language(self) -> str:
        return self._language

    @property
    def epoch(self) -> int:
        return self.conversation.epoch

    def _current_customer_id(self) -> str:
        return self._customer.id

    def switch_customer(self, customer_id: str) -> Customer:
        """Make another customer active. Raises CustomerNotFoundException."""
        customer = self._lookup(customer_id)
        if customer.id != self._customer.id:
            self._customer = customer
            logger.info(f"Active customer switched to {customer.id}")
            self.reset()
        return customer

    def set_language(self, language: str) -> str:
        """Change the conversation language. Raises UnsupportedLanguageException."""
        language = self._validate_language(language)
        if language != self._language:
            self._language = language
            logger.info(f"Language switched to {language}")
            self.reset()
        return language

    def reset(self):
        """Drop the chat session and transcript; in-flight turns are discarded."""
        self._turns = []
        self.conversation.reset(self._customer, self._language)

    def _lookup(self, customer_id: str) -> Customer:
        customer = self.customers.get_by_id(customer_id)
        if customer is None:
            raise CustomerNotFoundException(customer_id)
        return customer

    @staticmethod
    def _validate_language(language: str) -> str:
        if language not in settings.SUPPORTED_LANGUAGES:
            raise UnsupportedLanguageException(language, settings.SUPPORTED_LANGUAGES)
        return language

    # =========================
    # Conversation
    # =========================

    def welcome(self) -> Dict[str, Any]:
        """Opening bot message with the proactive quick-reply options."""
        template = WELCOME_MESSAGES.get(self._language, WELCOME_MESSAGES["en"])
        options = PROACTIVE_OPTIONS.get(self._language, PROACTIVE_OPTIONS["en"])
        return {
            "text": template.format(name=self._customer.first_name),
            "options": [{"id": key, "label": label} for key, label in options.items()]
        }

    def option_text(self, option: str) -> Optional[str]:
        """User text sent when a proactive option is picked."""
        options = PROACTIVE_OPTIONS.get(self._language, PROACTIVE_OPTIONS["en"])
        return options.get(option)

    async def send_message(self, text: str) -> TurnResult:
        """Run one user message and record it in the transcript."""
        epoch = self.conversation.epoch
        result = await self.conversation.send(text)

        if result.state == TurnState.DISCARDED or epoch != self.conversation.epoch:
            return result

        self.add_turn(ConversationTurn(role="user", content=text, language=self._language))
        self.add_turn(ConversationTurn(
            role="system" if result.is_error else "assistant",
            content=result.text,
            language=self._language,
            tool_names=[r.name for r in result.tool_responses],
            state=result.state.value,
            processing_time_ms=result.processing_time_ms
        ))
        await self.conversation.log_turn(text, result)
        return result

    def add_turn(self, turn: ConversationTurn):
        """Add a conversation turn."""
        self._turns.append(turn)

        # Trim old turns if exceeding max
        if len(self._turns) > self.max_turns:
            self._turns = self._turns[-self.max_turns:]

    @property
    def turns(self) -> List[ConversationTurn]:
        return list(self._turns)

    async def submit_survey(self, rating: int, feedback: str = "") -> bool:
        """Send the end-of-chat satisfaction survey."""
        return await self.integrations.submit_survey(self._customer.id, rating, feedback)

    def to_dict(self) -> Dict[str, Any]:
        """Convert session to dictionary."""
        return {
            "customer": self._customer.to_dict(),
            "language": self._language,
            "epoch": self.epoch,
            "turn_count": len(self._turns),
            "cart_item_count": self.cart.item_count
        }
