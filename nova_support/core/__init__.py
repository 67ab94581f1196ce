"""Core module initialization."""

from nova_support.core.exceptions import (
    NovaSupportException,
    ConfigurationException,
    ModelException,
    ToolException,
    SessionException,
    BusinessRuleException
)
from nova_support.core.cart import CartStateMachine, CheckoutResult

__all__ = [
    "NovaSupportException",
    "ConfigurationException",
    "ModelException",
    "ToolException",
    "SessionException",
    "BusinessRuleException",
    "CartStateMachine",
    "CheckoutResult"
]
