"""Database module initialization."""

from nova_support.db.models import (
    Product,
    CartItem,
    OrderItem,
    Order,
    Customer,
    EscalationTicket,
    SurveyResponse,
    IntegrationStatus,
    AnalyticsMetrics
)
from nova_support.db.seed import build_repositories

__all__ = [
    "Product",
    "CartItem",
    "OrderItem",
    "Order",
    "Customer",
    "EscalationTicket",
    "SurveyResponse",
    "IntegrationStatus",
    "AnalyticsMetrics",
    "build_repositories"
]
