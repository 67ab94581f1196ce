"""
Domain Models.
Defines the catalog, cart, order and support entities shared by all channels.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class Product:
    """Immutable catalog entry."""
    id: str
    name: str
    category: str
    price: float
    in_stock: bool = True
    rating: float = 0.0
    review_count: int = 0
    image: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "inStock": self.in_stock,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "image": self.image
        }


@dataclass
class CartItem:
    """Cart line: a product and how many of it."""
    product: Product
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product.to_dict(),
            "quantity": self.quantity,
            "lineTotal": self.line_total
        }


@dataclass(frozen=True)
class OrderItem:
    """Order line item."""
    product_id: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"productId": self.product_id, "quantity": self.quantity}


@dataclass(frozen=True)
class Order:
    """Placed order. Never changes after checkout."""
    id: str
    date: str
    status: str
    items: Tuple[OrderItem, ...]
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total": self.total
        }


@dataclass
class Customer:
    """Customer profile with most-recent-first order history."""
    id: str
    name: str
    email: str
    role: str = "customer"
    orders: List[Order] = field(default_factory=list)

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]

    def to_dict(self, include_orders: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "orderCount": len(self.orders)
        }
        if include_orders:
            data["orders"] = [order.to_dict() for order in self.orders]
        return data


@dataclass(frozen=True)
class EscalationTicket:
    """Ticket created in the (simulated) CRM."""
    ticket_id: str
    user_id: str
    reason: str
    status: str = "Open"
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SurveyResponse:
    """End-of-chat satisfaction survey."""
    rating: int
    feedback: str = ""


@dataclass(frozen=True)
class IntegrationStatus:
    """Health of a connected back-office system."""
    id: str
    name: str
    status: str
    last_sync: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "lastSync": self.last_sync.isoformat()
        }


@dataclass(frozen=True)
class AnalyticsMetrics:
    """Chat quality metrics for the reports tab."""
    total_chats: int
    valid_chats: int
    invalid_chats: int
    avg_engagement_score: float
    csat_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
