"""
Customer Repository.
In-memory storage for customers and their order histories.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from nova_support.db.models import Customer, Order

logger = logging.getLogger(__name__)


class InMemoryCustomerRepository:
    """Customer profiles held in process memory."""

    def __init__(self, customers: Iterable[Customer]):
        self._customers: Dict[str, Customer] = {c.id: c for c in customers}
        self._lock = threading.Lock()

    def get_all(self) -> List[Customer]:
        """Get all customers in insertion order."""
        return list(self._customers.values())

    def get_by_id(self, customer_id: str) -> Optional[Customer]:
        """Get a customer by ID."""
        return self._customers.get(customer_id)

    def get_orders(self, customer_id: str) -> List[Order]:
        """Get orders for a customer, most recent first."""
        customer = self._customers.get(customer_id)
        return list(customer.orders) if customer else []

    def prepend_order(self, customer_id: str, order: Order) -> None:
        """Add a new order to the front of a customer's history."""
        with self._lock:
            customer = self._customers.get(customer_id)
            if customer is None:
                raise KeyError(customer_id)
            customer.orders = [order] + customer.orders

        logger.info(f"Order {order.id} recorded for customer {customer_id}")

    def order_exists(self, order_id: str) -> bool:
        """Check whether any customer already has an order with this id."""
        return any(
            order.id == order_id
            for customer in self._customers.values()
            for order in customer.orders
        )
