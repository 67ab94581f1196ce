"""Repository protocols for catalog and customer storage."""

from typing import List, Optional, Protocol

from nova_support.db.models import Customer, Order, Product


class CatalogRepository(Protocol):
    """Read-only product catalog."""

    def get_all(self) -> List[Product]:
        """Return every product in catalog insertion order."""
        ...

    def get_by_id(self, product_id: str) -> Optional[Product]:
        """Return the product with this id, if any."""
        ...


class CustomerRepository(Protocol):
    """Customer profiles and their order histories."""

    def get_all(self) -> List[Customer]:
        ...

    def get_by_id(self, customer_id: str) -> Optional[Customer]:
        ...

    def get_orders(self, customer_id: str) -> List[Order]:
        """Return the order history, most recent first. Unknown ids give []."""
        ...

    def prepend_order(self, customer_id: str, order: Order) -> None:
        """Put a freshly placed order at the front of the customer's history."""
        ...

    def order_exists(self, order_id: str) -> bool:
        ...
