"""
Cart and Order State Machine.
Single owner of the shopping cart and the only place orders get created.
"""

import logging
import random
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

from nova_support.db.models import CartItem, Order, OrderItem, Product
from nova_support.db.repositories import CatalogRepository, CustomerRepository

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    """Outcome of a checkout attempt. Failures are values, not exceptions."""
    success: bool
    message: str
    order_id: Optional[str] = None
    order: Optional[Order] = None
    rule: Optional[str] = None


@dataclass
class CartChange:
    """Notification sent to cart listeners after every mutation."""
    action: str
    items: List[CartItem]
    opened: bool = False


CartListener = Callable[[CartChange], None]


class CartStateMachine:
    """
    Shared cart for the text, voice and storefront channels.

    Every operation holds the lock for its whole read-modify-write, so a
    checkout either creates the order and empties the cart or does neither.
    Callers keep a reference to this object and read `items` / `is_empty`
    when they act, never a copy taken earlier.
    """

    EMPTY_CART_MESSAGE = "The cart is empty. Cannot place an order. Please add items first."
    UNAVAILABLE_ITEMS_MESSAGE = "Some items are no longer available: {ids}. Please remove them before placing the order."

    def __init__(
        self,
        catalog: CatalogRepository,
        customers: CustomerRepository,
        customer_id: Callable[[], str],
        rng: Optional[random.Random] = None
    ):
        self._catalog = catalog
        self._customers = customers
        self._customer_id = customer_id
        self._rng = rng or random.Random()
        self._items: List[CartItem] = []
        self._lock = threading.RLock()
        self._listeners: List[CartListener] = []

    # =========================
    # Reads
    # =========================

    @property
    def items(self) -> List[CartItem]:
        with self._lock:
            return [CartItem(item.product, item.quantity) for item in self._items]

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    @property
    def item_count(self) -> int:
        with self._lock:
            return sum(item.quantity for item in self._items)

    @property
    def subtotal(self) -> float:
        with self._lock:
            return sum(item.line_total for item in self._items)

    def quantity_of(self, product_id: str) -> int:
        with self._lock:
            for item in self._items:
                if item.product.id == product_id:
                    return item.quantity
            return 0

    # =========================
    # Mutations
    # =========================

    def add_to_cart(self, product: Product, quantity: Optional[int] = 1) -> CartItem:
        """Add a product, merging with an existing line for the same id."""
        if not quantity or quantity < 1:
            quantity = 1

        with self._lock:
            for item in self._items:
                if item.product.id == product.id:
                    item.quantity += quantity
                    line = CartItem(item.product, item.quantity)
                    break
            else:
                self._items.append(CartItem(product, quantity))
                line = CartItem(product, quantity)

            self._notify("add", opened=True)

        logger.info(f"Cart: added {quantity} x {product.id}")
        return line

    def update_quantity(self, product_id: str, new_quantity: int) -> bool:
        """Replace a line's quantity. Values below 1 are ignored."""
        if new_quantity < 1:
            logger.debug(f"Cart: ignored quantity {new_quantity} for {product_id}")
            return False

        with self._lock:
            for item in self._items:
                if item.product.id == product_id:
                    item.quantity = new_quantity
                    self._notify("update")
                    return True
        return False

    def remove_from_cart(self, product_id: str) -> bool:
        with self._lock:
            remaining = [item for item in self._items if item.product.id != product_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            self._notify("remove")
        return True

    def clear_cart(self):
        with self._lock:
            self._items = []
            self._notify("clear")

    def checkout(self) -> CheckoutResult:
        """
        Turn the cart into an order for the active customer.

        The total is priced from the catalog at checkout time; a line whose
        product has left the catalog refuses the checkout. On success
        the order is at the front of the customer's history and the cart is
        empty.
        """
        with self._lock:
            if not self._items:
                logger.info("Checkout refused: cart is empty")
                return CheckoutResult(success=False, message=self.EMPTY_CART_MESSAGE, rule="EMPTY_CART")

            missing = [
                item.product.id for item in self._items
                if self._catalog.get_by_id(item.product.id) is None
            ]
            if missing:
                logger.warning(f"Checkout refused: products no longer in the catalog: {missing}")
                return CheckoutResult(
                    success=False,
                    message=self.UNAVAILABLE_ITEMS_MESSAGE.format(ids=", ".join(missing)),
                    rule="UNAVAILABLE_ITEMS"
                )

            customer_id = self._customer_id()
            order_items = tuple(
                OrderItem(product_id=item.product.id, quantity=item.quantity)
                for item in self._items
            )
            order = Order(
                id=self._new_order_id(),
                date=date.today().isoformat(),
                status="Processing",
                items=order_items,
                total=self._price(order_items)
            )

            self._customers.prepend_order(customer_id, order)
            self._items = []
            self._notify("checkout")

        logger.info(f"Order {order.id} placed for {customer_id}: ${order.total:.2f}")
        return CheckoutResult(
            success=True,
            message=f"Order placed successfully. Order ID: {order.id}",
            order_id=order.id,
            order=order
        )

    # =========================
    # Listeners
    # =========================

    def subscribe(self, listener: CartListener):
        self._listeners.append(listener)

    def unsubscribe(self, listener: CartListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    # =========================
    # Internals
    # =========================

    def _price(self, order_items) -> float:
        return sum((
            self._catalog.get_by_id(item.product_id).price * item.quantity
            for item in order_items
        ), 0.0)

    def _new_order_id(self) -> str:
        while True:
            order_id = f"ORD-{self._rng.randint(1000, 99999)}"
            if not self._customers.order_exists(order_id):
                return order_id

    def _notify(self, action: str, opened: bool = False):
        change = CartChange(action=action, items=self.items, opened=opened)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Cart listener failed: {e}")
