"""Tests for the cart and order state machine."""

import pytest

from nova_support.db.models import Product


@pytest.fixture
def shirt(products):
    return products.get_by_id("T1")


@pytest.fixture
def jeans(products):
    return products.get_by_id("J1")


class TestAddToCart:
    def test_adds_new_line(self, cart, shirt):
        line = cart.add_to_cart(shirt, 2)
        assert line.quantity == 2
        assert cart.item_count == 2
        assert cart.subtotal == 40.0

    def test_repeated_adds_merge(self, cart, shirt):
        cart.add_to_cart(shirt, 1)
        line = cart.add_to_cart(shirt, 3)
        assert line.quantity == 4
        assert len(cart.items) == 1

    def test_non_positive_quantity_means_one(self, cart, shirt):
        cart.add_to_cart(shirt, 0)
        cart.add_to_cart(shirt, None)
        assert cart.quantity_of("T1") == 2

    def test_items_are_copies(self, cart, shirt):
        cart.add_to_cart(shirt, 1)
        cart.items[0].quantity = 99
        assert cart.quantity_of("T1") == 1


class TestUpdateAndRemove:
    def test_update_replaces_quantity(self, cart, shirt):
        cart.add_to_cart(shirt, 1)
        assert cart.update_quantity("T1", 5) is True
        assert cart.quantity_of("T1") == 5

    def test_update_below_one_is_ignored(self, cart, shirt):
        cart.add_to_cart(shirt, 2)
        assert cart.update_quantity("T1", 0) is False
        assert cart.update_quantity("T1", -3) is False
        assert cart.quantity_of("T1") == 2

    def test_update_unknown_product(self, cart):
        assert cart.update_quantity("NOPE", 2) is False

    def test_remove(self, cart, shirt, jeans):
        cart.add_to_cart(shirt)
        cart.add_to_cart(jeans)
        assert cart.remove_from_cart("T1") is True
        assert [item.product.id for item in cart.items] == ["J1"]
        assert cart.remove_from_cart("T1") is False

    def test_clear(self, cart, shirt):
        cart.add_to_cart(shirt)
        cart.clear_cart()
        assert cart.is_empty


class TestCheckout:
    def test_empty_cart_is_refused(self, cart, customers):
        result = cart.checkout()
        assert result.success is False
        assert result.message == cart.EMPTY_CART_MESSAGE
        assert len(customers.get_orders("C1")) == 1

    def test_checkout_creates_order_and_empties_cart(self, cart, customers, shirt, jeans):
        cart.add_to_cart(shirt, 2)
        cart.add_to_cart(jeans, 1)

        result = cart.checkout()

        assert result.success is True
        assert result.order.total == 90.0
        assert result.order.status == "Processing"
        assert result.message == f"Order placed successfully. Order ID: {result.order_id}"
        assert result.order_id.startswith("ORD-")
        assert cart.is_empty

        orders = customers.get_orders("C1")
        assert orders[0].id == result.order_id
        assert [(i.product_id, i.quantity) for i in orders[0].items] == [("T1", 2), ("J1", 1)]

    def test_order_goes_to_active_customer(self, cart, customers, shirt, active_customer):
        active_customer["id"] = "C2"
        cart.add_to_cart(shirt)
        result = cart.checkout()
        assert customers.get_orders("C2")[0].id == result.order_id
        assert len(customers.get_orders("C1")) == 1

    def test_order_ids_are_unique(self, cart, shirt):
        ids = set()
        for _ in range(20):
            cart.add_to_cart(shirt)
            ids.add(cart.checkout().order_id)
        assert len(ids) == 20

    def test_total_uses_catalog_price_at_checkout(self, cart):
        stale = Product("T1", "Basic White T-Shirt", "T-Shirt", 99.0)
        cart.add_to_cart(stale, 2)

        result = cart.checkout()

        assert result.success is True
        assert result.order.total == 40.0

    def test_product_missing_from_catalog_refuses_checkout(self, cart, customers, shirt):
        cart.add_to_cart(shirt, 1)
        cart.add_to_cart(Product("GONE", "Retired Scarf", "Hat", 15.0), 1)

        result = cart.checkout()

        assert result.success is False
        assert result.rule == "UNAVAILABLE_ITEMS"
        assert "GONE" in result.message
        assert len(cart.items) == 2
        assert len(customers.get_orders("C1")) == 1


class TestListeners:
    def test_listener_sees_every_mutation(self, cart, shirt):
        changes = []
        cart.subscribe(changes.append)

        cart.add_to_cart(shirt)
        cart.update_quantity("T1", 3)
        cart.checkout()

        assert [c.action for c in changes] == ["add", "update", "checkout"]
        assert changes[0].opened is True
        assert changes[-1].items == []

    def test_failing_listener_does_not_break_cart(self, cart, shirt):
        def boom(change):
            raise RuntimeError("listener down")

        cart.subscribe(boom)
        cart.add_to_cart(shirt)
        assert cart.quantity_of("T1") == 1

    def test_unsubscribe(self, cart, shirt):
        changes = []
        cart.subscribe(changes.append)
        cart.unsubscribe(changes.append)
        cart.add_to_cart(shirt)
        assert changes == []
