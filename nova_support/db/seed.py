"""
Demo Data.
Builds the mock catalog and customer list the support agent works against.
"""

import random
from typing import List, Optional, Tuple
from urllib.parse import quote

from nova_support.config import CATEGORIES
from nova_support.db.models import Customer, Order, OrderItem, Product
from nova_support.db.repositories import InMemoryCustomerRepository, InMemoryProductRepository

ADJECTIVES = ["Vintage", "Modern", "Classic", "Urban", "Cozy", "Premium", "Essential"]
COLORS = ["Red", "Blue", "Black", "White", "Green", "Navy", "Grey"]

PRODUCT_COUNT = 100


def generate_products(rng: random.Random) -> List[Product]:
    """Generate the catalog: one product per adjective/color/category rotation."""
    products = []
    for i in range(PRODUCT_COUNT):
        category = CATEGORIES[i % len(CATEGORIES)]
        adjective = ADJECTIVES[i % len(ADJECTIVES)]
        color = COLORS[i % len(COLORS)]

        products.append(Product(
            id=f"P{1000 + i}",
            name=f"{adjective} {color} {category}",
            category=category,
            price=float(rng.randint(20, 169)),
            in_stock=rng.random() > 0.1,
            rating=round(3 + rng.random() * 2, 1),
            review_count=rng.randint(10, 509),
            image=f"https://placehold.co/300x300/e2e8f0/1e293b?text={quote(category)}"
        ))
    return products


def _random_items(rng: random.Random, products: List[Product], count: int) -> Tuple[OrderItem, ...]:
    picked = rng.sample(products, count)
    return tuple(OrderItem(product_id=p.id, quantity=rng.randint(1, 2)) for p in picked)


def _order(rng, products, order_id, date, status, count) -> Order:
    items = _random_items(rng, products, count)
    prices = {p.id: p.price for p in products}
    total = sum(prices[item.product_id] * item.quantity for item in items)
    return Order(id=order_id, date=date, status=status, items=items, total=total)


def generate_customers(rng: random.Random, products: List[Product]) -> List[Customer]:
    """Demo customers. Order histories are most recent first."""
    return [
        Customer(
            id="ADMIN",
            name="System Admin",
            email="admin@technova.com",
            role="admin"
        ),
        Customer(
            id="C1",
            name="Alice Johnson",
            email="alice@example.com",
            orders=[
                _order(rng, products, "ORD-9921", "2023-11-02", "Processing", 1),
                _order(rng, products, "ORD-7782", "2023-10-15", "Delivered", 2),
            ]
        ),
        Customer(
            id="C2",
            name="Bob Smith",
            email="bob@example.com"
        ),
        Customer(
            id="C3",
            name="Charlie Davis",
            email="charlie@example.com",
            orders=[
                _order(rng, products, "ORD-3341", "2023-11-05", "Shipped", 2),
                _order(rng, products, "ORD-2231", "2023-10-01", "Delivered", 1),
                _order(rng, products, "ORD-1102", "2023-09-10", "Returned", 3),
            ]
        ),
    ]


def build_repositories(
    seed: Optional[int] = None
) -> Tuple[InMemoryProductRepository, InMemoryCustomerRepository]:
    """Create fresh catalog and customer repositories from a seed."""
    rng = random.Random(seed)
    products = generate_products(rng)
    customers = generate_customers(rng, products)
    return InMemoryProductRepository(products), InMemoryCustomerRepository(customers)
