"""
Storefront REST Endpoints.
Product browser, cart drawer and order history used by the web UI.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from nova_support.config import CATEGORIES, get_settings
from nova_support.core.exceptions import BusinessRuleException

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class CartItemCreate(BaseModel):
    """Request model for adding a product to the cart."""
    product_id: str
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseModel):
    """Request model for changing a cart line's quantity."""
    quantity: int


def _cart_payload(cart) -> dict:
    items = cart.items
    return {
        "items": [item.to_dict() for item in items],
        "item_count": sum(item.quantity for item in items),
        "subtotal": sum(item.line_total for item in items)
    }


# ==================
# PRODUCTS
# ==================

@router.get("/products")
async def list_products(
    request: Request,
    query: Optional[str] = None,
    category: Optional[str] = None
):
    """Browse the catalog with optional name and category filters."""
    products = request.app.state.support.catalog.browse(query, category)
    return {
        "products": [product.to_dict() for product in products],
        "total": len(products),
        "categories": CATEGORIES
    }


@router.get("/products/{product_id}")
async def get_product(request: Request, product_id: str):
    """Get a single product."""
    product = request.app.state.products.get_by_id(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' not found")
    return product.to_dict()


# ==================
# CART
# ==================

@router.get("/cart")
async def get_cart(request: Request):
    """Current cart contents."""
    return _cart_payload(request.app.state.support.cart)


@router.post("/cart/items")
async def add_cart_item(request: Request, item: CartItemCreate):
    """Add a product, merging with an existing line."""
    product = request.app.state.products.get_by_id(item.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product '{item.product_id}' not found")

    cart = request.app.state.support.cart
    cart.add_to_cart(product, item.quantity)
    return _cart_payload(cart)


@router.patch("/cart/items/{product_id}")
async def update_cart_item(request: Request, product_id: str, update: CartItemUpdate):
    """Change a line's quantity. Quantities below 1 leave the cart unchanged."""
    cart = request.app.state.support.cart
    if cart.quantity_of(product_id) == 0:
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' is not in the cart")

    cart.update_quantity(product_id, update.quantity)
    return _cart_payload(cart)


@router.delete("/cart/items/{product_id}")
async def remove_cart_item(request: Request, product_id: str):
    """Remove a line from the cart."""
    cart = request.app.state.support.cart
    if not cart.remove_from_cart(product_id):
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' is not in the cart")
    return _cart_payload(cart)


@router.delete("/cart")
async def clear_cart(request: Request):
    """Empty the cart."""
    cart = request.app.state.support.cart
    cart.clear_cart()
    return _cart_payload(cart)


@router.post("/cart/checkout")
async def checkout(request: Request):
    """
    Place an order for the cart.

    Same checkout path as the place_order tool.
    """
    support = request.app.state.support
    result = support.cart.checkout()

    if not result.success:
        raise BusinessRuleException(result.message, rule=result.rule)

    return {
        "success": True,
        "message": result.message,
        "orderId": result.order_id,
        "order": result.order.to_dict()
    }


# ==================
# ORDERS
# ==================

@router.get("/orders")
async def list_orders(request: Request):
    """Order history of the active customer, most recent first."""
    support = request.app.state.support
    orders = support.catalog.get_order_history(support.customer_id)
    return {
        "customer_id": support.customer_id,
        "orders": [order.to_dict() for order in orders],
        "total": len(orders)
    }
