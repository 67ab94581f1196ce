"""
Order Tools.
Order history lookup and checkout of the current cart.
"""

import logging

from nova_support.tools.arguments import GetMyOrdersArgs, PlaceOrderArgs
from nova_support.tools.registry import Tool, ToolContext, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


async def get_my_orders_handler(
    args: GetMyOrdersArgs,
    context: ToolContext
) -> ToolResult:
    """Order history for whoever is the active customer right now."""
    orders = context.catalog.get_order_history(context.customer_id())

    if not orders:
        message = "This customer has no orders yet."
    else:
        message = f"Found {len(orders)} orders, most recent first."

    return ToolResult.ok(
        message,
        orders=[order.to_dict() for order in orders]
    )


async def place_order_handler(
    args: PlaceOrderArgs,
    context: ToolContext
) -> ToolResult:
    """
    Check out the cart.

    Emptiness is read from the live cart when the call executes, so items
    added earlier in the same batch are included.
    """
    if context.cart.is_empty:
        return ToolResult.fail(context.cart.EMPTY_CART_MESSAGE, error="EMPTY_CART")

    checkout = context.cart.checkout()
    if not checkout.success:
        return ToolResult.fail(checkout.message, error=checkout.rule)

    order_id = checkout.order_id
    return ToolResult.ok(
        f"Order placed successfully. Order ID: {order_id}. "
        f'You MUST tell the user: "I have placed your order. Your Order ID is {order_id}".',
        orderId=order_id,
        total=checkout.order.total
    )


def register_order_tools(registry: ToolRegistry):
    """Register all order-related tools."""

    registry.register(Tool(
        name="get_my_orders",
        description="Get the order history for the currently authenticated user.",
        parameters={},
        handler=get_my_orders_handler,
        required_params=[]
    ))

    registry.register(Tool(
        name="place_order",
        description="Place an order for the items in the cart. Returns the orderId of the created order.",
        parameters={},
        handler=place_order_handler,
        required_params=[]
    ))

    logger.info("Order tools registered")
