"""
Product Search Tool.
Lets the model look up products by name or category.
"""

import logging

from nova_support.config import CATEGORIES
from nova_support.tools.arguments import SearchProductsArgs
from nova_support.tools.registry import Tool, ToolContext, ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


async def search_products_handler(
    args: SearchProductsArgs,
    context: ToolContext
) -> ToolResult:
    """
    Search the catalog.

    Returns at most five products, in catalog order. An empty match is a
    successful search with no products, not an error.
    """
    products = context.catalog.search(args.query, args.category)

    logger.debug(
        f"search_products query={args.query!r} category={args.category!r} -> {len(products)} hits"
    )

    if not products:
        message = "No products matched the search."
    else:
        message = f"Found {len(products)} matching products."

    return ToolResult.ok(
        message,
        products=[p.to_dict() for p in products],
        total_count=len(products)
    )


def register_product_tools(registry: ToolRegistry):
    """Register all product-related tools."""

    registry.register(Tool(
        name="search_products",
        description=(
            "Search for products in the catalog by name or category. "
            "Categories: " + ", ".join(CATEGORIES)
        ),
        parameters={
            "query": {
                "type": "string",
                "description": 'The search term (e.g., "red shirt")'
            },
            "category": {
                "type": "string",
                "description": 'The category to filter by (e.g., "Jeans")'
            }
        },
        handler=search_products_handler,
        required_params=[]
    ))

    logger.info("Product tools registered")
