"""
Catalog Query Service.
Pure lookups over the product catalog and customer order histories.
"""

import logging
from typing import List, Optional

from nova_support.config import GENERIC_CATEGORY_TERMS, get_settings
from nova_support.db.models import Order, Product
from nova_support.db.repositories import CatalogRepository, CustomerRepository

logger = logging.getLogger(__name__)
settings = get_settings()


# Cross-sell hints keyed by the category just added to the cart
_OUTFIT_TOPS = ("T-Shirt", "Jacket", "Hoodie")

RECOMMENDATIONS = {
    "Jeans": "Recommend a matching T-Shirt or Hoodie.",
    "Sneakers": "Recommend a Hoodie or Hat to match.",
    "Dress": "Recommend a matching Jacket.",
}
RECOMMENDATIONS.update({
    top: "Recommend matching Jeans or Sneakers to complete the outfit."
    for top in _OUTFIT_TOPS
})

DEFAULT_RECOMMENDATION = "Recommend checking out our other accessories."


class CatalogService:
    """Read-only queries used by tools and the product browser."""

    def __init__(
        self,
        products: CatalogRepository,
        customers: CustomerRepository,
        search_limit: Optional[int] = None
    ):
        self.products = products
        self.customers = customers
        self.search_limit = search_limit or settings.SEARCH_RESULT_LIMIT

    def search(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[Product]:
        """
        Search products for the model.

        Umbrella categories such as "apparel" or "clothing" disable the
        category filter. Results keep catalog order and are capped so the
        model context stays small.
        """
        return self.browse(query, category)[:self.search_limit]

    def browse(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[Product]:
        """Same filters as search, without the result cap."""
        results = self.products.get_all()

        if category:
            lower_cat = category.strip().lower()
            if lower_cat not in GENERIC_CATEGORY_TERMS:
                results = [p for p in results if lower_cat in p.category.lower()]

        if query:
            lower_query = query.lower()
            results = [p for p in results if lower_query in p.name.lower()]

        return results

    def find_by_name(self, name: str) -> Optional[Product]:
        """First product whose name contains `name`, ignoring case."""
        lower_name = name.lower()
        for product in self.products.get_all():
            if lower_name in product.name.lower():
                return product
        return None

    def get_order_history(self, customer_id: str) -> List[Order]:
        """Orders for a customer, most recent first. Unknown ids give []."""
        return self.customers.get_orders(customer_id)

    @staticmethod
    def recommendation_for(category: str) -> str:
        return RECOMMENDATIONS.get(category, DEFAULT_RECOMMENDATION)
