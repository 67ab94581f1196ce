"""
Product Repository.
In-memory catalog storage.
"""

import logging
from typing import Dict, Iterable, List, Optional

from nova_support.db.models import Product

logger = logging.getLogger(__name__)


class InMemoryProductRepository:
    """Catalog held in process memory, loaded once at startup."""

    def __init__(self, products: Iterable[Product]):
        self._products: List[Product] = list(products)
        self._by_id: Dict[str, Product] = {p.id: p for p in self._products}

        if len(self._by_id) != len(self._products):
            raise ValueError("Product ids must be unique")

        logger.debug(f"Catalog loaded with {len(self._products)} products")

    def get_all(self) -> List[Product]:
        """Get all products."""
        return list(self._products)

    def get_by_id(self, product_id: str) -> Optional[Product]:
        """Get a product by ID."""
        return self._by_id.get(product_id)

    def __len__(self) -> int:
        return len(self._products)
