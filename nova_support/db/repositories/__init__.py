"""Database repositories initialization."""

from nova_support.db.repositories.base import CatalogRepository, CustomerRepository
from nova_support.db.repositories.products import InMemoryProductRepository
from nova_support.db.repositories.customers import InMemoryCustomerRepository

__all__ = [
    "CatalogRepository",
    "CustomerRepository",
    "InMemoryProductRepository",
    "InMemoryCustomerRepository"
]
