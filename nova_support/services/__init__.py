"""Services module initialization."""

from nova_support.services.catalog import CatalogService
from nova_support.services.integrations import IntegrationService

__all__ = [
    "CatalogService",
    "IntegrationService"
]
