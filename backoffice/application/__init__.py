"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from backoffice.application.blob_cleanup import BlobCleanupService, CleanupReport
from backoffice.application.category_service import (
    CategoryService,
    CategoryUpdate,
    get_category_service,
)
from backoffice.application.inventory_service import (
    InventoryReason,
    InventoryService,
    get_inventory_service,
)
from backoffice.application.lookup_service import LookupService, get_lookup_service
from backoffice.application.pagination import PaginatedResult, PaginationParams
from backoffice.application.product_service import (
    ProductFilter,
    ProductInput,
    ProductService,
    ProductUpdate,
    get_product_service,
)
from backoffice.application.variant_service import VariantService, get_variant_service

__all__ = [
    "BlobCleanupService",
    "CleanupReport",
    "CategoryService",
    "CategoryUpdate",
    "get_category_service",
    "InventoryReason",
    "InventoryService",
    "get_inventory_service",
    "LookupService",
    "get_lookup_service",
    "PaginatedResult",
    "PaginationParams",
    "ProductFilter",
    "ProductInput",
    "ProductService",
    "ProductUpdate",
    "get_product_service",
    "VariantService",
    "get_variant_service",
]
