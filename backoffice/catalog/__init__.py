"""Product catalog persistence.

Provides the ORM models, repositories and SKU generation used by the
application services.
"""

from backoffice.catalog.models import (
    BlobCleanupTask,
    Category,
    Flavor,
    InventoryLog,
    OrderItem,
    Product,
    ProductCategory,
    ProductImage,
    ProductVariant,
    Weight,
)
from backoffice.catalog.repository import (
    CategoryRepository,
    InventoryLogRepository,
    LookupRepository,
    ProductRepository,
    VariantRepository,
)
from backoffice.catalog.sku import ProductContext, SkuGenerator, SkuResolver, VariantContext

__all__ = [
    # Models
    "BlobCleanupTask",
    "Category",
    "Flavor",
    "InventoryLog",
    "OrderItem",
    "Product",
    "ProductCategory",
    "ProductImage",
    "ProductVariant",
    "Weight",
    # Repositories
    "CategoryRepository",
    "InventoryLogRepository",
    "LookupRepository",
    "ProductRepository",
    "VariantRepository",
    # SKU
    "ProductContext",
    "SkuGenerator",
    "SkuResolver",
    "VariantContext",
]
