"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from backoffice.api.categories import router as categories_router
from backoffice.api.health import router as health_router
from backoffice.api.inventory import router as inventory_router
from backoffice.api.lookups import router as lookups_router
from backoffice.api.products import router as products_router
from backoffice.api.variants import router as variants_router

__all__ = [
    "categories_router",
    "health_router",
    "inventory_router",
    "lookups_router",
    "products_router",
    "variants_router",
]
