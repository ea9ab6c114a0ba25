"""Catalog repositories for database operations.

Query helpers for products, categories, variants, lookups and the
inventory ledger. Repositories flush but never commit; the calling
service owns the transaction.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.catalog.models import (
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


# ============================================================================
# Products
# ============================================================================


class ProductRepository:
    """Repository for Product database operations.

    Handles all database interactions for products including
    filtering, sorting, and pagination.

    Example usage:
        repo = ProductRepository(session)
        products = await repo.find_all(
            category_id=whey.id,
            featured=True,
            limit=20,
        )
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, product: Product) -> Product:
        """Add a product and flush it.

        Args:
            product: Product to save.

        Returns:
            Saved product.
        """
        self.session.add(product)
        await self.session.flush()
        return product

    async def get_by_id(self, product_id: str, refresh: bool = False) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.
            refresh: Reload attributes and collections already in the session.

        Returns:
            Product if found, None otherwise.
        """
        query = select(Product).where(Product.id == product_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def slug_taken(self, slug: str, exclude_id: str | None = None) -> bool:
        """Check whether another product already uses a slug.

        Args:
            slug: Slug to check.
            exclude_id: Product allowed to hold the slug (the one being updated).

        Returns:
            True if the slug belongs to a different product.
        """
        query = select(Product.id).where(Product.slug == slug)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    def _conditions(
        self,
        search: str | None,
        category_id: str | None,
        featured: bool | None,
        is_active: bool | None,
    ) -> list[Any]:
        conditions = []

        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                or_(
                    Product.name.ilike(search_pattern),
                    Product.description.ilike(search_pattern),
                )
            )

        if category_id is not None:
            conditions.append(
                Product.id.in_(
                    select(ProductCategory.product_id).where(
                        ProductCategory.category_id == category_id
                    )
                )
            )

        if featured is not None:
            conditions.append(Product.featured == featured)

        if is_active is not None:
            conditions.append(Product.is_active == is_active)

        return conditions

    async def find_all(
        self,
        search: str | None = None,
        category_id: str | None = None,
        featured: bool | None = None,
        is_active: bool | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Product]:
        """Find products with filtering, sorting, and pagination.

        Args:
            search: Search in name and description.
            category_id: Only products linked to this category.
            featured: Filter by featured flag.
            is_active: Filter by active flag.
            sort_by: Sort field (name, created_at, updated_at).
            sort_order: Sort order (asc, desc).
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Sequence of matching products.
        """
        query = select(Product)

        conditions = self._conditions(search, category_id, featured, is_active)
        if conditions:
            query = query.where(and_(*conditions))

        # Sorting
        sort_column = self._get_sort_column(sort_by)
        if sort_order.lower() == "desc":
            query = query.order_by(sort_column.desc(), Product.id)
        else:
            query = query.order_by(sort_column.asc(), Product.id)

        # Pagination
        query = query.limit(limit).offset(offset)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(
        self,
        search: str | None = None,
        category_id: str | None = None,
        featured: bool | None = None,
        is_active: bool | None = None,
    ) -> int:
        """Count products matching filters.

        Returns:
            Count of matching products.
        """
        query = select(func.count(Product.id))

        conditions = self._conditions(search, category_id, featured, is_active)
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.session.execute(query)
        return result.scalar_one()

    async def has_order_items(self, product_id: str) -> bool:
        """Check whether any order references the product or its variants.

        Args:
            product_id: Product ID.

        Returns:
            True if at least one order item exists.
        """
        variant_ids = select(ProductVariant.id).where(ProductVariant.product_id == product_id)
        query = (
            select(OrderItem.id)
            .where(
                or_(
                    OrderItem.product_id == product_id,
                    OrderItem.variant_id.in_(variant_ids),
                )
            )
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none() is not None

    async def get_image(self, image_id: str) -> ProductImage | None:
        """Get a product image by ID.

        Args:
            image_id: Image ID.

        Returns:
            Image if found, None otherwise.
        """
        result = await self.session.execute(
            select(ProductImage).where(ProductImage.id == image_id)
        )
        return result.scalar_one_or_none()

    def _get_sort_column(self, sort_by: str) -> Any:
        """Get SQLAlchemy column for sorting.

        Args:
            sort_by: Sort field name.

        Returns:
            SQLAlchemy column.
        """
        columns = {
            "name": Product.name,
            "created_at": Product.created_at,
            "updated_at": Product.updated_at,
        }
        return columns.get(sort_by, Product.created_at)


# ============================================================================
# Categories
# ============================================================================


class CategoryRepository:
    """Repository for the category tree."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, category_id: str) -> Category | None:
        result = await self.session.execute(select(Category).where(Category.id == category_id))
        return result.scalar_one_or_none()

    async def get_many(self, category_ids: Sequence[str]) -> dict[str, Category]:
        """Load categories by ID.

        Args:
            category_ids: IDs to load.

        Returns:
            Mapping of ID to category for the IDs that exist.
        """
        if not category_ids:
            return {}
        result = await self.session.execute(
            select(Category).where(Category.id.in_(list(category_ids)))
        )
        return {category.id: category for category in result.scalars().all()}

    async def find_all(self) -> Sequence[Category]:
        result = await self.session.execute(select(Category).order_by(Category.name))
        return result.scalars().all()

    async def find_conflicting(
        self,
        name: str,
        slug: str,
        exclude_id: str | None = None,
    ) -> Category | None:
        """Find a category whose name or slug clashes, ignoring case.

        Args:
            name: Candidate name.
            slug: Candidate slug.
            exclude_id: Category allowed to keep its own name (the one being updated).

        Returns:
            The clashing category, if any.
        """
        query = select(Category).where(
            or_(
                func.lower(Category.name) == name.lower(),
                func.lower(Category.slug) == slug.lower(),
            )
        )
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def parent_of(self, category_id: str) -> str | None:
        result = await self.session.execute(
            select(Category.parent_id).where(Category.id == category_id)
        )
        return result.scalar_one_or_none()

    async def count_children(self, category_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Category.id)).where(Category.parent_id == category_id)
        )
        return result.scalar_one()

    async def count_products(self, category_id: str) -> int:
        result = await self.session.execute(
            select(func.count(ProductCategory.product_id)).where(
                ProductCategory.category_id == category_id
            )
        )
        return result.scalar_one()


# ============================================================================
# Variants
# ============================================================================


class VariantRepository:
    """Repository for product variants."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, variant_id: str, for_update: bool = False) -> ProductVariant | None:
        """Get variant by ID.

        Args:
            variant_id: Variant ID.
            for_update: Lock the row and reload its current state.

        Returns:
            Variant if found, None otherwise.
        """
        query = select(ProductVariant).where(ProductVariant.id == variant_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_for_product(self, product_id: str) -> Sequence[ProductVariant]:
        result = await self.session.execute(
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.created_at, ProductVariant.sku)
        )
        return result.scalars().all()

    async def sku_taken(self, sku: str, exclude_id: str | None = None) -> bool:
        """Check whether a SKU is used by a variant other than ``exclude_id``."""
        query = select(ProductVariant.id).where(ProductVariant.sku == sku)
        if exclude_id is not None:
            query = query.where(ProductVariant.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def has_order_items(self, variant_id: str) -> bool:
        result = await self.session.execute(
            select(OrderItem.id).where(OrderItem.variant_id == variant_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def find_low_stock(
        self,
        threshold: int,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[ProductVariant]:
        """Active variants with quantity at or below the threshold, lowest first."""
        result = await self.session.execute(
            select(ProductVariant)
            .where(
                and_(
                    ProductVariant.is_active.is_(True),
                    ProductVariant.quantity <= threshold,
                )
            )
            .order_by(ProductVariant.quantity.asc(), ProductVariant.sku)
            .options(selectinload(ProductVariant.product))
            .limit(limit)
            .offset(offset)
        )
        return result.scalars().all()

    async def count_low_stock(self, threshold: int) -> int:
        result = await self.session.execute(
            select(func.count(ProductVariant.id)).where(
                and_(
                    ProductVariant.is_active.is_(True),
                    ProductVariant.quantity <= threshold,
                )
            )
        )
        return result.scalar_one()

    async def stock_counts(self, threshold: int) -> dict[str, int]:
        """Count active variants by stock level.

        Args:
            threshold: Upper bound (inclusive) for "low stock".

        Returns:
            Dict with total, low_stock and out_of_stock counts.
        """
        active = ProductVariant.is_active.is_(True)
        total = await self.session.execute(select(func.count(ProductVariant.id)).where(active))
        low = await self.session.execute(
            select(func.count(ProductVariant.id)).where(
                and_(
                    active,
                    ProductVariant.quantity > 0,
                    ProductVariant.quantity <= threshold,
                )
            )
        )
        out = await self.session.execute(
            select(func.count(ProductVariant.id)).where(
                and_(active, ProductVariant.quantity == 0)
            )
        )
        return {
            "total": total.scalar_one(),
            "low_stock": low.scalar_one(),
            "out_of_stock": out.scalar_one(),
        }


# ============================================================================
# Lookups
# ============================================================================


class LookupRepository:
    """Repository for flavors and weights."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_flavor(self, flavor_id: str) -> Flavor | None:
        result = await self.session.execute(select(Flavor).where(Flavor.id == flavor_id))
        return result.scalar_one_or_none()

    async def get_weight(self, weight_id: str) -> Weight | None:
        result = await self.session.execute(select(Weight).where(Weight.id == weight_id))
        return result.scalar_one_or_none()

    async def list_flavors(self) -> Sequence[Flavor]:
        result = await self.session.execute(select(Flavor).order_by(Flavor.name))
        return result.scalars().all()

    async def list_weights(self) -> Sequence[Weight]:
        result = await self.session.execute(select(Weight).order_by(Weight.value, Weight.unit))
        return result.scalars().all()

    async def find_flavor_by_name(self, name: str) -> Flavor | None:
        result = await self.session.execute(
            select(Flavor).where(func.lower(Flavor.name) == name.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_weight(self, value: float, unit: str) -> Weight | None:
        result = await self.session.execute(
            select(Weight).where(and_(Weight.value == value, Weight.unit == unit)).limit(1)
        )
        return result.scalar_one_or_none()

    async def count_variants_using(self, column: Any, lookup_id: str) -> int:
        """Count variants whose flavor or weight column equals ``lookup_id``."""
        result = await self.session.execute(
            select(func.count(ProductVariant.id)).where(column == lookup_id)
        )
        return result.scalar_one()


# ============================================================================
# Inventory Ledger
# ============================================================================


class InventoryLogRepository:
    """Append-only access to the inventory ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, entry: InventoryLog) -> InventoryLog:
        """Add a ledger entry and flush it so it gets its sequence id."""
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_id(self, log_id: int) -> InventoryLog | None:
        result = await self.session.execute(select(InventoryLog).where(InventoryLog.id == log_id))
        return result.scalar_one_or_none()

    def _conditions(
        self,
        variant_id: str | None,
        reason: str | None,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> list[Any]:
        conditions = []
        if variant_id is not None:
            conditions.append(InventoryLog.variant_id == variant_id)
        if reason is not None:
            conditions.append(InventoryLog.reason == reason)
        if start_date is not None:
            conditions.append(InventoryLog.created_at >= start_date)
        if end_date is not None:
            conditions.append(InventoryLog.created_at <= end_date)
        return conditions

    async def find_all(
        self,
        variant_id: str | None = None,
        reason: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[InventoryLog]:
        """Find ledger entries with filtering and pagination.

        Args:
            variant_id: Only entries of this variant.
            reason: Only entries with this reason.
            start_date: Entries created at or after this instant.
            end_date: Entries created at or before this instant.
            sort_order: Ledger order (asc, desc).
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Sequence of ledger entries.
        """
        query = select(InventoryLog)

        conditions = self._conditions(variant_id, reason, start_date, end_date)
        if conditions:
            query = query.where(and_(*conditions))

        # The sequence id is the ledger order
        if sort_order.lower() == "asc":
            query = query.order_by(InventoryLog.id.asc())
        else:
            query = query.order_by(InventoryLog.id.desc())

        query = query.limit(limit).offset(offset)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def count(
        self,
        variant_id: str | None = None,
        reason: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> int:
        query = select(func.count(InventoryLog.id))
        conditions = self._conditions(variant_id, reason, start_date, end_date)
        if conditions:
            query = query.where(and_(*conditions))
        result = await self.session.execute(query)
        return result.scalar_one()

    async def sum_deltas(self, variant_id: str) -> tuple[int, int]:
        """Sum and count the ledger entries of a variant.

        Returns:
            Tuple of (sum of quantity changes, number of entries).
        """
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(InventoryLog.quantity_change), 0),
                func.count(InventoryLog.id),
            ).where(InventoryLog.variant_id == variant_id)
        )
        total, entries = result.one()
        return int(total), int(entries)
