"""Category application service.

Manages the category tree and the category links of products. A product
has at most one primary category; when none is flagged, its first link
counts as primary.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.blob_cleanup import BlobCleanupService
from backoffice.catalog.models import Category, Product, ProductCategory
from backoffice.catalog.repository import CategoryRepository
from backoffice.domain.exceptions import (
    CategoryCycleError,
    CategoryHasChildrenError,
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from backoffice.domain.value_objects import DeletionResult, ImageUpload, slugify
from backoffice.infrastructure.blob_store import BlobStore, get_blob_store
from backoffice.infrastructure.database import atomic

logger = structlog.get_logger()


@dataclass
class CategoryUpdate:
    """Partial category update.

    Attributes:
        name: New name, None to keep.
        description: New description, None to keep.
        parent_id: New parent, None to keep.
        clear_parent: Detach from the current parent.
        image: Replacement image.
    """

    name: str | None = None
    description: str | None = None
    parent_id: str | None = None
    clear_parent: bool = False
    image: ImageUpload | None = None


class CategoryService:
    """Service for the category hierarchy.

    Example usage:
        categories = CategoryService(session)
        whey = await categories.create_category("Whey", parent_id=protein.id)
    """

    def __init__(self, session: AsyncSession, blob_store: BlobStore | None = None) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            blob_store: Blob store for category images.
        """
        self.session = session
        self.blob_store = blob_store or get_blob_store()
        self.repository = CategoryRepository(session)
        self.cleanup = BlobCleanupService(session, self.blob_store)

    # ========================================================================
    # Product Links
    # ========================================================================

    async def attach_categories(
        self,
        product: Product,
        category_ids: Sequence[str],
        primary_id: str | None = None,
    ) -> list[ProductCategory]:
        """Replace all category links of a product.

        Runs inside the caller's transaction.

        Args:
            product: Product being wired.
            category_ids: Categories in display order; duplicates collapse.
            primary_id: Primary category, defaults to the first one.

        Returns:
            The new links.

        Raises:
            ValidationError: If no category is given or primary_id is not among them.
            NotFoundError: If a category does not exist.
        """
        ids = list(dict.fromkeys(cid for cid in category_ids if cid))
        if not ids:
            raise ValidationError("At least one category is required")

        primary_id = primary_id or ids[0]
        if primary_id not in ids:
            raise ValidationError(
                "Primary category must be one of the product's categories",
                details={"primary_category_id": primary_id},
            )

        found = await self.repository.get_many(ids)
        for category_id in ids:
            if category_id not in found:
                raise NotFoundError("Category", category_id)

        # Delete then insert, flushed apart so the composite keys never clash
        product.category_links.clear()
        await self.session.flush()

        for position, category_id in enumerate(ids):
            product.category_links.append(
                ProductCategory(
                    category_id=category_id,
                    category=found[category_id],
                    is_primary=category_id == primary_id,
                    position=position,
                )
            )
        await self.session.flush()
        return list(product.category_links)

    async def set_primary_category(self, product: Product, category_id: str) -> ProductCategory:
        """Flag one linked category as primary and clear the others.

        Raises:
            NotFoundError: If the category is not linked to the product.
        """
        target = next(
            (link for link in product.category_links if link.category_id == category_id),
            None,
        )
        if target is None:
            raise NotFoundError("Product category", category_id)

        for link in product.category_links:
            link.is_primary = link is target
        await self.session.flush()
        return target

    def primary_category(self, product: Product) -> Category | None:
        return product.primary_category

    # ========================================================================
    # Category CRUD
    # ========================================================================

    async def get_category(self, category_id: str) -> Category:
        category = await self.repository.get_by_id(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def list_categories(self) -> list[Category]:
        return list(await self.repository.find_all())

    @staticmethod
    def _name_taken(name: str, slug: str) -> ConflictError:
        return ConflictError(
            "A category with this name already exists",
            details={"name": name, "slug": slug},
        )

    async def _check_unique(self, name: str, slug: str, exclude_id: str | None = None) -> None:
        if await self.repository.find_conflicting(name, slug, exclude_id=exclude_id):
            raise self._name_taken(name, slug)

    async def _flush_unique(self, name: str, slug: str) -> None:
        """Flush; a name or slug claimed since the check is still a conflict."""
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise self._name_taken(name, slug) from exc

    async def _check_parent(self, category_id: str | None, parent_id: str) -> None:
        if await self.repository.get_by_id(parent_id) is None:
            raise NotFoundError("Category", parent_id)
        if category_id is None:
            return

        # Walk up from the proposed parent; meeting the category itself means a cycle
        current: str | None = parent_id
        seen: set[str] = set()
        while current is not None and current not in seen:
            if current == category_id:
                raise CategoryCycleError(category_id, parent_id)
            seen.add(current)
            current = await self.repository.parent_of(current)

    async def create_category(
        self,
        name: str,
        description: str | None = None,
        parent_id: str | None = None,
        image: ImageUpload | None = None,
    ) -> Category:
        """Create a category.

        Args:
            name: Display name, unique ignoring case.
            description: Optional description.
            parent_id: Optional parent category.
            image: Optional image.

        Returns:
            The created category.

        Raises:
            ValidationError: If the name is blank.
            ConflictError: If the name or its slug is taken.
            NotFoundError: If the parent does not exist.
        """
        if not name or not name.strip():
            raise ValidationError("Category name is required")
        name = name.strip()
        slug = slugify(name)

        uploaded: list[str] = []
        try:
            async with atomic(self.session):
                await self._check_unique(name, slug)
                if parent_id:
                    await self._check_parent(None, parent_id)

                locator = None
                if image is not None:
                    locator = await self.blob_store.store(image.data, image.content_type, "categories")
                    uploaded.append(locator)

                category = Category(
                    name=name,
                    slug=slug,
                    description=description,
                    parent_id=parent_id or None,
                    image=locator,
                )
                self.session.add(category)
                await self._flush_unique(name, slug)
        except Exception:
            await self.cleanup.discard_uploads(uploaded, "category create failed")
            raise

        logger.info("Category created", category_id=category.id, slug=slug, parent_id=parent_id)
        return category

    async def update_category(self, category_id: str, update: CategoryUpdate) -> Category:
        """Update a category.

        Raises:
            NotFoundError: If the category or the new parent does not exist.
            ConflictError: If the new name or slug is taken.
            CategoryCycleError: If the new parent is the category or one of its descendants.
        """
        uploaded: list[str] = []
        replaced_image: str | None = None
        try:
            async with atomic(self.session):
                category = await self.get_category(category_id)

                if update.name is not None:
                    name = update.name.strip()
                    if not name:
                        raise ValidationError("Category name is required")
                    slug = slugify(name)
                    await self._check_unique(name, slug, exclude_id=category_id)
                    category.name = name
                    category.slug = slug

                if update.description is not None:
                    category.description = update.description

                if update.clear_parent:
                    category.parent_id = None
                elif update.parent_id:
                    await self._check_parent(category_id, update.parent_id)
                    category.parent_id = update.parent_id

                if update.image is not None:
                    locator = await self.blob_store.store(
                        update.image.data, update.image.content_type, "categories"
                    )
                    uploaded.append(locator)
                    replaced_image = category.image
                    category.image = locator

                await self._flush_unique(category.name, category.slug)
        except Exception:
            await self.cleanup.discard_uploads(uploaded, "category update failed")
            raise

        if replaced_image:
            await self.cleanup.delete_best_effort(replaced_image, "category image replaced")
            await self.session.commit()

        logger.info("Category updated", category_id=category_id)
        return category

    async def delete_category(self, category_id: str) -> DeletionResult:
        """Delete a leaf category that no product uses.

        Raises:
            NotFoundError: If the category does not exist.
            CategoryHasChildrenError: If it has subcategories.
            InvariantViolationError: If products are linked to it.
        """
        async with atomic(self.session):
            category = await self.get_category(category_id)

            children = await self.repository.count_children(category_id)
            if children:
                raise CategoryHasChildrenError(category_id, children)

            products = await self.repository.count_products(category_id)
            if products:
                raise InvariantViolationError(
                    f"Cannot delete category. It has {products} products associated with it.",
                    details={"category_id": category_id, "product_count": products},
                )

            if category.image:
                await self.cleanup.delete_best_effort(category.image, "category deleted")
            await self.session.delete(category)

        logger.info("Category deleted", category_id=category_id)
        return DeletionResult.deleted(category_id, "Category deleted successfully")


# ============================================================================
# Service Factory
# ============================================================================


def get_category_service(session: AsyncSession, blob_store: BlobStore | None = None) -> CategoryService:
    """Get category service instance.

    Args:
        session: Request-scoped database session.
        blob_store: Blob store; the configured store when omitted.

    Returns:
        CategoryService instance.
    """
    return CategoryService(session, blob_store)
