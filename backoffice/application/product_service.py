"""Product application service.

Orchestrates product create, update and delete as single units of work:
- Name cleanup and slug derivation
- Category links (via CategoryService)
- Variants: reconciliation, generation from a flavor/weight selection,
  and the default variant of simple products (via VariantService)
- Image uploads and primary image bookkeeping
- Soft delete for products referenced by orders

Any failure rolls the whole operation back; images uploaded before the
failure are removed again on a best-effort basis.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.blob_cleanup import BlobCleanupService
from backoffice.application.category_service import CategoryService
from backoffice.application.pagination import PaginatedResult, PaginationParams
from backoffice.application.variant_service import VariantService, default_candidate
from backoffice.catalog.models import Product, ProductImage
from backoffice.catalog.repository import ProductRepository, VariantRepository
from backoffice.domain.exceptions import (
    DuplicateSlugError,
    LastImageError,
    NotFoundError,
    ValidationError,
)
from backoffice.domain.value_objects import (
    DeletionResult,
    ImageUpload,
    VariantSelection,
    VariantSpec,
    clean_product_name,
    slugify,
)
from backoffice.infrastructure.blob_store import BlobStore, get_blob_store
from backoffice.infrastructure.database import atomic

logger = structlog.get_logger()


# ============================================================================
# Product Data Transfer Objects
# ============================================================================


@dataclass
class ProductInput:
    """Data for creating a product.

    Attributes:
        name: Display name; the slug is derived from it.
        category_ids: Linked categories, at least one.
        primary_category_id: Primary category, defaults to the first.
        has_variants: Whether the product is sold in flavor/weight variants.
        variants: Explicit variant list for variant products.
        selection: Flavors and weights to generate variants from.
        price_cents: Price of the default variant of a simple product.
        sale_price_cents: Sale price of the default variant.
        quantity: Starting quantity of the default variant.
        primary_image_index: Which upload becomes the primary image.
    """

    name: str
    category_ids: list[str]
    primary_category_id: str | None = None
    description: str | None = None
    ingredients: str | None = None
    is_supplement: bool = False
    nutrition_info: dict[str, Any] | None = None
    featured: bool = False
    is_active: bool = True
    has_variants: bool = False
    variants: list[VariantSpec] | None = None
    selection: VariantSelection | None = None
    price_cents: int | None = None
    sale_price_cents: int | None = None
    quantity: int | None = None
    primary_image_index: int | None = None


@dataclass
class ProductUpdate:
    """Partial product update; None means "keep".

    Attributes:
        keep_variant_ids: Stored variants to keep; takes precedence over
            the ids in ``variants`` when deciding what to remove.
        replace_all_images: Delete existing images before adding uploads.
    """

    name: str | None = None
    category_ids: list[str] | None = None
    primary_category_id: str | None = None
    description: str | None = None
    ingredients: str | None = None
    is_supplement: bool | None = None
    nutrition_info: dict[str, Any] | None = None
    featured: bool | None = None
    is_active: bool | None = None
    has_variants: bool | None = None
    variants: list[VariantSpec] | None = None
    keep_variant_ids: list[str] | None = None
    selection: VariantSelection | None = None
    price_cents: int | None = None
    sale_price_cents: int | None = None
    quantity: int | None = None
    primary_image_index: int | None = None
    replace_all_images: bool = False


@dataclass
class ProductFilter:
    """Filter parameters for product listing.

    Attributes:
        search: Text search in name/description.
        category_id: Only products linked to this category.
        featured: Filter by featured flag.
        is_active: Filter by active flag.
    """

    search: str | None = None
    category_id: str | None = None
    featured: bool | None = None
    is_active: bool | None = None


@dataclass
class _ImagePlan:
    uploaded: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)


# ============================================================================
# Product Service
# ============================================================================


class ProductService:
    """Catalog mutation coordinator.

    Example usage:
        service = ProductService(session)
        product = await service.create_product(
            ProductInput(
                name="Whey Protein",
                category_ids=[supplements.id],
                has_variants=True,
                selection=VariantSelection(
                    flavor_ids=(vanilla.id, chocolate.id),
                    weight_ids=(half_kilo.id, kilo.id),
                    price_cents=2999,
                ),
            ),
            acting_admin="adm-1",
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        blob_store: BlobStore | None = None,
        categories: CategoryService | None = None,
        variants: VariantService | None = None,
    ) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            blob_store: Blob store for product images.
            categories: Category service, a default one if omitted.
            variants: Variant service, a default one if omitted.
        """
        self.session = session
        self.blob_store = blob_store or get_blob_store()
        self.repository = ProductRepository(session)
        self.variant_repository = VariantRepository(session)
        self.categories = categories or CategoryService(session, self.blob_store)
        self.variants = variants or VariantService(session)
        self.cleanup = BlobCleanupService(session, self.blob_store)

    # ========================================================================
    # Queries
    # ========================================================================

    async def get_product(self, product_id: str) -> Product:
        """Get product by ID.

        Raises:
            NotFoundError: If the product does not exist.
        """
        product = await self.repository.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def list_products(
        self,
        filters: ProductFilter,
        pagination: PaginationParams,
    ) -> PaginatedResult[Product]:
        """List products with filters and pagination.

        Args:
            filters: Filter parameters.
            pagination: Pagination parameters.

        Returns:
            Paginated product results.
        """
        products = await self.repository.find_all(
            search=filters.search,
            category_id=filters.category_id,
            featured=filters.featured,
            is_active=filters.is_active,
            sort_by=pagination.sort_by,
            sort_order=pagination.sort_order,
            limit=pagination.limit,
            offset=pagination.offset,
        )
        total = await self.repository.count(
            search=filters.search,
            category_id=filters.category_id,
            featured=filters.featured,
            is_active=filters.is_active,
        )
        return PaginatedResult(
            items=list(products),
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _clean_name(self, raw_name: str | None) -> tuple[str, str]:
        name, substituted = clean_product_name(raw_name)
        if substituted:
            logger.warning(
                "Product name contained an error payload, using placeholder",
                placeholder=name,
            )
        return name, slugify(name)

    async def _reload(self, product_id: str) -> Product:
        product = await self.repository.get_by_id(product_id, refresh=True)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def _wire_variants(
        self,
        product: Product,
        variants: list[VariantSpec] | None,
        keep_ids: list[str] | None,
        selection: VariantSelection | None,
        price_cents: int | None,
        sale_price_cents: int | None,
        quantity: int | None,
        acting_admin: str | None,
        creating: bool,
    ) -> None:
        if product.has_variants:
            if variants is not None and (variants or not creating):
                await self.variants.reconcile(product, variants, keep_ids, acting_admin)
            if selection is not None:
                await self.variants.generate_from_selection(product, selection)
            if not await self.variant_repository.list_for_product(product.id):
                raise ValidationError(
                    "At least one product variant is required for variant products",
                    details={"product_id": product.id},
                )
            return

        current = await self.variant_repository.list_for_product(product.id)
        first = default_candidate(current)
        # Already a single default variant; others, if any, are deactivated
        collapsed = first is not None and first.combination == (None, None) and not any(
            v.is_active for v in current if v is not first
        )
        if collapsed and price_cents is None and sale_price_cents is None and quantity is None:
            return
        price = price_cents if price_cents is not None else (first.price_cents if first else None)
        if price is None:
            raise ValidationError("Price is required for products without variants")
        await self.variants.ensure_default_variant(
            product,
            price,
            sale_price_cents if sale_price_cents is not None else (first.sale_price_cents if first else None),
            quantity if quantity is not None else (first.quantity if first else 0),
            acting_admin,
        )

    async def _add_images(
        self,
        product: Product,
        uploads: Sequence[ImageUpload],
        primary_index: int | None,
        plan: _ImagePlan,
        replace_all: bool = False,
    ) -> None:
        if not uploads:
            return

        if replace_all:
            for image in list(product.images):
                plan.stale.append(image.url)
                product.images.remove(image)
            await self.session.flush()

        if primary_index is not None and 0 <= primary_index < len(uploads):
            new_primary: int | None = primary_index
        elif not any(image.is_primary for image in product.images):
            new_primary = 0
        else:
            new_primary = None

        if new_primary is not None:
            for image in product.images:
                image.is_primary = False

        position = max((image.position for image in product.images), default=-1) + 1
        for index, upload in enumerate(uploads):
            locator = await self.blob_store.store(
                upload.data,
                upload.content_type,
                f"products/{product.id}",
            )
            plan.uploaded.append(locator)
            product.images.append(
                ProductImage(
                    url=locator,
                    alt=f"{product.name} - Image {index + 1}",
                    is_primary=index == new_primary,
                    position=position + index,
                )
            )
        await self.session.flush()

    async def _abort(self, plan: _ImagePlan, reason: str) -> None:
        await self.cleanup.discard_uploads(plan.uploaded, reason)

    async def _drop_stale(self, locators: Sequence[str], reason: str) -> None:
        for locator in locators:
            await self.cleanup.delete_best_effort(locator, reason)
        if locators:
            await self.session.commit()

    # ========================================================================
    # Commands
    # ========================================================================

    async def create_product(
        self,
        data: ProductInput,
        uploads: Sequence[ImageUpload] = (),
        acting_admin: str | None = None,
    ) -> Product:
        """Create a product with its categories, variants and images.

        Args:
            data: Product data.
            uploads: Images to attach.
            acting_admin: Admin performing the change.

        Returns:
            The created product with all relations loaded.

        Raises:
            ValidationError: On missing name, categories, price or variants.
            DuplicateSlugError: If another product has the same slug.
            NotFoundError: If a category, flavor or weight does not exist.
            ConflictError: On SKU or variant uniqueness violations.
        """
        name, slug = self._clean_name(data.name)
        if not data.category_ids:
            raise ValidationError("At least one category is required")

        plan = _ImagePlan()
        try:
            async with atomic(self.session):
                if await self.repository.slug_taken(slug):
                    raise DuplicateSlugError(slug)

                product = await self.repository.save(
                    Product(
                        name=name,
                        slug=slug,
                        description=data.description,
                        ingredients=data.ingredients,
                        is_supplement=data.is_supplement,
                        nutrition_info=data.nutrition_info,
                        featured=data.featured,
                        is_active=data.is_active,
                        has_variants=data.has_variants,
                        category_links=[],
                        variants=[],
                        images=[],
                    )
                )
                await self.categories.attach_categories(
                    product,
                    data.category_ids,
                    data.primary_category_id,
                )
                await self._wire_variants(
                    product,
                    data.variants,
                    None,
                    data.selection,
                    data.price_cents,
                    data.sale_price_cents,
                    data.quantity if data.quantity is not None else 0,
                    acting_admin,
                    creating=True,
                )
                await self._add_images(product, uploads, data.primary_image_index, plan)
        except Exception:
            await self._abort(plan, "product create failed")
            raise

        logger.info(
            "Product created",
            product_id=product.id,
            slug=slug,
            has_variants=data.has_variants,
            images=len(uploads),
            admin_id=acting_admin,
        )
        return await self._reload(product.id)

    async def update_product(
        self,
        product_id: str,
        data: ProductUpdate,
        uploads: Sequence[ImageUpload] = (),
        acting_admin: str | None = None,
    ) -> Product:
        """Update a product and, optionally, its categories, variants and images.

        Args:
            product_id: Product to update.
            data: Fields to change.
            uploads: Images to add.
            acting_admin: Admin performing the change.

        Returns:
            The updated product with all relations loaded.

        Raises:
            NotFoundError: If the product or a referenced entity does not exist.
            DuplicateSlugError: If the new name collides with another product.
            ValidationError: On invalid input or keep-list disagreement.
            ConflictError: On SKU or variant uniqueness violations.
            LastVariantError: If no variant would remain.
        """
        plan = _ImagePlan()
        try:
            async with atomic(self.session):
                product = await self.get_product(product_id)

                if data.name is not None:
                    name, slug = self._clean_name(data.name)
                    if slug != product.slug and await self.repository.slug_taken(
                        slug, exclude_id=product_id
                    ):
                        raise DuplicateSlugError(slug)
                    product.name = name
                    product.slug = slug

                for attribute in (
                    "description",
                    "ingredients",
                    "is_supplement",
                    "nutrition_info",
                    "featured",
                    "is_active",
                    "has_variants",
                ):
                    value = getattr(data, attribute)
                    if value is not None:
                        setattr(product, attribute, value)
                await self.session.flush()

                if data.category_ids is not None:
                    await self.categories.attach_categories(
                        product,
                        data.category_ids,
                        data.primary_category_id,
                    )
                elif data.primary_category_id:
                    await self.categories.set_primary_category(product, data.primary_category_id)

                await self._wire_variants(
                    product,
                    data.variants,
                    data.keep_variant_ids,
                    data.selection,
                    data.price_cents,
                    data.sale_price_cents,
                    data.quantity,
                    acting_admin,
                    creating=False,
                )
                await self._add_images(
                    product,
                    uploads,
                    data.primary_image_index,
                    plan,
                    replace_all=data.replace_all_images,
                )
        except Exception:
            await self._abort(plan, "product update failed")
            raise

        await self._drop_stale(plan.stale, "product images replaced")
        logger.info("Product updated", product_id=product_id, admin_id=acting_admin)
        return await self._reload(product_id)

    async def delete_product(self, product_id: str, acting_admin: str | None = None) -> DeletionResult:
        """Delete a product, or deactivate it if orders reference it.

        Args:
            product_id: Product to delete.
            acting_admin: Admin performing the change.

        Returns:
            DeletionResult telling deleted from deactivated.

        Raises:
            NotFoundError: If the product does not exist.
        """
        async with atomic(self.session):
            product = await self.get_product(product_id)

            if await self.repository.has_order_items(product_id):
                product.is_active = False
                result = DeletionResult.deactivated(
                    product_id,
                    "Product has associated orders and has been marked as inactive",
                )
            else:
                for image in product.images:
                    await self.cleanup.delete_best_effort(image.url, "product deleted")
                await self.session.delete(product)
                result = DeletionResult.deleted(product_id, "Product deleted successfully")

        logger.info(
            "Product removed",
            product_id=product_id,
            outcome=result.outcome.value,
            admin_id=acting_admin,
        )
        return result

    # ========================================================================
    # Images
    # ========================================================================

    async def add_image(
        self,
        product_id: str,
        upload: ImageUpload,
        is_primary: bool = False,
        alt: str | None = None,
    ) -> ProductImage:
        """Attach one image to a product.

        The first image of a product always becomes primary.
        """
        plan = _ImagePlan()
        try:
            async with atomic(self.session):
                product = await self.get_product(product_id)
                locator = await self.blob_store.store(
                    upload.data,
                    upload.content_type,
                    f"products/{product_id}",
                )
                plan.uploaded.append(locator)

                make_primary = is_primary or not product.images
                if make_primary:
                    for image in product.images:
                        image.is_primary = False
                image = ProductImage(
                    url=locator,
                    alt=alt or product.name,
                    is_primary=make_primary,
                    position=max((i.position for i in product.images), default=-1) + 1,
                )
                product.images.append(image)
                await self.session.flush()
        except Exception:
            await self._abort(plan, "image upload failed")
            raise

        logger.info("Product image added", product_id=product_id, image_id=image.id, is_primary=make_primary)
        return image

    async def delete_image(self, image_id: str) -> None:
        """Delete an image; the first remaining image becomes primary if needed.

        Raises:
            NotFoundError: If the image does not exist.
            LastImageError: If it is the product's only image.
        """
        async with atomic(self.session):
            image = await self.repository.get_image(image_id)
            if image is None:
                raise NotFoundError("Product image", image_id)
            product = await self.get_product(image.product_id)
            if len(product.images) <= 1:
                raise LastImageError(product.id)

            locator = image.url
            was_primary = image.is_primary
            product.images.remove(image)
            if was_primary:
                product.images[0].is_primary = True
            await self.session.flush()

        await self._drop_stale([locator], "product image deleted")
        logger.info("Product image deleted", product_id=product.id, image_id=image_id)

    async def set_primary_image(self, image_id: str) -> ProductImage:
        """Make one image the product's only primary image.

        Raises:
            NotFoundError: If the image does not exist.
        """
        async with atomic(self.session):
            image = await self.repository.get_image(image_id)
            if image is None:
                raise NotFoundError("Product image", image_id)
            product = await self.get_product(image.product_id)
            for other in product.images:
                other.is_primary = other.id == image_id
            await self.session.flush()
        return image


# ============================================================================
# Service Factory
# ============================================================================


def get_product_service(session: AsyncSession, blob_store: BlobStore | None = None) -> ProductService:
    """Get product service instance.

    Args:
        session: Request-scoped database session.
        blob_store: Blob store; the configured store when omitted.

    Returns:
        ProductService instance.
    """
    return ProductService(session, blob_store)
