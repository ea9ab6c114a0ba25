"""Converters from ORM models to API schemas."""

from backoffice.api.schemas import (
    BalanceResponse,
    CategorySchema,
    DeletionResponse,
    FlavorSchema,
    InventoryLogSchema,
    LedgerResponse,
    LowStockItemSchema,
    ProductCategorySchema,
    ProductImageSchema,
    ProductResponse,
    StockLevelSchema,
    VariantSchema,
    WeightSchema,
)
from backoffice.application.inventory_service import BalanceReport, LedgerResult
from backoffice.catalog.models import (
    Category,
    Flavor,
    InventoryLog,
    Product,
    ProductVariant,
    Weight,
)
from backoffice.domain.value_objects import DeletionResult
from backoffice.infrastructure.blob_store import BlobStore


def _resolve(blob_store: BlobStore, locator: str | None) -> str | None:
    return blob_store.resolve(locator) if locator else None


def flavor_to_schema(flavor: Flavor, blob_store: BlobStore) -> FlavorSchema:
    return FlavorSchema(
        id=flavor.id,
        name=flavor.name,
        description=flavor.description,
        image_url=_resolve(blob_store, flavor.image),
    )


def weight_to_schema(weight: Weight) -> WeightSchema:
    return WeightSchema(id=weight.id, value=weight.value, unit=weight.unit, display=weight.display)


def category_to_schema(category: Category, blob_store: BlobStore) -> CategorySchema:
    return CategorySchema(
        id=category.id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        parent_id=category.parent_id,
        image_url=_resolve(blob_store, category.image),
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def variant_to_schema(variant: ProductVariant, blob_store: BlobStore) -> VariantSchema:
    return VariantSchema(
        id=variant.id,
        product_id=variant.product_id,
        sku=variant.sku,
        flavor=flavor_to_schema(variant.flavor, blob_store) if variant.flavor else None,
        weight=weight_to_schema(variant.weight) if variant.weight else None,
        price_cents=variant.price_cents,
        sale_price_cents=variant.sale_price_cents,
        quantity=variant.quantity,
        is_active=variant.is_active,
        created_at=variant.created_at,
        updated_at=variant.updated_at,
    )


def product_to_response(product: Product, blob_store: BlobStore) -> ProductResponse:
    """Convert Product to ProductResponse."""
    primary = product.primary_category
    categories = [
        ProductCategorySchema(
            id=link.category.id,
            name=link.category.name,
            slug=link.category.slug,
            is_primary=primary is not None and link.category_id == primary.id,
        )
        for link in product.category_links
    ]
    primary_schema = next((c for c in categories if c.is_primary), None)

    images = [
        ProductImageSchema(
            id=image.id,
            url=blob_store.resolve(image.url),
            alt=image.alt,
            is_primary=image.is_primary,
            position=image.position,
        )
        for image in product.images
    ]
    primary_image = product.primary_image

    return ProductResponse(
        id=product.id,
        name=product.name,
        slug=product.slug,
        description=product.description,
        ingredients=product.ingredients,
        is_supplement=product.is_supplement,
        nutrition_info=product.nutrition_info,
        featured=product.featured,
        is_active=product.is_active,
        has_variants=product.has_variants,
        primary_category=primary_schema,
        categories=categories,
        variants=[variant_to_schema(v, blob_store) for v in product.variants],
        images=images,
        primary_image_url=blob_store.resolve(primary_image.url) if primary_image else None,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def log_to_schema(entry: InventoryLog) -> InventoryLogSchema:
    return InventoryLogSchema(
        id=entry.id,
        variant_id=entry.variant_id,
        sku=entry.sku,
        quantity_change=entry.quantity_change,
        reason=entry.reason,
        previous_quantity=entry.previous_quantity,
        new_quantity=entry.new_quantity,
        created_by=entry.created_by,
        notes=entry.notes,
        created_at=entry.created_at,
    )


def ledger_to_response(result: LedgerResult) -> LedgerResponse:
    return LedgerResponse(
        variant=StockLevelSchema(
            variant_id=result.variant.id,
            sku=result.variant.sku,
            quantity=result.variant.quantity,
        ),
        log=log_to_schema(result.entry),
    )


def low_stock_to_schema(variant: ProductVariant) -> LowStockItemSchema:
    return LowStockItemSchema(
        variant_id=variant.id,
        sku=variant.sku,
        product_id=variant.product_id,
        product_name=variant.product.name,
        flavor=variant.flavor.name if variant.flavor else None,
        weight=variant.weight.display if variant.weight else None,
        quantity=variant.quantity,
    )


def balance_to_response(report: BalanceReport) -> BalanceResponse:
    return BalanceResponse(
        variant_id=report.variant_id,
        initial_quantity=report.initial_quantity,
        ledger_total=report.ledger_total,
        entry_count=report.entry_count,
        expected_quantity=report.expected_quantity,
        quantity=report.quantity,
        balanced=report.balanced,
    )


def deletion_to_response(result: DeletionResult) -> DeletionResponse:
    return DeletionResponse(
        id=result.entity_id,
        outcome=result.outcome.value,
        message=result.message,
    )
