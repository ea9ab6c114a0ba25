"""API schemas for the back office.

Pydantic models for request/response validation and serialization.
Request models convert themselves into the application layer's input
types so routers never touch raw client ids.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from backoffice.application.inventory_service import InventoryReason
from backoffice.application.product_service import ProductInput, ProductUpdate
from backoffice.domain.value_objects import (
    VariantPatch,
    VariantSelection,
    VariantSpec,
    parse_variant_ref,
)


def _decode_json_string(value: Any) -> Any:
    """Accept JSON-encoded strings for structured fields.

    Form-based clients serialize nested fields such as the variant list
    into strings.
    """
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError("Invalid JSON data format") from e
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] | dict[str, Any] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    has_more: bool = Field(..., description="Whether there are more pages")


class DeletionResponse(BaseModel):
    """Outcome of a delete request."""

    id: str = Field(..., description="Entity ID")
    outcome: str = Field(..., description="deleted or deactivated")
    message: str = Field(..., description="Human-readable outcome")


# ============================================================================
# Lookup Schemas
# ============================================================================


class FlavorSchema(BaseModel):
    """Flavor representation."""

    id: str
    name: str
    description: str | None = None
    image_url: str | None = None


class WeightSchema(BaseModel):
    """Weight representation."""

    id: str
    value: float
    unit: str
    display: str = Field(..., description="Compact form, e.g. 500g")


class WeightCreateRequest(BaseModel):
    """Request to create a weight."""

    value: float = Field(..., description="Amount, must be positive")
    unit: str = Field(..., description="Unit: g, kg, lb, oz, ml or l")


# ============================================================================
# Category Schemas
# ============================================================================


class CategorySchema(BaseModel):
    """Category representation."""

    id: str
    name: str
    slug: str
    description: str | None = None
    parent_id: str | None = None
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime


class CategoriesListResponse(BaseModel):
    """List of all categories."""

    items: list[CategorySchema]
    total: int


# ============================================================================
# Variant Schemas
# ============================================================================


class VariantInput(BaseModel):
    """One element of an incoming variant list.

    ``id`` is empty or client-local (``new-...``) for rows to create and a
    stored variant id for rows to update.
    """

    id: str | None = Field(default=None, description="Stored or client-local variant ID")
    sku: str | None = Field(default=None, description="Requested SKU; blank to generate")
    flavor_id: str | None = Field(default=None, description="Flavor ID")
    weight_id: str | None = Field(default=None, description="Weight ID")
    price_cents: int = Field(..., description="Price in cents")
    sale_price_cents: int | None = Field(default=None, description="Sale price in cents")
    quantity: int = Field(default=0, description="Quantity on hand")
    is_active: bool = Field(default=True, description="Whether the variant is purchasable")

    @field_validator("id", "sku", "flavor_id", "weight_id", mode="before")
    @classmethod
    def blank_strings_are_none(cls, v: Any) -> Any:
        """Treat empty strings from form clients as absent."""
        return _blank_to_none(v)

    def to_spec(self) -> VariantSpec:
        return VariantSpec(
            ref=parse_variant_ref(self.id),
            price_cents=self.price_cents,
            flavor_id=self.flavor_id,
            weight_id=self.weight_id,
            sku=self.sku,
            sale_price_cents=self.sale_price_cents,
            quantity=self.quantity,
            is_active=self.is_active,
        )


class VariantPatchRequest(BaseModel):
    """Partial update of a single variant.

    Only fields present in the request body are applied; sending
    ``"flavor_id": null`` clears the flavor.
    """

    sku: str | None = None
    flavor_id: str | None = None
    weight_id: str | None = None
    price_cents: int | None = None
    sale_price_cents: int | None = None
    quantity: int | None = None
    is_active: bool | None = None

    @field_validator("sku", "flavor_id", "weight_id", mode="before")
    @classmethod
    def blank_strings_are_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_patch(self) -> VariantPatch:
        provided = frozenset(self.model_fields_set)
        return VariantPatch(provided=provided, **self.model_dump(include=provided))


class VariantSelectionInput(BaseModel):
    """Flavor and weight selection for generating variants."""

    flavor_ids: list[str] = Field(default_factory=list, description="Selected flavors")
    weight_ids: list[str] = Field(default_factory=list, description="Selected weights")
    price_cents: int = Field(..., description="Price for every generated variant")
    sale_price_cents: int | None = Field(default=None, description="Optional sale price")
    quantity: int = Field(default=0, description="Starting quantity")

    def to_selection(self) -> VariantSelection:
        return VariantSelection(
            flavor_ids=tuple(self.flavor_ids),
            weight_ids=tuple(self.weight_ids),
            price_cents=self.price_cents,
            sale_price_cents=self.sale_price_cents,
            quantity=self.quantity,
        )


class VariantBulkRequest(BaseModel):
    """Bulk variant update: upsert some variants and delete others."""

    variants: list[VariantInput] = Field(default_factory=list)
    delete_ids: list[str] = Field(default_factory=list, description="Variants to remove")


class VariantSchema(BaseModel):
    """Variant representation."""

    id: str
    product_id: str
    sku: str
    flavor: FlavorSchema | None = None
    weight: WeightSchema | None = None
    price_cents: int
    sale_price_cents: int | None = None
    quantity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class VariantsListResponse(BaseModel):
    """Variants of one product."""

    items: list[VariantSchema]
    total: int


# ============================================================================
# Product Schemas
# ============================================================================


class ProductCreateRequest(BaseModel):
    """Request to create a product.

    Sent as the JSON ``data`` field of a multipart form, next to the
    image files.
    """

    name: str = Field(..., description="Product name")
    category_ids: list[str] = Field(..., description="Linked categories, in display order")
    primary_category_id: str | None = Field(default=None, description="Primary category")
    description: str | None = None
    ingredients: str | None = None
    is_supplement: bool = False
    nutrition_info: dict[str, Any] | None = None
    featured: bool = False
    is_active: bool = True
    has_variants: bool = False
    variants: list[VariantInput] | None = Field(default=None, description="Explicit variants")
    selection: VariantSelectionInput | None = Field(
        default=None, description="Flavor and weight selection to generate variants from"
    )
    price_cents: int | None = Field(default=None, description="Price of a product without variants")
    sale_price_cents: int | None = None
    quantity: int | None = Field(default=None, description="Quantity of a product without variants")
    primary_image_index: int | None = Field(
        default=None, description="Index of the uploaded image to make primary"
    )

    @field_validator("variants", "nutrition_info", "category_ids", mode="before")
    @classmethod
    def decode_json_strings(cls, v: Any) -> Any:
        return _decode_json_string(v)

    def to_input(self) -> ProductInput:
        return ProductInput(
            name=self.name,
            category_ids=list(self.category_ids),
            primary_category_id=self.primary_category_id,
            description=self.description,
            ingredients=self.ingredients,
            is_supplement=self.is_supplement,
            nutrition_info=self.nutrition_info,
            featured=self.featured,
            is_active=self.is_active,
            has_variants=self.has_variants,
            variants=[v.to_spec() for v in self.variants] if self.variants is not None else None,
            selection=self.selection.to_selection() if self.selection else None,
            price_cents=self.price_cents,
            sale_price_cents=self.sale_price_cents,
            quantity=self.quantity,
            primary_image_index=self.primary_image_index,
        )


class ProductUpdateRequest(BaseModel):
    """Request to update a product.

    Omitted fields are left unchanged. When ``variants`` is sent,
    ``keep_variant_ids`` may list the stored variants to keep; stored
    variants absent from both are removed.
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
    variants: list[VariantInput] | None = None
    keep_variant_ids: list[str] | None = None
    selection: VariantSelectionInput | None = None
    price_cents: int | None = None
    sale_price_cents: int | None = None
    quantity: int | None = None
    primary_image_index: int | None = None
    replace_all_images: bool = False

    @field_validator("variants", "nutrition_info", "category_ids", "keep_variant_ids", mode="before")
    @classmethod
    def decode_json_strings(cls, v: Any) -> Any:
        return _decode_json_string(v)

    def to_update(self) -> ProductUpdate:
        return ProductUpdate(
            name=self.name,
            category_ids=self.category_ids,
            primary_category_id=self.primary_category_id,
            description=self.description,
            ingredients=self.ingredients,
            is_supplement=self.is_supplement,
            nutrition_info=self.nutrition_info,
            featured=self.featured,
            is_active=self.is_active,
            has_variants=self.has_variants,
            variants=[v.to_spec() for v in self.variants] if self.variants is not None else None,
            keep_variant_ids=self.keep_variant_ids,
            selection=self.selection.to_selection() if self.selection else None,
            price_cents=self.price_cents,
            sale_price_cents=self.sale_price_cents,
            quantity=self.quantity,
            primary_image_index=self.primary_image_index,
            replace_all_images=self.replace_all_images,
        )


class ProductCategorySchema(BaseModel):
    """Category as linked to a product."""

    id: str
    name: str
    slug: str
    is_primary: bool


class ProductImageSchema(BaseModel):
    """Product image."""

    id: str
    url: str = Field(..., description="Public URL")
    alt: str | None = None
    is_primary: bool
    position: int


class ProductResponse(BaseModel):
    """Full product representation."""

    id: str
    name: str
    slug: str
    description: str | None = None
    ingredients: str | None = None
    is_supplement: bool
    nutrition_info: dict[str, Any] | None = None
    featured: bool
    is_active: bool
    has_variants: bool
    primary_category: ProductCategorySchema | None = None
    categories: list[ProductCategorySchema]
    variants: list[VariantSchema]
    images: list[ProductImageSchema]
    primary_image_url: str | None = None
    created_at: datetime
    updated_at: datetime


class ProductsListResponse(PaginatedResponse):
    """Paginated list of products."""

    items: list[ProductResponse]


# ============================================================================
# Inventory Schemas
# ============================================================================


class InventoryChangeRequest(BaseModel):
    """Request to add stock to a variant."""

    variant_id: str = Field(..., description="Variant to restock")
    quantity: int = Field(..., description="Units to add, must be positive")
    notes: str | None = Field(default=None, description="Optional note")


class InventoryRemoveRequest(BaseModel):
    """Request to remove stock from a variant."""

    variant_id: str = Field(..., description="Variant to adjust")
    quantity: int = Field(..., description="Units to remove, must be positive")
    reason: InventoryReason = Field(default=InventoryReason.ADJUSTMENT, description="Why stock leaves")
    notes: str | None = None


class InventoryAdjustRequest(BaseModel):
    """Request to change stock by a signed delta."""

    variant_id: str
    delta: int = Field(..., description="Signed quantity change, never zero")
    reason: InventoryReason = InventoryReason.ADJUSTMENT
    notes: str | None = None


class InventoryLogSchema(BaseModel):
    """Ledger entry."""

    id: int
    variant_id: str | None = None
    sku: str
    quantity_change: int
    reason: str
    previous_quantity: int
    new_quantity: int
    created_by: str | None = None
    notes: str | None = None
    created_at: datetime


class InventoryLogsListResponse(PaginatedResponse):
    """Paginated list of ledger entries."""

    items: list[InventoryLogSchema]


class StockLevelSchema(BaseModel):
    """Current stock of one variant."""

    variant_id: str
    sku: str
    quantity: int


class LedgerResponse(BaseModel):
    """Result of a stock change."""

    variant: StockLevelSchema
    log: InventoryLogSchema


class InventoryOverviewResponse(BaseModel):
    """Stock summary over active variants."""

    total_variants: int
    low_stock_count: int
    out_of_stock_count: int
    in_stock_percentage: float
    recent_logs: list[InventoryLogSchema]


class LowStockItemSchema(BaseModel):
    """Variant at or below the low-stock threshold."""

    variant_id: str
    sku: str
    product_id: str
    product_name: str
    flavor: str | None = None
    weight: str | None = None
    quantity: int


class LowStockListResponse(PaginatedResponse):
    """Paginated low-stock list."""

    items: list[LowStockItemSchema]
    threshold: int


class BalanceResponse(BaseModel):
    """Ledger balance check for one variant."""

    variant_id: str
    initial_quantity: int
    ledger_total: int
    entry_count: int
    expected_quantity: int
    quantity: int
    balanced: bool
