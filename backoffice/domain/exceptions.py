"""Domain exceptions.

All domain-level errors raised by the catalog core. Every error carries a
stable ``kind`` so callers can tell failures apart without parsing
messages. Anything that is not a ``DomainError`` is treated as fatal.
"""

from typing import Any, ClassVar


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    kind: ClassVar[str] = "domain_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Error Kinds
# ============================================================================


class ValidationError(DomainError):
    """Missing or malformed input (no name, non-positive price, ...)."""

    kind = "validation"


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    kind = "not_found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Category", "Variant").
            entity_id: ID that could not be resolved.
        """
        super().__init__(
            f"{entity_type} with ID {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class ConflictError(DomainError):
    """A uniqueness rule was violated or the SKU retry budget ran out."""

    kind = "conflict"


class InvariantViolationError(DomainError):
    """A business rule that is not plain uniqueness rejected the operation."""

    kind = "invariant_violation"


# ============================================================================
# Specific Errors
# ============================================================================


class DuplicateSlugError(ConflictError):
    """Raised when a product slug is already taken."""

    def __init__(self, slug: str) -> None:
        """Initialize duplicate slug error.

        Args:
            slug: The conflicting slug.
        """
        super().__init__(
            "Product with similar name already exists",
            details={"slug": slug},
        )


class DuplicateSkuError(ConflictError):
    """Raised when a requested SKU is already used by another variant."""

    def __init__(self, sku: str) -> None:
        """Initialize duplicate SKU error.

        Args:
            sku: The conflicting SKU.
        """
        super().__init__(
            f"SKU '{sku}' already exists",
            details={"sku": sku},
        )


class SkuExhaustedError(ConflictError):
    """Raised when no unique SKU was found within the retry budget."""

    def __init__(self, base_sku: str, attempts: int) -> None:
        """Initialize SKU exhausted error.

        Args:
            base_sku: First SKU candidate that was tried.
            attempts: Number of candidates tried.
        """
        super().__init__(
            f"Could not generate a unique SKU after {attempts} attempts",
            details={"base_sku": base_sku, "attempts": attempts},
        )


class DuplicateVariantCombinationError(ConflictError):
    """Raised when two variants of one product share flavor and weight."""

    def __init__(
        self,
        product_id: str,
        flavor_id: str | None,
        weight_id: str | None,
    ) -> None:
        """Initialize duplicate combination error.

        Args:
            product_id: Owning product.
            flavor_id: Flavor of the duplicated combination.
            weight_id: Weight of the duplicated combination.
        """
        super().__init__(
            "A variant with the same flavor and weight combination already exists",
            details={
                "product_id": product_id,
                "flavor_id": flavor_id,
                "weight_id": weight_id,
            },
        )


class InsufficientStockError(ValidationError):
    """Raised when a consumption would drive quantity below zero."""

    def __init__(self, variant_id: str, available: int, requested: int) -> None:
        """Initialize insufficient stock error.

        Args:
            variant_id: Variant being adjusted.
            available: Quantity currently on hand.
            requested: Quantity the caller tried to remove.
        """
        super().__init__(
            "Not enough inventory to remove",
            details={
                "variant_id": variant_id,
                "available": available,
                "requested": requested,
            },
        )


class LastVariantError(InvariantViolationError):
    """Raised when a change would leave a product without variants."""

    def __init__(self, product_id: str) -> None:
        """Initialize last variant error.

        Args:
            product_id: Product that would be left without variants.
        """
        super().__init__(
            "Cannot delete the only variant for this product",
            details={"product_id": product_id},
        )


class LastImageError(InvariantViolationError):
    """Raised when deleting the only image of a product."""

    def __init__(self, product_id: str) -> None:
        """Initialize last image error.

        Args:
            product_id: Product that would be left without images.
        """
        super().__init__(
            "Cannot delete the only image for this product",
            details={"product_id": product_id},
        )


class CategoryHasChildrenError(InvariantViolationError):
    """Raised when deleting a category that still has subcategories."""

    def __init__(self, category_id: str, child_count: int) -> None:
        """Initialize category has children error.

        Args:
            category_id: Category being deleted.
            child_count: Number of direct children.
        """
        super().__init__(
            "Cannot delete category with subcategories. Please delete subcategories first.",
            details={"category_id": category_id, "child_count": child_count},
        )


class CategoryCycleError(ValidationError):
    """Raised when a parent assignment would make a category its own ancestor."""

    def __init__(self, category_id: str, parent_id: str) -> None:
        """Initialize category cycle error.

        Args:
            category_id: Category being re-parented.
            parent_id: Proposed parent.
        """
        message = (
            "A category cannot be its own parent"
            if category_id == parent_id
            else "A category cannot be moved under one of its descendants"
        )
        super().__init__(
            message,
            details={"category_id": category_id, "parent_id": parent_id},
        )


class LookupInUseError(InvariantViolationError):
    """Raised when deleting a flavor or weight that variants still use."""

    def __init__(self, entity_type: str, entity_id: str, usage_count: int) -> None:
        """Initialize lookup in use error.

        Args:
            entity_type: "Flavor" or "Weight".
            entity_id: Lookup value being deleted.
            usage_count: Number of variants referencing it.
        """
        super().__init__(
            f"Cannot delete {entity_type.lower()} that is in use by product variants",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "usage_count": usage_count,
            },
        )


# ============================================================================
# Collaborator Errors
# ============================================================================


class BlobStoreError(Exception):
    """Error from the blob store collaborator.

    Not a domain error: unexpected storage failures are fatal unless the
    caller explicitly treats them as best-effort.
    """

    def __init__(self, locator: str, message: str) -> None:
        super().__init__(message)
        self.locator = locator
        self.message = message
