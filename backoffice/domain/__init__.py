"""Domain layer - value objects and the error taxonomy.

This module exports the core domain building blocks:

- **Value Objects**: Immutable parsed client input (variant references,
  variant specs and patches, flavor/weight selections, image uploads)
- **Outcomes**: Deletion results that distinguish deleted from deactivated
- **Exceptions**: Typed failures with a stable ``kind``

Example usage:
    from backoffice.domain import VariantSpec, parse_variant_ref

    spec = VariantSpec(
        ref=parse_variant_ref("new-1"),
        flavor_id=vanilla.id,
        weight_id=half_kilo.id,
        price_cents=2999,
        quantity=10,
    )
"""

# Base classes
from backoffice.domain.base import ValueObject

# Exceptions
from backoffice.domain.exceptions import (
    BlobStoreError,
    ConflictError,
    DomainError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)

# Value Objects
from backoffice.domain.value_objects import (
    DeletionOutcome,
    DeletionResult,
    ImageUpload,
    NewVariantRef,
    PersistedVariantRef,
    VariantPatch,
    VariantRef,
    VariantSelection,
    VariantSpec,
    clean_product_name,
    parse_variant_ref,
    slugify,
)

__all__ = [
    # Base
    "ValueObject",
    # Exceptions
    "BlobStoreError",
    "ConflictError",
    "DomainError",
    "InvariantViolationError",
    "NotFoundError",
    "ValidationError",
    # Value Objects
    "DeletionOutcome",
    "DeletionResult",
    "ImageUpload",
    "NewVariantRef",
    "PersistedVariantRef",
    "VariantPatch",
    "VariantRef",
    "VariantSelection",
    "VariantSpec",
    "clean_product_name",
    "parse_variant_ref",
    "slugify",
]
