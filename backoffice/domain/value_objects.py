"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. Client input is parsed into these types once, at
the boundary, so business logic never inspects raw ids or strings.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Self

from backoffice.domain.base import ValueObject
from backoffice.domain.exceptions import ValidationError

# Prefixes the admin UI uses for rows that have not been saved yet
CLIENT_LOCAL_ID_PREFIXES = ("new-", "field")

# Marker an upstream client bug leaks into the name field
EMBEDDED_ERROR_MARKER = '{"success":false,"message"'
PLACEHOLDER_PRODUCT_NAME = "New Product"


# ============================================================================
# Variant References
# ============================================================================


@dataclass(frozen=True)
class PersistedVariantRef(ValueObject):
    """Reference to a variant row that already exists."""

    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class NewVariantRef(ValueObject):
    """Reference to a variant the client has not saved yet.

    Attributes:
        temp_id: Client-local id (e.g., "new-3"), kept for error reporting.
    """

    temp_id: str | None = None

    def __str__(self) -> str:
        return self.temp_id or "<new>"


VariantRef = PersistedVariantRef | NewVariantRef


def parse_variant_ref(raw_id: str | None) -> VariantRef:
    """Classify a raw client id.

    Args:
        raw_id: Id as sent by the client, possibly empty.

    Returns:
        NewVariantRef for empty or client-local ids, PersistedVariantRef
        otherwise.
    """
    if raw_id is None:
        return NewVariantRef()
    value = str(raw_id).strip()
    if not value:
        return NewVariantRef()
    if value.startswith(CLIENT_LOCAL_ID_PREFIXES):
        return NewVariantRef(temp_id=value)
    return PersistedVariantRef(id=value)


# ============================================================================
# Variant Input
# ============================================================================


def _validate_pricing(
    price_cents: int | None,
    sale_price_cents: int | None,
    quantity: int | None,
) -> None:
    if price_cents is not None and price_cents <= 0:
        raise ValidationError(
            "Price must be positive",
            details={"price_cents": price_cents},
        )
    if sale_price_cents is not None and sale_price_cents <= 0:
        raise ValidationError(
            "Sale price must be positive",
            details={"sale_price_cents": sale_price_cents},
        )
    if quantity is not None and quantity < 0:
        raise ValidationError(
            "Quantity cannot be negative",
            details={"quantity": quantity},
        )


@dataclass(frozen=True)
class VariantSpec(ValueObject):
    """Desired state of one variant in an incoming variant list.

    Attributes:
        ref: Whether this element updates an existing row or creates one.
        price_cents: Price in cents, must be positive.
        flavor_id: Optional flavor.
        weight_id: Optional weight.
        sku: Requested SKU; empty or placeholder values trigger generation.
        sale_price_cents: Optional sale price in cents.
        quantity: Desired on-hand quantity.
        is_active: Whether the variant is purchasable.
    """

    ref: VariantRef
    price_cents: int
    flavor_id: str | None = None
    weight_id: str | None = None
    sku: str | None = None
    sale_price_cents: int | None = None
    quantity: int = 0
    is_active: bool = True

    def __post_init__(self) -> None:
        """Validate pricing and quantity."""
        _validate_pricing(self.price_cents, self.sale_price_cents, self.quantity)

    @property
    def combination(self) -> tuple[str | None, str | None]:
        """Flavor/weight pair that must be unique per product."""
        return (self.flavor_id, self.weight_id)


@dataclass(frozen=True)
class VariantPatch(ValueObject):
    """Partial update of a single variant.

    Only attributes named in ``provided`` are applied, so an explicit
    ``None`` (clear the flavor) differs from "not sent".
    """

    provided: frozenset[str] = field(default_factory=frozenset)
    sku: str | None = None
    flavor_id: str | None = None
    weight_id: str | None = None
    price_cents: int | None = None
    sale_price_cents: int | None = None
    quantity: int | None = None
    is_active: bool | None = None

    def __post_init__(self) -> None:
        """Validate pricing and quantity."""
        _validate_pricing(
            self.price_cents if self.has("price_cents") else None,
            self.sale_price_cents if self.has("sale_price_cents") else None,
            self.quantity if self.has("quantity") else None,
        )
        if self.has("price_cents") and self.price_cents is None:
            raise ValidationError("Price cannot be cleared")
        if self.has("quantity") and self.quantity is None:
            raise ValidationError("Quantity cannot be cleared")

    def has(self, name: str) -> bool:
        """Check whether the client sent an attribute."""
        return name in self.provided


@dataclass(frozen=True)
class VariantSelection(ValueObject):
    """Flavor and weight selection for generating variants in bulk.

    Attributes:
        flavor_ids: Selected flavors (duplicates are ignored).
        weight_ids: Selected weights (duplicates are ignored).
        price_cents: Price given to every generated variant.
        sale_price_cents: Optional sale price for generated variants.
        quantity: Starting quantity for generated variants.
    """

    flavor_ids: tuple[str, ...] = ()
    weight_ids: tuple[str, ...] = ()
    price_cents: int = 0
    sale_price_cents: int | None = None
    quantity: int = 0

    def __post_init__(self) -> None:
        """Validate selection."""
        if not self.flavor_ids and not self.weight_ids:
            raise ValidationError("Select at least one flavor or weight")
        _validate_pricing(self.price_cents, self.sale_price_cents, self.quantity)
        # dict.fromkeys keeps first-seen order
        object.__setattr__(self, "flavor_ids", tuple(dict.fromkeys(self.flavor_ids)))
        object.__setattr__(self, "weight_ids", tuple(dict.fromkeys(self.weight_ids)))

    def combinations(self) -> list[tuple[str | None, str | None]]:
        """Expand the selection into flavor/weight pairs.

        Returns:
            Cartesian product when both axes are selected, otherwise one
            pair per selected element with the other axis empty.
        """
        if self.flavor_ids and self.weight_ids:
            return [(f, w) for f in self.flavor_ids for w in self.weight_ids]
        if self.flavor_ids:
            return [(f, None) for f in self.flavor_ids]
        return [(None, w) for w in self.weight_ids]


# ============================================================================
# Images
# ============================================================================


@dataclass(frozen=True)
class ImageUpload(ValueObject):
    """Image bytes received from the client, not yet stored."""

    data: bytes
    content_type: str
    filename: str = "image"

    def __post_init__(self) -> None:
        """Validate upload."""
        if not self.data:
            raise ValidationError("Image file is empty", details={"filename": self.filename})
        if not self.content_type.startswith("image/"):
            raise ValidationError(
                "Only image files are allowed",
                details={"filename": self.filename, "content_type": self.content_type},
            )


# ============================================================================
# Names and Slugs
# ============================================================================


def clean_product_name(name: str | None) -> tuple[str, bool]:
    """Normalize a product name from client input.

    Args:
        name: Raw name field.

    Returns:
        Tuple of (clean name, whether a placeholder was substituted).

    Raises:
        ValidationError: If the name is missing or blank.
    """
    if name is None or not name.strip():
        raise ValidationError("Valid product name is required")
    if EMBEDDED_ERROR_MARKER in name:
        return PLACEHOLDER_PRODUCT_NAME, True
    return name.strip(), False


def slugify(text: str) -> str:
    """Derive a URL slug from a display name.

    Args:
        text: Display name.

    Returns:
        Lowercase slug of ASCII letters, digits and single hyphens.

    Raises:
        ValidationError: If nothing slug-worthy remains.
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    if not slug:
        raise ValidationError(
            "Name must contain at least one letter or digit",
            details={"name": text},
        )
    return slug


# ============================================================================
# Operation Outcomes
# ============================================================================


class DeletionOutcome(str, Enum):
    """How a delete request was carried out."""

    DELETED = "deleted"
    DEACTIVATED = "deactivated"


@dataclass(frozen=True)
class DeletionResult(ValueObject):
    """Result of a delete request.

    Deactivation is a success, reported distinctly so callers can tell
    "deleted" from "kept because orders reference it".
    """

    outcome: DeletionOutcome
    entity_id: str
    message: str

    @classmethod
    def deleted(cls, entity_id: str, message: str) -> Self:
        return cls(outcome=DeletionOutcome.DELETED, entity_id=entity_id, message=message)

    @classmethod
    def deactivated(cls, entity_id: str, message: str) -> Self:
        return cls(outcome=DeletionOutcome.DEACTIVATED, entity_id=entity_id, message=message)
