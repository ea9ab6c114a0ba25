"""SQLAlchemy models for the product catalog.

Defines categories, products, their category links, flavors, weights,
variants, images, the inventory ledger, order items (read-only here) and
the blob cleanup log.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.infrastructure.database import Base


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")


class Category(Base):
    """Node of the category tree.

    Attributes:
        id: Unique category identifier (UUID string).
        name: Display name, unique.
        slug: URL slug derived from the name, unique.
        description: Optional description.
        parent_id: Optional parent category.
        image: Optional blob store locator.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(170), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        onupdate=_now,
    )

    # Relationships
    parent: Mapped["Category | None"] = relationship(
        "Category",
        remote_side=[id],
        back_populates="children",
    )
    children: Mapped[list["Category"]] = relationship(
        "Category",
        back_populates="parent",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, name={self.name})>"


class Product(Base):
    """Product in the catalog.

    A product owns its category links, variants and images. Products
    referenced by orders are deactivated instead of deleted.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(280), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ingredients: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_supplement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    nutrition_info: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    has_variants: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        onupdate=_now,
    )

    # Relationships
    category_links: Mapped[list["ProductCategory"]] = relationship(
        "ProductCategory",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductCategory.position",
        lazy="selectin",
    )
    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="(ProductVariant.created_at, ProductVariant.sku)",
        lazy="selectin",
    )
    images: Mapped[list["ProductImage"]] = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, slug={self.slug})>"

    @property
    def primary_category(self) -> "Category | None":
        """Flagged primary category, else the first linked category."""
        for link in self.category_links:
            if link.is_primary:
                return link.category
        return self.category_links[0].category if self.category_links else None

    @property
    def primary_image(self) -> "ProductImage | None":
        """Image flagged primary, if any."""
        return next((image for image in self.images if image.is_primary), None)


class ProductCategory(Base):
    """Link between a product and one of its categories.

    At most one link per product carries ``is_primary``.
    """

    __tablename__ = "product_categories"

    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )
    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        primary_key=True,
        index=True,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="category_links")
    category: Mapped["Category"] = relationship("Category", lazy="selectin")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ProductCategory(product_id={self.product_id}, "
            f"category_id={self.category_id}, is_primary={self.is_primary})>"
        )


class Flavor(Base):
    """Flavor a variant can be sold in."""

    __tablename__ = "flavors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Flavor(id={self.id}, name={self.name})>"


class Weight(Base):
    """Pack size a variant can be sold in (e.g., 500 g)."""

    __tablename__ = "weights"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (UniqueConstraint("value", "unit", name="uq_weights_value_unit"),)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Weight(id={self.id}, display={self.display})>"

    @property
    def display(self) -> str:
        """Compact label such as "500g" or "1.5kg"."""
        return f"{self.value:g}{self.unit}"


class ProductVariant(Base):
    """Purchasable unit of a product.

    Distinguished by an optional flavor and an optional weight; the pair
    is unique per product, including the both-empty "simple" variant.

    Attributes:
        sku: Stock keeping unit, unique across the catalog.
        price_cents: Price in cents.
        sale_price_cents: Optional discounted price in cents.
        quantity: Units on hand, never negative.
        initial_quantity: Quantity at creation; ledger deltas apply on top.
    """

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    flavor_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("flavors.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    weight_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("weights.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    initial_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        onupdate=_now,
    )

    __table_args__ = (
        # Deferred and NULLS NOT DISTINCT on PostgreSQL, see migration 001
        UniqueConstraint("product_id", "flavor_id", "weight_id", name="uq_variant_combination"),
        CheckConstraint("quantity >= 0", name="ck_variant_quantity_non_negative"),
        CheckConstraint("price_cents > 0", name="ck_variant_price_positive"),
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="variants")
    flavor: Mapped["Flavor | None"] = relationship("Flavor", lazy="selectin")
    weight: Mapped["Weight | None"] = relationship("Weight", lazy="selectin")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductVariant(id={self.id}, sku={self.sku}, quantity={self.quantity})>"

    @property
    def combination(self) -> tuple[str | None, str | None]:
        """Flavor/weight pair that must be unique per product."""
        return (self.flavor_id, self.weight_id)


class ProductImage(Base):
    """Image of a product, stored in the blob store."""

    __tablename__ = "product_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    alt: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="images")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductImage(id={self.id}, is_primary={self.is_primary})>"


class InventoryLog(Base):
    """Immutable ledger entry for one quantity change.

    Entries are append-only and outlive their variant: the variant
    reference is nulled on delete and the SKU snapshot keeps them readable.
    """

    __tablename__ = "inventory_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variant_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("product_variants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<InventoryLog(id={self.id}, sku={self.sku}, "
            f"change={self.quantity_change}, reason={self.reason})>"
        )


class OrderItem(Base):
    """Line of a placed order.

    Owned by the order subsystem; the catalog only reads it to decide
    between deleting and deactivating products and variants.
    """

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    variant_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self) -> str:
        """String representation."""
        return f"<OrderItem(id={self.id}, variant_id={self.variant_id})>"


class BlobCleanupTask(Base):
    """Blob that could not be deleted and still needs cleaning up."""

    __tablename__ = "blob_cleanup_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    locator: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<BlobCleanupTask(id={self.id}, locator={self.locator}, attempts={self.attempts})>"

    @property
    def is_resolved(self) -> bool:
        """Whether the blob has been deleted since."""
        return self.resolved_at is not None
