"""Variant application service.

Reconciles the variant list sent by the admin UI against the variants
stored for a product, and provides single-variant operations.

Reconciliation rules:
- Elements referencing a stored variant update it; all others create one.
- Stored variants that are neither referenced nor in the keep list are
  removed. A supplied keep list takes precedence over the references.
- Variants referenced by orders are deactivated instead of deleted.
- Flavor and weight pairs stay unique per product, counting deactivated rows.
- Quantity changes of stored variants go through the inventory ledger.
"""

from collections.abc import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.inventory_service import InventoryReason, InventoryService
from backoffice.catalog.models import Flavor, Product, ProductVariant, Weight
from backoffice.catalog.repository import LookupRepository, ProductRepository, VariantRepository
from backoffice.catalog.sku import (
    DEFAULT_VARIANT_TOKEN,
    ProductContext,
    SkuResolver,
    VariantContext,
)
from backoffice.domain.exceptions import (
    DuplicateVariantCombinationError,
    LastVariantError,
    NotFoundError,
    ValidationError,
)
from backoffice.domain.value_objects import (
    DeletionResult,
    PersistedVariantRef,
    VariantPatch,
    VariantSelection,
    VariantSpec,
)
from backoffice.infrastructure.database import atomic

logger = structlog.get_logger()

Combination = tuple[str | None, str | None]


def product_context(product: Product) -> ProductContext:
    """SKU context of a product, based on its primary category."""
    primary = product.primary_category
    return ProductContext(name=product.name, category_name=primary.name if primary else "")


def default_candidate(variants: Sequence[ProductVariant]) -> ProductVariant | None:
    """The variant a simple product keeps: empty pair first, then active ones."""
    if not variants:
        return None
    return min(variants, key=lambda v: (v.combination != (None, None), not v.is_active))


class VariantService:
    """Service for product variants.

    Example usage:
        variants = VariantService(session)
        await variants.reconcile(
            product,
            [
                VariantSpec(ref=parse_variant_ref(v.id), price_cents=2999, quantity=4)
                for v in payload
            ],
            acting_admin="adm-1",
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        resolver: SkuResolver | None = None,
        ledger: InventoryService | None = None,
    ) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            resolver: SKU resolver, a default one if omitted.
            ledger: Inventory ledger for quantity changes.
        """
        self.session = session
        self.products = ProductRepository(session)
        self.variants = VariantRepository(session)
        self.lookups = LookupRepository(session)
        self.resolver = resolver or SkuResolver(session)
        self.ledger = ledger or InventoryService(session)

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _get_product(self, product_id: str) -> Product:
        product = await self.products.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def _get_variant(self, variant_id: str) -> ProductVariant:
        variant = await self.variants.get_by_id(variant_id)
        if variant is None:
            raise NotFoundError("Variant", variant_id)
        return variant

    async def _load_lookups(
        self,
        flavor_id: str | None,
        weight_id: str | None,
    ) -> tuple[Flavor | None, Weight | None]:
        flavor = weight = None
        if flavor_id:
            flavor = await self.lookups.get_flavor(flavor_id)
            if flavor is None:
                raise NotFoundError("Flavor", flavor_id)
        if weight_id:
            weight = await self.lookups.get_weight(weight_id)
            if weight is None:
                raise NotFoundError("Weight", weight_id)
        return flavor, weight

    @staticmethod
    def _variant_context(
        flavor: Flavor | None,
        weight: Weight | None,
        token: str | None = None,
    ) -> VariantContext:
        return VariantContext(
            flavor_name=flavor.name if flavor else None,
            weight_value=weight.value if weight else None,
            weight_unit=weight.unit if weight else None,
            token=token,
        )

    async def insert(
        self,
        product: Product,
        flavor_id: str | None,
        weight_id: str | None,
        price_cents: int,
        sale_price_cents: int | None = None,
        quantity: int = 0,
        is_active: bool = True,
        requested_sku: str | None = None,
        token: str | None = None,
    ) -> ProductVariant:
        """Insert one variant with a unique SKU, in the caller's transaction.

        The starting quantity becomes the variant's ledger base; no ledger
        entry is written for it.
        """
        flavor, weight = await self._load_lookups(flavor_id, weight_id)

        def build(sku: str) -> ProductVariant:
            return ProductVariant(
                product_id=product.id,
                flavor_id=flavor.id if flavor else None,
                weight_id=weight.id if weight else None,
                flavor=flavor,
                weight=weight,
                sku=sku,
                price_cents=price_cents,
                sale_price_cents=sale_price_cents,
                quantity=quantity,
                initial_quantity=quantity,
                is_active=is_active,
            )

        variant = await self.resolver.insert_with_retry(
            build,
            product_context(product),
            self._variant_context(flavor, weight, token),
            requested_sku,
        )
        logger.info(
            "Variant created",
            product_id=product.id,
            variant_id=variant.id,
            sku=variant.sku,
            quantity=quantity,
        )
        return variant

    async def _apply_update(
        self,
        product: Product,
        variant: ProductVariant,
        patch: VariantPatch,
        acting_admin: str | None,
        previous: Combination | None = None,
    ) -> ProductVariant:
        """Apply a patch to a stored variant in the caller's transaction.

        ``previous`` is the pair the variant had before it was parked on an
        empty pair; it defaults to the current one.
        """
        previous = variant.combination if previous is None else previous
        flavor_id = patch.flavor_id if patch.has("flavor_id") else previous[0]
        weight_id = patch.weight_id if patch.has("weight_id") else previous[1]
        combination_changed = (flavor_id, weight_id) != previous
        flavor, weight = await self._load_lookups(flavor_id, weight_id)

        requested_sku = patch.sku if patch.has("sku") else None
        if not self.resolver.is_placeholder(requested_sku) and requested_sku.strip() != variant.sku:
            variant.sku = await self.resolver.resolve(
                product_context(product),
                self._variant_context(flavor, weight),
                requested_sku,
                exclude_id=variant.id,
            )
        elif combination_changed and self.resolver.is_placeholder(requested_sku):
            variant.sku = await self.resolver.resolve(
                product_context(product),
                self._variant_context(flavor, weight),
                exclude_id=variant.id,
            )

        if combination_changed:
            variant.flavor = flavor
            variant.weight = weight
            variant.flavor_id = flavor_id
            variant.weight_id = weight_id
        if patch.has("price_cents"):
            variant.price_cents = patch.price_cents
        if patch.has("sale_price_cents"):
            variant.sale_price_cents = patch.sale_price_cents
        if patch.has("is_active"):
            variant.is_active = patch.is_active
        await self.session.flush()

        if patch.has("quantity"):
            await self.ledger.set_quantity(
                variant,
                patch.quantity,
                InventoryReason.ADJUSTMENT,
                acting_admin,
                note="Quantity set from variant update",
            )
        return variant

    async def _remove(self, variant: ProductVariant) -> DeletionResult:
        """Delete a variant, or deactivate it if orders reference it."""
        if await self.variants.has_order_items(variant.id):
            if variant.is_active:
                variant.is_active = False
                await self.session.flush()
                logger.info("Variant deactivated", variant_id=variant.id, sku=variant.sku)
            return DeletionResult.deactivated(
                variant.id,
                "Variant has associated orders and has been marked as inactive",
            )

        await self.session.delete(variant)
        await self.session.flush()
        logger.info("Variant deleted", variant_id=variant.id, sku=variant.sku)
        return DeletionResult.deleted(variant.id, "Variant deleted successfully")

    @staticmethod
    def _park(variant: ProductVariant) -> None:
        """Free a variant's pair by moving it to the empty pair until its final one is set."""
        variant.flavor = None
        variant.weight = None
        variant.flavor_id = None
        variant.weight_id = None

    @staticmethod
    def _check_combinations(product_id: str, combinations: Sequence[Combination]) -> None:
        seen: set[Combination] = set()
        for combination in combinations:
            if combination in seen:
                raise DuplicateVariantCombinationError(product_id, *combination)
            seen.add(combination)

    # ========================================================================
    # Reconciliation
    # ========================================================================

    async def reconcile(
        self,
        product: Product,
        incoming: Sequence[VariantSpec],
        keep_ids: Sequence[str] | None = None,
        acting_admin: str | None = None,
    ) -> list[ProductVariant]:
        """Make the stored variants of a product match an incoming list.

        Runs inside the caller's transaction. Deletions are applied first,
        then updates, then creations.

        Args:
            product: Product whose variants are reconciled.
            incoming: Desired variants.
            keep_ids: Stored variants to keep even if not in ``incoming``.
                When given, it decides what is removed.
            acting_admin: Admin performing the change.

        Returns:
            The product's variants after reconciliation.

        Raises:
            NotFoundError: If an element references a variant of another
                product, or an unknown flavor or weight.
            ValidationError: If the keep list and the references disagree.
            DuplicateVariantCombinationError: If two variants would share
                flavor and weight.
            LastVariantError: If no variant would remain.
        """
        existing = {v.id: v for v in await self.variants.list_for_product(product.id)}

        updates: list[VariantSpec] = []
        creations: list[VariantSpec] = []
        for spec in incoming:
            if isinstance(spec.ref, PersistedVariantRef):
                if spec.ref.id not in existing:
                    raise NotFoundError("Variant", spec.ref.id)
                if any(u.ref == spec.ref for u in updates):
                    raise ValidationError(
                        "Variant is listed more than once",
                        details={"variant_id": spec.ref.id},
                    )
                updates.append(spec)
            else:
                creations.append(spec)

        referenced = {spec.ref.id for spec in updates}
        if keep_ids is None:
            keep = referenced
        else:
            keep = set(keep_ids)
            foreign = sorted(keep - existing.keys())
            if foreign:
                raise ValidationError(
                    "Variants to keep do not belong to this product",
                    details={"variant_ids": foreign},
                )
            dropped = sorted(referenced - keep)
            if dropped:
                raise ValidationError(
                    "Variants are both updated and missing from the keep list",
                    details={"variant_ids": dropped},
                )

        removals = [v for vid, v in existing.items() if vid not in keep]
        if len(existing) - len(removals) + len(creations) == 0:
            raise LastVariantError(product.id)

        # Deactivated rows keep their flavor/weight pair
        soft_removed = {v.id for v in removals if await self.variants.has_order_items(v.id)}
        by_ref = {spec.ref.id: spec for spec in updates}
        resulting: list[Combination] = []
        for vid, variant in existing.items():
            if vid in by_ref:
                resulting.append(by_ref[vid].combination)
            elif vid in keep or vid in soft_removed:
                resulting.append(variant.combination)
        resulting.extend(spec.combination for spec in creations)
        self._check_combinations(product.id, resulting)

        for variant in removals:
            await self._remove(variant)

        # Rows trading pairs would collide one flush at a time; park them first
        moving = {
            spec.ref.id: existing[spec.ref.id].combination
            for spec in updates
            if spec.combination != existing[spec.ref.id].combination
        }
        if len(moving) > 1:
            for vid in moving:
                self._park(existing[vid])
            await self.session.flush()

        for spec in updates:
            patch = VariantPatch(
                provided=frozenset(
                    {
                        "sku",
                        "flavor_id",
                        "weight_id",
                        "price_cents",
                        "sale_price_cents",
                        "quantity",
                        "is_active",
                    }
                ),
                sku=spec.sku,
                flavor_id=spec.flavor_id,
                weight_id=spec.weight_id,
                price_cents=spec.price_cents,
                sale_price_cents=spec.sale_price_cents,
                quantity=spec.quantity,
                is_active=spec.is_active,
            )
            await self._apply_update(
                product,
                existing[spec.ref.id],
                patch,
                acting_admin,
                previous=moving.get(spec.ref.id),
            )

        for spec in creations:
            await self.insert(
                product,
                spec.flavor_id,
                spec.weight_id,
                spec.price_cents,
                spec.sale_price_cents,
                spec.quantity,
                spec.is_active,
                requested_sku=spec.sku,
            )

        logger.info(
            "Variants reconciled",
            product_id=product.id,
            removed=len(removals),
            deactivated=len(soft_removed),
            updated=len(updates),
            created=len(creations),
            admin_id=acting_admin,
        )
        return list(await self.variants.list_for_product(product.id))

    async def generate_from_selection(
        self,
        product: Product,
        selection: VariantSelection,
    ) -> list[ProductVariant]:
        """Create one variant per selected flavor/weight pair.

        Pairs the product already has are skipped. Runs inside the caller's
        transaction.

        Args:
            product: Product to add variants to.
            selection: Flavors, weights and shared price/quantity.

        Returns:
            The created variants.
        """
        taken = {v.combination for v in await self.variants.list_for_product(product.id)}
        created = []
        for flavor_id, weight_id in selection.combinations():
            if (flavor_id, weight_id) in taken:
                continue
            created.append(
                await self.insert(
                    product,
                    flavor_id,
                    weight_id,
                    selection.price_cents,
                    selection.sale_price_cents,
                    selection.quantity,
                )
            )
            taken.add((flavor_id, weight_id))
        return created

    async def ensure_default_variant(
        self,
        product: Product,
        price_cents: int,
        sale_price_cents: int | None,
        quantity: int,
        acting_admin: str | None = None,
    ) -> ProductVariant:
        """Give a simple product exactly one purchasable variant.

        Creates a default variant when the product has none. Otherwise one
        variant is kept, preferring one without flavor and weight, and the
        others are removed (deactivated when orders reference them). The
        kept variant loses its flavor and weight and gets a default SKU.
        Runs inside the caller's transaction.
        """
        current = await self.variants.list_for_product(product.id)
        if not current:
            return await self.insert(
                product,
                None,
                None,
                price_cents,
                sale_price_cents,
                quantity,
                token=DEFAULT_VARIANT_TOKEN,
            )

        keep = default_candidate(current)
        for variant in current:
            if variant is not keep:
                await self._remove(variant)
        if keep.combination != (None, None):
            self._park(keep)
            keep.sku = await self.resolver.resolve(
                product_context(product),
                self._variant_context(None, None, DEFAULT_VARIANT_TOKEN),
                exclude_id=keep.id,
            )
            await self.session.flush()
            logger.info("Variant made default", product_id=product.id, variant_id=keep.id, sku=keep.sku)

        patch = VariantPatch(
            provided=frozenset({"price_cents", "sale_price_cents", "quantity"}),
            price_cents=price_cents,
            sale_price_cents=sale_price_cents,
            quantity=quantity,
        )
        return await self._apply_update(product, keep, patch, acting_admin)

    # ========================================================================
    # Single-Variant Operations
    # ========================================================================

    async def list_variants(self, product_id: str) -> list[ProductVariant]:
        await self._get_product(product_id)
        return list(await self.variants.list_for_product(product_id))

    async def get_variant(self, variant_id: str) -> ProductVariant:
        return await self._get_variant(variant_id)

    async def generate_for_product(
        self,
        product_id: str,
        selection: VariantSelection,
        acting_admin: str | None = None,
    ) -> list[ProductVariant]:
        """Generate variants for a stored product as one unit of work."""
        async with atomic(self.session):
            product = await self._get_product(product_id)
            created = await self.generate_from_selection(product, selection)
            if created and not product.has_variants:
                product.has_variants = True
        logger.info(
            "Variants generated",
            product_id=product_id,
            count=len(created),
            admin_id=acting_admin,
        )
        return created

    async def create_variant(
        self,
        product_id: str,
        spec: VariantSpec,
        acting_admin: str | None = None,
    ) -> ProductVariant:
        """Add a variant to a product.

        Args:
            product_id: Owning product.
            spec: Variant to create; its reference is ignored.
            acting_admin: Admin performing the change.

        Returns:
            The created variant.

        Raises:
            NotFoundError: If the product, flavor or weight does not exist.
            DuplicateVariantCombinationError: If the pair already exists.
            DuplicateSkuError: If the requested SKU is taken.
        """
        async with atomic(self.session):
            product = await self._get_product(product_id)
            siblings = await self.variants.list_for_product(product_id)
            self._check_combinations(
                product_id,
                [v.combination for v in siblings] + [spec.combination],
            )
            variant = await self.insert(
                product,
                spec.flavor_id,
                spec.weight_id,
                spec.price_cents,
                spec.sale_price_cents,
                spec.quantity,
                spec.is_active,
                requested_sku=spec.sku,
            )
        logger.info("Variant added", product_id=product_id, variant_id=variant.id, admin_id=acting_admin)
        return variant

    async def update_variant(
        self,
        variant_id: str,
        patch: VariantPatch,
        acting_admin: str | None = None,
    ) -> ProductVariant:
        """Apply a partial update to one variant.

        Raises:
            NotFoundError: If the variant, flavor or weight does not exist.
            DuplicateVariantCombinationError: If the new pair is taken.
            DuplicateSkuError: If the requested SKU is taken.
        """
        async with atomic(self.session):
            variant = await self._get_variant(variant_id)
            product = await self._get_product(variant.product_id)

            combination = (
                patch.flavor_id if patch.has("flavor_id") else variant.flavor_id,
                patch.weight_id if patch.has("weight_id") else variant.weight_id,
            )
            if combination != variant.combination:
                siblings = await self.variants.list_for_product(product.id)
                self._check_combinations(
                    product.id,
                    [v.combination for v in siblings if v.id != variant_id] + [combination],
                )

            variant = await self._apply_update(product, variant, patch, acting_admin)
        logger.info("Variant updated", variant_id=variant_id, admin_id=acting_admin)
        return variant

    async def delete_variant(self, variant_id: str, acting_admin: str | None = None) -> DeletionResult:
        """Delete a variant, keeping at least one per product.

        Raises:
            NotFoundError: If the variant does not exist.
            LastVariantError: If it is the product's only variant.
        """
        async with atomic(self.session):
            variant = await self._get_variant(variant_id)
            siblings = await self.variants.list_for_product(variant.product_id)
            if len(siblings) <= 1:
                raise LastVariantError(variant.product_id)
            result = await self._remove(variant)
        logger.info("Variant removed", variant_id=variant_id, outcome=result.outcome.value, admin_id=acting_admin)
        return result

    async def bulk_update(
        self,
        product_id: str,
        upserts: Sequence[VariantSpec],
        delete_ids: Sequence[str] = (),
        acting_admin: str | None = None,
    ) -> list[ProductVariant]:
        """Update, create and delete several variants of one product at once.

        Variants neither upserted nor listed in ``delete_ids`` are left as is.

        Raises:
            ValidationError: If a delete id belongs to another product or is
                also upserted.
        """
        async with atomic(self.session):
            product = await self._get_product(product_id)
            existing = {v.id for v in await self.variants.list_for_product(product_id)}

            unknown = sorted(set(delete_ids) - existing)
            if unknown:
                raise ValidationError(
                    "Variants to delete do not belong to this product",
                    details={"variant_ids": unknown},
                )

            result = await self.reconcile(
                product,
                upserts,
                keep_ids=sorted(existing - set(delete_ids)),
                acting_admin=acting_admin,
            )
        return result


# ============================================================================
# Service Factory
# ============================================================================


def get_variant_service(session: AsyncSession) -> VariantService:
    """Get variant service instance.

    Args:
        session: Request-scoped database session.

    Returns:
        VariantService instance.
    """
    return VariantService(session)

