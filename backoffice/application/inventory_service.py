"""Inventory ledger service.

Every quantity change of a variant goes through this service and leaves
exactly one immutable ledger entry, written in the same transaction as the
quantity update. For every variant, ``initial_quantity`` plus the sum of
its ledger deltas equals its current quantity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.pagination import PaginatedResult, PaginationParams
from backoffice.catalog.models import InventoryLog, ProductVariant
from backoffice.catalog.repository import InventoryLogRepository, VariantRepository
from backoffice.domain.exceptions import InsufficientStockError, NotFoundError, ValidationError
from backoffice.infrastructure.config import settings
from backoffice.infrastructure.database import atomic

logger = structlog.get_logger()


class InventoryReason(str, Enum):
    """Why a quantity changed."""

    RESTOCK = "restock"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


# ============================================================================
# Result Types
# ============================================================================


@dataclass
class LedgerResult:
    """Outcome of a quantity change.

    Attributes:
        variant: Variant after the change.
        entry: Ledger entry that records it.
    """

    variant: ProductVariant
    entry: InventoryLog

    @property
    def previous_quantity(self) -> int:
        return self.entry.previous_quantity

    @property
    def new_quantity(self) -> int:
        return self.entry.new_quantity


@dataclass
class InventoryOverview:
    """Stock summary over active variants."""

    total_variants: int
    low_stock_count: int
    out_of_stock_count: int
    in_stock_percentage: float
    recent_logs: list[InventoryLog] = field(default_factory=list)


@dataclass
class BalanceReport:
    """Ledger reconciliation of one variant.

    Attributes:
        variant_id: Variant checked.
        initial_quantity: Quantity at creation.
        ledger_total: Sum of all ledger deltas.
        entry_count: Number of ledger entries.
        quantity: Current quantity.
    """

    variant_id: str
    initial_quantity: int
    ledger_total: int
    entry_count: int
    quantity: int

    @property
    def expected_quantity(self) -> int:
        return self.initial_quantity + self.ledger_total

    @property
    def balanced(self) -> bool:
        return self.expected_quantity == self.quantity


@dataclass
class LogFilter:
    """Filter parameters for ledger queries."""

    variant_id: str | None = None
    reason: InventoryReason | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


# ============================================================================
# Service
# ============================================================================


class InventoryService:
    """Append-only inventory ledger.

    Example usage:
        ledger = InventoryService(session)
        await ledger.restock(variant.id, 50, acting_admin="adm-1")
        await ledger.remove(variant.id, 20, InventoryReason.SALE, acting_admin="adm-1")
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.variants = VariantRepository(session)
        self.logs = InventoryLogRepository(session)

    async def _lock_variant(self, variant_id: str) -> ProductVariant:
        variant = await self.variants.get_by_id(variant_id, for_update=True)
        if variant is None:
            raise NotFoundError("Variant", variant_id)
        return variant

    async def _apply(
        self,
        variant: ProductVariant,
        delta: int,
        reason: InventoryReason,
        acting_admin: str | None,
        note: str | None,
    ) -> LedgerResult:
        """Apply a delta to a locked variant and append its ledger entry.

        Runs inside the caller's transaction.
        """
        previous = variant.quantity
        new_quantity = previous + delta
        if new_quantity < 0:
            raise InsufficientStockError(variant.id, previous, -delta)

        variant.quantity = new_quantity
        entry = await self.logs.append(
            InventoryLog(
                variant_id=variant.id,
                sku=variant.sku,
                quantity_change=delta,
                reason=InventoryReason(reason).value,
                previous_quantity=previous,
                new_quantity=new_quantity,
                created_by=acting_admin,
                notes=note,
            )
        )

        logger.info(
            "Inventory adjusted",
            variant_id=variant.id,
            sku=variant.sku,
            delta=delta,
            reason=entry.reason,
            previous_quantity=previous,
            new_quantity=new_quantity,
            admin_id=acting_admin,
        )
        return LedgerResult(variant=variant, entry=entry)

    async def adjust(
        self,
        variant_id: str,
        delta: int,
        reason: InventoryReason,
        acting_admin: str | None = None,
        note: str | None = None,
    ) -> LedgerResult:
        """Change a variant's quantity by a signed delta.

        Args:
            variant_id: Variant to adjust.
            delta: Signed quantity change, never zero.
            reason: Why the quantity changes.
            acting_admin: Admin performing the change.
            note: Optional free-text note.

        Returns:
            LedgerResult with the updated variant and the new entry.

        Raises:
            ValidationError: If delta is zero.
            NotFoundError: If the variant does not exist.
            InsufficientStockError: If the result would be negative.
        """
        if delta == 0:
            raise ValidationError("Quantity change cannot be zero", details={"variant_id": variant_id})

        async with atomic(self.session):
            variant = await self._lock_variant(variant_id)
            return await self._apply(variant, delta, reason, acting_admin, note)

    async def restock(
        self,
        variant_id: str,
        quantity: int,
        acting_admin: str | None = None,
        note: str | None = None,
    ) -> LedgerResult:
        """Add stock.

        Raises:
            ValidationError: If quantity is not positive.
        """
        if quantity <= 0:
            raise ValidationError(
                "Valid variant ID and quantity are required",
                details={"quantity": quantity},
            )
        return await self.adjust(variant_id, quantity, InventoryReason.RESTOCK, acting_admin, note)

    async def remove(
        self,
        variant_id: str,
        quantity: int,
        reason: InventoryReason = InventoryReason.ADJUSTMENT,
        acting_admin: str | None = None,
        note: str | None = None,
    ) -> LedgerResult:
        """Remove stock (sale, damage, correction).

        Raises:
            ValidationError: If quantity is not positive.
            InsufficientStockError: If less than ``quantity`` is on hand.
        """
        if quantity <= 0:
            raise ValidationError(
                "Valid variant ID and quantity are required",
                details={"quantity": quantity},
            )
        return await self.adjust(variant_id, -quantity, reason, acting_admin, note)

    async def set_quantity(
        self,
        variant: ProductVariant,
        new_quantity: int,
        reason: InventoryReason = InventoryReason.ADJUSTMENT,
        acting_admin: str | None = None,
        note: str | None = None,
    ) -> LedgerResult | None:
        """Move a variant to an absolute quantity within the caller's transaction.

        Args:
            variant: Persisted variant.
            new_quantity: Target quantity.
            reason: Why the quantity changes.
            acting_admin: Admin performing the change.
            note: Optional note.

        Returns:
            LedgerResult, or None when the quantity is unchanged.
        """
        if new_quantity < 0:
            raise ValidationError("Quantity cannot be negative", details={"quantity": new_quantity})

        locked = await self._lock_variant(variant.id)
        delta = new_quantity - locked.quantity
        if delta == 0:
            return None
        return await self._apply(locked, delta, reason, acting_admin, note)

    # ========================================================================
    # Read Side
    # ========================================================================

    async def overview(self, threshold: int | None = None) -> InventoryOverview:
        """Summarize stock levels of active variants.

        Args:
            threshold: Upper bound for "low stock", the configured one if omitted.

        Returns:
            Counts, in-stock percentage and the five most recent entries.
        """
        threshold = settings.low_stock_threshold if threshold is None else threshold
        counts = await self.variants.stock_counts(threshold)
        total = counts["total"]
        percentage = (
            round((total - counts["out_of_stock"]) / total * 100, 2) if total else 0.0
        )
        recent = await self.logs.find_all(limit=5)
        return InventoryOverview(
            total_variants=total,
            low_stock_count=counts["low_stock"],
            out_of_stock_count=counts["out_of_stock"],
            in_stock_percentage=percentage,
            recent_logs=list(recent),
        )

    async def low_stock(
        self,
        threshold: int | None = None,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResult[ProductVariant]:
        """Active variants at or below the threshold, lowest quantity first."""
        threshold = settings.low_stock_threshold if threshold is None else threshold
        pagination = pagination or PaginationParams()
        items = await self.variants.find_low_stock(
            threshold,
            limit=pagination.limit,
            offset=pagination.offset,
        )
        total = await self.variants.count_low_stock(threshold)
        return PaginatedResult(
            items=list(items),
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def list_logs(
        self,
        filters: LogFilter | None = None,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResult[InventoryLog]:
        """List ledger entries, newest first unless ``sort_order`` is asc."""
        filters = filters or LogFilter()
        pagination = pagination or PaginationParams()
        reason = filters.reason.value if filters.reason else None
        items = await self.logs.find_all(
            variant_id=filters.variant_id,
            reason=reason,
            start_date=filters.start_date,
            end_date=filters.end_date,
            sort_order=pagination.sort_order,
            limit=pagination.limit,
            offset=pagination.offset,
        )
        total = await self.logs.count(
            variant_id=filters.variant_id,
            reason=reason,
            start_date=filters.start_date,
            end_date=filters.end_date,
        )
        return PaginatedResult(
            items=list(items),
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def get_log(self, log_id: int) -> InventoryLog:
        entry = await self.logs.get_by_id(log_id)
        if entry is None:
            raise NotFoundError("Inventory log", log_id)
        return entry

    async def verify_balance(self, variant_id: str) -> BalanceReport:
        """Check that the ledger explains a variant's current quantity.

        Args:
            variant_id: Variant to check.

        Returns:
            BalanceReport; ``balanced`` is False if the ledger and the
            stored quantity disagree.
        """
        variant = await self.variants.get_by_id(variant_id)
        if variant is None:
            raise NotFoundError("Variant", variant_id)
        total, entries = await self.logs.sum_deltas(variant_id)
        report = BalanceReport(
            variant_id=variant_id,
            initial_quantity=variant.initial_quantity,
            ledger_total=total,
            entry_count=entries,
            quantity=variant.quantity,
        )
        if not report.balanced:
            logger.error(
                "Inventory ledger out of balance",
                variant_id=variant_id,
                expected=report.expected_quantity,
                actual=report.quantity,
            )
        return report


# ============================================================================
# Service Factory
# ============================================================================


def get_inventory_service(session: AsyncSession) -> InventoryService:
    """Get inventory service instance.

    Args:
        session: Request-scoped database session.

    Returns:
        InventoryService instance.
    """
    return InventoryService(session)
