"""Inventory API endpoints.

Provides endpoints for the inventory ledger:
- GET /admin/inventory/overview - stock summary
- GET /admin/inventory/low-stock - variants at or below the threshold
- GET /admin/inventory/logs - ledger entries (paginated, filterable)
- GET /admin/inventory/logs/{id} - one ledger entry
- POST /admin/inventory/add - restock a variant
- POST /admin/inventory/remove - remove stock from a variant
- POST /admin/inventory/adjust - signed adjustment
- GET /admin/inventory/variants/{variant_id}/balance - ledger balance check
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from backoffice.api.converters import (
    balance_to_response,
    ledger_to_response,
    log_to_schema,
    low_stock_to_schema,
)
from backoffice.api.dependencies import get_inventory, require
from backoffice.api.schemas import (
    BalanceResponse,
    ErrorResponse,
    InventoryAdjustRequest,
    InventoryChangeRequest,
    InventoryLogSchema,
    InventoryLogsListResponse,
    InventoryOverviewResponse,
    InventoryRemoveRequest,
    LedgerResponse,
    LowStockListResponse,
)
from backoffice.application.inventory_service import (
    InventoryReason,
    InventoryService,
    LogFilter,
)
from backoffice.application.pagination import PaginationParams
from backoffice.infrastructure.authorization import AuthorizationDecision
from backoffice.infrastructure.config import settings

router = APIRouter(prefix="/admin/inventory", tags=["Inventory"])

ServiceDep = Annotated[InventoryService, Depends(get_inventory)]


# ============================================================================
# Read Side
# ============================================================================


@router.get(
    "/overview",
    response_model=InventoryOverviewResponse,
    summary="Inventory overview",
    description="Counts of active variants by stock level and the latest ledger entries.",
)
async def get_overview(
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "read"))],
    threshold: int | None = Query(default=None, ge=0, description="Low-stock threshold"),
) -> InventoryOverviewResponse:
    overview = await service.overview(threshold)
    return InventoryOverviewResponse(
        total_variants=overview.total_variants,
        low_stock_count=overview.low_stock_count,
        out_of_stock_count=overview.out_of_stock_count,
        in_stock_percentage=overview.in_stock_percentage,
        recent_logs=[log_to_schema(entry) for entry in overview.recent_logs],
    )


@router.get(
    "/low-stock",
    response_model=LowStockListResponse,
    summary="Low-stock variants",
)
async def list_low_stock(
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "read"))],
    threshold: int | None = Query(default=None, ge=0, description="Low-stock threshold"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> LowStockListResponse:
    threshold = settings.low_stock_threshold if threshold is None else threshold
    result = await service.low_stock(threshold, PaginationParams(page=page, page_size=page_size))
    return LowStockListResponse(
        items=[low_stock_to_schema(v) for v in result.items],
        threshold=threshold,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_next,
    )


@router.get(
    "/logs",
    response_model=InventoryLogsListResponse,
    summary="List ledger entries",
)
async def list_logs(
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "read"))],
    variant_id: str | None = Query(default=None, description="Filter by variant"),
    reason: InventoryReason | None = Query(default=None, description="Filter by reason"),
    start_date: datetime | None = Query(default=None, description="Entries at or after"),
    end_date: datetime | None = Query(default=None, description="Entries at or before"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$", description="asc or desc"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> InventoryLogsListResponse:
    result = await service.list_logs(
        LogFilter(
            variant_id=variant_id,
            reason=reason,
            start_date=start_date,
            end_date=end_date,
        ),
        PaginationParams(page=page, page_size=page_size, sort_order=sort_order),
    )
    return InventoryLogsListResponse(
        items=[log_to_schema(entry) for entry in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_next,
    )


@router.get(
    "/logs/{log_id}",
    response_model=InventoryLogSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get ledger entry",
)
async def get_log(
    log_id: int,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "read"))],
) -> InventoryLogSchema:
    return log_to_schema(await service.get_log(log_id))


@router.get(
    "/variants/{variant_id}/balance",
    response_model=BalanceResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Check ledger balance",
    description="Compare a variant's quantity with its starting quantity plus all ledger entries.",
)
async def get_balance(
    variant_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "read"))],
) -> BalanceResponse:
    return balance_to_response(await service.verify_balance(variant_id))


# ============================================================================
# Stock Changes
# ============================================================================


@router.post(
    "/add",
    response_model=LedgerResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Restock variant",
)
async def add_inventory(
    request: InventoryChangeRequest,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "create"))],
) -> LedgerResponse:
    result = await service.restock(
        request.variant_id,
        request.quantity,
        acting_admin=auth.admin_id,
        note=request.notes,
    )
    return ledger_to_response(result)


@router.post(
    "/remove",
    response_model=LedgerResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Remove stock",
    description="Remove stock for a sale, return correction or adjustment. Never goes below zero.",
)
async def remove_inventory(
    request: InventoryRemoveRequest,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "update"))],
) -> LedgerResponse:
    result = await service.remove(
        request.variant_id,
        request.quantity,
        request.reason,
        acting_admin=auth.admin_id,
        note=request.notes,
    )
    return ledger_to_response(result)


@router.post(
    "/adjust",
    response_model=LedgerResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Adjust stock",
)
async def adjust_inventory(
    request: InventoryAdjustRequest,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("inventory", "update"))],
) -> LedgerResponse:
    result = await service.adjust(
        request.variant_id,
        request.delta,
        request.reason,
        acting_admin=auth.admin_id,
        note=request.notes,
    )
    return ledger_to_response(result)
