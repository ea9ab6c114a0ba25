"""Variant API endpoints.

Provides endpoints for product variants:
- GET /admin/products/{id}/variants - list a product's variants
- POST /admin/products/{id}/variants - add one variant
- PUT /admin/products/{id}/variants - bulk upsert and delete
- POST /admin/products/{id}/variants/generate - generate from a flavor/weight selection
- GET /admin/variants/{variant_id} - variant details
- PATCH /admin/variants/{variant_id} - partial update
- DELETE /admin/variants/{variant_id} - delete or deactivate a variant
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from backoffice.api.converters import deletion_to_response, variant_to_schema
from backoffice.api.dependencies import BlobStoreDep, get_variants, require
from backoffice.api.schemas import (
    DeletionResponse,
    ErrorResponse,
    VariantBulkRequest,
    VariantInput,
    VariantPatchRequest,
    VariantSchema,
    VariantSelectionInput,
    VariantsListResponse,
)
from backoffice.application.variant_service import VariantService
from backoffice.infrastructure.authorization import AuthorizationDecision

router = APIRouter(prefix="/admin", tags=["Variants"])

ServiceDep = Annotated[VariantService, Depends(get_variants)]


@router.get(
    "/products/{product_id}/variants",
    response_model=VariantsListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List product variants",
)
async def list_variants(
    product_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
) -> VariantsListResponse:
    variants = await service.list_variants(product_id)
    return VariantsListResponse(
        items=[variant_to_schema(v, blob_store) for v in variants],
        total=len(variants),
    )


@router.post(
    "/products/{product_id}/variants",
    response_model=VariantSchema,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Add variant",
    description="Add a variant; a SKU is generated unless one is given.",
)
async def create_variant(
    product_id: str,
    request: VariantInput,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> VariantSchema:
    variant = await service.create_variant(product_id, request.to_spec(), acting_admin=auth.admin_id)
    return variant_to_schema(variant, blob_store)


@router.put(
    "/products/{product_id}/variants",
    response_model=VariantsListResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Bulk update variants",
    description=(
        "Update and create the submitted variants and remove those listed in "
        "delete_ids. Variants not mentioned are left unchanged."
    ),
)
async def bulk_update_variants(
    product_id: str,
    request: VariantBulkRequest,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> VariantsListResponse:
    variants = await service.bulk_update(
        product_id,
        [v.to_spec() for v in request.variants],
        delete_ids=request.delete_ids,
        acting_admin=auth.admin_id,
    )
    return VariantsListResponse(
        items=[variant_to_schema(v, blob_store) for v in variants],
        total=len(variants),
    )


@router.post(
    "/products/{product_id}/variants/generate",
    response_model=VariantsListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Generate variants",
    description=(
        "Create one variant per flavor/weight combination of the selection. "
        "Combinations that already exist are skipped."
    ),
)
async def generate_variants(
    product_id: str,
    request: VariantSelectionInput,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> VariantsListResponse:
    created = await service.generate_for_product(
        product_id,
        request.to_selection(),
        acting_admin=auth.admin_id,
    )
    return VariantsListResponse(
        items=[variant_to_schema(v, blob_store) for v in created],
        total=len(created),
    )


@router.get(
    "/variants/{variant_id}",
    response_model=VariantSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get variant",
)
async def get_variant(
    variant_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
) -> VariantSchema:
    variant = await service.get_variant(variant_id)
    return variant_to_schema(variant, blob_store)


@router.patch(
    "/variants/{variant_id}",
    response_model=VariantSchema,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update variant",
)
async def update_variant(
    variant_id: str,
    request: VariantPatchRequest,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> VariantSchema:
    variant = await service.update_variant(variant_id, request.to_patch(), acting_admin=auth.admin_id)
    return variant_to_schema(variant, blob_store)


@router.delete(
    "/variants/{variant_id}",
    response_model=DeletionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Delete variant",
    description=(
        "Delete a variant, or mark it inactive when orders reference it. "
        "A product's only variant cannot be removed."
    ),
)
async def delete_variant(
    variant_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "delete"))],
) -> DeletionResponse:
    result = await service.delete_variant(variant_id, acting_admin=auth.admin_id)
    return deletion_to_response(result)
