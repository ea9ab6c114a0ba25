"""Flavor and weight API endpoints.

Flavors and weights are product attributes, so they share the
``products`` capabilities.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from backoffice.api.converters import deletion_to_response, flavor_to_schema, weight_to_schema
from backoffice.api.dependencies import BlobStoreDep, get_lookups, read_upload, require
from backoffice.api.schemas import (
    DeletionResponse,
    ErrorResponse,
    FlavorSchema,
    WeightCreateRequest,
    WeightSchema,
)
from backoffice.application.lookup_service import LookupService
from backoffice.infrastructure.authorization import AuthorizationDecision

router = APIRouter(prefix="/admin", tags=["Lookups"])

ServiceDep = Annotated[LookupService, Depends(get_lookups)]


# ============================================================================
# Flavors
# ============================================================================


@router.get("/flavors", response_model=list[FlavorSchema], summary="List flavors")
async def list_flavors(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
) -> list[FlavorSchema]:
    return [flavor_to_schema(f, blob_store) for f in await service.list_flavors()]


@router.post(
    "/flavors",
    response_model=FlavorSchema,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create flavor",
)
async def create_flavor(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "create"))],
    name: Annotated[str, Form()],
    description: Annotated[str | None, Form()] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> FlavorSchema:
    upload = await read_upload(image) if image is not None else None
    flavor = await service.create_flavor(name, description=description, image=upload)
    return flavor_to_schema(flavor, blob_store)


@router.delete(
    "/flavors/{flavor_id}",
    response_model=DeletionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Delete flavor",
    description="Flavors used by variants cannot be deleted.",
)
async def delete_flavor(
    flavor_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "delete"))],
) -> DeletionResponse:
    return deletion_to_response(await service.delete_flavor(flavor_id))


# ============================================================================
# Weights
# ============================================================================


@router.get("/weights", response_model=list[WeightSchema], summary="List weights")
async def list_weights(
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
) -> list[WeightSchema]:
    return [weight_to_schema(w) for w in await service.list_weights()]


@router.post(
    "/weights",
    response_model=WeightSchema,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create weight",
)
async def create_weight(
    request: WeightCreateRequest,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "create"))],
) -> WeightSchema:
    return weight_to_schema(await service.create_weight(request.value, request.unit))


@router.delete(
    "/weights/{weight_id}",
    response_model=DeletionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Delete weight",
    description="Weights used by variants cannot be deleted.",
)
async def delete_weight(
    weight_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "delete"))],
) -> DeletionResponse:
    return deletion_to_response(await service.delete_weight(weight_id))
