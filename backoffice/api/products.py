"""Product API endpoints.

Provides endpoints for product management:
- GET /admin/products - list products (paginated, filterable)
- POST /admin/products - create a product with variants and images
- GET /admin/products/{id} - product details
- PATCH /admin/products/{id} - update a product
- DELETE /admin/products/{id} - delete or deactivate a product
- POST /admin/products/{id}/images - upload one image
- DELETE /admin/products/images/{image_id} - delete an image
- POST /admin/products/images/{image_id}/primary - make an image primary

Create and update take multipart forms: a JSON ``data`` field plus any
number of ``images`` files.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from backoffice.api.converters import deletion_to_response, product_to_response
from backoffice.api.dependencies import (
    BlobStoreDep,
    get_products,
    parse_form_json,
    read_upload,
    read_uploads,
    require,
)
from backoffice.api.schemas import (
    DeletionResponse,
    ErrorResponse,
    ProductCreateRequest,
    ProductImageSchema,
    ProductResponse,
    ProductsListResponse,
    ProductUpdateRequest,
)
from backoffice.application.pagination import PaginationParams
from backoffice.application.product_service import ProductFilter, ProductService
from backoffice.infrastructure.authorization import AuthorizationDecision

router = APIRouter(prefix="/admin/products", tags=["Products"])

ServiceDep = Annotated[ProductService, Depends(get_products)]


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ProductsListResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="List products",
    description="Get a paginated list of products with optional search and filters.",
)
async def list_products(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    search: str | None = Query(default=None, description="Search in name and description"),
    category_id: str | None = Query(default=None, description="Filter by category"),
    featured: bool | None = Query(default=None, description="Filter by featured flag"),
    is_active: bool | None = Query(default=None, description="Filter by active flag"),
    sort_by: str = Query(default="created_at", description="name, created_at or updated_at"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$", description="asc or desc"),
) -> ProductsListResponse:
    """List products with pagination and filtering."""
    result = await service.list_products(
        ProductFilter(
            search=search,
            category_id=category_id,
            featured=featured,
            is_active=is_active,
        ),
        PaginationParams(page=page, page_size=page_size, sort_by=sort_by, sort_order=sort_order),
    )
    return ProductsListResponse(
        items=[product_to_response(p, blob_store) for p in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_next,
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create product",
    description=(
        "Create a product with its categories, variants and images in one step. "
        "Either everything is stored or nothing is."
    ),
)
async def create_product(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "create"))],
    data: Annotated[str, Form(description="Product fields as JSON")],
    images: Annotated[list[UploadFile] | None, File(description="Product images")] = None,
) -> ProductResponse:
    """Create a product.

    Args:
        service: Product service.
        blob_store: Blob store used to resolve image URLs.
        auth: Authorization decision with the acting admin.
        data: JSON-encoded ProductCreateRequest.
        images: Uploaded image files.

    Returns:
        The created product.
    """
    payload = parse_form_json(ProductCreateRequest, data)
    uploads = await read_uploads(images)
    product = await service.create_product(payload.to_input(), uploads, acting_admin=auth.admin_id)
    return product_to_response(product, blob_store)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product details",
)
async def get_product(
    product_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "read"))],
) -> ProductResponse:
    product = await service.get_product(product_id)
    return product_to_response(product, blob_store)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update product",
    description=(
        "Update product fields and, optionally, reconcile its variants against "
        "the submitted list and add or replace images."
    ),
)
async def update_product(
    product_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
    data: Annotated[str, Form(description="Changed product fields as JSON")] = "{}",
    images: Annotated[list[UploadFile] | None, File(description="Images to add")] = None,
) -> ProductResponse:
    """Update a product.

    Args:
        product_id: Product identifier.
        service: Product service.
        blob_store: Blob store used to resolve image URLs.
        auth: Authorization decision with the acting admin.
        data: JSON-encoded ProductUpdateRequest.
        images: Uploaded image files.

    Returns:
        The updated product.
    """
    payload = parse_form_json(ProductUpdateRequest, data)
    uploads = await read_uploads(images)
    product = await service.update_product(
        product_id,
        payload.to_update(),
        uploads,
        acting_admin=auth.admin_id,
    )
    return product_to_response(product, blob_store)


@router.delete(
    "/{product_id}",
    response_model=DeletionResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete product",
    description="Delete a product, or mark it inactive when orders reference it.",
)
async def delete_product(
    product_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "delete"))],
) -> DeletionResponse:
    result = await service.delete_product(product_id, acting_admin=auth.admin_id)
    return deletion_to_response(result)


# ============================================================================
# Images
# ============================================================================


@router.post(
    "/{product_id}/images",
    response_model=ProductImageSchema,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Upload product image",
)
async def add_image(
    product_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
    image: Annotated[UploadFile, File(description="Image file")],
    is_primary: Annotated[bool, Form()] = False,
    alt: Annotated[str | None, Form()] = None,
) -> ProductImageSchema:
    upload = await read_upload(image)
    stored = await service.add_image(product_id, upload, is_primary=is_primary, alt=alt)
    return ProductImageSchema(
        id=stored.id,
        url=blob_store.resolve(stored.url),
        alt=stored.alt,
        is_primary=stored.is_primary,
        position=stored.position,
    )


@router.delete(
    "/images/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Delete product image",
    description="Delete an image. A product's only image cannot be deleted.",
)
async def delete_image(
    image_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> None:
    await service.delete_image(image_id)


@router.post(
    "/images/{image_id}/primary",
    response_model=ProductImageSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Set primary image",
)
async def set_primary_image(
    image_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("products", "update"))],
) -> ProductImageSchema:
    image = await service.set_primary_image(image_id)
    return ProductImageSchema(
        id=image.id,
        url=blob_store.resolve(image.url),
        alt=image.alt,
        is_primary=image.is_primary,
        position=image.position,
    )
