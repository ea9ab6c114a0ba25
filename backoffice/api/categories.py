"""Category API endpoints.

Provides endpoints for the category tree:
- GET /admin/categories - list categories
- GET /admin/categories/{id} - category details
- POST /admin/categories - create a category (multipart, optional image)
- PATCH /admin/categories/{id} - update a category (multipart, optional image)
- DELETE /admin/categories/{id} - delete a leaf category without products
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from backoffice.api.converters import category_to_schema, deletion_to_response
from backoffice.api.dependencies import BlobStoreDep, get_categories, read_upload, require
from backoffice.api.schemas import (
    CategoriesListResponse,
    CategorySchema,
    DeletionResponse,
    ErrorResponse,
)
from backoffice.application.category_service import CategoryService, CategoryUpdate
from backoffice.infrastructure.authorization import AuthorizationDecision

router = APIRouter(prefix="/admin/categories", tags=["Categories"])

ServiceDep = Annotated[CategoryService, Depends(get_categories)]


@router.get(
    "",
    response_model=CategoriesListResponse,
    summary="List categories",
)
async def list_categories(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("categories", "read"))],
) -> CategoriesListResponse:
    categories = await service.list_categories()
    return CategoriesListResponse(
        items=[category_to_schema(c, blob_store) for c in categories],
        total=len(categories),
    )


@router.get(
    "/{category_id}",
    response_model=CategorySchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get category details",
)
async def get_category(
    category_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("categories", "read"))],
) -> CategorySchema:
    category = await service.get_category(category_id)
    return category_to_schema(category, blob_store)


@router.post(
    "",
    response_model=CategorySchema,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("categories", "create"))],
    name: Annotated[str, Form()],
    description: Annotated[str | None, Form()] = None,
    parent_id: Annotated[str | None, Form()] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> CategorySchema:
    """Create a category.

    Args:
        service: Category service.
        blob_store: Blob store used to resolve image URLs.
        auth: Authorization decision.
        name: Category name, unique ignoring case.
        description: Optional description.
        parent_id: Optional parent category.
        image: Optional category image.

    Returns:
        The created category.
    """
    upload = await read_upload(image) if image is not None else None
    category = await service.create_category(
        name,
        description=description,
        parent_id=parent_id or None,
        image=upload,
    )
    return category_to_schema(category, blob_store)


@router.patch(
    "/{category_id}",
    response_model=CategorySchema,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Update category",
    description="Send clear_parent=true to move the category to the top level.",
)
async def update_category(
    category_id: str,
    service: ServiceDep,
    blob_store: BlobStoreDep,
    auth: Annotated[AuthorizationDecision, Depends(require("categories", "update"))],
    name: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    parent_id: Annotated[str | None, Form()] = None,
    clear_parent: Annotated[bool, Form()] = False,
    image: Annotated[UploadFile | None, File()] = None,
) -> CategorySchema:
    upload = await read_upload(image) if image is not None else None
    category = await service.update_category(
        category_id,
        CategoryUpdate(
            name=name,
            description=description,
            parent_id=parent_id or None,
            clear_parent=clear_parent,
            image=upload,
        ),
    )
    return category_to_schema(category, blob_store)


@router.delete(
    "/{category_id}",
    response_model=DeletionResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Delete category",
    description="Categories with subcategories or products cannot be deleted.",
)
async def delete_category(
    category_id: str,
    service: ServiceDep,
    auth: Annotated[AuthorizationDecision, Depends(require("categories", "delete"))],
) -> DeletionResponse:
    result = await service.delete_category(category_id)
    return deletion_to_response(result)
