"""Shared FastAPI dependencies.

Builds request-scoped services, reads the acting admin from the headers
set by the upstream auth layer, and turns multipart form data into
application inputs.
"""

from collections.abc import Awaitable, Callable
from typing import Annotated, TypeVar

from fastapi import Depends, Header, HTTPException, UploadFile, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.application.category_service import CategoryService, get_category_service
from backoffice.application.inventory_service import InventoryService, get_inventory_service
from backoffice.application.lookup_service import LookupService, get_lookup_service
from backoffice.application.product_service import ProductService, get_product_service
from backoffice.application.variant_service import VariantService, get_variant_service
from backoffice.domain.exceptions import ValidationError
from backoffice.domain.value_objects import ImageUpload
from backoffice.infrastructure.authorization import (
    AuthorizationDecision,
    AuthorizationGate,
    Principal,
    get_authorization_gate,
)
from backoffice.infrastructure.blob_store import BlobStore, get_blob_store
from backoffice.infrastructure.database import get_session

ModelT = TypeVar("ModelT", bound=BaseModel)

SessionDep = Annotated[AsyncSession, Depends(get_session)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]


# ============================================================================
# Services
# ============================================================================


def get_products(session: SessionDep, blob_store: BlobStoreDep) -> ProductService:
    return get_product_service(session, blob_store)


def get_variants(session: SessionDep) -> VariantService:
    return get_variant_service(session)


def get_categories(session: SessionDep, blob_store: BlobStoreDep) -> CategoryService:
    return get_category_service(session, blob_store)


def get_inventory(session: SessionDep) -> InventoryService:
    return get_inventory_service(session)


def get_lookups(session: SessionDep, blob_store: BlobStoreDep) -> LookupService:
    return get_lookup_service(session, blob_store)


# ============================================================================
# Authorization
# ============================================================================


def get_principal(
    x_admin_id: Annotated[str | None, Header()] = None,
    x_admin_role: Annotated[str | None, Header()] = None,
) -> Principal | None:
    """Read the acting admin from the upstream auth headers.

    Returns:
        Principal, or None when either header is missing.
    """
    if not x_admin_id or not x_admin_role:
        return None
    return Principal(admin_id=x_admin_id, role=x_admin_role.upper())


def require(resource: str, action: str) -> Callable[..., Awaitable[AuthorizationDecision]]:
    """Build a dependency that enforces a ``resource:action`` capability.

    Args:
        resource: Resource name (e.g., "products").
        action: Action name (create, read, update, delete).

    Returns:
        Dependency yielding the allowed decision, with the acting admin id.
    """

    async def dependency(
        gate: Annotated[AuthorizationGate, Depends(get_authorization_gate)],
        principal: Annotated[Principal | None, Depends(get_principal)],
    ) -> AuthorizationDecision:
        if principal is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error_code": "UNAUTHORIZED",
                    "message": "Admin identity headers are required",
                },
            )
        decision = gate.authorize(principal, resource, action)
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error_code": "FORBIDDEN",
                    "message": f"Not allowed to {action} {resource}",
                },
            )
        return decision

    return dependency


# ============================================================================
# Form Data
# ============================================================================


def parse_form_json(model: type[ModelT], raw: str) -> ModelT:
    """Validate the JSON ``data`` field of a multipart form.

    Raises:
        ValidationError: If the JSON is malformed or does not match the model.
    """
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid request data",
            details={
                "errors": [
                    {
                        "field": ".".join(str(loc) for loc in err["loc"]) or None,
                        "message": err["msg"],
                    }
                    for err in e.errors()
                ]
            },
        ) from e


async def read_upload(file: UploadFile) -> ImageUpload:
    """Read an uploaded file into memory.

    Raises:
        ValidationError: If the file is empty or not an image.
    """
    data = await file.read()
    return ImageUpload(
        data=data,
        content_type=file.content_type or "application/octet-stream",
        filename=file.filename or "image",
    )


async def read_uploads(files: list[UploadFile] | None) -> list[ImageUpload]:
    return [await read_upload(f) for f in files or []]
