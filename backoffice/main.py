"""Catalog back office main application module.

This module initializes the FastAPI application and configures
core middleware, routers, exception handlers and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.api import (
    categories_router,
    health_router,
    inventory_router,
    lookups_router,
    products_router,
    variants_router,
)
from backoffice.api.middleware import setup_middleware
from backoffice.domain.exceptions import DomainError
from backoffice.infrastructure.blob_store import get_blob_store
from backoffice.infrastructure.config import settings
from backoffice.infrastructure.database import get_engine
from backoffice.infrastructure.log_config import configure_logging

configure_logging()

logger = structlog.get_logger()

# HTTP status per domain error kind
STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "invariant_violation": 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    logger.info(
        "Starting catalog back office",
        version=settings.api_version,
        debug=settings.debug,
        blob_store=settings.blob_store_backend,
    )

    yield

    logger.info("Shutting down catalog back office")
    blob_store = get_blob_store()
    close = getattr(blob_store, "close", None)
    if close is not None:
        await close()
    await get_engine().dispose()


app = FastAPI(
    title="Catalog Back Office API",
    description="Admin back office for the product catalog and inventory",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(products_router)
app.include_router(variants_router)
app.include_router(categories_router)
app.include_router(inventory_router)
app.include_router(lookups_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def _error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: list | dict,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain errors to HTTP status codes by kind."""
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("Unmapped domain error", kind=exc.kind, error=exc.message)
    else:
        logger.info(
            "Request rejected",
            kind=exc.kind,
            error=exc.message,
            path=request.url.path,
        )
    return _error_response(request, status_code, exc.kind.upper(), exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as validation errors."""
    details = [
        {
            "field": ".".join(str(loc) for loc in err["loc"] if loc != "body") or None,
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "VALIDATION",
        "Invalid request data",
        details,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return _error_response(request, exc.status_code, error_code, message, details)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
        [],
    )
