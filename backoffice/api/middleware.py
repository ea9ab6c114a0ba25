"""Request context for the admin API.

Every request gets a correlation id and, when the auth headers are
present, the acting admin bound to the structlog context. Mutating
requests are logged as admin actions; reads are logged at debug level.
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class AdminContextMiddleware(BaseHTTPMiddleware):
    """Bind request id and acting admin to the log context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            admin_id=request.headers.get("X-Admin-Id"),
            admin_role=request.headers.get("X-Admin-Role"),
        )

        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            log = logger.info if request.method in MUTATING_METHODS else logger.debug
            log(
                "Admin action" if request.method in MUTATING_METHODS else "Admin read",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id", "admin_id", "admin_role")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Turn exceptions no handler claimed into a 500 error envelope."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled exception", method=request.method, path=request.url.path)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error_code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": [],
                    "request_id": getattr(request.state, "request_id", None),
                },
            )


def setup_middleware(app: FastAPI) -> None:
    """Install the admin middleware stack.

    The last middleware added runs first, so the context middleware wraps
    the error middleware and error responses still carry the request id.
    """
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(AdminContextMiddleware)
