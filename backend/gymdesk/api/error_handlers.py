"""Error Handlers - uniform JSON rendering for errors raised inside the router.

Invariants:
    - GymdeskError, HTTPException, RequestValidationError all render through
      normalize_error(): {"success": false, "message", "timestamp"}
    - Unmatched paths render 404 with availableRoutes (always includes /health)
    - Anything not handled here propagates to ErrorBoundaryMiddleware

Design Decisions:
    - Three-layer handler: domain (GymdeskError), HTTP (HTTPException), validation (Pydantic);
      the catch-all lives in the ASGI boundary so it also covers the outer stages
"""

import logging
from typing import Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import Receive, Scope, Send

from gymdesk.core.errors import (
    GymdeskError, RouteNotFoundError, error_envelope, normalize_error,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all router-level error handlers on the FastAPI app."""
    _register_gymdesk_error_handler(app)
    _register_http_error_handler(app)
    _register_validation_error_handler(app)


def _register_gymdesk_error_handler(app: FastAPI) -> None:

    @app.exception_handler(GymdeskError)
    async def gymdesk_error_handler(request: Request, exc: GymdeskError):
        """Handle all Gymdesk domain/infrastructure errors."""
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"GymdeskError: {exc.message}",
            extra={
                "error_code": exc.code, "path": request.url.path,
                "method": request.method, "status_code": exc.http_status,
            },
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """HTTPException raised by collaborators or by routing (405)."""
        status_code, body = normalize_error(exc)
        return JSONResponse(
            status_code=status_code, content=body, headers=getattr(exc, "headers", None),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        """Handle Pydantic validation errors."""
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    body = error_envelope("Invalid request data")
    body["details"] = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    return body


class NotFoundFallback:
    """Router default app: structured 404 listing the known top-level routes."""

    def __init__(self, available_routes: Sequence[str]):
        self.available_routes = list(available_routes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return
        error = RouteNotFoundError(scope.get("method", "GET"), scope.get("path", ""))
        logger.info(
            f"404 - {error.message}",
            extra={"method": error.method, "path": error.path, "status_code": 404},
        )
        body = {
            "success": False,
            "message": error.message,
            "availableRoutes": self.available_routes,
        }
        await JSONResponse(body, status_code=404)(scope, receive, send)
