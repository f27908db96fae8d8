"""Request Pipeline - the ordered stages every inbound request passes through.

Execution order (outer to inner):
    1. cors           CORSMiddleware: allow-list, methods, headers, credentials
    2. errors         ErrorBoundaryMiddleware + router exception handlers
    3. body           BodyDecodingMiddleware: 50 MB ceiling, JSON / URL-encoded
    4. access_log     AccessLogMiddleware: method, path, status, duration
    5. db_gate        require_database dependency on every collaborator mount
    6. dispatch       FastAPI router, RouteTable order, first match wins
    7. not_found      NotFoundFallback as the router's default app

Invariants:
    - Stages within one request run strictly in this order
    - Starlette wraps middleware in reverse registration order, so
      install_pipeline() registers the middleware stages innermost first
    - The only state shared across requests is the ConnectionCache
"""

from dataclasses import dataclass

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gymdesk.api.dependencies import require_database
from gymdesk.api.error_handlers import NotFoundFallback, register_error_handlers
from gymdesk.api.middleware import (
    AccessLogMiddleware, BodyDecodingMiddleware, ErrorBoundaryMiddleware,
)
from gymdesk.core.execution_context import ExecutionContext
from gymdesk.core.route_table import RouteTable

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization"]
SYSTEM_ROUTES = ["/health", "/test-whatsapp"]


@dataclass(frozen=True)
class Stage:
    name: str
    description: str


PIPELINE_STAGES: tuple[Stage, ...] = (
    Stage("cors", "CORS policy check"),
    Stage("errors", "error normalization boundary"),
    Stage("body", "body decoding with size ceiling"),
    Stage("access_log", "access logging"),
    Stage("db_gate", "database-readiness gate"),
    Stage("dispatch", "route dispatch"),
    Stage("not_found", "not-found fallback"),
)


def install_pipeline(
    app: FastAPI, context: ExecutionContext, max_body_bytes: int,
) -> None:
    """Install the middleware stages (1-4) and router-level error handlers."""
    register_error_handlers(app)
    # Reverse order: the last middleware added is the outermost
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(BodyDecodingMiddleware, max_body_bytes=max_body_bytes)
    app.add_middleware(
        ErrorBoundaryMiddleware, expose_details=not context.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(context.cors_origins),
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )


def available_routes(table: RouteTable) -> list[str]:
    """Top-level routes advertised by the not-found fallback."""
    routes = list(SYSTEM_ROUTES)
    for route in table.available_routes():
        if route not in routes:
            routes.append(route)
    return routes


def install_routes(app: FastAPI, table: RouteTable) -> None:
    """Install stages 5-7: gated collaborator mounts in table order, then the fallback."""
    gate = [Depends(require_database)]
    for binding in table:
        app.include_router(
            binding.group.router, prefix=binding.prefix, dependencies=gate,
            include_in_schema=not binding.is_legacy,
        )
    app.router.default = NotFoundFallback(available_routes(table))
