"""System Routes - service banner, health probe and messaging diagnostics.

Invariants:
    - Never gated by the database: GET /health returns 200 in a fresh process
      even when DATABASE_URL is missing
    - /health reports the resolved environment and storage root, not secrets
"""

import logging

from fastapi import APIRouter, Depends, Request

from gymdesk.api.dependencies import get_connection_cache, get_context, get_storage
from gymdesk.core.domain_types import StorageArea
from gymdesk.core.errors import utc_timestamp
from gymdesk.core.execution_context import ExecutionContext
from gymdesk.infrastructure.database import ConnectionCache

logger = logging.getLogger(__name__)
router = APIRouter(tags=["system"])

SERVICE_NAME = "Gym Management API"
SERVICE_VERSION = "1.0.0"

WHATSAPP_ENDPOINTS = [
    "GET /api/whatsapp/status",
    "POST /api/whatsapp/init-whatsapp-web",
    "POST /api/whatsapp/request-whatsapp-verification",
    "POST /api/whatsapp/verify-whatsapp-code",
    "POST /api/whatsapp/send-message",
    "POST /api/whatsapp/disconnect",
]


def _route_map(request: Request) -> dict[str, str]:
    table = request.app.state.route_table
    return {b.group.name: b.prefix for b in table.canonical()}


@router.get("/")
async def banner(request: Request, context: ExecutionContext = Depends(get_context)):
    """Service banner with the available route prefixes."""
    return {
        "success": True,
        "message": f"{SERVICE_NAME} is running",
        "version": SERVICE_VERSION,
        "environment": context.environment,
        "routes": {"health": "/health", **_route_map(request)},
    }


@router.get("/health")
async def health(
    request: Request,
    context: ExecutionContext = Depends(get_context),
    cache: ConnectionCache = Depends(get_connection_cache),
):
    """Liveness probe with resolved environment flags. Does not touch the database."""
    storage = get_storage(request)
    return {
        "status": "OK",
        "message": "Server is running",
        "timestamp": utc_timestamp(),
        "environment": context.environment,
        "isEphemeral": context.is_ephemeral,
        "platform": context.platform.value,
        "storageRoot": str(context.storage_root),
        "uploadsDir": str(context.area_path(StorageArea.UPLOADS)),
        "storage": storage.available() if storage.initialized else None,
        "database": cache.status.value,
        "routes": _route_map(request),
    }


@router.get("/test-whatsapp")
async def test_whatsapp():
    """Static enumeration of the messaging-channel endpoints."""
    return {
        "message": "WhatsApp route is working",
        "availableEndpoints": WHATSAPP_ENDPOINTS,
    }
