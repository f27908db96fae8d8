"""WhatsApp Mount Point - channel status read from the auth-state storage area.

Invariants:
    - Mounted only at /api/whatsapp (no legacy alias)
    - A missing auth-state area reports authStateAvailable=false, never an error
"""

from pathlib import Path

from fastapi import APIRouter, Depends

from gymdesk.api.dependencies import storage_area
from gymdesk.core.domain_types import StorageArea

router = APIRouter(tags=["whatsapp"])


@router.get("/status")
async def whatsapp_status(
    auth_dir: Path | None = Depends(storage_area(StorageArea.AUTH_STATE)),
):
    """Whether a saved messaging session exists in the auth-state area."""
    has_session = auth_dir is not None and any(auth_dir.iterdir())
    return {
        "success": True,
        "authStateAvailable": auth_dir is not None,
        "hasSavedSession": has_session,
    }
