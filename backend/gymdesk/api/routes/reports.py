"""Reports Mount Point - probe route for the reports collaborator.

Report generation endpoints belong to the reports collaborator; this router
only carries the mount probe used to verify the canonical and legacy bindings.
"""

from fastapi import APIRouter

router = APIRouter(tags=["reports"])


@router.get("/ping")
async def ping():
    return {"success": True, "group": "reports"}
