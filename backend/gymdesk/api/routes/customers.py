"""Customers Mount Point.

Mounted at /api/customers and, as the first legacy group, at /api: a legacy
path shared with attendance or reports resolves here.
"""

from fastapi import APIRouter

router = APIRouter(tags=["customers"])


@router.get("/ping")
async def ping():
    """Mount probe; passes the readiness gate like every customers route."""
    return {"success": True, "group": "customers"}
