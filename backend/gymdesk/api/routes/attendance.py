"""Attendance Mount Point - probe route for the attendance collaborator."""

from fastapi import APIRouter

router = APIRouter(tags=["attendance"])


@router.get("/ping")
async def ping():
    return {"success": True, "group": "attendance"}
