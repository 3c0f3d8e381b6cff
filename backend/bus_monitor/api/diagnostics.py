"""Diagnostics API for inspecting snapshot cache state."""

from fastapi import APIRouter

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])

# Will be set by main.py
service = None


@router.get("")
async def get_diagnostics():
    """Age, rebuild count and size of every snapshot cache."""
    if service is None:
        return {"error": "Service not initialized"}
    return service.get_diagnostics()
