"""
API v1 Router

Workspace endpoints under /api/v1. Export routes are mounted separately at
/export/v1 (see ``app.main``).
"""

from fastapi import APIRouter
from . import records, teams, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(records.router, prefix="/records", tags=["Records"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/users",
            "/teams",
            "/records",
            "/export/v1/entries",
        ],
    }
