"""
Team endpoints.

GET /api/v1/teams              Canonical teams an admin may assign
GET /api/v1/teams/invite-info  Invite-code panel for the current user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import get_current_user, require_admin
from app.models.user import User
from app.services import invites
from app.services import users as user_service
from lcp_shared.schemas.teams import InviteInfoResponse, TeamListResponse

router = APIRouter()


@router.get("", response_model=TeamListResponse)
async def list_teams(admin: User = Depends(require_admin)):
    """Every team an invite code leads to, naturally sorted (Admin only)."""
    return TeamListResponse(data=invites.canonical_teams())


@router.get("/invite-info", response_model=InviteInfoResponse)
async def invite_info(user: User = Depends(get_current_user)):
    """Administrators get the full code table; contributors their own team's code."""
    return user_service.invite_info(user)
