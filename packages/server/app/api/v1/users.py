"""
User Management API endpoints.

GET    /api/v1/users             List users (optionally by team)
GET    /api/v1/users/me          Current user's profile
GET    /api/v1/users/{userId}    Get a user's profile
PATCH  /api/v1/users/{userId}    Update role, display name or team
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from lcp_shared.schemas.users import UserListResponse, UserResponse, UserUpdateRequest

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    team: Optional[str] = Query(default=None),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """List users, optionally only those on one team (Admin only)."""
    users = await user_service.list_users(session, team)
    return UserListResponse(data=[user_service.to_response(u) for u in users])


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """The authenticated user's own profile."""
    return user_service.to_response(user)


@router.get("/{userId}", response_model=UserResponse)
async def get_user(
    userId: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Get a user's profile (Admin only)."""
    user = await user_service.get_user(session, userId)
    return user_service.to_response(user)


@router.patch("/{userId}", response_model=UserResponse)
async def update_user(
    userId: uuid.UUID,
    body: UserUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update a user's role, display name or team (Admin only)."""
    user = await user_service.update_user(session, userId, body)
    return user_service.to_response(user)
