"""
User management service: profile lookups and administrator edits.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFound, ValidationError
from app.core.policy import parse_role
from app.models.user import User
from app.services import invites
from lcp_shared.schemas.common import Role
from lcp_shared.schemas.teams import InviteInfoResponse
from lcp_shared.schemas.users import UserResponse, UserUpdateRequest

log = structlog.get_logger()


def to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        team=user.team or "",
        created_at=user.created_at,
    )


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def list_users(session: AsyncSession, team: Optional[str] = None) -> list[User]:
    """All users ordered by email, optionally only those on ``team``."""
    stmt = select(User).order_by(User.email)
    if team:
        stmt = stmt.where(User.team == team)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_user(
    session: AsyncSession, user_id: uuid.UUID, req: UserUpdateRequest
) -> User:
    """Apply an administrator's profile edit."""
    user = await get_user(session, user_id)
    data = req.model_dump(exclude_unset=True)

    if "team" in data and "invite_code" in data:
        raise ValidationError(
            "Set either a team or an invite code, not both.",
            kind="conflicting_team",
            code="TEAM_CONFLICT",
        )

    previous_team = user.team or ""
    if "invite_code" in data:
        await invites.assign(session, user, data["invite_code"])
    elif "team" in data:
        user.team = invites.validate_team(data["team"])

    if data.get("role") is not None:
        user.role = Role(data["role"]).value
    if data.get("display_name") is not None:
        user.display_name = data["display_name"]

    session.add(user)
    await session.flush()

    if (user.team or "") != previous_team:
        log.info(
            "user.team_changed",
            user_id=str(user.id),
            previous_team=previous_team,
            team=user.team or "",
        )
    log.info("user.updated", user_id=str(user.id), fields=sorted(data))
    return user


def invite_info(actor: User) -> InviteInfoResponse:
    """Invite-code panel contents for ``actor``."""
    if parse_role(actor.role) is Role.ADMIN:
        return InviteInfoResponse(status="all_codes", codes=dict(invites.get_codes()))

    if not actor.team:
        return InviteInfoResponse(status="unassigned")

    code = invites.code_for_team(actor.team)
    if code is None:
        return InviteInfoResponse(status="unmapped", team=actor.team)
    return InviteInfoResponse(status="team", team=actor.team, invite_code=code)
