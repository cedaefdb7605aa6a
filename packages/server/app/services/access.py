"""
Access checks backed by the team directory.

Thin layer over ``app.core.policy``: it looks up the author's team for the
record in question and asks the pure policy. Denials are logged as policy
outcomes and raised as PermissionDenied.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PermissionDenied
from app.core.policy import POLICY_VERSION, Action, Decision, decide, list_scope
from app.models.record import Record
from app.models.user import User
from app.services.teams import team_of, users_in_team

log = structlog.get_logger()


async def can_access(
    session: AsyncSession,
    actor: User,
    action: Action,
    record: Optional[Record] = None,
) -> Decision:
    """Decide ``action`` for ``actor`` on ``record`` using current team data."""
    author_team = await team_of(session, record.author_id) if record is not None else None
    return decide(actor.role, actor.team or "", action, author_team)


def log_denial(
    actor: User,
    action: Action,
    *,
    record_id: Optional[int] = None,
    reason: str = "policy",
) -> None:
    log.info(
        "policy.denied",
        actor_id=str(actor.id),
        role=actor.role,
        team=actor.team or "",
        action=action.value,
        record_id=record_id,
        reason=reason,
        policy_version=POLICY_VERSION,
    )


async def authorize(
    session: AsyncSession,
    actor: User,
    action: Action,
    record: Optional[Record] = None,
) -> None:
    """Raise PermissionDenied unless ``action`` is allowed."""
    decision = await can_access(session, actor, action, record)
    if decision is Decision.DENY:
        log_denial(actor, action, record_id=record.id if record is not None else None)
        raise PermissionDenied()


async def author_scope(session: AsyncSession, actor: User) -> Optional[set[uuid.UUID]]:
    """Author ids whose records ``actor`` may list.

    None means no restriction. An empty set means the actor sees nothing.
    """
    scope = list_scope(actor.role, actor.team or "")
    if scope.unrestricted:
        return None
    if scope.matches_nothing:
        return set()
    return await users_in_team(session, scope.team)
