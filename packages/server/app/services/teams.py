"""
Team directory: who is on which team.

Reads only. A user's team lives on the user row; records never store it.
Absent users and empty team labels resolve to "" and to an empty member set,
never to "everyone".
"""

from __future__ import annotations

import re
import uuid
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.user import User

_DIGITS = re.compile(r"(\d+)")


def natural_key(value: str) -> list:
    """Case-insensitive natural sort key ("team2" < "team10")."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in _DIGITS.split(value)
        if part
    ]


def natural_sorted(values: Iterable[str]) -> list[str]:
    return sorted(values, key=natural_key)


async def team_of(session: AsyncSession, user_id: uuid.UUID | None) -> str:
    """The user's team, or "" when unassigned or absent."""
    if user_id is None:
        return ""
    result = await session.execute(select(User.team).where(User.id == user_id))
    return result.scalar_one_or_none() or ""


async def team_lookup(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, str]:
    """Batch ``team_of``; every requested id is present in the result."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User.id, User.team).where(User.id.in_(ids)))
    found = {uid: team or "" for uid, team in result.all()}
    return {uid: found.get(uid, "") for uid in ids}


async def users_in_team(session: AsyncSession, team: str | None) -> set[uuid.UUID]:
    """Ids of users whose team equals ``team`` exactly."""
    if not team:
        return set()
    result = await session.execute(select(User.id).where(User.team == team))
    return set(result.scalars().all())


async def distinct_teams(session: AsyncSession) -> list[str]:
    """Teams assigned to at least one user, naturally sorted.

    Teams from the invite table that nobody has joined yet do not appear.
    """
    result = await session.execute(
        select(User.team).where(User.team.is_not(None), User.team != "").distinct()
    )
    return natural_sorted(result.scalars().all())
