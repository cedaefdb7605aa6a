"""
Invite resolver: exchanges invite codes for canonical team identifiers.

The code table is static configuration (``Settings.invite_codes``). Codes are
compared with exact, case-sensitive equality; "FEB" is not "feb".
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import InviteCodeError, ValidationError
from app.models.user import User
from app.services.teams import natural_sorted

log = structlog.get_logger()


def get_codes() -> dict[str, str]:
    """The invite code table, code -> team."""
    return get_settings().invite_codes


def resolve(code: Optional[str]) -> str:
    """Map an invite code to its team.

    Raises InviteCodeError(kind="empty_code") for empty input and
    InviteCodeError(kind="unknown_code") when the code is not in the table.
    """
    if code is None or not code.strip():
        raise InviteCodeError("empty_code")
    team = get_codes().get(code.strip())
    if team is None:
        raise InviteCodeError("unknown_code")
    return team


def canonical_teams() -> list[str]:
    """Distinct team identifiers from the invite table, naturally sorted."""
    return natural_sorted(set(get_codes().values()))


def code_for_team(team: Optional[str]) -> Optional[str]:
    """First invite code (in table order) that maps to ``team``."""
    if not team:
        return None
    for code, code_team in get_codes().items():
        if code_team == team:
            return code
    return None


def validate_team(team: Optional[str]) -> Optional[str]:
    """Check an admin-chosen team. Returns None for "unassigned"."""
    if team is None or team == "":
        return None
    if team not in canonical_teams():
        raise ValidationError(
            f"Unknown team '{team}'.", kind="unknown_team", code="TEAM_UNKNOWN"
        )
    return team


async def assign(session: AsyncSession, user: User, code: Optional[str]) -> str:
    """Resolve ``code`` and store the team on ``user``.

    Nothing is written when the code does not resolve. Re-assigning with the
    same code leaves the user unchanged.
    """
    team = resolve(code)
    previous = user.team
    user.team = team
    session.add(user)
    await session.flush()
    log.info(
        "team.assigned",
        user_id=str(user.id),
        team=team,
        previous_team=previous or "",
        source="invite_code",
    )
    return team
