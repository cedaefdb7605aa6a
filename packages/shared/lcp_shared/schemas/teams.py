"""Team and invite-code schemas."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel


class TeamListResponse(BaseModel):
    """Canonical team identifiers (closed set for admin assignment)."""
    data: List[str]


class InviteInfoResponse(BaseModel):
    """What the invite-code panel shows to the current user.

    - ``all_codes``: administrators see the full code table.
    - ``team``: contributor with a team that has a code.
    - ``unmapped``: contributor whose team has no code; ask an admin.
    - ``unassigned``: contributor without a team.
    """
    status: Literal["all_codes", "team", "unmapped", "unassigned"]
    team: Optional[str] = None
    invite_code: Optional[str] = None
    codes: Dict[str, str] = {}
