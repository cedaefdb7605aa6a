"""User profile schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, UUID4

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserUpdateRequest(BaseModel):
    """Admin profile edit.

    ``team`` sets the team directly and must be one of the canonical team
    identifiers; an empty string unassigns. ``invite_code`` re-runs invite
    resolution instead. Sending both is rejected.
    """
    role: Optional[Role] = None
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    team: Optional[str] = Field(default=None, max_length=100)
    invite_code: Optional[str] = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Single user response."""
    id: UUID4
    email: str
    display_name: str
    role: Role
    team: str = ""  # empty means unassigned
    created_at: datetime


class UserListResponse(BaseModel):
    """List of users, optionally narrowed to one team."""
    data: List[UserResponse]
