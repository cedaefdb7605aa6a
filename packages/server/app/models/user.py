"""User model.

``team`` is the single source of truth for which records a user can see and
which team their own records belong to. It is set from an invite code at
registration and changed only by administrators.
"""

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt
    display_name: str = Field(nullable=False)
    role: str = Field(nullable=False, default="contributor")  # administrator | contributor
    team: Optional[str] = Field(default=None, index=True)  # None = unassigned
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={
            "server_default": sa.func.now(),
        },
        sa_type=sa.DateTime(timezone=True),
    )
