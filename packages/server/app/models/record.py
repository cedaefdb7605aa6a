"""Record model (entries and cities).

There is no team column: a record's team is its author's team,
looked up at read time.
"""

from typing import Any, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class Record(TimestampMixin, SQLModel, table=True):
    __tablename__ = "records"

    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(nullable=False, index=True)  # entry | city
    title: str = Field(nullable=False, default="")
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    status: str = Field(nullable=False, default="draft", index=True)  # draft | pending | private | trash
    # JSON rather than JSONB: key order is part of the export contract.
    fields: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
