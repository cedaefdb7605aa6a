"""Record (entry / city) schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import PUBLISH_STATUS, Pagination, RecordStatus, RecordType


class RecordCreate(BaseModel):
    type: RecordType = RecordType.ENTRY
    title: str = Field(min_length=1, max_length=500)
    # Plain string: "publish" must reach the access policy to be pinned to draft.
    status: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class RecordUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    status: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None


class RecordRead(BaseModel):
    id: int
    type: RecordType
    title: str
    author_id: UUID4
    team: str = ""  # derived from the author, never stored on the record
    status: RecordStatus
    fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class RecordListResponse(BaseModel):
    data: List[RecordRead]
    pagination: Pagination


def is_publish_request(status: Optional[str]) -> bool:
    return status is not None and status.strip().lower() in (PUBLISH_STATUS, "published")
