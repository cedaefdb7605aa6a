"""Export endpoint schemas."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel

from .common import RecordType, StatusFilter


class ExportPagination(BaseModel):
    paged: int
    per_page: int
    total: int
    max_pages: int


class ExportPageResponse(BaseModel):
    """One page of flattened rows. Row keys keep their emission order."""
    rows: List[Dict[str, Any]]
    pagination: ExportPagination
    post_type: RecordType
    team: str
    status: StatusFilter


class ExportPreviewResponse(BaseModel):
    columns: List[str]
    rows: List[Dict[str, Any]]
    total: int
    post_type: RecordType
    team: str
    status: StatusFilter


class ExportTeamsResponse(BaseModel):
    """Teams currently assigned to at least one user."""
    data: List[str]
