"""
Record endpoints (entries and cities).

GET    /api/v1/records            List records visible to the caller
POST   /api/v1/records            Create a record (always a draft)
GET    /api/v1/records/{id}       Get one record
PATCH  /api/v1/records/{id}       Update a record
DELETE /api/v1/records/{id}       Trash a record; trash again to remove it
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_contributor
from app.core.database import get_session
from app.models.user import User
from app.services import records as record_service
from lcp_shared.schemas.common import Pagination, RecordType, StatusFilter
from lcp_shared.schemas.records import (
    RecordCreate,
    RecordListResponse,
    RecordRead,
    RecordUpdate,
)

router = APIRouter()


@router.get("", response_model=RecordListResponse)
async def list_records_endpoint(
    type: RecordType = Query(default=RecordType.ENTRY),
    status: StatusFilter = Query(default=StatusFilter.ANY),
    team: Optional[str] = Query(default=None),
    order_by: Literal["id", "modified", "team"] = Query(default="id"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=25, ge=1, le=100),
    user: User = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
):
    """List records. Contributors only ever see their own team's records."""
    records, total, total_pages = await record_service.list_records(
        session,
        user,
        type,
        status=status,
        team=team,
        order_by=order_by,
        page=page,
        per_page=per_page,
    )
    return RecordListResponse(
        data=await record_service.enrich_records(session, records),
        pagination=Pagination(
            page=page, per_page=per_page, total=total, total_pages=total_pages
        ),
    )


@router.post("", response_model=RecordRead, status_code=201)
async def create_record_endpoint(
    body: RecordCreate,
    user: User = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
):
    """Create a record authored by the caller."""
    record = await record_service.create_record(session, user, body)
    await session.commit()
    return await record_service.enrich_record(session, record)


@router.get("/{record_id}", response_model=RecordRead)
async def get_record_endpoint(
    record_id: int,
    user: User = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
):
    """Get a single record."""
    record = await record_service.get_record(session, user, record_id)
    return await record_service.enrich_record(session, record)


@router.patch("/{record_id}", response_model=RecordRead)
async def update_record_endpoint(
    record_id: int,
    body: RecordUpdate,
    user: User = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
):
    """Update title, status or fields."""
    record = await record_service.update_record(session, user, record_id, body)
    await session.commit()
    return await record_service.enrich_record(session, record)


@router.delete("/{record_id}")
async def delete_record_endpoint(
    record_id: int,
    user: User = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
):
    """Move a record to trash, or remove it if it is already there."""
    removed = await record_service.delete_record(session, user, record_id)
    await session.commit()
    return {"id": record_id, "status": "deleted" if removed else "trash"}
