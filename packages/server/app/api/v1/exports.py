"""
Export endpoints (Admin only).

GET /export/v1/entries       One page of flattened rows
GET /export/v1/entries.csv   Every page as a CSV download
GET /export/v1/preview       First rows plus their columns
GET /export/v1/teams         Teams currently assigned to users
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_admin
from app.core.config import get_settings
from app.core.database import get_session
from app.models.user import User
from app.services import exports as export_service
from app.services.teams import distinct_teams
from lcp_shared.schemas.common import RecordType, StatusFilter
from lcp_shared.schemas.exports import (
    ExportPageResponse,
    ExportPagination,
    ExportPreviewResponse,
    ExportTeamsResponse,
)

settings = get_settings()
router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/entries", response_model=ExportPageResponse)
async def export_entries(
    post_type: RecordType = Query(default=RecordType.ENTRY),
    team: str = Query(default=""),
    paged: int = Query(default=1, ge=1),
    per_page: int = Query(
        default=settings.export_default_per_page, ge=1, le=settings.export_max_per_page
    ),
    status: StatusFilter = Query(default=StatusFilter.ANY),
    session: AsyncSession = Depends(get_session),
):
    """One page of export rows ordered by record id."""
    page = await export_service.export_page(session, post_type, team, status, paged, per_page)
    return ExportPageResponse(
        rows=page.rows,
        pagination=ExportPagination(
            paged=page.paged,
            per_page=page.per_page,
            total=page.total,
            max_pages=page.max_pages,
        ),
        post_type=post_type,
        team=team.strip(),
        status=status,
    )


@router.get("/entries.csv")
async def export_entries_csv(
    post_type: RecordType = Query(default=RecordType.ENTRY),
    team: str = Query(default=""),
    status: StatusFilter = Query(default=StatusFilter.ANY),
    session: AsyncSession = Depends(get_session),
):
    """All rows as a CSV attachment (UTF-8 with BOM)."""
    rows = await export_service.export_all(session, post_type, team, status)
    columns = export_service.compute_columns(rows)
    filename = export_service.csv_filename(post_type)
    return StreamingResponse(
        export_service.iter_csv(rows, columns),
        media_type=export_service.CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/preview", response_model=ExportPreviewResponse)
async def export_preview(
    post_type: RecordType = Query(default=RecordType.ENTRY),
    team: str = Query(default=""),
    status: StatusFilter = Query(default=StatusFilter.ANY),
    session: AsyncSession = Depends(get_session),
):
    """The first rows of the export; columns cover those rows only."""
    columns, rows, total = await export_service.preview(session, post_type, team, status)
    return ExportPreviewResponse(
        columns=columns,
        rows=rows,
        total=total,
        post_type=post_type,
        team=team.strip(),
        status=status,
    )


@router.get("/teams", response_model=ExportTeamsResponse)
async def export_teams(session: AsyncSession = Depends(get_session)):
    """Teams with at least one registered user, naturally sorted."""
    return ExportTeamsResponse(data=await distinct_teams(session))
