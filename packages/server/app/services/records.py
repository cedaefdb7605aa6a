"""
Record service: the record store query contract plus guarded CRUD.

Handles:
- ``find_records``: the paginated query used by list views and exports
- create / read / update / delete, each authorized by the access policy
- status pinning: records never reach a published state
- team-scoped list views with optional team filter and team ordering
"""

from __future__ import annotations

import math
import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import PermissionDenied, ValidationError
from app.core.policy import Action, decide
from app.models.record import Record
from app.models.user import User
from app.services.access import author_scope, authorize, log_denial
from app.services.teams import team_lookup, team_of, users_in_team
from lcp_shared.schemas.common import RecordStatus, RecordType, StatusFilter
from lcp_shared.schemas.records import (
    RecordCreate,
    RecordRead,
    RecordUpdate,
    is_publish_request,
)

log = structlog.get_logger()

# Statuses a create/update request may set directly. Trash is reached through
# delete, publish never.
SETTABLE_STATUSES = {RecordStatus.DRAFT, RecordStatus.PENDING, RecordStatus.PRIVATE}

LIST_ORDERINGS = ("id", "modified", "team")


# ---------------------------------------------------------------------------
# Query contract
# ---------------------------------------------------------------------------


def _apply_filters(
    stmt,
    record_type: RecordType | str,
    status: StatusFilter | str,
    author_ids: Optional[set[uuid.UUID]],
):
    stmt = stmt.where(Record.type == RecordType(record_type).value)
    status = StatusFilter(status)
    if status is StatusFilter.ANY:
        stmt = stmt.where(Record.status != RecordStatus.TRASH.value)
    else:
        stmt = stmt.where(Record.status == status.value)
    if author_ids is not None:
        stmt = stmt.where(Record.author_id.in_(author_ids))
    return stmt


def _total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


async def find_records(
    session: AsyncSession,
    record_type: RecordType | str,
    status: StatusFilter | str = StatusFilter.ANY,
    author_ids: Optional[set[uuid.UUID]] = None,
    page: int = 1,
    page_size: int = 1000,
) -> tuple[list[Record], int, int]:
    """Records of one type ordered by id ascending.

    ``author_ids=None`` means no author restriction; an empty set matches
    nothing. Returns (records, total, total_pages).
    """
    if author_ids is not None and not author_ids:
        return [], 0, 0

    page = max(1, page)
    page_size = max(1, page_size)

    count_stmt = _apply_filters(
        select(func.count()).select_from(Record), record_type, status, author_ids
    )
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = (
        _apply_filters(select(Record), record_type, status, author_ids)
        .order_by(Record.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total, _total_pages(total, page_size)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_status(actor: User, requested: Optional[str], current: str) -> str:
    """Turn a requested status into the stored one.

    A publish request is checked against the policy, which never grants it,
    and leaves the status unchanged without raising.
    """
    if requested is None:
        return current
    if is_publish_request(requested) and not decide(
        actor.role, actor.team or "", Action.PUBLISH
    ).allowed:
        log_denial(actor, Action.PUBLISH, reason="status_pinned")
        return current
    try:
        status = RecordStatus(requested)
    except ValueError:
        raise ValidationError(
            f"Unknown status '{requested}'.", kind="unknown_status", code="STATUS_UNKNOWN"
        )
    if status not in SETTABLE_STATUSES:
        raise ValidationError(
            f"Status '{requested}' cannot be set directly.",
            kind="unknown_status",
            code="STATUS_NOT_SETTABLE",
        )
    return status.value


async def _get_for(
    session: AsyncSession, actor: User, record_id: int, action: Action
) -> Record:
    """Load a record and authorize ``action`` on it.

    A missing record is reported exactly like a denial.
    """
    record = await session.get(Record, record_id)
    if record is None:
        log_denial(actor, action, record_id=record_id, reason="not_found")
        raise PermissionDenied()
    await authorize(session, actor, action, record)
    return record


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_record(session: AsyncSession, actor: User, body: RecordCreate) -> Record:
    await authorize(session, actor, Action.CREATE)
    record = Record(
        type=body.type.value,
        title=body.title,
        author_id=actor.id,
        status=_resolve_status(actor, body.status, RecordStatus.DRAFT.value),
        fields=dict(body.fields),
    )
    session.add(record)
    await session.flush()
    log.info(
        "record.created",
        record_id=record.id,
        type=record.type,
        author_id=str(actor.id),
        status=record.status,
    )
    return record


async def get_record(session: AsyncSession, actor: User, record_id: int) -> Record:
    return await _get_for(session, actor, record_id, Action.READ)


async def update_record(
    session: AsyncSession, actor: User, record_id: int, body: RecordUpdate
) -> Record:
    record = await _get_for(session, actor, record_id, Action.EDIT)
    data = body.model_dump(exclude_unset=True)

    if data.get("title") is not None:
        record.title = data["title"]
    if "status" in data:
        record.status = _resolve_status(actor, data["status"], record.status)
    if data.get("fields") is not None:
        # Replace wholesale so the JSON column is flagged dirty.
        record.fields = dict(data["fields"])

    session.add(record)
    await session.flush()
    log.info("record.updated", record_id=record.id, actor_id=str(actor.id))
    return record


async def delete_record(session: AsyncSession, actor: User, record_id: int) -> bool:
    """Move a record to trash; a record already in trash is removed.

    Returns True when the record was removed permanently.
    """
    record = await _get_for(session, actor, record_id, Action.DELETE)
    if record.status != RecordStatus.TRASH.value:
        record.status = RecordStatus.TRASH.value
        session.add(record)
        await session.flush()
        log.info("record.trashed", record_id=record_id, actor_id=str(actor.id))
        return False

    await session.delete(record)
    await session.flush()
    log.info("record.deleted", record_id=record_id, actor_id=str(actor.id))
    return True


async def list_records(
    session: AsyncSession,
    actor: User,
    record_type: RecordType | str,
    *,
    status: StatusFilter | str = StatusFilter.ANY,
    team: Optional[str] = None,
    order_by: str = "id",
    page: int = 1,
    per_page: int = 25,
) -> tuple[Sequence[Record], int, int]:
    """List view scoped to what ``actor`` may see.

    ``team`` narrows further to authors on that team (an unknown team yields
    nothing). ``order_by`` is ``id`` (ascending), ``modified`` (most recent
    first) or ``team`` (author's team, then id).
    """
    if order_by not in LIST_ORDERINGS:
        raise ValidationError(
            f"Cannot order by '{order_by}'.", kind="unknown_ordering", code="ORDERING_UNKNOWN"
        )

    author_ids = await author_scope(session, actor)
    if team:
        team_ids = await users_in_team(session, team)
        author_ids = team_ids if author_ids is None else author_ids & team_ids

    if author_ids is not None and not author_ids:
        return [], 0, 0

    count_stmt = _apply_filters(
        select(func.count()).select_from(Record), record_type, status, author_ids
    )
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = _apply_filters(select(Record), record_type, status, author_ids)
    if order_by == "modified":
        stmt = stmt.order_by(Record.updated_at.desc(), Record.id.desc())
    elif order_by == "team":
        stmt = stmt.outerjoin(User, User.id == Record.author_id).order_by(
            User.team.asc(), Record.id.asc()
        )
    else:
        stmt = stmt.order_by(Record.id.asc())

    stmt = stmt.offset((page - 1) * per_page).limit(per_page)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total, _total_pages(total, per_page)


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def to_read(record: Record, team: str) -> RecordRead:
    return RecordRead(
        id=record.id,
        type=record.type,
        title=record.title,
        author_id=record.author_id,
        team=team or "",
        status=record.status,
        fields=record.fields or {},
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


async def enrich_records(session: AsyncSession, records: Sequence[Record]) -> list[RecordRead]:
    """Attach each author's current team."""
    teams = await team_lookup(session, {r.author_id for r in records})
    return [to_read(r, teams.get(r.author_id, "")) for r in records]


async def enrich_record(session: AsyncSession, record: Record) -> RecordRead:
    return to_read(record, await team_of(session, record.author_id))
