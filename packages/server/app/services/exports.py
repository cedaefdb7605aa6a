"""
Export service: turns records into flat rows and CSV.

Each record becomes one row: ``id``, ``title`` and the author's ``team``
first, then every public field flattened to scalar cells. Columns for a set
of rows are the three core columns followed by every other key in the order
it is first seen. Field values are classified by shape:

- geo objects expand into ``<field>_<subkey>`` columns
- link objects collapse to their cleaned URL
- lists of scalars are joined with ", "
- anything else structured becomes compact JSON

A field that cannot be decoded is exported as its raw text and logged; it
never fails the export.
"""

from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import MalformedField
from app.models.record import Record
from app.services.records import find_records
from app.services.teams import team_lookup, users_in_team
from lcp_shared.schemas.common import RecordType, StatusFilter

log = structlog.get_logger()

CORE_COLUMNS = ("id", "title", "team")

GEO_KEYS = (
    "address",
    "lat",
    "lng",
    "zoom",
    "place_id",
    "name",
    "street_number",
    "street_name",
    "city",
    "state",
    "post_code",
    "country",
    "country_short",
)

CSV_BOM = "\ufeff"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"

_TRAILING_SLASHES = re.compile(r"/+$")
_BROKEN_SCHEME = re.compile(r"^(https?):\\\\")


@dataclass
class ExportPage:
    rows: list[dict[str, Any]] = field(default_factory=list)
    paged: int = 1
    per_page: int = 1000
    total: int = 0
    max_pages: int = 0


# ---------------------------------------------------------------------------
# Value flattening
# ---------------------------------------------------------------------------


def clean_url(url: str) -> str:
    """Normalise a stored link URL: unescape ``\\/``, repair ``https:\\\\``,
    drop trailing slashes."""
    value = url.replace("\\/", "/").strip()
    value = _BROKEN_SCHEME.sub(r"\1://", value)
    return _TRAILING_SLASHES.sub("", value)


def compact_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_scalar(value: Any) -> bool:
    return not isinstance(value, (dict, list, tuple))


def is_geo(value: Any) -> bool:
    return isinstance(value, dict) and any(key in value for key in GEO_KEYS)


def is_link(value: Any) -> bool:
    return isinstance(value, dict) and "url" in value


def decode_json_text(name: str, value: str) -> Any:
    """Decode a JSON-looking string; other strings are returned unchanged.

    Raises MalformedField when the text looks like JSON but is not, or nests
    deeper than the decoder can follow.
    """
    text = value.strip()
    if not text or text[0] not in "{[":
        return value
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        raise MalformedField(name, value)


def flatten_value(name: str, value: Any) -> dict[str, Any]:
    """Flatten one field into its export cells, keyed by column name."""
    if isinstance(value, str):
        value = decode_json_text(name, value)

    if isinstance(value, dict):
        if is_geo(value):
            return {
                f"{name}_{key}": scalar_text(value[key])
                if _is_scalar(value[key])
                else compact_json(value[key])
                for key in GEO_KEYS
                if key in value
            }
        if is_link(value):
            return {name: clean_url(scalar_text(value.get("url")))}
        return {name: compact_json(value)}

    if isinstance(value, (list, tuple)):
        if all(_is_scalar(item) for item in value):
            return {name: ", ".join(scalar_text(item) for item in value)}
        return {name: compact_json(list(value))}

    if value is None:
        return {name: ""}
    return {name: value}


def _field_names(fields: dict[str, Any], order: Sequence[str]) -> list[str]:
    first = [name for name in order if name in fields]
    return first + [name for name in fields if name not in first]


def flatten_record(
    record: Record,
    team: str,
    field_order: Optional[Sequence[str]] = None,
) -> dict[str, Any]:
    """Build the export row for one record.

    ``field_order`` names fields to emit before the rest; the remaining
    fields follow in stored order.
    """
    row: dict[str, Any] = {"id": record.id, "title": record.title, "team": team or ""}
    fields = record.fields or {}

    for name in _field_names(fields, field_order or ()):
        if name.startswith("_") or name in CORE_COLUMNS:
            continue
        try:
            cells = flatten_value(name, fields[name])
        except MalformedField as exc:
            log.warning(
                "export.field_malformed",
                record_id=record.id,
                field=exc.field,
            )
            cells = {name: exc.raw}
        row.update(cells)

    return row


def compute_columns(rows: Iterable[dict[str, Any]]) -> list[str]:
    """Core columns, then every other key in first-seen order."""
    columns = list(CORE_COLUMNS)
    seen = set(columns)
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


# ---------------------------------------------------------------------------
# Paged export
# ---------------------------------------------------------------------------


def clamp_per_page(per_page: Optional[int]) -> int:
    settings = get_settings()
    if per_page is None:
        per_page = settings.export_default_per_page
    return min(settings.export_max_per_page, max(1, per_page))


async def export_page(
    session: AsyncSession,
    record_type: RecordType | str,
    team: Optional[str] = None,
    status: StatusFilter | str = StatusFilter.ANY,
    paged: int = 1,
    per_page: Optional[int] = None,
) -> ExportPage:
    """One page of export rows, ordered by record id.

    A non-empty ``team`` restricts rows to records whose author is on that
    team; a team nobody is on yields no rows.
    """
    settings = get_settings()
    record_type = RecordType(record_type)
    team = (team or "").strip()
    paged = max(1, paged)
    per_page = clamp_per_page(per_page)

    author_ids = await users_in_team(session, team) if team else None
    records, total, max_pages = await find_records(
        session, record_type, status, author_ids, page=paged, page_size=per_page
    )

    teams = await team_lookup(session, {r.author_id for r in records})
    order = settings.field_order.get(record_type.value, [])
    rows = [flatten_record(r, teams.get(r.author_id, ""), order) for r in records]

    log.info(
        "export.page",
        type=record_type.value,
        team=team,
        status=StatusFilter(status).value,
        paged=paged,
        per_page=per_page,
        rows=len(rows),
        total=total,
    )
    return ExportPage(rows=rows, paged=paged, per_page=per_page, total=total, max_pages=max_pages)


async def export_all(
    session: AsyncSession,
    record_type: RecordType | str,
    team: Optional[str] = None,
    status: StatusFilter | str = StatusFilter.ANY,
    per_page: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Every export row, fetched one page per query.

    Pages are read independently, so rows inserted or removed mid-export may
    be skipped or repeated.
    """
    rows: list[dict[str, Any]] = []
    paged = 1
    while True:
        page = await export_page(session, record_type, team, status, paged, per_page)
        rows.extend(page.rows)
        if paged >= page.max_pages:
            break
        paged += 1
    return rows


async def preview(
    session: AsyncSession,
    record_type: RecordType | str,
    team: Optional[str] = None,
    status: StatusFilter | str = StatusFilter.ANY,
) -> tuple[list[str], list[dict[str, Any]], int]:
    """First rows of the export with columns computed over those rows only.

    Returns (columns, rows, total).
    """
    page = await export_page(
        session, record_type, team, status, 1, get_settings().export_preview_rows
    )
    return compute_columns(page.rows), page.rows, page.total


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def iter_csv(
    rows: Iterable[dict[str, Any]], columns: Sequence[str]
) -> Iterator[str]:
    """Yield CSV text: a BOM-prefixed header line, then one line per row.

    Every cell is quoted and embedded quotes are doubled. Missing cells are
    empty.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    def _drain() -> str:
        text = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return text

    writer.writerow(columns)
    yield CSV_BOM + _drain()
    for row in rows:
        writer.writerow([scalar_text(row.get(column)) for column in columns])
        yield _drain()


def to_csv(rows: Sequence[dict[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    return "".join(iter_csv(rows, columns or compute_columns(rows)))


def csv_filename(
    record_type: RecordType | str,
    now: Optional[datetime] = None,
    prefix: Optional[str] = None,
) -> str:
    now = now or datetime.now()
    prefix = prefix or get_settings().export_file_prefix
    return f"{prefix}-{RecordType(record_type).value}-{now:%Y%m%d-%H%M}.csv"
