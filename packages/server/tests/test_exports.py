"""
Tests for the export pipeline: value flattening, column order, CSV output,
paging, and the /export/v1 endpoints.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime

import pytest
from httpx import AsyncClient
from structlog.testing import capture_logs

from app.core.config import get_settings
from app.core.errors import MalformedField
from app.models.record import Record
from app.services import exports


def _record(fields: dict, id: int = 1, title: str = "T") -> Record:
    return Record(id=id, type="entry", title=title, author_id=None, fields=fields)


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

class TestFlattenValue:
    def test_scalars_pass_through(self):
        assert exports.flatten_value("n", 42) == {"n": 42}
        assert exports.flatten_value("s", "plain") == {"s": "plain"}
        assert exports.flatten_value("b", True) == {"b": True}
        assert exports.flatten_value("x", None) == {"x": ""}

    def test_geo_expands_present_keys_only(self):
        cells = exports.flatten_value(
            "field", {"address": "X", "lat": "59.3", "lng": "18.0"}
        )
        assert cells == {"field_address": "X", "field_lat": "59.3", "field_lng": "18.0"}
        assert "field_zoom" not in cells

    def test_geo_subkeys_in_canonical_order(self):
        cells = exports.flatten_value(
            "loc", {"country": "SE", "zoom": 12, "address": "Gamla stan", "extra": "ignored"}
        )
        assert list(cells) == ["loc_address", "loc_zoom", "loc_country"]
        assert cells["loc_zoom"] == "12"

    def test_geo_nested_subvalue_is_json(self):
        cells = exports.flatten_value("loc", {"lat": 1.5, "name": {"de": "Köln"}})
        assert cells == {"loc_lat": "1.5", "loc_name": '{"de":"Köln"}'}

    def test_geo_from_json_string(self):
        cells = exports.flatten_value("loc", '{"address": "Via Roma", "lat": 41.9}')
        assert cells == {"loc_address": "Via Roma", "loc_lat": "41.9"}

    def test_link_object_becomes_clean_url(self):
        value = {"url": "https:\\/\\/example.org\\/page\\/", "title": "Page", "target": ""}
        assert exports.flatten_value("site", value) == {"site": "https://example.org/page"}

    def test_link_json_string(self):
        raw = '{"url":"https:\\/\\/example.org\\/","title":"Home"}'
        assert exports.flatten_value("site", raw) == {"site": "https://example.org"}

    def test_scalar_list_joined(self):
        assert exports.flatten_value("tags", ["a", "b", 3]) == {"tags": "a, b, 3"}
        assert exports.flatten_value("tags", '["x", "y"]') == {"tags": "x, y"}
        assert exports.flatten_value("tags", []) == {"tags": ""}

    def test_list_of_objects_is_compact_json(self):
        value = [{"name": "Åre"}, {"name": "Łódź"}]
        assert exports.flatten_value("partners", value) == {
            "partners": '[{"name":"Åre"},{"name":"Łódź"}]'
        }

    def test_other_object_is_compact_json(self):
        assert exports.flatten_value("meta", {"k": [1, 2]}) == {"meta": '{"k":[1,2]}'}

    def test_malformed_json_raises(self):
        with pytest.raises(MalformedField) as exc_info:
            exports.flatten_value("broken", "{not json")
        assert exc_info.value.field == "broken"
        assert exc_info.value.raw == "{not json"


class TestCleanUrl:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("https:\\/\\/example.org\\/", "https://example.org"),
            ("https:\\\\example.org/path//", "https://example.org/path"),
            ("http:\\\\example.org", "http://example.org"),
            ("  https://example.org/a  ", "https://example.org/a"),
            ("", ""),
        ],
    )
    def test_clean(self, raw, expected):
        assert exports.clean_url(raw) == expected


class TestFlattenRecord:
    def test_core_columns_first(self):
        row = exports.flatten_record(_record({"b": 1, "a": 2}, id=7, title="Hello"), "rome")
        assert list(row) == ["id", "title", "team", "b", "a"]
        assert row["id"] == 7
        assert row["team"] == "rome"

    def test_team_present_even_when_empty(self):
        assert exports.flatten_record(_record({}), "")["team"] == ""

    def test_internal_and_reserved_fields_skipped(self):
        row = exports.flatten_record(
            _record({"_acf_key": "x", "team": "spoof", "id": 99, "kept": "y"}), "rome"
        )
        assert row == {"id": 1, "title": "T", "team": "rome", "kept": "y"}

    def test_malformed_field_recovered(self):
        with capture_logs() as logs:
            row = exports.flatten_record(
                _record({"bad": "[1, 2", "good": "ok"}, id=3), "rome"
            )
        assert row["bad"] == "[1, 2"
        assert row["good"] == "ok"
        assert any(
            e["event"] == "export.field_malformed" and e["field"] == "bad" and e["record_id"] == 3
            for e in logs
        )

    def test_deeply_nested_field_recovered(self):
        nested = "[" * 100000
        with capture_logs() as logs:
            row = exports.flatten_record(_record({"bad": nested, "ok": "x"}, id=4), "rome")
        assert row["bad"] == nested
        assert row["ok"] == "x"
        assert any(e["event"] == "export.field_malformed" and e["field"] == "bad" for e in logs)

    def test_field_order(self):
        row = exports.flatten_record(
            _record({"c": 1, "b": 2, "a": 3}), "", field_order=["a", "missing", "b"]
        )
        assert list(row)[3:] == ["a", "b", "c"]


class TestComputeColumns:
    def test_first_seen_order(self):
        rows = [
            {"id": 1, "title": "a", "team": "", "zeta": 1},
            {"id": 2, "title": "b", "team": "", "alpha": 1, "zeta": 2},
            {"id": 3, "title": "c", "team": "", "mid": 1},
        ]
        assert exports.compute_columns(rows) == ["id", "title", "team", "zeta", "alpha", "mid"]

    def test_core_columns_without_rows(self):
        assert exports.compute_columns([]) == ["id", "title", "team"]

    def test_stable(self):
        rows = [{"id": 1, "title": "", "team": "", "b": 1, "a": 1}]
        assert exports.compute_columns(rows) == exports.compute_columns(list(rows))


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

class TestCSV:
    ROWS = [
        {"id": 1, "title": 'Say "hi"', "team": "rome", "notes": "line1\nline2"},
        {"id": 2, "title": "Ünïcode, commas", "team": "", "extra": True},
    ]

    def test_format(self):
        text = exports.to_csv(self.ROWS)
        assert text.startswith("\ufeff")
        lines = text[1:].split("\n")
        assert lines[0] == '"id","title","team","notes","extra"'
        assert lines[1].startswith('"1","Say ""hi""","rome","line1')
        assert text.endswith("\n")
        assert "\r" not in text

    def test_round_trip(self):
        text = exports.to_csv(self.ROWS)
        assert text.encode("utf-8").startswith(b"\xef\xbb\xbf")
        reader = csv.reader(io.StringIO(text.encode("utf-8").decode("utf-8-sig"), newline=""))
        header, *body = list(reader)
        assert header == ["id", "title", "team", "notes", "extra"]
        assert body == [
            ["1", 'Say "hi"', "rome", "line1\nline2", ""],
            ["2", "Ünïcode, commas", "", "", "true"],
        ]

    def test_streams_one_chunk_per_row(self):
        chunks = list(exports.iter_csv(self.ROWS, exports.compute_columns(self.ROWS)))
        assert len(chunks) == 3

    def test_filename(self):
        name = exports.csv_filename("entry", now=datetime(2025, 10, 17, 9, 5))
        assert name == "startup-lcp-entry-20251017-0905.csv"
        assert exports.csv_filename("city", datetime(2025, 1, 2, 23, 59), "x").endswith(
            "x-city-20250102-2359.csv"
        )


# ---------------------------------------------------------------------------
# Paging against the store
# ---------------------------------------------------------------------------

class TestExportPage:
    def test_clamp_per_page(self):
        assert exports.clamp_per_page(None) == 1000
        assert exports.clamp_per_page(0) == 1
        assert exports.clamp_per_page(5000) == 2000
        assert exports.clamp_per_page(50) == 50

    async def test_team_filter_scenario(self, session, make_user, make_record):
        a = await make_user(team="dortmund")
        b = await make_user(team="rome")
        ra = await make_record(a, title="A entry", fields={"budget": 10})
        await make_record(b, title="B entry", fields={"budget": 20})

        page = await exports.export_page(session, "entry", team="dortmund")
        assert page.rows == [{"id": ra.id, "title": "A entry", "team": "dortmund", "budget": 10}]
        assert page.total == 1
        assert exports.compute_columns(page.rows)[:3] == ["id", "title", "team"]

    async def test_unknown_team_yields_nothing(self, session, make_user, make_record):
        await make_record(await make_user(team="rome"))
        page = await exports.export_page(session, "entry", team="atlantis")
        assert page.rows == []
        assert page.total == 0
        assert page.max_pages == 0

    async def test_no_team_filter_includes_unassigned_authors(self, session, make_user, make_record):
        await make_record(await make_user(team=None), title="orphan")
        page = await exports.export_page(session, "entry")
        assert [r["team"] for r in page.rows] == [""]

    async def test_deeply_nested_field_does_not_fail_page(self, session, make_user, make_record):
        author = await make_user(team="rome")
        bad = await make_record(author, title="bad", fields={"notes": "[" * 100000})
        good = await make_record(author, title="good", fields={"notes": "fine"})
        page = await exports.export_page(session, "entry")
        assert [r["id"] for r in page.rows] == [bad.id, good.id]
        assert page.rows[1]["notes"] == "fine"

    async def test_pagination(self, session, make_user, make_record):
        author = await make_user(team="rome")
        made = [await make_record(author, title=str(i)) for i in range(5)]
        page = await exports.export_page(session, "entry", paged=3, per_page=2)
        assert [r["id"] for r in page.rows] == [made[4].id]
        assert (page.paged, page.per_page, page.total, page.max_pages) == (3, 2, 5, 3)

    async def test_export_all_reads_every_page(self, session, make_user, make_record):
        author = await make_user(team="rome")
        made = [await make_record(author, title=str(i)) for i in range(5)]
        rows = await exports.export_all(session, "entry", per_page=2)
        assert [r["id"] for r in rows] == [m.id for m in made]

    async def test_field_order_setting(self, session, make_user, make_record, monkeypatch):
        monkeypatch.setattr(get_settings(), "field_order", {"entry": ["z"]})
        await make_record(await make_user(team="rome"), fields={"a": 1, "z": 2})
        page = await exports.export_page(session, "entry")
        assert list(page.rows[0])[3:] == ["z", "a"]

    async def test_preview_columns_cover_previewed_rows_only(
        self, session, make_user, make_record
    ):
        author = await make_user(team="rome")
        for i in range(20):
            await make_record(author, title=str(i), fields={"common": i})
        await make_record(author, title="late", fields={"common": 0, "late_field": 1})

        columns, rows, total = await exports.preview(session, "entry")
        assert len(rows) == 20
        assert total == 21
        assert columns == ["id", "title", "team", "common"]

        full = exports.compute_columns(await exports.export_all(session, "entry"))
        assert full == ["id", "title", "team", "common", "late_field"]


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

class TestExportEndpoints:
    @pytest.mark.parametrize(
        "path",
        ["/export/v1/entries", "/export/v1/entries.csv", "/export/v1/preview", "/export/v1/teams"],
    )
    async def test_contributor_forbidden(self, client: AsyncClient, make_user, auth_headers, path):
        resp = await client.get(path, headers=auth_headers(await make_user(team="rome")))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "PERMISSION_DENIED"

    async def test_entries_json(self, client: AsyncClient, make_user, make_record, auth_headers):
        admin = await make_user(role="administrator")
        author = await make_user(team="dortmund")
        record = await make_record(
            author, title="Bike lanes", fields={"loc": {"address": "X", "lat": "59.3", "lng": "18.0"}}
        )
        await make_record(await make_user(team="rome"))

        resp = await client.get(
            "/export/v1/entries",
            params={"post_type": "entry", "team": "dortmund"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["rows"] == [
            {
                "id": record.id,
                "title": "Bike lanes",
                "team": "dortmund",
                "loc_address": "X",
                "loc_lat": "59.3",
                "loc_lng": "18.0",
            }
        ]
        assert body["pagination"] == {"paged": 1, "per_page": 1000, "total": 1, "max_pages": 1}
        assert body["post_type"] == "entry"
        assert body["team"] == "dortmund"
        assert body["status"] == "any"

    async def test_per_page_bounds(self, client: AsyncClient, make_user, auth_headers):
        admin = await make_user(role="administrator")
        resp = await client.get(
            "/export/v1/entries", params={"per_page": 2001}, headers=auth_headers(admin)
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_FAILED"

    async def test_csv_download(self, client: AsyncClient, make_user, make_record, auth_headers):
        admin = await make_user(role="administrator")
        await make_record(await make_user(team="rome"), title="Piazza", fields={"tags": ["a", "b"]})

        resp = await client.get(
            "/export/v1/entries.csv", params={"post_type": "entry"}, headers=auth_headers(admin)
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/csv; charset=utf-8"
        disposition = resp.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="startup-lcp-entry-')
        assert disposition.endswith('.csv"')
        assert resp.content.startswith(b"\xef\xbb\xbf")

        rows = list(csv.reader(io.StringIO(resp.content.decode("utf-8-sig"), newline="")))
        assert rows[0] == ["id", "title", "team", "tags"]
        assert rows[1][1:] == ["Piazza", "rome", "a, b"]

    async def test_preview(self, client: AsyncClient, make_user, make_record, auth_headers):
        admin = await make_user(role="administrator")
        author = await make_user(team="rome")
        for i in range(25):
            await make_record(author, title=str(i))

        resp = await client.get("/export/v1/preview", headers=auth_headers(admin))
        body = resp.json()
        assert len(body["rows"]) == 20
        assert body["total"] == 25
        assert body["columns"] == ["id", "title", "team"]

    async def test_teams(self, client: AsyncClient, make_user, auth_headers):
        admin = await make_user(role="administrator")
        await make_user(team="rome")
        await make_user(team="dortmund")
        await make_user(team="rome")
        resp = await client.get("/export/v1/teams", headers=auth_headers(admin))
        assert resp.json() == {"data": ["dortmund", "rome"]}
