import pytest

from asset_ledger.dialects import PostgresDialect, SqliteDialect
from asset_ledger.errors import BadRequestError
from asset_ledger.repository.query_builder import (
    BoolIs,
    Eq,
    In,
    IsNull,
    Page,
    QueryBuilder,
    Search,
    SortSpec,
    build_list,
    build_update,
    escape_like,
)

SORT = SortSpec(
    allowed={"name": "name", "created_at": "created_at", "location": "location"},
    tiebreak="id",
)


def _list(dialect, preds, sort_by=None, sort_order=None, page=Page(1, 20)):
    return build_list(dialect, "SELECT * FROM t", "SELECT COUNT(*) FROM t", preds, SORT, sort_by, sort_order, page)


def test_postgres_placeholders_are_numbered():
    data, count = _list(PostgresDialect(), [Eq("a", 1), Search(("x", "y"), "ab")], page=Page(2, 10))
    assert data.sql == (
        "SELECT * FROM t WHERE a = $1 AND (x ILIKE $2 ESCAPE '\\' OR y ILIKE $3 ESCAPE '\\')"
        " ORDER BY created_at DESC NULLS LAST, id DESC LIMIT $4 OFFSET $5"
    )
    assert data.params == (1, "%ab%", "%ab%", 10, 10)
    assert count.sql == "SELECT COUNT(*) FROM t WHERE a = $1 AND (x ILIKE $2 ESCAPE '\\' OR y ILIKE $3 ESCAPE '\\')"
    assert count.params == (1, "%ab%", "%ab%")


def test_sqlite_placeholders_are_positional():
    data, count = _list(SqliteDialect(), [Eq("a", "v"), BoolIs("flag", True)], page=Page(3, 5))
    assert data.sql == (
        "SELECT * FROM t WHERE a = ? AND flag = 1"
        " ORDER BY created_at DESC NULLS LAST, id DESC LIMIT ? OFFSET ?"
    )
    assert data.params == ("v", 5, 10)
    assert count.params == ("v",)


def test_search_term_is_bound_not_interpolated():
    evil = "x' OR 1=1 --"
    data, _ = _list(SqliteDialect(), [Search(("name",), evil)])
    assert evil not in data.sql
    assert data.params[0] == f"%{evil}%"


def test_false_filter_includes_null():
    qb = QueryBuilder(PostgresDialect())
    assert qb.render(BoolIs("is_disposed", False)) == "(is_disposed IS NULL OR is_disposed = FALSE)"
    qb = QueryBuilder(SqliteDialect())
    assert qb.render(BoolIs("is_disposed", False)) == "(is_disposed IS NULL OR is_disposed = 0)"


def test_is_null_and_in():
    qb = QueryBuilder(PostgresDialect())
    assert qb.render(IsNull("return_date")) == "return_date IS NULL"
    assert qb.render(IsNull("return_date", negate=True)) == "return_date IS NOT NULL"
    assert qb.render(In("id", ("a", "b"))) == "id IN ($1, $2)"
    assert qb.render(In("id", ())) == "1 = 0"


@pytest.mark.parametrize(
    "sort_by,sort_order,expected",
    [
        ("name", "asc", " ORDER BY name ASC NULLS LAST, id ASC"),
        ("name", "ASC", " ORDER BY name ASC NULLS LAST, id ASC"),
        ("name", "ascending", " ORDER BY name DESC NULLS LAST, id DESC"),
        ("location", None, " ORDER BY location DESC NULLS LAST, id DESC"),
        ("name; DROP TABLE t", "asc", " ORDER BY created_at ASC NULLS LAST, id ASC"),
        (None, None, " ORDER BY created_at DESC NULLS LAST, id DESC"),
    ],
)
def test_sort_allow_list(sort_by, sort_order, expected):
    assert SORT.order_by(sort_by, sort_order) == expected


@pytest.mark.parametrize("page,per_page", [(0, 20), (1, 0), (-1, 5)])
def test_page_validation(page, per_page):
    with pytest.raises(BadRequestError):
        Page(page, per_page)


def test_page_offset():
    assert Page(1, 20).offset == 0
    assert Page(4, 25).offset == 75


def test_update_only_sets_present_fields():
    stmt = build_update(
        PostgresDialect(), "items", {"name": "n", "remarks": None, "is_depreciation_target": True},
        ("name", "remarks", "is_depreciation_target"), "id", 7, "T",
    )
    assert stmt.sql == "UPDATE items SET name = $1, is_depreciation_target = $2, updated_at = $3 WHERE id = $4"
    assert stmt.params == ("n", True, "T", 7)


def test_update_encodes_lists_and_bools_for_sqlite():
    stmt = build_update(
        SqliteDialect(), "items", {"connection_names": ["HDMI", "USB"], "is_depreciation_target": False},
        ("connection_names", "is_depreciation_target"), "id", 1, "T",
    )
    assert stmt.params == ('["HDMI", "USB"]', 0, "T", 1)


def test_empty_update_is_rejected():
    with pytest.raises(BadRequestError, match="No fields to update"):
        build_update(SqliteDialect(), "items", {"name": None}, ("name",), "id", 1, "T")


def test_update_rejects_unknown_columns():
    with pytest.raises(BadRequestError):
        build_update(SqliteDialect(), "items", {"is_on_loan": True}, ("name",), "id", 1, "T")


def test_search_escapes_like_wildcards():
    assert escape_like("50%") == "50\\%"
    assert escape_like("a_b\\c") == "a\\_b\\\\c"
    data, _ = _list(PostgresDialect(), [Search(("name",), "50%")])
    assert data.params[0] == "%50\\%%"


def test_sqlite_search_folds_both_sides():
    qb = QueryBuilder(SqliteDialect())
    assert qb.render(Search(("name",), "é")) == "(unicode_lower(name) LIKE unicode_lower(?) ESCAPE '\\')"


def test_nulls_sort_last_in_both_directions():
    assert SORT.order_by("name", "asc").startswith(" ORDER BY name ASC NULLS LAST")
    assert SORT.order_by("name", "desc").startswith(" ORDER BY name DESC NULLS LAST")
