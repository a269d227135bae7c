"""
Dialect-aware SQL assembly for list / count / partial update.

Predicates are a closed set of small dataclasses. Column names and sort
expressions come only from the repository modules; caller-supplied values
are always bound as parameters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union

from ..dialects import Dialect
from ..errors import BadRequestError

DEFAULT_PER_PAGE = 20


# ---- predicates ----

@dataclass(frozen=True)
class Eq:
    column: str
    value: Any


@dataclass(frozen=True)
class BoolIs:
    """`column` is true / false. NULL counts as false."""
    column: str
    value: bool


@dataclass(frozen=True)
class IsNull:
    column: str
    negate: bool = False


@dataclass(frozen=True)
class In:
    column: str
    values: tuple


@dataclass(frozen=True)
class Search:
    """case-insensitive '%term%' match OR-ed across columns"""
    columns: tuple
    term: str


Predicate = Union[Eq, BoolIs, IsNull, In, Search]


def escape_like(term: str) -> str:
    """Make `%` and `_` in a search term literal (escape char `\\`)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---- sort / page ----

@dataclass(frozen=True)
class SortSpec:
    allowed: Mapping[str, str]
    tiebreak: str
    default: str = "created_at"

    def order_by(self, sort_by: str | None, sort_order: str | None) -> str:
        expr = self.allowed.get(sort_by or "") or self.allowed[self.default]
        direction = "ASC" if (sort_order or "").lower() == "asc" else "DESC"
        # NULL 一律排在最后（两种后端默认相反）；主键作为次序键，保证翻页稳定
        return f" ORDER BY {expr} {direction} NULLS LAST, {self.tiebreak} {direction}"


@dataclass(frozen=True)
class Page:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    def __post_init__(self):
        if self.page < 1:
            raise BadRequestError("page must be >= 1")
        if self.per_page < 1:
            raise BadRequestError("per_page must be > 0")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


# ---- builder ----

@dataclass
class QueryBuilder:
    dialect: Dialect
    params: list = field(default_factory=list)

    def bind(self, value: Any) -> str:
        self.params.append(self.dialect.encode(value))
        return self.dialect.placeholder(len(self.params))

    def bind_many(self, values: Iterable[Any]) -> str:
        return ", ".join(self.bind(v) for v in values)

    def render(self, p: Predicate) -> str:
        if isinstance(p, Eq):
            return f"{p.column} = {self.bind(p.value)}"
        if isinstance(p, BoolIs):
            if p.value:
                return f"{p.column} = {self.dialect.bool_literal(True)}"
            return f"({p.column} IS NULL OR {p.column} = {self.dialect.bool_literal(False)})"
        if isinstance(p, IsNull):
            return f"{p.column} IS {'NOT ' if p.negate else ''}NULL"
        if isinstance(p, In):
            if not p.values:
                return "1 = 0"
            return f"{p.column} IN ({self.bind_many(p.values)})"
        if isinstance(p, Search):
            pattern = f"%{escape_like(p.term)}%"
            parts = [self.dialect.contains(c, self.bind(pattern)) for c in p.columns]
            return "(" + " OR ".join(parts) + ")"
        raise TypeError(f"unknown predicate: {p!r}")

    def where(self, predicates: Sequence[Predicate]) -> str:
        clauses = [self.render(p) for p in predicates]
        return (" WHERE " + " AND ".join(clauses)) if clauses else ""


@dataclass(frozen=True)
class Statement:
    sql: str
    params: tuple


def build_list(
    dialect: Dialect,
    select_sql: str,
    count_sql: str,
    predicates: Sequence[Predicate],
    sort: SortSpec,
    sort_by: str | None,
    sort_order: str | None,
    page: Page,
) -> tuple[Statement, Statement]:
    """
    -> (数据查询, 计数查询)
    两条语句共用同一段 WHERE 与同一组参数前缀。
    """
    qb = QueryBuilder(dialect)
    where = qb.where(predicates)
    count = Statement(count_sql + where, tuple(qb.params))
    order = sort.order_by(sort_by, sort_order)
    limit = qb.bind(page.per_page)
    offset = qb.bind(page.offset)
    data = Statement(f"{select_sql}{where}{order} LIMIT {limit} OFFSET {offset}", tuple(qb.params))
    return data, count


def build_update(
    dialect: Dialect,
    table: str,
    fields: Mapping[str, Any],
    allowed: Iterable[str],
    key_column: str,
    key_value: Any,
    touch: Any,
) -> Statement:
    """
    部分更新：只 SET 传入且非 None 的字段，updated_at 总是追加。
    没有可更新字段时抛 BadRequestError("No fields to update")。
    """
    allowed = set(allowed)
    unknown = [k for k in fields if k not in allowed]
    if unknown:
        raise BadRequestError(f"Unknown fields: {', '.join(sorted(unknown))}")
    present = [(k, v) for k, v in fields.items() if v is not None]
    if not present:
        raise BadRequestError("No fields to update")
    qb = QueryBuilder(dialect)
    sets = [f"{k} = {qb.bind(v)}" for k, v in present]
    sets.append(f"updated_at = {qb.bind(touch)}")
    sql = f"UPDATE {table} SET {', '.join(sets)} WHERE {key_column} = {qb.bind(key_value)}"
    return Statement(sql, tuple(qb.params))
