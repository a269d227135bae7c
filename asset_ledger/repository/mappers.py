"""
Row -> entity mapping.

Rows arrive as plain dicts from either backend. Booleans may be native,
0/1 integers or text; timestamps may be aware datetimes, naive datetimes
or ISO text; multi-valued columns are JSON arrays stored as TEXT. Every
entity field has an explicit source column and default below.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Any, Mapping, Optional

from ..errors import InternalServerError
from ..models import (
    CableColor,
    Container,
    ContainerWithCount,
    Item,
    Loan,
    LoanWithItem,
)

logger = logging.getLogger(__name__)

_TRUE_TEXT = {"1", "true", "t", "yes", "y", "on"}
_FALSE_TEXT = {"0", "false", "f", "no", "n", "off", ""}


def to_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        s = value.strip().lower()
        if s in _TRUE_TEXT:
            return True
        # 无法解析的文本按 false 处理
        return False
    return False


def to_utc(value: Any) -> Optional[dt.datetime]:
    """Naive values are UTC; aware values are converted to UTC."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        d = value
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            d = dt.datetime.fromisoformat(s)
        except ValueError:
            raise InternalServerError(f"Unparseable timestamp: {value!r}")
    elif isinstance(value, dt.date):
        d = dt.datetime(value.year, value.month, value.day)
    else:
        raise InternalServerError(f"Unsupported timestamp value: {value!r}")
    if d.tzinfo is None:
        return d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)


def to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def to_string_list(value: Any, column: str, row_id: Any = None, strict: bool = True) -> Optional[list[str]]:
    """
    JSON 文本 -> 有序字符串列表。
    strict=True 时损坏的 JSON 抛 InternalServerError；否则记 WARNING 并视为缺省(None)。
    """
    if value is None:
        return None
    if isinstance(value, list):
        return [str(v) for v in value]
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError) as e:
        return _bad_json(column, row_id, strict, str(e))
    if decoded is None:
        return None
    if not isinstance(decoded, list):
        return _bad_json(column, row_id, strict, "not a JSON array")
    return [str(v) for v in decoded]


def _bad_json(column: str, row_id: Any, strict: bool, reason: str) -> None:
    if strict:
        raise InternalServerError(f"Malformed JSON in column '{column}' (row {row_id}): {reason}")
    logger.warning("malformed JSON in %s for row %s treated as absent: %s", column, row_id, reason)
    return None


def item_from_row(row: Mapping[str, Any], strict_json: bool = True) -> Item:
    rid = row.get("id")
    return Item(
        id=int(rid),
        name=row.get("name") or "",
        label_id=row.get("label_id") or "",
        model_number=row.get("model_number"),
        remarks=row.get("remarks"),
        purchase_year=to_int(row.get("purchase_year")),
        purchase_amount=to_float(row.get("purchase_amount")),
        durability_years=to_int(row.get("durability_years")),
        is_depreciation_target=to_bool(row.get("is_depreciation_target")),
        connection_names=to_string_list(row.get("connection_names"), "connection_names", rid, strict_json),
        cable_color_pattern=to_string_list(row.get("cable_color_pattern"), "cable_color_pattern", rid, strict_json),
        storage_location=row.get("storage_location"),
        container_id=row.get("container_id"),
        storage_type=row.get("storage_type") or "location",
        is_on_loan=to_bool(row.get("is_on_loan")),
        qr_code_type=row.get("qr_code_type"),
        is_disposed=to_bool(row.get("is_disposed")),
        image_url=row.get("image_url"),
        created_at=to_utc(row.get("created_at")),
        updated_at=to_utc(row.get("updated_at")),
    )


def _container_fields(row: Mapping[str, Any]) -> dict:
    return dict(
        id=row.get("id") or "",
        name=row.get("name") or "",
        location=row.get("location") or "",
        description=row.get("description"),
        image_url=row.get("image_url"),
        is_disposed=to_bool(row.get("is_disposed")),
        created_at=to_utc(row.get("created_at")),
        updated_at=to_utc(row.get("updated_at")),
    )


def container_from_row(row: Mapping[str, Any]) -> Container:
    return Container(**_container_fields(row))


def container_with_count_from_row(row: Mapping[str, Any]) -> ContainerWithCount:
    return ContainerWithCount(**_container_fields(row), item_count=int(row.get("item_count") or 0))


def _loan_fields(row: Mapping[str, Any]) -> dict:
    return dict(
        id=int(row.get("id")),
        item_id=int(row.get("item_id")),
        student_number=row.get("student_number") or "",
        student_name=row.get("student_name") or "",
        organization=row.get("organization"),
        loan_date=to_utc(row.get("loan_date")),
        return_date=to_utc(row.get("return_date")),
        remarks=row.get("remarks"),
        created_at=to_utc(row.get("created_at")),
        updated_at=to_utc(row.get("updated_at")),
    )


def loan_from_row(row: Mapping[str, Any]) -> Loan:
    return Loan(**_loan_fields(row))


def loan_with_item_from_row(row: Mapping[str, Any]) -> LoanWithItem:
    return LoanWithItem(
        **_loan_fields(row),
        item_name=row.get("item_name"),
        item_label_id=row.get("item_label_id"),
    )


def cable_color_from_row(row: Mapping[str, Any]) -> CableColor:
    return CableColor(
        id=int(row.get("id")),
        name=row.get("name") or "",
        hex_code=row.get("hex_code"),
        description=row.get("description"),
        created_at=to_utc(row.get("created_at")),
        updated_at=to_utc(row.get("updated_at")),
    )
