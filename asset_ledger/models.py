from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Item:
    id: int
    name: str
    label_id: str
    model_number: Optional[str] = None
    remarks: Optional[str] = None
    purchase_year: Optional[int] = None
    purchase_amount: Optional[float] = None
    durability_years: Optional[int] = None
    is_depreciation_target: bool = False
    connection_names: Optional[list[str]] = None
    cable_color_pattern: Optional[list[str]] = None
    storage_location: Optional[str] = None
    container_id: Optional[str] = None
    storage_type: str = "location"
    is_on_loan: bool = False
    qr_code_type: Optional[str] = None
    is_disposed: bool = False
    image_url: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


@dataclass
class Container:
    id: str
    name: str
    location: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_disposed: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


@dataclass
class ContainerWithCount(Container):
    item_count: int = 0


@dataclass
class Loan:
    id: int
    item_id: int
    student_number: str
    student_name: str
    organization: Optional[str] = None
    loan_date: Optional[dt.datetime] = None
    return_date: Optional[dt.datetime] = None
    remarks: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    @property
    def is_active(self) -> bool:
        return self.return_date is None


@dataclass
class LoanWithItem(Loan):
    item_name: Optional[str] = None
    item_label_id: Optional[str] = None


@dataclass
class CableColor:
    id: int
    name: str
    hex_code: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


@dataclass
class PageResult:
    """一页结果 + 总数（同一过滤条件下的 COUNT(*)）"""
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 20

    @property
    def pages(self) -> int:
        return (self.total + self.per_page - 1) // self.per_page if self.per_page else 0

    def to_dict(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "pages": self.pages,
        }
