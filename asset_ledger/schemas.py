"""
Request bodies and list filters (pydantic v2).

Shape/length/range validation lives here; cross-row rules (label taken,
item on loan, container occupied) are enforced by the services.
"""
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, Field

StorageType = Literal["location", "container"]
QrCodeType = Literal["qr", "barcode", "none"]


# ---- items ----

class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    label_id: Optional[str] = Field(None, max_length=50)
    model_number: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None
    purchase_year: Optional[int] = Field(None, ge=1900, le=2100)
    purchase_amount: Optional[float] = Field(None, ge=0)
    durability_years: Optional[int] = Field(None, ge=1, le=100)
    is_depreciation_target: Optional[bool] = None
    connection_names: Optional[list[str]] = None
    cable_color_pattern: Optional[list[str]] = None
    storage_location: Optional[str] = None
    container_id: Optional[str] = None
    storage_type: Optional[StorageType] = None
    qr_code_type: Optional[QrCodeType] = None
    image_url: Optional[str] = None


class ItemUpdate(BaseModel):
    """is_on_loan / is_disposed are owned by loan and dispose operations."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    label_id: Optional[str] = Field(None, max_length=50)
    model_number: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None
    purchase_year: Optional[int] = Field(None, ge=1900, le=2100)
    purchase_amount: Optional[float] = Field(None, ge=0)
    durability_years: Optional[int] = Field(None, ge=1, le=100)
    is_depreciation_target: Optional[bool] = None
    connection_names: Optional[list[str]] = None
    cable_color_pattern: Optional[list[str]] = None
    storage_location: Optional[str] = None
    container_id: Optional[str] = None
    storage_type: Optional[StorageType] = None
    qr_code_type: Optional[QrCodeType] = None
    image_url: Optional[str] = None


class ItemFilters(BaseModel):
    search: Optional[str] = None
    is_on_loan: Optional[bool] = None
    is_disposed: Optional[bool] = None
    container_id: Optional[str] = None
    storage_type: Optional[StorageType] = None


# ---- containers ----

class ContainerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    location: str = Field(..., min_length=1, max_length=100)
    image_url: Optional[str] = None


class ContainerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = None
    is_disposed: Optional[bool] = None


class ContainerFilters(BaseModel):
    search: Optional[str] = None
    location: Optional[str] = None
    is_disposed: Optional[bool] = None
    include_disposed: bool = False


class BulkIds(BaseModel):
    ids: list[str]


class BulkDisposed(BaseModel):
    ids: list[str]
    is_disposed: bool


# ---- loans ----

class LoanCreate(BaseModel):
    item_id: int
    student_number: str = Field(..., min_length=1, max_length=20)
    student_name: str = Field(..., min_length=1, max_length=100)
    organization: Optional[str] = Field(None, max_length=255)
    remarks: Optional[str] = None


class LoanReturn(BaseModel):
    return_date: Optional[dt.datetime] = None
    remarks: Optional[str] = None


class LoanFilters(BaseModel):
    item_id: Optional[int] = None
    student_number: Optional[str] = None
    active_only: Optional[bool] = None
    search: Optional[str] = None


# ---- cable colors ----

HEX_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class CableColorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    hex_code: Optional[str] = None
    description: Optional[str] = None


class CableColorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    hex_code: Optional[str] = None
    description: Optional[str] = None


# ---- labels ----

RecordType = Literal["qr", "barcode", "nothing"]


class GenerateLabels(BaseModel):
    quantity: int = Field(..., ge=1, le=1000)
    record_type: RecordType = "qr"
