from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body

from ..schemas import LoanCreate, LoanFilters, LoanReturn
from ..services import loan_svc

router = APIRouter(prefix="/api/v1/loans", tags=["loans"])


@router.post("", status_code=201)
async def api_loan_create(body: LoanCreate):
    return await loan_svc.create_loan(body)


@router.get("")
async def api_loan_list(
    item_id: Optional[int] = None,
    student_number: Optional[str] = None,
    active_only: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
):
    filters = LoanFilters(
        item_id=item_id, student_number=student_number, active_only=active_only, search=search
    )
    result = await loan_svc.list_loans(filters, sort_by, sort_order, page, per_page)
    return result.to_dict()


@router.get("/{loan_id}")
async def api_loan_get(loan_id: int):
    return await loan_svc.get_loan(loan_id)


@router.post("/{loan_id}/return")
async def api_loan_return(loan_id: int, body: Optional[LoanReturn] = Body(None)):
    body = body or LoanReturn()
    return await loan_svc.return_loan(loan_id, body.return_date, body.remarks)
