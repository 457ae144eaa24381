"""
优惠码接口
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user_id, get_discount_ledger
from app.models.discount import (
    DiscountApplyRequest,
    DiscountCode,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountStats,
    DiscountStatus,
    DiscountValidation
)
from app.services.discount_ledger import DiscountLedger

router = APIRouter(prefix="/discounts", tags=["优惠码"])


@router.post("/validate", response_model=DiscountValidation)
async def validate_discount(
    request: DiscountApplyRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    ledger: DiscountLedger = Depends(get_discount_ledger)
):
    """结算页校验优惠码，校验失败也返回200，原因见 reason 字段"""
    return await ledger.validate(request.code, request.user_id or user_id, request.order_value)


@router.get("", response_model=List[DiscountCode])
async def list_public_discounts(ledger: DiscountLedger = Depends(get_discount_ledger)):
    """当前可用的优惠码"""
    return await ledger.list_public_discounts()


@router.get("/admin/all", response_model=List[DiscountCode])
async def list_all_discounts(
    status_filter: Optional[DiscountStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    ledger: DiscountLedger = Depends(get_discount_ledger)
):
    return await ledger.list_discounts(status_filter, search, limit, offset)


@router.post("/create", response_model=DiscountCode, status_code=status.HTTP_201_CREATED)
async def create_discount(
    data: DiscountCodeCreate,
    ledger: DiscountLedger = Depends(get_discount_ledger)
):
    return await ledger.create_discount(data)


@router.get("/{discount_id}", response_model=DiscountCode)
async def get_discount(discount_id: str, ledger: DiscountLedger = Depends(get_discount_ledger)):
    return await ledger.get_discount(discount_id)


@router.put("/{discount_id}", response_model=DiscountCode)
async def update_discount(
    discount_id: str,
    data: DiscountCodeUpdate,
    ledger: DiscountLedger = Depends(get_discount_ledger)
):
    return await ledger.update_discount(discount_id, data)


@router.delete("/{discount_id}")
async def delete_discount(discount_id: str, ledger: DiscountLedger = Depends(get_discount_ledger)):
    await ledger.delete_discount(discount_id)
    return {"success": True, "message": "优惠码已删除"}


@router.get("/{discount_id}/stats", response_model=DiscountStats)
async def get_discount_stats(discount_id: str, ledger: DiscountLedger = Depends(get_discount_ledger)):
    return await ledger.get_discount_stats(discount_id)
