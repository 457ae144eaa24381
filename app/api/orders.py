"""
订单接口
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_checkout_service, get_current_user_id, get_order_state_machine
from app.models.order import (
    Order,
    OrderCreate,
    OrderRejectRequest,
    OrderStatistics,
    OrderStatus,
    OrderStatusUpdate
)
from app.services.checkout_service import CheckoutService
from app.services.order_state_machine import OrderStateMachine

router = APIRouter(prefix="/orders", tags=["订单"])


@router.post("", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    checkout: CheckoutService = Depends(get_checkout_service)
):
    """下单，订单进入待确认状态"""
    return await checkout.create_order(user_id, order_data)


@router.get("", response_model=List[Order])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    """后台订单列表"""
    return await state_machine.list_orders(status_filter, limit, offset)


@router.get("/myorders", response_model=List[Order])
async def list_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: Optional[str] = Depends(get_current_user_id),
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="需要登录")
    return await state_machine.list_user_orders(user_id, status_filter, limit, offset)


@router.get("/stats", response_model=OrderStatistics)
async def get_order_statistics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    return await state_machine.get_order_statistics(start_date, end_date)


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    return await state_machine.get_order(order_id)


@router.put("/{order_id}/confirm", response_model=Order)
async def confirm_order(
    order_id: str,
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    """确认订单，扣减库存并兑换优惠码"""
    return await state_machine.confirm(order_id)


@router.put("/{order_id}/reject", response_model=Order)
async def reject_order(
    order_id: str,
    request: OrderRejectRequest,
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    return await state_machine.reject(order_id, request.reason)


@router.put("/{order_id}/status", response_model=Order)
async def advance_order(
    order_id: str,
    request: OrderStatusUpdate,
    state_machine: OrderStateMachine = Depends(get_order_state_machine)
):
    """推进订单到配送中或已送达"""
    return await state_machine.advance(order_id, request.status)
