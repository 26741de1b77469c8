"""
  Order API Routes (authenticated)

  POST /api/orders accepts an optional Idempotency-Key header. Repeating a
  request with the same key returns the order created the first time.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status

from nicecommerce.api.dependencies import get_order_service
from nicecommerce.api.schemas.order import (
    CreateOrderRequest,
    OrderDTO,
    OrderListResponse,
    PaymentResultDTO,
)
from nicecommerce.api.security import get_account_principal, get_current_user
from nicecommerce.domain.accounts import Principal, User
from nicecommerce.services.orders import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
)
async def create_order(
    request: CreateOrderRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderDTO:
    return await orders.create_order(user, request, idempotency_key)


@router.get("", response_model=OrderListResponse, summary="List my orders")
async def list_orders(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return await orders.list_orders(user, page, size)


@router.get("/{order_number}", response_model=OrderDTO, summary="Get an order")
async def get_order(
    order_number: str,
    principal: Principal = Depends(get_account_principal),
    orders: OrderService = Depends(get_order_service),
) -> OrderDTO:
    return await orders.get_order(order_number, principal)


@router.post("/{order_number}/cancel", response_model=OrderDTO, summary="Cancel a pending order")
async def cancel_order(
    order_number: str,
    principal: Principal = Depends(get_account_principal),
    orders: OrderService = Depends(get_order_service),
) -> OrderDTO:
    return await orders.cancel_order(order_number, principal)


@router.post("/{order_number}/pay", response_model=PaymentResultDTO, summary="Pay a pending order")
async def pay_order(
    order_number: str,
    principal: Principal = Depends(get_account_principal),
    orders: OrderService = Depends(get_order_service),
) -> PaymentResultDTO:
    return await orders.pay_order(order_number, principal)
