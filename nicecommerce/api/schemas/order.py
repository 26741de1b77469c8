from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from nicecommerce.domain.orders import Order, OrderStatus
from nicecommerce.domain.pagination import Page
from nicecommerce.domain.payments import PaymentResult


class OrderItemRequest(BaseModel):
    product_id: int
    size: str = Field(..., min_length=1, max_length=20)
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    """
    Request body for placing an order.

    Example:
    {
        "items": [{"product_id": 7, "size": "M", "quantity": 2}],
        "shipping_address": {"street": "Av. Corrientes 1234", "city": "CABA"},
        "payment_method": "card"
    }
    """
    items: list[OrderItemRequest] = Field(default_factory=list)
    shipping_address: dict[str, str] = Field(default_factory=dict)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "items": [{"product_id": 7, "size": "M", "quantity": 2}],
                "shipping_address": {"street": "Av. Corrientes 1234", "city": "CABA"},
                "payment_method": "card",
            }
        }


class OrderItemDTO(BaseModel):
    product_id: int
    product_name: str
    size: str
    quantity: int
    price: Decimal
    image_url: Optional[str] = None


class OrderDTO(BaseModel):
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    items: list[OrderItemDTO] = Field(default_factory=list)
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    shipping_address: dict[str, str] = Field(default_factory=dict)
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderDTO":
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            items=[OrderItemDTO(**item.to_dict()) for item in order.items],
            subtotal=order.subtotal,
            shipping=order.shipping,
            tax=order.tax,
            total=order.total,
            shipping_address=order.shipping_address,
            payment_id=order.payment_id,
            payment_method=order.payment_method,
            tracking_number=order.tracking_number,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    orders: list[OrderDTO]
    current_page: int
    total_pages: int
    total_items: int
    page_size: int

    @classmethod
    def from_page(cls, page: Page[Order]) -> "OrderListResponse":
        return cls(
            orders=[OrderDTO.from_order(o) for o in page.items],
            current_page=page.page,
            total_pages=page.total_pages,
            total_items=page.total,
            page_size=page.size,
        )


class PaymentResultDTO(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: PaymentResult) -> "PaymentResultDTO":
        return cls(success=result.success, transaction_id=result.transaction_id, message=result.message)
