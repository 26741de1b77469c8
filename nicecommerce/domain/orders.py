"""
  Order entity

  Items and the shipping address are stored as JSON on the order row.
  Item prices are kept as strings so the exact decimal survives the round trip.
"""
import random
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


PAID_STATUSES = frozenset({
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})


@dataclass
class OrderItem:
    product_id: int
    product_name: str
    size: str
    quantity: int
    price: str
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        return cls(
            product_id=data["product_id"],
            product_name=data.get("product_name", ""),
            size=data.get("size", ""),
            quantity=data.get("quantity", 1),
            price=str(data.get("price", "0")),
            image_url=data.get("image_url"),
        )


def generate_order_number(now_millis: Optional[int] = None) -> str:
    """ORD-<last 8 digits of epoch millis>-<random 0..999999>"""
    millis = now_millis if now_millis is not None else int(time.time() * 1000)
    return "ORD-%08d-%s" % (millis % 100_000_000, random.randint(0, 999_999))


@dataclass
class Order:
    user_id: int
    subtotal: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.PENDING
    order_number: Optional[str] = None
    items: list[OrderItem] = field(default_factory=list)
    shipping_address: dict[str, str] = field(default_factory=dict)
    payment_id: Optional[str] = None
    payment_method: Optional[str] = None
    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    pending_reason: Optional[str] = None
    pending_timestamp: Optional[datetime] = None
    notes: Optional[str] = None
    staff_notes: Optional[str] = None
    assigned_to: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def prepare_for_save(self) -> None:
        if not self.order_number or not self.order_number.strip():
            self.order_number = generate_order_number()
        if self.status == OrderStatus.PENDING and self.pending_timestamp is None:
            self.pending_timestamp = datetime.now(timezone.utc)

    def is_paid(self) -> bool:
        return self.status in PAID_STATUSES
