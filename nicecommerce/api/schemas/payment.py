from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class PaymentDTO(BaseModel):
    id: int
    order_id: int
    payment_id: str
    status: str
    amount: Decimal
    currency: str
    payment_method: Optional[str] = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookAck(BaseModel):
    received: bool = True
