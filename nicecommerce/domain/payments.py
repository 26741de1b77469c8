from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

DEFAULT_CURRENCY = "ARS"
FALLBACK_MESSAGE = "Payment service temporarily unavailable"


@dataclass
class Payment:
    """A gateway transaction attached to an order."""
    order_id: int
    payment_id: str
    status: str
    amount: Decimal
    currency: str = DEFAULT_CURRENCY
    payment_method: Optional[str] = None
    raw_data: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class WebhookLog:
    """Every webhook call the gateway makes, kept for auditing."""
    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    processed: bool = False
    error_message: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    message: Optional[str] = None
