"""
  Integration events published to Kafka

  Topics:
    - order-events      → OrderEvent        (key: order id)
    - payment-events    → PaymentEvent      (key: order id)
    - product-events    → ProductEvent      (key: product id)
    - idempotency-keys  → IdempotencyEvent  (key: idempotency key)

  Every event carries its own event_id so consumers can deduplicate
  redeliveries (see IdempotentConsumer).
"""
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

ORDER_EVENTS_TOPIC = "order-events"
PAYMENT_EVENTS_TOPIC = "payment-events"
PRODUCT_EVENTS_TOPIC = "product-events"
IDEMPOTENCY_TOPIC = "idempotency-keys"

IDEMPOTENCY_TTL_SECONDS = 86400


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EventEncoder(json.JSONEncoder):
    """
    JSON encoder for event payloads.

      - UUID → str
      - Decimal → str (keeps the exact amount)
      - datetime → ISO 8601
      - Enum → its value
    """
    def default(self, obj):
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


class OrderEventType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_PAID = "ORDER_PAID"
    ORDER_SHIPPED = "ORDER_SHIPPED"
    ORDER_DELIVERED = "ORDER_DELIVERED"


class PaymentEventType(str, Enum):
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"


class ProductEventType(str, Enum):
    PRODUCT_CREATED = "PRODUCT_CREATED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_DELETED = "PRODUCT_DELETED"
    PRODUCT_RESTOCKED = "PRODUCT_RESTOCKED"


@dataclass
class OrderEvent:
    event_type: OrderEventType
    order_id: int
    order_number: str
    user_id: int
    status: str
    total: Decimal
    idempotency_key: Optional[str] = None
    metadata: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)
    event_id: UUID = field(default_factory=uuid4)

    @property
    def key(self) -> str:
        return str(self.order_id)


@dataclass
class IdempotencyEvent:
    idempotency_key: str
    resource_type: str
    resource_id: str
    ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS
    timestamp: datetime = field(default_factory=_now)
    event_id: UUID = field(default_factory=uuid4)

    @property
    def key(self) -> str:
        return self.idempotency_key


@dataclass
class PaymentEvent:
    event_type: PaymentEventType
    order_id: int
    order_number: str
    status: str
    amount: Decimal
    payment_id: Optional[str] = None
    currency: str = "ARS"
    timestamp: datetime = field(default_factory=_now)
    event_id: UUID = field(default_factory=uuid4)

    @property
    def key(self) -> str:
        return str(self.order_id)


@dataclass
class ProductEvent:
    event_type: ProductEventType
    product_id: int
    slug: str
    sizes: dict[str, int] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)
    event_id: UUID = field(default_factory=uuid4)

    @property
    def key(self) -> str:
        return str(self.product_id)


def event_to_dict(event) -> dict:
    """Plain-JSON dict of an event (enums, UUIDs, decimals already stringified)."""
    return json.loads(json.dumps(asdict(event), cls=EventEncoder))


def serialize_event(event) -> bytes:
    return json.dumps(asdict(event), cls=EventEncoder).encode("utf-8")
