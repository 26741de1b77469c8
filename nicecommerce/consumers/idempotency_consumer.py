"""
  Idempotency Key Consumer

  Stores every IdempotencyEvent in the idempotency_keys table so that any API
  instance can answer a repeated Idempotency-Key, including keys whose
  request was handled elsewhere.
"""
import logging
from datetime import datetime, timedelta, timezone

from nicecommerce.domain.events import IDEMPOTENCY_TOPIC, IDEMPOTENCY_TTL_SECONDS
from nicecommerce.infrastructure.database import Database
from nicecommerce.infrastructure.kafka_consumer import IdempotentConsumer
from nicecommerce.infrastructure.repositories.idempotency import (
    IdempotencyKeyRepository,
    IdempotencyRecord,
)

logger = logging.getLogger(__name__)

IDEMPOTENCY_CONSUMER_GROUP = "nicecommerce-idempotency-consumer"
TOPIC = IDEMPOTENCY_TOPIC

REQUIRED_FIELDS = ("idempotency_key", "resource_type", "resource_id")


def _parse_timestamp(value) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def record_from_event(event_data: dict) -> IdempotencyRecord:
    """
    Build the stored record: expires_at = event timestamp + ttl_seconds.

    Raises:
        ValueError: a required field is missing
    """
    for name in REQUIRED_FIELDS:
        if not event_data.get(name):
            raise ValueError(f"Missing required field: {name}")
    ttl = int(event_data.get("ttl_seconds") or IDEMPOTENCY_TTL_SECONDS)
    return IdempotencyRecord(
        idempotency_key=event_data["idempotency_key"],
        resource_type=event_data["resource_type"],
        resource_id=str(event_data["resource_id"]),
        expires_at=_parse_timestamp(event_data.get("timestamp")) + timedelta(seconds=ttl),
    )


class IdempotencyKeyConsumer(IdempotentConsumer):
    def __init__(self, db: Database, keys=None):
        super().__init__(db, consumer_name="idempotency_consumer")
        self._keys = keys or IdempotencyKeyRepository(db)

    async def process_event(self, event_type: str, event_data: dict) -> None:
        record = record_from_event(event_data)
        created = await self._keys.save_if_absent(record)
        logger.debug("Idempotency mapping %s - key: %s, resourceType: %s, resourceId: %s",
                     "stored" if created else "already present",
                     record.idempotency_key, record.resource_type, record.resource_id)
