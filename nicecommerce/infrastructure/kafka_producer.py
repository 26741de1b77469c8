"""
  Kafka event publishing

  EventPublisher wraps one AIOKafkaProducer shared by every service.

  Delivery settings:
    - acks="all"                 → leader waits for all in-sync replicas
    - enable_idempotence=True    → broker drops producer retries it already has
    - linger_ms=10, gzip         → small batches, compressed

  Publishing is best-effort. Orders and payments are already committed to
  PostgreSQL when their events go out, so a Kafka failure is logged and
  reported as False instead of failing the request.
"""
import logging
from typing import Optional

from aiokafka import AIOKafkaProducer

from nicecommerce.domain.events import (
    IDEMPOTENCY_TOPIC,
    ORDER_EVENTS_TOPIC,
    PAYMENT_EVENTS_TOPIC,
    PRODUCT_EVENTS_TOPIC,
    IdempotencyEvent,
    OrderEvent,
    PaymentEvent,
    ProductEvent,
    serialize_event,
)

logger = logging.getLogger(__name__)


def create_producer(bootstrap_servers: str) -> AIOKafkaProducer:
    return AIOKafkaProducer(
        bootstrap_servers=bootstrap_servers,
        acks="all",
        enable_idempotence=True,
        linger_ms=10,
        compression_type="gzip",
        key_serializer=lambda k: k.encode("utf-8") if k is not None else None,
    )


class EventPublisher:
    def __init__(self, producer: AIOKafkaProducer):
        self._producer = producer

    async def start(self) -> None:
        await self._producer.start()
        logger.info("Kafka producer started")

    async def stop(self) -> None:
        await self._producer.stop()
        logger.info("Kafka producer stopped")

    async def _publish(self, topic: str, event, description: str) -> bool:
        try:
            metadata = await self._producer.send_and_wait(
                topic, value=serialize_event(event), key=event.key
            )
        except Exception as e:
            logger.error("Failed to publish %s - key: %s, eventId: %s, error: %s",
                         description, event.key, event.event_id, e)
            return False
        logger.info("Published %s - key: %s, partition: %s, offset: %s",
                    description, event.key, metadata.partition, metadata.offset)
        return True

    async def publish_order_event(self, event: OrderEvent) -> bool:
        return await self._publish(ORDER_EVENTS_TOPIC, event, f"order event {event.event_type.value}")

    async def publish_idempotency_event(self, event: IdempotencyEvent) -> bool:
        return await self._publish(IDEMPOTENCY_TOPIC, event, "idempotency event")

    async def publish_payment_event(self, event: PaymentEvent) -> bool:
        return await self._publish(PAYMENT_EVENTS_TOPIC, event, f"payment event {event.event_type.value}")

    async def publish_product_event(self, event: ProductEvent) -> bool:
        return await self._publish(PRODUCT_EVENTS_TOPIC, event, f"product event {event.event_type.value}")


class NullEventPublisher:
    """Used when KAFKA_ENABLED is false. Events are only logged."""

    async def start(self) -> None:
        logger.info("Kafka disabled - events will not be published")

    async def stop(self) -> None:
        pass

    async def _drop(self, event, description: Optional[str] = None) -> bool:
        logger.debug("Kafka disabled, dropping %s - key: %s", description or type(event).__name__, event.key)
        return False

    async def publish_order_event(self, event: OrderEvent) -> bool:
        return await self._drop(event)

    async def publish_idempotency_event(self, event: IdempotencyEvent) -> bool:
        return await self._drop(event)

    async def publish_payment_event(self, event: PaymentEvent) -> bool:
        return await self._drop(event)

    async def publish_product_event(self, event: ProductEvent) -> bool:
        return await self._drop(event)
