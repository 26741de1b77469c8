"""
Idempotent Kafka consumers

Problem: Kafka guarantees at-least-once delivery, meaning
         the same message might be delivered multiple times.

Solution: Track processed events in the processed_events table. Before
          processing, check if this consumer already handled the event:

          At-least-once DELIVERY → Exactly-once PROCESSING

ConsumerRunner drives one IdempotentConsumer from a topic: manual commits,
redelivery of failed messages (seek back to the failed offset) and, after
`max_retries` deliveries, forwarding to the `<topic>.dlq` topic.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition

from nicecommerce.infrastructure.database import Database

logger = logging.getLogger(__name__)

DLQ_SUFFIX = ".dlq"


def dlq_topic_for(topic: str) -> str:
    return f"{topic}{DLQ_SUFFIX}"


def decode_event(raw) -> dict:
    """
    Parse a Kafka message value into an event dict.

    Raises:
        ValueError: not UTF-8, not JSON, or not a JSON object
    """
    if raw is None:
        return {}
    event = json.loads(raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw)
    if not isinstance(event, dict):
        raise ValueError(f"expected a JSON object, got {type(event).__name__}")
    return event


def _raw_text(raw) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


class IdempotentConsumer(ABC):
    """
    Base class for Kafka consumers with deduplication.

    How to use:
      1. Inherit from this class
      2. Implement process_event()
      3. Call handle_event() when a message arrives
    """
    def __init__(self, db: Database, consumer_name: str):
        """
        Args:
            db: Database shared with the rest of the process
            consumer_name: Unique identifier like 'order_consumer'. Used in
                           processed_events to track what THIS consumer has
                           processed.
        """
        self.db = db
        self.consumer_name = consumer_name

    async def handle_event(self, event_id: UUID, event_type: str, event_data: dict) -> bool:
        """
        Handle an incoming event with deduplication.

        Steps:
          1. Check processed_events for (event_id, consumer_name)
          2. If present, skip (already handled)
          3. Otherwise call process_event()
          4. Record (event_id, consumer_name)

        Returns:
            True if the event was processed, False if it was a duplicate

        Raises:
            Whatever process_event raises. The event is not recorded, so a
            redelivery processes it again.
        """
        async with self.db.connection() as conn:
            already_processed = await conn.fetchval(
                """
                SELECT 1 FROM processed_events
                WHERE event_id = $1 AND consumer_name = $2
                """,
                event_id,
                self.consumer_name,
            )
        if already_processed:
            logger.info("Event %s already processed by %s, skipping", event_id, self.consumer_name)
            return False

        try:
            await self.process_event(event_type, event_data)
        except Exception as e:
            logger.warning("[%s] event_id %s failed: %s", self.consumer_name, event_id, e)
            raise

        async with self.db.connection() as conn:
            await conn.execute(
                """
                INSERT INTO processed_events (event_id, consumer_name, processed_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (event_id, consumer_name) DO NOTHING
                """,
                event_id,
                self.consumer_name,
            )
        logger.debug("Event %s processed and recorded by %s", event_id, self.consumer_name)
        return True

    @abstractmethod
    async def process_event(self, event_type: str, event_data: dict) -> None:
        """Handle one event. Must be implemented by subclasses."""


class ConsumerRunner:
    """
    Connects an IdempotentConsumer to a Kafka topic.

    Values are consumed as raw bytes and decoded in handle_message, so an
    undecodable value is dead-lettered like any other permanent failure.

    Retry counts live in memory, keyed by event id. They are cleared on
    success or once the message has been sent to the DLQ.
    """
    def __init__(
        self,
        handler: IdempotentConsumer,
        topic: str,
        group_id: str,
        bootstrap_servers: str = "localhost:9092",
        max_retries: int = 3,
        kafka_consumer: Optional[AIOKafkaConsumer] = None,
        dlq_producer: Optional[AIOKafkaProducer] = None,
    ):
        self.handler = handler
        self.topic = topic
        self.group_id = group_id
        self.dlq_topic = dlq_topic_for(topic)
        self.max_retries = max_retries
        self._bootstrap_servers = bootstrap_servers
        self._consumer = kafka_consumer
        self._dlq_producer = dlq_producer
        self.retry_counts: dict[str, int] = {}

    async def start(self) -> None:
        if self._consumer is None:
            self._consumer = AIOKafkaConsumer(
                self.topic,
                bootstrap_servers=self._bootstrap_servers,
                group_id=self.group_id,
                auto_offset_reset="earliest",
                enable_auto_commit=False,
            )
        if self._dlq_producer is None:
            self._dlq_producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
        await self._consumer.start()
        await self._dlq_producer.start()
        logger.info("[%s] Consumer started. Topic: %s, DLQ: %s",
                    self.handler.consumer_name, self.topic, self.dlq_topic)

    async def stop(self) -> None:
        if self._consumer is not None:
            await self._consumer.stop()
        if self._dlq_producer is not None:
            await self._dlq_producer.stop()
        logger.info("[%s] Consumer stopped", self.handler.consumer_name)

    async def handle_message(self, message) -> None:
        try:
            event_data = decode_event(message.value)
        except ValueError as e:
            logger.error("[%s] Undecodable message at %s:%s: %s",
                         self.handler.consumer_name, message.partition, message.offset, e)
            await self._dead_letter(message, {"raw_value": _raw_text(message.value)},
                                    f"Invalid JSON payload: {e}", attempts=1)
            return

        event_id = event_data.get("event_id")
        event_type = event_data.get("event_type") or self.topic
        retry_key = str(event_id) if event_id else f"{message.partition}:{message.offset}"

        try:
            await self.handler.handle_event(
                event_id=UUID(str(event_id)),
                event_type=event_type,
                event_data=event_data,
            )
        except Exception as e:
            attempts = self.retry_counts.get(retry_key, 0) + 1
            self.retry_counts[retry_key] = attempts
            if attempts >= self.max_retries:
                if await self._dead_letter(message, event_data, str(e), attempts):
                    self.retry_counts.pop(retry_key, None)
            else:
                logger.warning("[%s] Event %s failed (attempt %s/%s): %s",
                               self.handler.consumer_name, event_id, attempts, self.max_retries, e)
                self._redeliver(message)
            return

        await self._consumer.commit()
        self.retry_counts.pop(retry_key, None)

    def _redeliver(self, message) -> None:
        self._consumer.seek(TopicPartition(message.topic, message.partition), message.offset)

    async def _dead_letter(self, message, event_data: dict, error: str, attempts: int) -> bool:
        """
        Forward to the DLQ topic and commit.

        Returns:
            False when the DLQ send failed; the message is then delivered again.
        """
        try:
            await self._send_to_dlq(event_data, error, attempts)
        except Exception:
            logger.exception("[%s] Could not send event %s to %s, redelivering",
                             self.handler.consumer_name, event_data.get("event_id"), self.dlq_topic)
            self._redeliver(message)
            return False
        await self._consumer.commit()
        return True

    async def _send_to_dlq(self, event_data: dict, error: str, attempts: int) -> None:
        dlq_message = {
            "original_event": event_data,
            "error": error,
            "retry_count": attempts,
            "failed_at": datetime.now(timezone.utc).isoformat(),
            "original_topic": self.topic,
            "consumer": self.handler.consumer_name,
        }
        await self._dlq_producer.send_and_wait(self.dlq_topic, value=dlq_message)
        logger.error("[%s] Event %s sent to %s after %s failures",
                     self.handler.consumer_name, event_data.get("event_id"), self.dlq_topic, attempts)

    async def run(self) -> None:
        await self.start()
        try:
            async for message in self._consumer:
                await self.handle_message(message)
        except asyncio.CancelledError:
            logger.info("[%s] Shutdown signal received", self.handler.consumer_name)
            raise
        finally:
            await self.stop()
