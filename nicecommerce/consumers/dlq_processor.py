"""
Dead Letter Queue (DLQ) Processor

Handles messages that ConsumerRunner gave up on (see
nicecommerce.infrastructure.kafka_consumer). It provides:
    1. Visibility: logs every failed message to dlq_messages
    2. Replay: republishes messages to their original topic after a fix
    3. Analysis: categorizes errors (transient vs permanent)

Flow:
    <topic>.dlq → DLQ Processor → dlq_messages (logging)
                               → original topic (retry / replay)
"""
import asyncio
import json
import logging
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from nicecommerce.domain.events import IDEMPOTENCY_TOPIC, ORDER_EVENTS_TOPIC
from nicecommerce.infrastructure.database import Database, from_json, to_json
from nicecommerce.infrastructure.kafka_consumer import decode_event, dlq_topic_for

logger = logging.getLogger(__name__)

DLQ_GROUP = "nicecommerce-dlq-processor"
DEFAULT_DLQ_TOPICS = [dlq_topic_for(ORDER_EVENTS_TOPIC), dlq_topic_for(IDEMPOTENCY_TOPIC)]


class ErrorCategory(Enum):
    """
    Categories of errors for different handling strategies.

        - TRANSIENT: temporary issues, safe to auto-retry
        - PERMANENT: data issues, needs a manual fix
        - UNKNOWN: new error types, investigate
    """
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


# Checked as substrings of the lower-cased error message
TRANSIENT_ERRORS = [
    "timeout",
    "timed out",
    "connection refused",
    "service unavailable",
    "too many requests",
    "temporary failure",
    "network unreachable",
    "connection reset",
]

PERMANENT_ERRORS = [
    "invalid json",
    "missing required field",
    "validation error",
    "schema mismatch",
    "null value",
    "type error",
    "key error",
    "badly formed",
]


def categorize_error(error_message: str) -> ErrorCategory:
    """
    Categorize a failure by its message.

    Example:
        "Connection timeout after 30s" → TRANSIENT
        "Missing required field: resource_id" → PERMANENT
        "Some weird error we've never seen" → UNKNOWN
    """
    error_lower = error_message.lower()

    for pattern in TRANSIENT_ERRORS:
        if pattern in error_lower:
            return ErrorCategory.TRANSIENT

    for pattern in PERMANENT_ERRORS:
        if pattern in error_lower:
            return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def _parse_failed_at(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable failed_at in DLQ message: %s", value)
        return None


class DLQProcessor:
    """
    Processes messages from the dead letter topics.

    Transient failures are republished to their original topic after
    `retry_delay_seconds`; everything else is marked needs_review.
    """

    def __init__(
        self,
        db: Database,
        kafka_bootstrap_servers: str = "localhost:9092",
        dlq_topics: Optional[list[str]] = None,
        auto_retry_transient: bool = True,
        retry_delay_seconds: float = 60,
        producer: Optional[AIOKafkaProducer] = None,
        kafka_consumer: Optional[AIOKafkaConsumer] = None,
    ):
        self._db = db
        self._kafka_servers = kafka_bootstrap_servers
        self._dlq_topics = dlq_topics or list(DEFAULT_DLQ_TOPICS)
        self._auto_retry = auto_retry_transient
        self._retry_delay = retry_delay_seconds

        self._consumer = kafka_consumer
        self._producer = producer
        self._started = False

    async def start(self) -> None:
        if self._consumer is None:
            self._consumer = AIOKafkaConsumer(
                *self._dlq_topics,
                bootstrap_servers=self._kafka_servers,
                group_id=DLQ_GROUP,
                auto_offset_reset="earliest",
                enable_auto_commit=False,
            )
        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._kafka_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
        await self._consumer.start()
        await self._producer.start()
        self._started = True
        logger.info("DLQ processor started - monitoring: %s", ", ".join(self._dlq_topics))

    async def stop(self) -> None:
        if self._consumer:
            await self._consumer.stop()
        if self._producer:
            await self._producer.stop()
        self._started = False
        logger.info("DLQ processor stopped")

    async def process_dlq_messages(self) -> None:
        if not self._started:
            raise RuntimeError("DLQ Processor not started. Call start() first.")

        async for message in self._consumer:
            try:
                dlq_message = decode_event(message.value)
            except ValueError as e:
                logger.error("Skipping undecodable DLQ message at %s:%s: %s",
                             message.partition, message.offset, e)
            else:
                await self.handle_dlq_message(dlq_message)
            await self._consumer.commit()

    async def handle_dlq_message(self, dlq_message: dict) -> int:
        """
        Log one DLQ message and route it by error category.

        Returns:
            id of the dlq_messages row
        """
        original_event = dlq_message.get("original_event", {})
        error_message = dlq_message.get("error", "Unknown error")
        original_topic = dlq_message.get("original_topic", "unknown")
        event_id = str(original_event.get("event_id") or uuid4())

        category = categorize_error(error_message)

        dlq_record_id = await self._log_to_database(
            event_id=event_id,
            original_event=original_event,
            error_message=error_message,
            error_category=category,
            retry_count=dlq_message.get("retry_count", 0),
            failed_at=_parse_failed_at(dlq_message.get("failed_at")),
            original_topic=original_topic,
            consumer_name=dlq_message.get("consumer", "unknown"),
        )
        logger.info("Logged DLQ message - eventId: %s, category: %s", event_id, category.value)

        if category == ErrorCategory.TRANSIENT and self._auto_retry:
            await self._schedule_retry(original_event, original_topic, dlq_record_id)
        else:
            await self._mark_for_review(dlq_record_id)
        return dlq_record_id

    async def _log_to_database(
        self,
        event_id: str,
        original_event: dict,
        error_message: str,
        error_category: ErrorCategory,
        retry_count: int,
        failed_at: Optional[datetime],
        original_topic: str,
        consumer_name: str,
    ) -> int:
        async with self._db.connection() as conn:
            return await conn.fetchval(
                """
                INSERT INTO dlq_messages (
                    event_id, original_event, error_message, error_category, retry_count,
                    failed_at, original_topic, consumer_name, status, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, NOW())
                RETURNING id
                """,
                event_id,
                to_json(original_event),
                error_message,
                error_category.value,
                retry_count,
                failed_at,
                original_topic,
                consumer_name,
                "pending",
            )

    async def _schedule_retry(self, original_event: dict, original_topic: str, dlq_record_id: int) -> None:
        """Wait for the retry delay, republish, then mark the row retried."""
        logger.info("Scheduling retry in %ss for DLQ #%s", self._retry_delay, dlq_record_id)
        await asyncio.sleep(self._retry_delay)

        await self._producer.send_and_wait(original_topic, value=original_event)

        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE dlq_messages SET status = 'retried', retried_at = NOW() WHERE id = $1",
                dlq_record_id,
            )
        logger.info("Retried DLQ #%s -> %s", dlq_record_id, original_topic)

    async def _mark_for_review(self, dlq_record_id: int) -> None:
        async with self._db.connection() as conn:
            await conn.execute(
                "UPDATE dlq_messages SET status = 'needs_review' WHERE id = $1",
                dlq_record_id,
            )
        logger.warning("DLQ #%s marked for manual review", dlq_record_id)

    async def replay_message(self, dlq_record_id: int) -> bool:
        """
        Republish a stored DLQ message to its original topic.

        Returns:
            True if replayed, False if the row is missing or already replayed
        """
        async with self._db.connection() as conn:
            record = await conn.fetchrow(
                "SELECT original_event, original_topic, status FROM dlq_messages WHERE id = $1",
                dlq_record_id,
            )
            if not record:
                logger.warning("DLQ #%s not found", dlq_record_id)
                return False
            if record["status"] == "replayed":
                logger.info("DLQ #%s already replayed", dlq_record_id)
                return False

            original_event = from_json(record["original_event"], {})
            original_topic = record["original_topic"]

            await self._producer.send_and_wait(original_topic, value=original_event)
            await conn.execute(
                "UPDATE dlq_messages SET status = 'replayed', replayed_at = NOW() WHERE id = $1",
                dlq_record_id,
            )
        logger.info("Replayed DLQ #%s -> %s", dlq_record_id, original_topic)
        return True

    async def replay_all_pending(self) -> int:
        async with self._db.connection() as conn:
            records = await conn.fetch(
                """
                SELECT id FROM dlq_messages
                WHERE status IN ('pending', 'needs_review')
                ORDER BY created_at
                """
            )
        replayed = 0
        for record in records:
            if await self.replay_message(record["id"]):
                replayed += 1
        logger.info("Replayed %s DLQ messages", replayed)
        return replayed

    async def get_dlq_stats(self) -> dict:
        """Counts by status, error category and consumer."""
        async with self._db.connection() as conn:
            total = await conn.fetchval("SELECT COUNT(*) FROM dlq_messages")
            status_rows = await conn.fetch(
                "SELECT status, COUNT(*) AS count FROM dlq_messages GROUP BY status"
            )
            category_rows = await conn.fetch(
                "SELECT error_category, COUNT(*) AS count FROM dlq_messages GROUP BY error_category"
            )
            consumer_rows = await conn.fetch(
                "SELECT consumer_name, COUNT(*) AS count FROM dlq_messages GROUP BY consumer_name"
            )
        return {
            "total": total,
            "by_status": {row["status"]: row["count"] for row in status_rows},
            "by_category": {row["error_category"]: row["count"] for row in category_rows},
            "by_consumer": {row["consumer_name"]: row["count"] for row in consumer_rows},
        }


async def start_dlq_processor(db: Database, kafka_bootstrap_servers: str = "localhost:9092",
                              dlq_topics: Optional[list[str]] = None) -> None:
    processor = DLQProcessor(db=db, kafka_bootstrap_servers=kafka_bootstrap_servers, dlq_topics=dlq_topics)
    try:
        await processor.start()
        await processor.process_dlq_messages()
    except asyncio.CancelledError:
        logger.info("DLQ processor shutdown signal received")
        raise
    finally:
        await processor.stop()
