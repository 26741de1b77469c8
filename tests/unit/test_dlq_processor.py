"""
Unit tests for DLQProcessor - logging, routing by error category and replay.
"""
import json

import pytest

from nicecommerce.consumers.dlq_processor import DLQProcessor
from tests.fakes import FakeDatabase, FakeKafkaConsumer, FakeProducer, kafka_message

pytestmark = pytest.mark.asyncio


@pytest.fixture
def make_dlq_message():
    """Factory fixture - a message as ConsumerRunner writes it to <topic>.dlq."""
    def _make_dlq(error: str = "Test error", consumer: str = "order_consumer",
                  event_id: str = "5b1f0c52-8d0e-4c55-9b9a-0d6a2f7e1c11"):
        return {
            "original_event": {"event_id": event_id, "event_type": "ORDER_CREATED", "order_id": 1},
            "error": error,
            "retry_count": 3,
            "failed_at": "2025-06-15T12:00:00+00:00",
            "original_topic": "order-events",
            "consumer": consumer,
        }
    return _make_dlq


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def producer():
    return FakeProducer()


@pytest.fixture
def processor(db, producer):
    return DLQProcessor(db=db, retry_delay_seconds=0, producer=producer)


class TestHandleDlqMessage:
    async def test_transient_error_is_retried(self, processor, db, producer, make_dlq_message):
        message = make_dlq_message(error="Connection timeout after 30s")

        row_id = await processor.handle_dlq_message(message)

        row = db.conn.dlq_rows[row_id]
        assert row["status"] == "retried"
        assert row["error_category"] == "transient"
        assert row["consumer_name"] == "order_consumer"
        assert json.loads(row["original_event"]) == message["original_event"]
        assert producer.sent == [{"topic": "order-events", "value": message["original_event"], "key": None}]

    async def test_permanent_error_needs_review(self, processor, db, producer, make_dlq_message):
        row_id = await processor.handle_dlq_message(make_dlq_message(error="Missing required field: resource_id"))

        assert db.conn.dlq_rows[row_id]["status"] == "needs_review"
        assert db.conn.dlq_rows[row_id]["error_category"] == "permanent"
        assert producer.sent == []

    async def test_unknown_error_needs_review(self, processor, db, make_dlq_message):
        row_id = await processor.handle_dlq_message(make_dlq_message(error="Something odd"))
        assert db.conn.dlq_rows[row_id]["status"] == "needs_review"
        assert db.conn.dlq_rows[row_id]["error_category"] == "unknown"

    async def test_auto_retry_can_be_disabled(self, db, producer, make_dlq_message):
        processor = DLQProcessor(db=db, auto_retry_transient=False, producer=producer)
        row_id = await processor.handle_dlq_message(make_dlq_message(error="connection refused"))
        assert db.conn.dlq_rows[row_id]["status"] == "needs_review"
        assert producer.sent == []

    async def test_failed_at_is_parsed(self, processor, db, make_dlq_message):
        row_id = await processor.handle_dlq_message(make_dlq_message(error="Something odd"))
        assert db.conn.dlq_rows[row_id]["failed_at"].year == 2025


class TestReplay:
    async def test_replay_once(self, processor, db, producer, make_dlq_message):
        row_id = await processor.handle_dlq_message(make_dlq_message(error="validation error"))

        assert await processor.replay_message(row_id) is True
        assert await processor.replay_message(row_id) is False

        assert db.conn.dlq_rows[row_id]["status"] == "replayed"
        assert len(producer.sent) == 1

    async def test_replay_missing_row(self, processor):
        assert await processor.replay_message(404) is False

    async def test_replay_all_pending(self, processor, make_dlq_message):
        await processor.handle_dlq_message(make_dlq_message(error="validation error"))
        await processor.handle_dlq_message(make_dlq_message(error="Something odd"))
        await processor.handle_dlq_message(make_dlq_message(error="timeout"))

        assert await processor.replay_all_pending() == 2


class TestStats:
    async def test_counts_by_status_category_and_consumer(self, processor, make_dlq_message):
        await processor.handle_dlq_message(make_dlq_message(error="timeout"))
        await processor.handle_dlq_message(make_dlq_message(error="invalid json", consumer="idempotency_consumer"))

        stats = await processor.get_dlq_stats()

        assert stats["total"] == 2
        assert stats["by_status"] == {"retried": 1, "needs_review": 1}
        assert stats["by_category"] == {"transient": 1, "permanent": 1}
        assert stats["by_consumer"] == {"order_consumer": 1, "idempotency_consumer": 1}


class TestLifecycle:
    async def test_processing_before_start_fails(self, processor):
        with pytest.raises(RuntimeError, match="not started"):
            await processor.process_dlq_messages()

    async def test_undecodable_message_is_skipped_and_committed(self, db, producer, make_dlq_message):
        consumer = FakeKafkaConsumer([
            kafka_message(b"\xff\xfe not json", topic="order-events.dlq", offset=0),
            kafka_message(make_dlq_message(error="validation error"), topic="order-events.dlq", offset=1),
        ])
        processor = DLQProcessor(db=db, retry_delay_seconds=0, producer=producer, kafka_consumer=consumer)

        await processor.start()
        await processor.process_dlq_messages()

        assert consumer.commits == 2
        [row] = db.conn.dlq_rows.values()
        assert row["error_message"] == "validation error"
