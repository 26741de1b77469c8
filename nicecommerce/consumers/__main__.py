"""
  Consumer process

  Usage:
      python -m nicecommerce.consumers

  Runs the order and idempotency-key consumers plus the DLQ processor until
  interrupted.
"""
import asyncio
import logging

from nicecommerce.config import Settings
from nicecommerce.consumers import idempotency_consumer, order_consumer
from nicecommerce.consumers.dlq_processor import start_dlq_processor
from nicecommerce.infrastructure.database import Database, create_pool, init_schema
from nicecommerce.infrastructure.kafka_consumer import ConsumerRunner
from nicecommerce.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def main(settings: Settings) -> None:
    pool = await create_pool(settings)
    try:
        if settings.db_init_schema:
            await init_schema(pool)
        db = Database(pool)

        runners = [
            ConsumerRunner(
                order_consumer.OrderEventConsumer(db),
                topic=order_consumer.TOPIC,
                group_id=order_consumer.ORDER_CONSUMER_GROUP,
                bootstrap_servers=settings.kafka_bootstrap_servers,
            ),
            ConsumerRunner(
                idempotency_consumer.IdempotencyKeyConsumer(db),
                topic=idempotency_consumer.TOPIC,
                group_id=idempotency_consumer.IDEMPOTENCY_CONSUMER_GROUP,
                bootstrap_servers=settings.kafka_bootstrap_servers,
            ),
        ]
        await asyncio.gather(
            *(runner.run() for runner in runners),
            start_dlq_processor(db, settings.kafka_bootstrap_servers),
        )
    finally:
        await pool.close()
        logger.info("Database pool closed")


def run() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Consumers stopped")


if __name__ == "__main__":
    run()
