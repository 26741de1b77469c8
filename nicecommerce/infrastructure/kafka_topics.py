import logging

from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import TopicAlreadyExistsError

from nicecommerce.domain.events import (
    IDEMPOTENCY_TOPIC,
    IDEMPOTENCY_TTL_SECONDS,
    ORDER_EVENTS_TOPIC,
    PAYMENT_EVENTS_TOPIC,
    PRODUCT_EVENTS_TOPIC,
)

logger = logging.getLogger(__name__)

PARTITIONS = 3
REPLICATION_FACTOR = 1


def topic_definitions() -> list[NewTopic]:
    topics = [
        NewTopic(name=name, num_partitions=PARTITIONS, replication_factor=REPLICATION_FACTOR)
        for name in (ORDER_EVENTS_TOPIC, PAYMENT_EVENTS_TOPIC, PRODUCT_EVENTS_TOPIC)
    ]
    topics.append(NewTopic(
        name=IDEMPOTENCY_TOPIC,
        num_partitions=PARTITIONS,
        replication_factor=REPLICATION_FACTOR,
        topic_configs={"retention.ms": str(IDEMPOTENCY_TTL_SECONDS * 1000)},
    ))
    return topics


async def ensure_topics(bootstrap_servers: str) -> None:
    """Create the application topics. Topics that already exist are left alone."""
    admin = AIOKafkaAdminClient(bootstrap_servers=bootstrap_servers)
    await admin.start()
    try:
        existing = set(await admin.list_topics())
        missing = [topic for topic in topic_definitions() if topic.name not in existing]
        if not missing:
            logger.info("Kafka topics already exist")
            return
        try:
            await admin.create_topics(missing)
        except TopicAlreadyExistsError:
            # another instance created them in between
            logger.info("Kafka topics created concurrently")
            return
        logger.info("Created Kafka topics: %s", ", ".join(topic.name for topic in missing))
    finally:
        await admin.close()
