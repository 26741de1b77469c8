"""
Kafka Consumers

Each consumer:
    - Inherits from IdempotentConsumer
    - Implements process_event()
    - Handles specific event types

Consumers:
    - OrderEventConsumer: follow-up work for order lifecycle events
    - IdempotencyKeyConsumer: stores idempotency key mappings
    - DLQProcessor: handles failed messages from the dead letter topics
"""
from nicecommerce.consumers.dlq_processor import DLQProcessor, start_dlq_processor
from nicecommerce.consumers.idempotency_consumer import IdempotencyKeyConsumer
from nicecommerce.consumers.order_consumer import OrderEventConsumer

__all__ = [
    "DLQProcessor",
    "IdempotencyKeyConsumer",
    "OrderEventConsumer",
    "start_dlq_processor",
]
