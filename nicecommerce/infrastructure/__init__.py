"""
  Infrastructure Layer

  Technical implementations behind the services:
    - database, repositories: PostgreSQL via asyncpg
    - kafka_producer, kafka_topics, kafka_consumer: event streaming (aiokafka)
    - firebase_auth: identity (firebase-admin)
    - cache: in-process TTL caches (cachetools)
    - resilience, payment_gateway: outbound payment calls
"""
