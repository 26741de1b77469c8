"""
  FastAPI application

  Run with:
      uvicorn nicecommerce.api.app:app

  Startup (skipped when a Container is passed in, e.g. in tests):
    1. PostgreSQL pool + schema
    2. Kafka topics + producer (or a no-op publisher when disabled)
    3. Firebase Admin SDK
    4. Services wired into app.state.container
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nicecommerce.api.container import Container, build_container
from nicecommerce.api.errors import register_exception_handlers
from nicecommerce.api.routes import ROUTERS
from nicecommerce.config import Settings
from nicecommerce.infrastructure.database import Database, create_pool, init_schema
from nicecommerce.infrastructure.firebase_auth import FirebaseAuthService, init_firebase
from nicecommerce.infrastructure.kafka_producer import EventPublisher, NullEventPublisher, create_producer
from nicecommerce.infrastructure.kafka_topics import ensure_topics
from nicecommerce.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _make_lifespan(settings: Settings, container: Optional[Container]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        logger.info("Application starting...")
        pool = await create_pool(settings)
        if settings.db_init_schema:
            await init_schema(pool)

        if settings.kafka_enabled:
            if settings.kafka_create_topics:
                await ensure_topics(settings.kafka_bootstrap_servers)
            publisher = EventPublisher(create_producer(settings.kafka_bootstrap_servers))
        else:
            publisher = NullEventPublisher()
        await publisher.start()

        firebase = FirebaseAuthService(app=init_firebase(settings))
        app.state.container = build_container(settings, Database(pool), publisher, firebase)
        logger.info("Application started")
        try:
            yield
        finally:
            logger.info("Application shutting down...")
            await publisher.stop()
            await pool.close()

    return lifespan


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    settings = settings or (container.settings if container is not None else Settings.from_env())
    configure_logging(settings.log_level)

    app = FastAPI(
        title="NiceCommerce API",
        version="1.0.0",
        lifespan=_make_lifespan(settings, container),
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )
    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)
    return app


app = create_app()
