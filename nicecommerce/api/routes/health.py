import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from nicecommerce.api.container import Container
from nicecommerce.api.dependencies import get_container
from nicecommerce.api.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Liveness and dependency check")
async def health(container: Container = Depends(get_container)):
    database = None
    if container.db is not None:
        try:
            database = await container.db.ping()
        except Exception as e:
            logger.warning("Health check database ping failed: %s", e)
            database = False

    body = HealthResponse(
        status="DOWN" if database is False else "UP",
        database=database,
        kafka=container.settings.kafka_enabled,
    )
    return JSONResponse(status_code=503 if database is False else 200, content=body.model_dump())
