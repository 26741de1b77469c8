from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error the API returns."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: int
    error: str
    message: str
    errors: Optional[dict[str, str]] = None


class HealthResponse(BaseModel):
    status: str = "UP"
    database: Optional[bool] = None
    kafka: Optional[bool] = None
