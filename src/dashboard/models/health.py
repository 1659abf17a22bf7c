"""Health check models for dashboard API."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


class DataSourceHealth(BaseModel):
    """Patient record source status.

    Attributes:
        status: Whether the source can be listed
        type: Source type (json)
        record_count: Number of patient records available (if available)
    """
    status: Literal["available", "unavailable"]
    type: str
    record_count: int | None = Field(None, description="Number of patient records available")


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Overall system status
        timestamp: Current timestamp
        version: Application version
        data_source: Patient record source information
    """
    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Current UTC timestamp",
    )
    version: str = Field(default="1.0.0", description="Application version")
    data_source: DataSourceHealth
