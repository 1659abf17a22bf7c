"""Dashboard Pydantic models."""

from src.dashboard.models.health import DataSourceHealth, HealthResponse
from src.dashboard.models.timeline import IntervalListResponse, PatientListResponse

__all__ = [
    "DataSourceHealth",
    "HealthResponse",
    "IntervalListResponse",
    "PatientListResponse",
]
