"""Health check endpoint for dashboard API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from src.dashboard.api.dependencies import PatientSourceDep
from src.dashboard.models.health import DataSourceHealth, HealthResponse
from src.domain.ports import PatientSourcePort
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


def check_data_source_health(source: PatientSourcePort) -> DataSourceHealth:
    """Check that the patient record source can be listed.

    Parameters:
        source: Patient source instance

    Returns:
        DataSourceHealth: Source status

    Security Impact:
        - Only reports a record count, no patient identifiers
    """
    info = source.get_source_info()
    if info is None:
        logger.warning("Patient record source unavailable")
        return DataSourceHealth(status="unavailable", type="json", record_count=None)

    return DataSourceHealth(
        status="available",
        type=info.get("type", "unknown"),
        record_count=info.get("record_count"),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(source: PatientSourceDep) -> HealthResponse:
    """Health check endpoint.

    Used by monitoring tools and load balancers. The API is degraded (not
    down) when the record source is missing, since posted records can
    still be processed.

    Parameters:
        source: Patient source (injected via dependency)

    Returns:
        HealthResponse: System health status
    """
    try:
        source_health = check_data_source_health(source)
        overall_status = "healthy" if source_health.status == "available" else "degraded"

        return HealthResponse(
            status=overall_status,
            timestamp=datetime.now(timezone.utc),
            version=settings.app_version,
            data_source=source_health,
        )

    except Exception as e:
        logger.error(f"Health check failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Health check failed"
        )
