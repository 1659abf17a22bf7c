"""Dependency injection for dashboard API.

This module provides dependency injection functions for FastAPI,
following Hexagonal Architecture principles: routes receive the
PatientSourcePort and never construct adapters themselves.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Query

from src.adapters.sources import JSONPatientSource
from src.domain.enums import EyeSelector
from src.domain.ports import PatientSourcePort
from src.domain.services.color_assignment import ColorAssignment
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_patient_source() -> PatientSourcePort:
    """Get patient source instance (cached).

    Returns:
        PatientSourcePort: JSON file source configured from settings

    Raises:
        pydantic.ValidationError: If the configured data source is invalid
    """
    config = settings.data_source_config
    logger.debug(f"Creating JSON patient source at: {config.data_dir}")
    return JSONPatientSource(config.data_dir, max_record_size=config.max_record_size)


def get_color_assignment() -> ColorAssignment:
    """Fresh color assignment for each request."""
    return ColorAssignment()


def get_eye_selector(
    eye: Optional[str] = Query(None, description="Eye selector: RE, LE or BE"),
) -> EyeSelector:
    """Resolve the ``eye`` query parameter, defaulting to the configured eye."""
    if eye is None:
        return settings.default_eye
    return EyeSelector.parse(eye)


# Type aliases for dependency injection
PatientSourceDep = Annotated[PatientSourcePort, Depends(get_patient_source)]
ColorAssignmentDep = Annotated[ColorAssignment, Depends(get_color_assignment)]
EyeSelectorDep = Annotated[EyeSelector, Depends(get_eye_selector)]
