"""Application Settings and Configuration.

This module provides application-wide settings read from ``OT_``-prefixed
environment variables with development-friendly defaults, plus the
validated configuration model for the patient record source.

Architecture:
    - Follows Hexagonal Architecture: infrastructure layer isolated from domain
    - Type-safe source configuration using Pydantic models
    - Fail-fast validation of source configuration before first use
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.domain.enums import EyeSelector

logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "Ophtha-Timeline"
APP_VERSION = "1.0.0"

# Directory of <uid>.json patient files
DEFAULT_DATA_DIR = "patient_data"

# Default max record size (10MB)
DEFAULT_MAX_RECORD_SIZE = 10 * 1024 * 1024


class DataSourceConfig(BaseModel):
    """Patient record source configuration.

    Parameters:
        data_dir: Directory holding one ``<uid>.json`` file per patient
        max_record_size: Largest accepted record file in bytes
    """

    data_dir: Path = Field(default=Path(DEFAULT_DATA_DIR), description="Patient record directory")
    max_record_size: int = Field(default=DEFAULT_MAX_RECORD_SIZE, description="Maximum record file size (bytes)")

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: Path) -> Path:
        """Reject a data directory path that points at a regular file.

        A directory that does not exist yet is accepted; listing it will
        report it as missing.
        """
        if v.exists() and not v.is_dir():
            raise ValueError(f"Data directory path is not a directory: {v}")
        return v

    @field_validator("max_record_size")
    @classmethod
    def validate_max_record_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"max_record_size must be positive, got {v}")
        return v


class Settings:
    """Application settings loaded from the environment.

    Environment variables:
        OT_APP_NAME: Application name shown by the API and CLI
        OT_LOG_LEVEL: Logging level (default INFO)
        OT_JSON_LOGS: Emit JSON log lines (default false)
        OT_DATA_DIR: Patient record directory (default ``patient_data``)
        OT_MAX_RECORD_SIZE: Maximum record file size in bytes (default 10MB)
        OT_DEFAULT_EYE: Eye selector used when a request names none (default RE)
    """

    def __init__(self):
        """Initialize settings from the environment."""
        self._data_source_config: Optional[DataSourceConfig] = None

        self.app_name = os.getenv("OT_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

        self.log_level = os.getenv("OT_LOG_LEVEL", "INFO").upper()
        self.json_logs = os.getenv("OT_JSON_LOGS", "false").lower() == "true"

        self.data_dir = os.getenv("OT_DATA_DIR", DEFAULT_DATA_DIR)
        self.max_record_size = int(os.getenv("OT_MAX_RECORD_SIZE", str(DEFAULT_MAX_RECORD_SIZE)))

        self.default_eye = EyeSelector.parse(os.getenv("OT_DEFAULT_EYE", EyeSelector.RIGHT.value))

    @property
    def data_source_config(self) -> DataSourceConfig:
        """Get the validated record source configuration.

        Returns:
            DataSourceConfig built from ``OT_DATA_DIR`` and ``OT_MAX_RECORD_SIZE``

        Raises:
            pydantic.ValidationError: If the configured values are invalid
        """
        if self._data_source_config is None:
            self._data_source_config = DataSourceConfig(
                data_dir=Path(self.data_dir),
                max_record_size=self.max_record_size,
            )
        return self._data_source_config


# Global settings instance
settings = Settings()
