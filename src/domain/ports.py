"""Domain Ports - Abstract Contracts for Patient Record Sources.

This module defines the Port interfaces that record-source adapters must
implement. Following Hexagonal Architecture, the timeline core states what
it needs (one fully materialized PatientRecord per call) and leaves storage,
transport and envelope formats to the adapters.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (JSON files, record API, ...) implement PatientSourcePort
    - Per-record outcomes travel as Result values; exceptions are reserved
      for source-level failures (missing directory, unreadable source)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from src.domain.visit_record import PatientRecord

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of loading one record, without raising.

    Attributes:
        success: True if the operation succeeded
        value: The loaded value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Error class name ("SourceNotFoundError", "ValidationError", ...)
        error_details: Additional context (uid, path, validation errors)

    Example:
        ```python
        result = source.load("P-1001")
        if result.is_success():
            timeline = build_patient_timeline(result.value, EyeSelector.RIGHT)
        else:
            logger.warning(f"{result.error_type}: {result.error}")
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Error type name (defaults to the exception's class name)
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class IngestionError(Exception):
    """Base exception for record source failures."""
    pass


class ValidationError(IngestionError):
    """Raised when a record cannot be decoded or validated into a PatientRecord.

    Attributes:
        source: The source identifier that failed validation
        details: Additional error details or validation messages
    """

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.source = source
        self.details = details or {}


class SourceNotFoundError(IngestionError):
    """Raised when a record or the source itself cannot be found.

    Attributes:
        source: The source identifier that was not found
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class UnsupportedSourceError(IngestionError):
    """Raised when a source exists but cannot be handled (wrong type, too large).

    Attributes:
        source: The source identifier that is unsupported
        adapter: The adapter that rejected the source
    """

    def __init__(self, message: str, source: Optional[str] = None, adapter: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.adapter = adapter


class PatientSourcePort(ABC):
    """Abstract contract for patient record sources.

    Key Principles:
        - Whole records: ``load`` returns one fully materialized record
        - Validated: successful results always hold a ``PatientRecord``
        - Source-agnostic: the timeline core never sees files or envelopes

    Example Usage:
        ```python
        source = JSONPatientSource(Path("patient_data"))
        for uid in source.list_uids():
            result = source.load(uid)
            ...
        ```
    """

    @abstractmethod
    def load(self, uid: str) -> Result[PatientRecord]:
        """Load one patient's record.

        Parameters:
            uid: Patient UID

        Returns:
            Result[PatientRecord]: Success with the validated record, or a
            failure carrying ``SourceNotFoundError`` / ``ValidationError`` /
            ``UnsupportedSourceError`` information

        Note:
            Per-record problems are reported through the Result, not raised.
        """
        pass

    @abstractmethod
    def list_uids(self) -> list[str]:
        """List the UIDs available from this source, sorted.

        Raises:
            SourceNotFoundError: If the source itself is unavailable
        """
        pass

    def get_source_info(self) -> Optional[dict]:
        """Get metadata about the source (optional, adapter-specific).

        Returns:
            Optional[dict]: e.g. ``{"type": "json", "location": ..., "record_count": ...}``
        """
        return None
