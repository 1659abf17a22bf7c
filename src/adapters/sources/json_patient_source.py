"""JSON Patient Record Source.

This adapter implements the PatientSourcePort contract for a directory of
per-patient JSON files (``<data_dir>/<uid>.json``). Each file holds either
the bare record document ``{"p": {...}, "visits": [...]}`` or the envelope
returned by the record API, where the document sits under ``jsonData`` (or
``json_data``) as an object or as a JSON-encoded string.

Security Impact:
    - UIDs are checked before they are turned into paths, so a request
      cannot read outside the data directory
    - Oversized files are rejected before they are read into memory
    - Rejections are logged with identifiers only, never record contents

Architecture:
    - Implements PatientSourcePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and models
    - Per-record failures are returned as Result, not raised
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from src.domain.ports import (
    PatientSourcePort,
    Result,
    SourceNotFoundError,
    UnsupportedSourceError,
    ValidationError,
)
from src.domain.visit_record import PatientRecord

logger = logging.getLogger(__name__)

# Envelope keys under which the record API stores the document
ENVELOPE_KEYS = ("jsonData", "json_data")

_SAFE_UID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


def unwrap_envelope(raw: Any, source: str = "<memory>") -> Any:
    """Return the record document, unwrapping an API envelope if present.

    Raises:
        ValidationError: If an envelope holds a string that is not valid JSON
    """
    if not isinstance(raw, dict):
        return raw

    for key in ENVELOPE_KEYS:
        if key not in raw or "visits" in raw:
            continue
        inner = raw[key]
        if isinstance(inner, str):
            try:
                inner = json.loads(inner)
            except json.JSONDecodeError as e:
                raise ValidationError(
                    f"Envelope field '{key}' is not valid JSON: {e.msg}",
                    source=source,
                )
        return inner

    return raw


def decode_patient_document(raw: Any, source: str = "<memory>") -> PatientRecord:
    """Validate a decoded JSON document into a PatientRecord.

    Parameters:
        raw: Parsed JSON (bare document or envelope)
        source: Source identifier used in error messages

    Returns:
        PatientRecord

    Raises:
        ValidationError: If the document is not an object or fails validation
    """
    document = unwrap_envelope(raw, source)
    if not isinstance(document, dict):
        raise ValidationError(
            f"Patient record must be a JSON object, got {type(document).__name__}",
            source=source,
        )

    try:
        return PatientRecord.model_validate(document)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Patient record failed validation: {e.error_count()} errors",
            source=source,
            details={"errors": e.errors(include_url=False, include_input=False)},
        )


class JSONPatientSource(PatientSourcePort):
    """Directory-of-JSON-files patient source.

    Example Usage:
        ```python
        source = JSONPatientSource(Path("patient_data"))
        result = source.load("P-1001")
        if result.is_success():
            record = result.value
        ```
    """

    def __init__(self, data_dir: Union[str, Path], max_record_size: int = 10 * 1024 * 1024):
        """Initialize JSON patient source.

        Parameters:
            data_dir: Directory holding ``<uid>.json`` files
            max_record_size: Maximum size of a record file in bytes (default: 10MB)
        """
        self.data_dir = Path(data_dir)
        self.max_record_size = max_record_size
        self.adapter_name = "json_patient_source"

    def _path_for(self, uid: str) -> Optional[Path]:
        if not uid or not _SAFE_UID.match(uid) or ".." in uid:
            return None
        return self.data_dir / f"{uid}.json"

    def load(self, uid: str) -> Result[PatientRecord]:
        """Load and validate one patient's record.

        A record whose header carries no UID takes the UID it was loaded by.

        Parameters:
            uid: Patient UID

        Returns:
            Result[PatientRecord]
        """
        path = self._path_for(uid)
        if path is None:
            logger.warning(f"Rejected malformed patient UID: {uid!r}")
            return Result.failure_result(
                ValidationError(f"Invalid patient UID: {uid!r}", source=uid),
                error_details={"uid": uid},
            )

        result = self.load_path(path)
        if result.is_success() and not result.value.patient.uid:
            record = result.value
            patched = record.model_copy(
                update={"patient": record.patient.model_copy(update={"uid": uid})}
            )
            return Result.success_result(patched)
        return result

    def load_path(self, path: Union[str, Path]) -> Result[PatientRecord]:
        """Load and validate a record from an explicit file path.

        Parameters:
            path: Path to a JSON record file

        Returns:
            Result[PatientRecord]
        """
        path = Path(path)
        source = str(path)

        if not path.is_file():
            return Result.failure_result(
                SourceNotFoundError(f"Patient record not found: {path.name}", source=source),
                error_details={"path": source},
            )

        file_size = path.stat().st_size
        if file_size > self.max_record_size:
            logger.warning(
                f"Rejected oversized patient record {path.name}: "
                f"{file_size} bytes (limit {self.max_record_size})"
            )
            return Result.failure_result(
                UnsupportedSourceError(
                    f"Patient record exceeds {self.max_record_size} bytes",
                    source=source,
                    adapter=self.adapter_name,
                ),
                error_details={"path": source, "size": file_size},
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in patient record {path.name}: {e.msg}")
            return Result.failure_result(
                ValidationError(f"Invalid JSON format: {e.msg}", source=source),
                error_details={"path": source, "line": e.lineno},
            )
        except OSError as e:
            return Result.failure_result(
                SourceNotFoundError(f"Cannot read patient record {path.name}: {e}", source=source),
                error_details={"path": source},
            )

        try:
            record = decode_patient_document(raw, source)
        except ValidationError as e:
            logger.warning(f"Patient record {path.name} rejected: {e}")
            return Result.failure_result(e, error_details={"path": source, **e.details})

        logger.debug(f"Loaded patient record {path.name} with {len(record.visits)} visits")
        return Result.success_result(record)

    def list_uids(self) -> list[str]:
        """List patient UIDs (file stems) in the data directory.

        Raises:
            SourceNotFoundError: If the data directory does not exist
        """
        if not self.data_dir.is_dir():
            raise SourceNotFoundError(
                f"Patient data directory not found: {self.data_dir}",
                source=str(self.data_dir),
            )
        return sorted(path.stem for path in self.data_dir.glob("*.json") if path.is_file())

    def get_source_info(self) -> Optional[dict]:
        """Get metadata about the data directory."""
        try:
            record_count = len(self.list_uids())
        except SourceNotFoundError:
            return None
        return {
            'type': 'json',
            'location': str(self.data_dir),
            'record_count': record_count,
            'max_record_size': self.max_record_size,
        }
