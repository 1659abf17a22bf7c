"""Timeline response models for dashboard API."""

from pydantic import BaseModel, Field

from src.domain.enums import EyeSelector
from src.domain.timeline_models import Interval, TrackedInterval


class PatientListResponse(BaseModel):
    """Available patient UIDs.

    Attributes:
        uids: Patient UIDs, sorted
        count: Number of UIDs
    """
    uids: list[str] = Field(default_factory=list)
    count: int = 0


class IntervalListResponse(BaseModel):
    """Gantt intervals for one category.

    Attributes:
        uid: Patient UID
        eye: Eye selector
        category: Requested category key
        intervals: Merged intervals
        tracks: The same intervals placed on non-overlapping tracks
    """
    uid: str
    eye: EyeSelector
    category: str
    intervals: list[Interval] = Field(default_factory=list)
    tracks: list[TrackedInterval] = Field(default_factory=list)
