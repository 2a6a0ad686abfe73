"""Result models for media reconcile and cleanup operations."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from timeline_studio.models.domain.timeline import Event


class MediaIssue(BaseModel):
    """A per-event media failure that was downgraded instead of raised."""

    index: int
    event_id: str
    reason: str


class ReconcileResult(BaseModel):
    """Outcome of reconciling one event list against its prior state."""

    events: list[Event] = Field(default_factory=list)
    uploaded_paths: list[str] = Field(default_factory=list)
    obsolete_paths: list[str] = Field(default_factory=list)
    issues: list[MediaIssue] = Field(default_factory=list)


class CleanupTask(BaseModel):
    """A pending blob deletion in the media cleanup queue."""

    id: str
    path: str
    reason: str
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CleanupReport(BaseModel):
    """Summary of one drain of the media cleanup queue."""

    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
