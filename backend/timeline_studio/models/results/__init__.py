"""Result models for service operations."""

from timeline_studio.models.results.media import (
    MediaIssue, ReconcileResult, CleanupTask, CleanupReport,
)
from timeline_studio.models.results.timeline import SaveResult

__all__ = [
    "MediaIssue", "ReconcileResult", "CleanupTask", "CleanupReport",
    "SaveResult",
]
