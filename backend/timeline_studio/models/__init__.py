"""
Timeline Studio models.

Usage:
    from timeline_studio.models import Timeline, TimelineDraft, Event, EventDraft
    from timeline_studio.models import Role, CollaboratorRole, normalize_email
    from timeline_studio.models import SaveResult, MediaIssue
"""

# --- Enums & utilities ---
from timeline_studio.models.enums import (
    Orientation,
    EventSize,
    IntervalType,
    Role,
    CollaboratorRole,
    normalize_type,
    normalize_email,
)

# --- Domain models ---
from timeline_studio.models.domain import (
    ImageAttachment, BackgroundUpload, BackgroundUploadCreate,
    Requester,
    BackgroundImage, PlainBackground, FilteredBackground,
    IntervalSettings,
    Event, EventDraft,
    Timeline, TimelineDraft, TimelineView, TimelineSummary,
    Collaborator, CollaboratorCreate, CollaboratorRoleUpdate, PrivacyUpdate,
)

# --- Result models ---
from timeline_studio.models.results import (
    MediaIssue, ReconcileResult, CleanupTask, CleanupReport,
    SaveResult,
)

__all__ = [
    # Enums
    "Orientation", "EventSize", "IntervalType", "Role", "CollaboratorRole",
    "normalize_type", "normalize_email",
    # Domain
    "ImageAttachment", "BackgroundUpload", "BackgroundUploadCreate",
    "Requester",
    "BackgroundImage", "PlainBackground", "FilteredBackground",
    "IntervalSettings",
    "Event", "EventDraft",
    "Timeline", "TimelineDraft", "TimelineView", "TimelineSummary",
    "Collaborator", "CollaboratorCreate", "CollaboratorRoleUpdate", "PrivacyUpdate",
    # Results
    "MediaIssue", "ReconcileResult", "CleanupTask", "CleanupReport",
    "SaveResult",
]
