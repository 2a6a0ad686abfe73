"""Domain models: timelines, their events, media and requesters."""

from timeline_studio.models.domain.media import (
    ImageAttachment,
    BackgroundUpload,
    BackgroundUploadCreate,
)
from timeline_studio.models.domain.requester import Requester
from timeline_studio.models.domain.timeline import (
    BackgroundImage,
    PlainBackground,
    FilteredBackground,
    IntervalSettings,
    Event,
    EventDraft,
    Timeline,
    TimelineDraft,
    TimelineView,
    TimelineSummary,
    Collaborator,
    CollaboratorCreate,
    CollaboratorRoleUpdate,
    PrivacyUpdate,
)

__all__ = [
    "ImageAttachment", "BackgroundUpload", "BackgroundUploadCreate",
    "Requester",
    "BackgroundImage", "PlainBackground", "FilteredBackground",
    "IntervalSettings",
    "Event", "EventDraft",
    "Timeline", "TimelineDraft", "TimelineView", "TimelineSummary",
    "Collaborator", "CollaboratorCreate", "CollaboratorRoleUpdate", "PrivacyUpdate",
]
