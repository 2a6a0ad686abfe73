"""Timeline domain models."""

import re
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from timeline_studio.models.domain.media import ImageAttachment
from timeline_studio.models.enums import (
    CollaboratorRole,
    EventSize,
    IntervalType,
    Orientation,
    Role,
)

DEFAULT_TIMELINE_COLOR = "#007bff"
DEFAULT_TIMELINE_THICKNESS = 2
DEFAULT_EVENT_COLOR = "default"
EVENT_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")


class PlainBackground(BaseModel):
    """Background image referenced by a bare path or URL."""

    kind: Literal["plain"] = "plain"
    path: str


class FilteredBackground(BaseModel):
    """Background image with a CSS filter string applied on top."""

    kind: Literal["filtered"] = "filtered"
    url: str
    filters: str = ""


BackgroundImage = Union[PlainBackground, FilteredBackground]


def coerce_background_image(value: Any) -> Any:
    """
    Convert the legacy untagged shapes into a tagged background variant.

    Examples:
        "bg/forest.jpg" -> {"kind": "plain", "path": "bg/forest.jpg"}
        {"url": "...", "filters": "blur(2px)"} -> {"kind": "filtered", ...}
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return {"kind": "plain", "path": value}
    if isinstance(value, dict) and "kind" not in value:
        if "url" in value:
            return {"kind": "filtered", "url": value["url"], "filters": value.get("filters") or ""}
        if "path" in value:
            return {"kind": "plain", "path": value["path"]}
    return value


class IntervalSettings(BaseModel):
    """Interval marker configuration for the timeline axis."""

    show: bool = True
    count: int = Field(default=5, ge=1)
    type: IntervalType = IntervalType.EVEN


class Event(BaseModel):
    """A dated item stored inside a timeline."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = ""
    plain_title: str = ""
    description: str = ""
    date: datetime
    x_offset: float = 0
    y_offset: float = 0
    offset: float = 0
    size: EventSize = EventSize.MEDIUM
    color: str = DEFAULT_EVENT_COLOR
    has_image: bool = False
    image_url: Optional[str] = None
    image_storage_path: Optional[str] = None
    image_file_name: Optional[str] = None
    image_checksum: Optional[str] = None


class EventDraft(BaseModel):
    """An event as submitted by a client.

    ``image`` is the raw attachment: an uploaded file, an external URL, or
    nothing. It never reaches storage.
    """

    id: Optional[str] = None
    title: Optional[str] = None
    plain_title: Optional[str] = None
    description: Optional[str] = None
    date: datetime
    x_offset: Optional[float] = None
    y_offset: Optional[float] = None
    offset: Optional[float] = None
    size: Optional[EventSize] = None
    color: Optional[str] = None
    has_image: bool = False
    image_url: Optional[str] = None
    image_storage_path: Optional[str] = None
    image_file_name: Optional[str] = None
    image_checksum: Optional[str] = None
    image: Union[ImageAttachment, str, None] = None

    @field_validator("id", mode="before")
    @classmethod
    def check_id(cls, value):
        if value is None or value == "":
            return None
        if not isinstance(value, str) or not EVENT_ID_PATTERN.fullmatch(value):
            raise ValueError("event id may only contain letters, digits, underscores and hyphens")
        return value

    def layout_fields(self) -> dict[str, Any]:
        """Layout hints with the legacy defaults applied.

        ``offset`` predates 2D positioning; it mirrors ``y_offset``.
        """
        y_offset = self.y_offset or self.offset or 0
        return {
            "title": self.title or "",
            "description": self.description or "",
            "date": self.date,
            "x_offset": self.x_offset or 0,
            "y_offset": y_offset,
            "offset": y_offset,
            "size": self.size or EventSize.MEDIUM,
            "color": self.color or DEFAULT_EVENT_COLOR,
        }


class TimelineDraft(BaseModel):
    """Payload for creating or updating a timeline."""

    id: Optional[str] = None
    title: str
    start: datetime
    end: datetime
    orientation: Orientation = Orientation.HORIZONTAL
    events: list[EventDraft] = Field(default_factory=list)
    background_color: Optional[str] = None
    background_image: Optional[BackgroundImage] = None
    timeline_color: Optional[str] = None
    timeline_thickness: Optional[int] = Field(default=None, ge=1)
    interval_settings: Optional[IntervalSettings] = None
    show_intervals: Optional[bool] = None
    interval_count: Optional[int] = Field(default=None, ge=1)
    interval_type: Optional[IntervalType] = None
    is_public: Optional[bool] = None

    @field_validator("background_image", mode="before")
    @classmethod
    def coerce_background(cls, value):
        return coerce_background_image(value)

    @model_validator(mode="after")
    def check_range(self):
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @model_validator(mode="after")
    def check_event_ids(self):
        ids = [event.id for event in self.events if event.id]
        duplicates = sorted({event_id for event_id in ids if ids.count(event_id) > 1})
        if duplicates:
            raise ValueError(f"duplicate event id(s): {', '.join(duplicates)}")
        return self

    def resolved_interval_settings(self) -> IntervalSettings:
        """Fold the flat legacy interval fields into one settings object."""
        settings = self.interval_settings or IntervalSettings()
        updates: dict[str, Any] = {}
        if self.show_intervals is not None:
            updates["show"] = self.show_intervals
        if self.interval_count is not None:
            updates["count"] = self.interval_count
        if self.interval_type is not None:
            updates["type"] = self.interval_type
        return settings.model_copy(update=updates) if updates else settings


class Timeline(BaseModel):
    """A stored timeline with its embedded events and access metadata."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    start: datetime
    end: datetime
    orientation: Orientation = Orientation.HORIZONTAL
    events: list[Event] = Field(default_factory=list)
    background_color: Optional[str] = None
    background_image: Optional[BackgroundImage] = None
    timeline_color: str = DEFAULT_TIMELINE_COLOR
    timeline_thickness: int = DEFAULT_TIMELINE_THICKNESS
    interval_settings: IntervalSettings = Field(default_factory=IntervalSettings)
    is_public: bool = False
    owner_id: str
    owner_email: str = ""
    owner_display_name: str = ""
    collaborators: list[str] = Field(default_factory=list)
    collaborator_roles: dict[str, CollaboratorRole] = Field(default_factory=dict)
    revision: int = 1
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("background_image", mode="before")
    @classmethod
    def coerce_background(cls, value):
        return coerce_background_image(value)


class TimelineView(Timeline):
    """A timeline as seen by one requester."""

    is_owner: bool = False
    is_collaborator: bool = False
    collaborator_role: Role = Role.NONE
    can_edit: bool = False


class TimelineSummary(BaseModel):
    """Compact timeline row used by the list endpoints."""

    id: str
    title: str
    start: datetime
    end: datetime
    is_public: bool = False
    owner_id: str
    owner_display_name: str = ""
    background_color: Optional[str] = None
    background_image: Optional[BackgroundImage] = None
    timeline_color: str = DEFAULT_TIMELINE_COLOR
    interval_settings: IntervalSettings = Field(default_factory=IntervalSettings)
    event_count: int = 0
    created_at: datetime
    updated_at: datetime


class Collaborator(BaseModel):
    """A collaborator entry on a timeline."""

    email: str
    role: CollaboratorRole = CollaboratorRole.VIEWER


class CollaboratorCreate(BaseModel):
    """Payload for adding a collaborator."""

    email: str
    role: str = CollaboratorRole.VIEWER.value


class CollaboratorRoleUpdate(BaseModel):
    """Payload for changing a collaborator's role."""

    role: str


class PrivacyUpdate(BaseModel):
    """Payload for toggling timeline visibility."""

    is_public: bool
