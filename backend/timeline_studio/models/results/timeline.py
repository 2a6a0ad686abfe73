"""Result models for timeline repository writes."""

from pydantic import BaseModel, Field

from timeline_studio.models.results.media import MediaIssue


class SaveResult(BaseModel):
    """Result of saving or updating a timeline."""

    success: bool = True
    timeline_id: str
    revision: int
    media_issues: list[MediaIssue] = Field(default_factory=list)
