"""
Enum definitions for the Timeline Studio API.
"""
from enum import Enum


class Orientation(str, Enum):
    """Axis direction of a timeline."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class EventSize(str, Enum):
    """Display size hint for an event card."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class IntervalType(str, Enum):
    """How interval markers are spread across the axis."""
    EVEN = "even"
    YEARLY = "yearly"
    DECADE = "decade"
    CENTURY = "century"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class Role(str, Enum):
    """Effective access level of a requester on a timeline."""
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"


class CollaboratorRole(str, Enum):
    """Roles that can be granted to a collaborator."""
    VIEWER = "viewer"
    EDITOR = "editor"


def normalize_type(type_str: str) -> str:
    """
    Normalize a type string for consistency.

    - Lowercase
    - Strip whitespace
    - Replace spaces with underscores

    Examples:
        "Editor" -> "editor"
        " Viewer " -> "viewer"
    """
    return type_str.lower().strip().replace(" ", "_")


def normalize_email(email: str) -> str:
    """Collaborator emails are compared stripped and lowercased."""
    return email.strip().lower()
