"""Role derivation and access checks for timelines.

Everything here is a pure function of the stored owner id, the collaborator
role map and the requester identity. Nothing is cached between calls, so a
role is always re-derived from the timeline as currently stored.
"""

from typing import Iterable, Optional

from timeline_studio.errors import AuthError, PermissionDeniedError, PrivateAccessError
from timeline_studio.models import (
    CollaboratorRole,
    Requester,
    Role,
    Timeline,
    normalize_email,
)

WRITE_ROLES = {Role.OWNER, Role.EDITOR}


def resolve_role(
    timeline: Timeline,
    requester_id: Optional[str],
    requester_email: Optional[str],
) -> Role:
    """
    Derive the requester's effective role on a timeline.

    :param timeline: The stored timeline (or a view of it)
    :type timeline: Timeline
    :param requester_id: Authenticated user id, if any
    :type requester_id: str | None
    :param requester_email: Authenticated user email, if any
    :type requester_email: str | None
    :return: owner, editor, viewer or none
    :rtype: Role
    """
    if requester_id and requester_id == timeline.owner_id:
        return Role.OWNER
    if not requester_email:
        return Role.NONE

    email = normalize_email(requester_email)
    if email not in timeline.collaborators:
        return Role.NONE
    granted = timeline.collaborator_roles.get(email)
    if granted is None:
        return Role.NONE
    return Role(CollaboratorRole(granted).value)


def role_of(timeline: Timeline, requester: Optional[Requester]) -> Role:
    if requester is None:
        return Role.NONE
    return resolve_role(timeline, requester.id, requester.email)


def can_read(timeline: Timeline, requester: Optional[Requester]) -> bool:
    return timeline.is_public or role_of(timeline, requester) != Role.NONE


def can_write(timeline: Timeline, requester: Optional[Requester]) -> bool:
    return role_of(timeline, requester) in WRITE_ROLES


def can_manage_collaborators(timeline: Timeline, requester: Optional[Requester]) -> bool:
    return role_of(timeline, requester) == Role.OWNER


def can_edit(timeline: Timeline, requester: Optional[Requester]) -> bool:
    """Whether the requester may edit an already loaded timeline view. No I/O."""
    return can_write(timeline, requester)


def require_requester(requester: Optional[Requester]) -> Requester:
    if requester is None or not requester.id:
        raise AuthError("No authenticated user")
    return requester


def require_read(timeline: Timeline, requester: Optional[Requester]) -> Role:
    role = role_of(timeline, requester)
    if not timeline.is_public and role == Role.NONE:
        raise PrivateAccessError("This timeline is private")
    return role


def require_write(timeline: Timeline, requester: Optional[Requester]) -> Role:
    role = role_of(timeline, requester)
    if role not in WRITE_ROLES:
        raise PermissionDeniedError("You do not have permission to edit this timeline")
    return role


def require_owner(timeline: Timeline, requester: Optional[Requester]) -> Role:
    role = role_of(timeline, requester)
    if role != Role.OWNER:
        raise PermissionDeniedError("Only the timeline owner can do this")
    return role


def require_admin(requester: Optional[Requester], admin_ids: Iterable[str]) -> Requester:
    """
    Allow only configured operators through.

    :param admin_ids: User ids allowed to run maintenance tasks
    :raises AuthError: No requester
    :raises PermissionDeniedError: The requester is not an operator
    """
    requester = require_requester(requester)
    if requester.id not in set(admin_ids):
        raise PermissionDeniedError("Maintenance is restricted to administrators")
    return requester
