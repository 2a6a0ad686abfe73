"""
Error taxonomy for timeline persistence operations.

Routers translate these into HTTP status codes; services raise them directly.
"""


class TimelineError(Exception):
    """Base class for every error raised by the timeline services."""

    status_code = 500


class AuthError(TimelineError):
    """No authenticated requester for an operation that requires one."""

    status_code = 401


class PermissionDeniedError(TimelineError, PermissionError):
    """Authenticated, but the requester's role is insufficient."""

    status_code = 403


class PrivateAccessError(PermissionDeniedError):
    """Read of a non-public timeline by a non-member."""


class NotFoundError(TimelineError, LookupError):
    """The requested timeline or blob does not exist."""

    status_code = 404


class QuotaExceededError(TimelineError):
    """The requester already owns the maximum number of timelines."""

    status_code = 403


class ConflictError(TimelineError):
    """The timeline changed between read and conditional write."""

    status_code = 409


class ValidationError(TimelineError, ValueError):
    """Bad file type or size, invalid role, malformed email, bad membership."""

    status_code = 400


class BlobStoreError(TimelineError):
    """The blob store could not complete a put, list or delete."""

    status_code = 502
