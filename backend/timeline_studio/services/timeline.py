"""Timeline repository: access-controlled persistence of timelines and their media."""

import json
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

import aiosqlite

from timeline_studio.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    ValidationError,
)
from timeline_studio.logging import get_logger
from timeline_studio.models import (
    Collaborator,
    CollaboratorRole,
    Event,
    ReconcileResult,
    Requester,
    Role,
    SaveResult,
    Timeline,
    TimelineDraft,
    TimelineSummary,
    TimelineView,
    normalize_email,
    normalize_type,
)
from timeline_studio.models.domain.timeline import (
    DEFAULT_TIMELINE_COLOR,
    DEFAULT_TIMELINE_THICKNESS,
)
from timeline_studio.services import access
from timeline_studio.services.media import MediaContext, MediaLifecycleManager
from timeline_studio.services.media_cleanup import MediaCleanupService
from timeline_studio.services.text_linkifier import normalize_event_text

logger = get_logger('services.timeline')

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SUMMARY_COLUMNS = """t.id, t.title, t.start_at, t.end_at, t.is_public, t.owner_id,
    t.owner_display_name, t.background_color, t.background_image, t.timeline_color,
    t.interval_settings, json_array_length(t.events) AS event_count,
    t.created_at, t.updated_at"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_json(raw: str | None, fallback: Any) -> Any:
    if not raw:
        return fallback
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return fallback


def _normalize_collaborator_role(role: str) -> CollaboratorRole:
    normalized = normalize_type(role or "")
    try:
        return CollaboratorRole(normalized)
    except ValueError as exc:
        raise ValidationError("role must be one of: viewer, editor") from exc


def _normalize_collaborator_email(email: str) -> str:
    normalized = normalize_email(email or "")
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError(f"Invalid email address: {email!r}")
    return normalized


def _document_fields(draft: TimelineDraft, events: list[Event]) -> dict[str, Any]:
    background = draft.background_image
    return {
        "title": draft.title,
        "start_at": draft.start.isoformat(),
        "end_at": draft.end.isoformat(),
        "orientation": draft.orientation.value,
        "events": json.dumps([event.model_dump(mode="json") for event in events]),
        "background_color": draft.background_color,
        "background_image": json.dumps(background.model_dump(mode="json")) if background else None,
        "timeline_color": (
            DEFAULT_TIMELINE_COLOR if draft.timeline_color is None else draft.timeline_color
        ),
        "timeline_thickness": (
            DEFAULT_TIMELINE_THICKNESS
            if draft.timeline_thickness is None
            else draft.timeline_thickness
        ),
        "interval_settings": json.dumps(
            draft.resolved_interval_settings().model_dump(mode="json")
        ),
    }


def _row_to_timeline(row: dict, collaborator_rows: list[dict]) -> Timeline:
    roles = {r["email"]: r["role"] for r in collaborator_rows}
    return Timeline(
        id=row["id"],
        title=row["title"],
        start=row["start_at"],
        end=row["end_at"],
        orientation=row["orientation"],
        events=_load_json(row.get("events"), []),
        background_color=row.get("background_color"),
        background_image=_load_json(row.get("background_image"), None),
        timeline_color=row["timeline_color"],
        timeline_thickness=row["timeline_thickness"],
        interval_settings=_load_json(row.get("interval_settings"), {}),
        is_public=bool(row["is_public"]),
        owner_id=row["owner_id"],
        owner_email=row.get("owner_email") or "",
        owner_display_name=row.get("owner_display_name") or "",
        collaborators=list(roles),
        collaborator_roles=roles,
        revision=row["revision"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_summary(row: dict) -> TimelineSummary:
    return TimelineSummary(
        id=row["id"],
        title=row["title"],
        start=row["start_at"],
        end=row["end_at"],
        is_public=bool(row["is_public"]),
        owner_id=row["owner_id"],
        owner_display_name=row.get("owner_display_name") or "",
        background_color=row.get("background_color"),
        background_image=_load_json(row.get("background_image"), None),
        timeline_color=row["timeline_color"],
        interval_settings=_load_json(row.get("interval_settings"), {}),
        event_count=row.get("event_count") or 0,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_view(timeline: Timeline, role: Role) -> TimelineView:
    return TimelineView.model_validate(
        {
            **timeline.model_dump(),
            "is_owner": role == Role.OWNER,
            "is_collaborator": role in (Role.EDITOR, Role.VIEWER),
            "collaborator_role": role,
            "can_edit": role in access.WRITE_ROLES,
        }
    )


class TimelineRepository:
    """Create, update, load, list and share timelines."""

    def __init__(
        self,
        db_path: str,
        media: MediaLifecycleManager,
        cleanup: MediaCleanupService,
        max_timelines_per_user: int = 10,
        public_list_default: int = 10,
        public_list_max: int = 100,
    ):
        self.db_path = db_path
        self.media = media
        self.cleanup = cleanup
        self.max_timelines_per_user = max_timelines_per_user
        self.public_list_default = public_list_default
        self.public_list_max = public_list_max

    async def _get_db(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path, isolation_level=None)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        return db

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        db = await self._get_db()
        try:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except Exception:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")
        finally:
            await db.close()

    async def _fetch_timeline(
        self,
        db: aiosqlite.Connection,
        timeline_id: str,
    ) -> Timeline | None:
        cursor = await db.execute("SELECT * FROM timelines WHERE id = ?", (timeline_id,))
        row = await cursor.fetchone()
        if not row:
            return None
        collab_cursor = await db.execute(
            """SELECT email, role FROM timeline_collaborators
               WHERE timeline_id = ?
               ORDER BY added_at ASC, email ASC""",
            (timeline_id,),
        )
        collaborator_rows = await collab_cursor.fetchall()
        return _row_to_timeline(dict(row), [dict(r) for r in collaborator_rows])

    async def _fetch_collaborators(
        self,
        db: aiosqlite.Connection,
        timeline_id: str,
    ) -> list[Collaborator]:
        cursor = await db.execute(
            """SELECT email, role FROM timeline_collaborators
               WHERE timeline_id = ?
               ORDER BY added_at ASC, email ASC""",
            (timeline_id,),
        )
        rows = await cursor.fetchall()
        return [Collaborator(email=r["email"], role=r["role"]) for r in rows]

    async def _count_owned(self, db: aiosqlite.Connection, owner_id: str) -> int:
        cursor = await db.execute(
            "SELECT COUNT(*) AS total FROM timelines WHERE owner_id = ?",
            (owner_id,),
        )
        row = await cursor.fetchone()
        return int(row["total"] if row else 0)

    async def _touch(self, db: aiosqlite.Connection, timeline_id: str) -> None:
        await db.execute(
            "UPDATE timelines SET updated_at = ? WHERE id = ?",
            (_now(), timeline_id),
        )

    async def _discard_uploads(self, paths: list[str]) -> None:
        if not paths:
            return
        await self.cleanup.schedule(paths, reason="save_aborted")
        await self.cleanup.drain(paths=paths)

    async def get_timeline(self, timeline_id: str) -> Timeline | None:
        db = await self._get_db()
        try:
            return await self._fetch_timeline(db, timeline_id)
        finally:
            await db.close()

    async def _require_timeline(self, timeline_id: str) -> Timeline:
        timeline = await self.get_timeline(timeline_id)
        if not timeline:
            raise NotFoundError("Timeline not found")
        return timeline

    async def count_owned(self, owner_id: str) -> int:
        db = await self._get_db()
        try:
            return await self._count_owned(db, owner_id)
        finally:
            await db.close()

    # ── Writes ──

    async def save(self, requester: Optional[Requester], draft: TimelineDraft) -> SaveResult:
        """
        Create a timeline, or update it when the draft already has an id.

        :param requester: Authenticated user creating the timeline
        :type requester: Requester | None
        :param draft: Client-submitted timeline
        :type draft: TimelineDraft
        :return: New timeline id, revision and downgraded media issues
        :rtype: SaveResult
        """
        requester = access.require_requester(requester)
        if draft.id:
            return await self.update(requester, draft.id, draft)

        # Pre-check before uploading; the check inside the transaction is authoritative
        if await self.count_owned(requester.id) >= self.max_timelines_per_user:
            raise QuotaExceededError(
                f"You have reached the limit of {self.max_timelines_per_user} timelines. "
                "Delete an existing timeline before creating a new one."
            )

        timeline_id = str(uuid4())
        reconciled = ReconcileResult()
        try:
            await self.media.reconcile(
                draft.events,
                None,
                MediaContext(owner_id=requester.id, timeline_id=timeline_id, is_update=False),
                result=reconciled,
            )
            events = [normalize_event_text(event) for event in reconciled.events]

            now = _now()
            fields = {
                "id": timeline_id,
                "owner_id": requester.id,
                "owner_email": normalize_email(requester.email) if requester.email else "",
                "owner_display_name": requester.display_name or "",
                **_document_fields(draft, events),
                "is_public": int(bool(draft.is_public)),
                "revision": 1,
                "created_at": now,
                "updated_at": now,
            }
            columns = ", ".join(fields)
            placeholders = ", ".join("?" for _ in fields)

            async with self._transaction() as db:
                if await self._count_owned(db, requester.id) >= self.max_timelines_per_user:
                    raise QuotaExceededError(
                        f"You have reached the limit of {self.max_timelines_per_user} timelines. "
                        "Delete an existing timeline before creating a new one."
                    )
                await db.execute(
                    f"INSERT INTO timelines ({columns}) VALUES ({placeholders})",
                    list(fields.values()),
                )
        except Exception:
            await self._discard_uploads(reconciled.uploaded_paths)
            raise

        logger.info(
            f"Created timeline {timeline_id[:8]} for user {requester.id} "
            f"({len(events)} events, {len(reconciled.uploaded_paths)} uploads)"
        )
        return SaveResult(
            timeline_id=timeline_id,
            revision=1,
            media_issues=reconciled.issues,
        )

    async def update(
        self,
        requester: Optional[Requester],
        timeline_id: str,
        draft: TimelineDraft,
    ) -> SaveResult:
        """
        Replace a timeline's content, reconciling event media against the stored version.

        Only the owner may change ``is_public``; other editors' values are ignored.

        :raises NotFoundError: The timeline does not exist
        :raises PermissionDeniedError: The requester is not the owner or an editor
        :raises ConflictError: The timeline was written by someone else meanwhile
        """
        requester = access.require_requester(requester)
        existing = await self._require_timeline(timeline_id)
        role = access.require_write(existing, requester)

        is_public = existing.is_public
        if role == Role.OWNER and draft.is_public is not None:
            is_public = draft.is_public

        reconciled = ReconcileResult()
        try:
            await self.media.reconcile(
                draft.events,
                existing.events,
                MediaContext(owner_id=existing.owner_id, timeline_id=existing.id, is_update=True),
                result=reconciled,
            )
            events = [normalize_event_text(event) for event in reconciled.events]

            fields = {
                **_document_fields(draft, events),
                "is_public": int(is_public),
                "updated_at": _now(),
            }
            set_clause = ", ".join(f"{key} = ?" for key in fields)
            params = list(fields.values()) + [timeline_id, existing.revision]

            async with self._transaction() as db:
                cursor = await db.execute(
                    f"""UPDATE timelines SET {set_clause}, revision = revision + 1
                        WHERE id = ? AND revision = ?""",
                    params,
                )
                if cursor.rowcount <= 0:
                    if await self._fetch_timeline(db, timeline_id) is None:
                        raise NotFoundError("Timeline not found")
                    raise ConflictError(
                        "Timeline was changed by someone else. Reload it and try again."
                    )
                await self.cleanup.enqueue(
                    db, reconciled.obsolete_paths, reason="event_media_replaced"
                )
        except Exception:
            await self._discard_uploads(reconciled.uploaded_paths)
            raise

        await self.cleanup.drain(paths=reconciled.obsolete_paths)
        logger.info(
            f"Updated timeline {timeline_id[:8]} by {role.value} {requester.id} "
            f"({len(reconciled.uploaded_paths)} uploads, {len(reconciled.obsolete_paths)} obsolete)"
        )
        return SaveResult(
            timeline_id=timeline_id,
            revision=existing.revision + 1,
            media_issues=reconciled.issues,
        )

    async def delete(self, requester: Optional[Requester], timeline_id: str) -> bool:
        """
        Delete a timeline and queue every managed event image for deletion.

        Blob deletion failures stay queued and never block the record delete.
        """
        requester = access.require_requester(requester)
        existing = await self._require_timeline(timeline_id)
        access.require_owner(existing, requester)

        paths = [event.image_storage_path for event in existing.events if event.image_storage_path]
        async with self._transaction() as db:
            cursor = await db.execute(
                "DELETE FROM timelines WHERE id = ? AND revision = ?",
                (timeline_id, existing.revision),
            )
            if cursor.rowcount <= 0:
                if await self._fetch_timeline(db, timeline_id) is None:
                    raise NotFoundError("Timeline not found")
                raise ConflictError(
                    "Timeline was changed while deleting. Reload it and try again."
                )
            await self.cleanup.enqueue(db, paths, reason="timeline_deleted")

        report = await self.cleanup.drain(paths=paths)
        logger.info(
            f"Deleted timeline {timeline_id[:8]} "
            f"({len(report.deleted)} blobs removed, {len(report.failed)} left queued)"
        )
        return True

    async def update_privacy(
        self,
        requester: Optional[Requester],
        timeline_id: str,
        is_public: bool,
    ) -> TimelineView:
        requester = access.require_requester(requester)
        existing = await self._require_timeline(timeline_id)
        access.require_owner(existing, requester)

        async with self._transaction() as db:
            await db.execute(
                """UPDATE timelines SET is_public = ?, updated_at = ?, revision = revision + 1
                   WHERE id = ?""",
                (int(is_public), _now(), timeline_id),
            )
        logger.info(f"Timeline {timeline_id[:8]} is now {'public' if is_public else 'private'}")
        return await self.load(requester, timeline_id)

    # ── Reads ──

    async def load(self, requester: Optional[Requester], timeline_id: str) -> TimelineView:
        """
        Load a timeline as seen by the requester.

        Anonymous requesters can only load public timelines.

        :raises NotFoundError: The timeline does not exist
        :raises PrivateAccessError: The timeline is private and the requester is not a member
        """
        timeline = await self._require_timeline(timeline_id)
        role = access.require_read(timeline, requester)
        return _to_view(timeline, role)

    async def list_public(self, limit: Optional[int] = None) -> list[TimelineSummary]:
        """Public timelines, newest first. Needs no requester."""
        if limit is None:
            limit = self.public_list_default
        limit = max(1, min(int(limit), self.public_list_max))

        db = await self._get_db()
        try:
            cursor = await db.execute(
                f"""SELECT {SUMMARY_COLUMNS} FROM timelines t
                    WHERE t.is_public = 1
                    ORDER BY t.created_at DESC, t.rowid DESC
                    LIMIT ?""",
                (limit,),
            )
            rows = await cursor.fetchall()
            return [_row_to_summary(dict(r)) for r in rows]
        finally:
            await db.close()

    async def list_shared(self, requester: Optional[Requester]) -> list[TimelineSummary]:
        """Timelines where the requester's email is a collaborator, newest first."""
        requester = access.require_requester(requester)
        if not requester.email:
            return []

        db = await self._get_db()
        try:
            cursor = await db.execute(
                f"""SELECT {SUMMARY_COLUMNS} FROM timelines t
                    JOIN timeline_collaborators c ON c.timeline_id = t.id
                    WHERE c.email = ?
                    ORDER BY t.created_at DESC, t.rowid DESC""",
                (normalize_email(requester.email),),
            )
            rows = await cursor.fetchall()
            return [_row_to_summary(dict(r)) for r in rows]
        finally:
            await db.close()

    # ── Collaborators ──

    async def list_collaborators(
        self,
        requester: Optional[Requester],
        timeline_id: str,
    ) -> list[Collaborator]:
        requester = access.require_requester(requester)
        timeline = await self._require_timeline(timeline_id)
        if access.role_of(timeline, requester) == Role.NONE:
            raise PermissionDeniedError("Only the owner and collaborators can see collaborators")

        db = await self._get_db()
        try:
            return await self._fetch_collaborators(db, timeline_id)
        finally:
            await db.close()

    async def add_collaborator(
        self,
        requester: Optional[Requester],
        timeline_id: str,
        email: str,
        role: str = CollaboratorRole.VIEWER.value,
    ) -> list[Collaborator]:
        """
        Share a timeline with another user by email.

        :raises ValidationError: Bad role, malformed email, the owner's own email,
            or the email is already a collaborator
        """
        requester = access.require_requester(requester)
        timeline = await self._require_timeline(timeline_id)
        access.require_owner(timeline, requester)

        granted = _normalize_collaborator_role(role)
        normalized = _normalize_collaborator_email(email)
        if timeline.owner_email and normalized == normalize_email(timeline.owner_email):
            raise ValidationError("The owner cannot be added as a collaborator")

        async with self._transaction() as db:
            cursor = await db.execute(
                "SELECT 1 FROM timeline_collaborators WHERE timeline_id = ? AND email = ?",
                (timeline_id, normalized),
            )
            if await cursor.fetchone():
                raise ValidationError(f"{normalized} is already a collaborator")
            await db.execute(
                """INSERT INTO timeline_collaborators (timeline_id, email, role, added_at)
                   VALUES (?, ?, ?, ?)""",
                (timeline_id, normalized, granted.value, _now()),
            )
            await self._touch(db, timeline_id)
            collaborators = await self._fetch_collaborators(db, timeline_id)

        logger.info(f"Shared timeline {timeline_id[:8]} with {normalized} as {granted.value}")
        return collaborators

    async def remove_collaborator(
        self,
        requester: Optional[Requester],
        timeline_id: str,
        email: str,
    ) -> list[Collaborator]:
        """Remove a collaborator. Removing a non-member is a no-op."""
        requester = access.require_requester(requester)
        timeline = await self._require_timeline(timeline_id)
        access.require_owner(timeline, requester)

        normalized = normalize_email(email or "")
        async with self._transaction() as db:
            cursor = await db.execute(
                "DELETE FROM timeline_collaborators WHERE timeline_id = ? AND email = ?",
                (timeline_id, normalized),
            )
            if cursor.rowcount > 0:
                await self._touch(db, timeline_id)
                logger.info(f"Removed {normalized} from timeline {timeline_id[:8]}")
            collaborators = await self._fetch_collaborators(db, timeline_id)
        return collaborators

    async def update_collaborator_role(
        self,
        requester: Optional[Requester],
        timeline_id: str,
        email: str,
        role: str,
    ) -> list[Collaborator]:
        requester = access.require_requester(requester)
        timeline = await self._require_timeline(timeline_id)
        access.require_owner(timeline, requester)

        granted = _normalize_collaborator_role(role)
        normalized = normalize_email(email or "")
        async with self._transaction() as db:
            cursor = await db.execute(
                "UPDATE timeline_collaborators SET role = ? WHERE timeline_id = ? AND email = ?",
                (granted.value, timeline_id, normalized),
            )
            if cursor.rowcount <= 0:
                raise ValidationError(f"{normalized} is not a collaborator on this timeline")
            await self._touch(db, timeline_id)
            collaborators = await self._fetch_collaborators(db, timeline_id)

        logger.info(f"Changed {normalized} to {granted.value} on timeline {timeline_id[:8]}")
        return collaborators

    # ── Owned timelines ──

    async def list(self, requester: Optional[Requester]) -> list[TimelineSummary]:
        """Timelines owned by the requester, newest first."""
        requester = access.require_requester(requester)
        db = await self._get_db()
        try:
            cursor = await db.execute(
                f"""SELECT {SUMMARY_COLUMNS} FROM timelines t
                    WHERE t.owner_id = ?
                    ORDER BY t.created_at DESC, t.rowid DESC""",
                (requester.id,),
            )
            rows = await cursor.fetchall()
            return [_row_to_summary(dict(r)) for r in rows]
        finally:
            await db.close()
