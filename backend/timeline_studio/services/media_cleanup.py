"""Durable queue of blob deletions.

Repository writes enqueue obsolete blob paths in the same transaction as the
document change, then drain the queue after commit. A failed delete stays
queued with its attempt count and last error until a later drain succeeds.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import uuid4

import aiosqlite

from timeline_studio.errors import BlobStoreError
from timeline_studio.logging import get_logger
from timeline_studio.models import CleanupReport, CleanupTask
from timeline_studio.services.blob_store import BlobStore

logger = get_logger('services.media_cleanup')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_task(row: dict) -> CleanupTask:
    return CleanupTask(
        id=row["id"],
        path=row["path"],
        reason=row["reason"],
        attempts=row["attempts"],
        last_error=row.get("last_error"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class MediaCleanupService:
    """Outbox for blob deletions that must never block a document write."""

    def __init__(self, db_path: str, blob_store: BlobStore, max_attempts: int = 5):
        self.db_path = db_path
        self.blob_store = blob_store
        self.max_attempts = max_attempts
        self._drain_lock = asyncio.Lock()

    async def _get_db(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path, isolation_level=None)
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        return db

    async def enqueue(
        self,
        db: aiosqlite.Connection,
        paths: Iterable[str],
        reason: str,
    ) -> list[str]:
        """
        Queue blob deletions on a connection with an open transaction.

        Already queued paths are left as they are.

        :return: The paths passed in, deduplicated
        :rtype: list[str]
        """
        queued = sorted(set(paths))
        now = _now()
        for path in queued:
            await db.execute(
                """INSERT INTO media_cleanup_queue (id, path, reason, attempts, created_at, updated_at)
                   VALUES (?, ?, ?, 0, ?, ?)
                   ON CONFLICT(path) DO NOTHING""",
                (str(uuid4()), path, reason, now, now),
            )
        return queued

    async def schedule(self, paths: Iterable[str], reason: str) -> list[str]:
        """Queue blob deletions outside any repository transaction."""
        queued = sorted(set(paths))
        if not queued:
            return []
        db = await self._get_db()
        try:
            await db.execute("BEGIN IMMEDIATE")
            try:
                await self.enqueue(db, queued, reason)
            except Exception:
                await db.execute("ROLLBACK")
                raise
            await db.execute("COMMIT")
        finally:
            await db.close()
        logger.info(f"Scheduled {len(queued)} blob(s) for cleanup ({reason})")
        return queued

    async def pending(self, include_exhausted: bool = True) -> list[CleanupTask]:
        db = await self._get_db()
        try:
            if include_exhausted:
                cursor = await db.execute(
                    "SELECT * FROM media_cleanup_queue ORDER BY created_at ASC, path ASC"
                )
            else:
                cursor = await db.execute(
                    """SELECT * FROM media_cleanup_queue WHERE attempts < ?
                       ORDER BY created_at ASC, path ASC""",
                    (self.max_attempts,),
                )
            rows = await cursor.fetchall()
            return [_row_to_task(dict(r)) for r in rows]
        finally:
            await db.close()

    async def drain(
        self,
        paths: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> CleanupReport:
        """
        Attempt every pending deletion, or only those for ``paths``.

        Successful deletions are removed from the queue. Failures are logged
        and recorded on the row; they are never raised.

        :param paths: Restrict the drain to these paths
        :type paths: Iterable[str] | None
        :param limit: Maximum number of rows to attempt
        :type limit: int | None
        :return: Deleted and failed paths
        :rtype: CleanupReport
        """
        report = CleanupReport()
        wanted = set(paths) if paths is not None else None
        if wanted is not None and not wanted:
            return report

        async with self._drain_lock:
            tasks = await self.pending(include_exhausted=False)
            if wanted is not None:
                tasks = [task for task in tasks if task.path in wanted]
            if limit is not None:
                tasks = tasks[:limit]

            for task in tasks:
                try:
                    await self.blob_store.delete(task.path)
                except (BlobStoreError, OSError) as exc:
                    await self._record_failure(task, str(exc))
                    report.failed.append(task.path)
                    continue
                await self._remove(task)
                report.deleted.append(task.path)

        if report.deleted or report.failed:
            logger.info(
                f"Media cleanup: {len(report.deleted)} deleted, {len(report.failed)} failed"
            )
        return report

    async def _remove(self, task: CleanupTask) -> None:
        db = await self._get_db()
        try:
            await db.execute("DELETE FROM media_cleanup_queue WHERE id = ?", (task.id,))
        finally:
            await db.close()

    async def _record_failure(self, task: CleanupTask, error: str) -> None:
        attempts = task.attempts + 1
        logger.warning(
            f"Failed to delete blob {task.path} (attempt {attempts}/{self.max_attempts}): {error}"
        )
        db = await self._get_db()
        try:
            await db.execute(
                """UPDATE media_cleanup_queue
                   SET attempts = ?, last_error = ?, updated_at = ?
                   WHERE id = ?""",
                (attempts, error, _now(), task.id),
            )
        finally:
            await db.close()
