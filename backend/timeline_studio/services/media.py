"""Event image lifecycle: upload, reuse detection and obsolete-blob tracking.

Each incoming event is resolved against its prior stored version, matched by
durable event id. Blob deletions are not performed here; obsolete paths are
returned so the repository can queue them in the same transaction as the
document write (see ``MediaCleanupService``).
"""

import time
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from timeline_studio.errors import BlobStoreError, ValidationError
from timeline_studio.logging import get_logger
from timeline_studio.models import (
    Event,
    EventDraft,
    ImageAttachment,
    MediaIssue,
    ReconcileResult,
)
from timeline_studio.services.blob_store import BlobStore

logger = get_logger('services.media')

EVENT_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}

_CLEARED_MEDIA = {
    "has_image": False,
    "image_url": None,
    "image_storage_path": None,
    "image_file_name": None,
    "image_checksum": None,
}


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def validate_image(
    attachment: ImageAttachment,
    allowed_types: set[str],
    max_bytes: int,
) -> None:
    """
    Check an attachment's MIME type and size.

    :raises ValidationError: When the type is not allowed or the file is too large
    """
    if attachment.content_type not in allowed_types:
        raise ValidationError(
            f"File type {attachment.content_type} is not supported"
        )
    if attachment.size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        raise ValidationError(f"File is too large. Maximum size is {max_mb:g}MB")


def event_image_path(
    owner_id: str,
    timeline_id: Optional[str],
    event_id: str,
    extension: str,
    timestamp_ms: Optional[int] = None,
) -> str:
    """Storage path of a managed event image."""
    stamp = timestamp_ms if timestamp_ms is not None else _epoch_ms()
    folder = timeline_id or f"temp_{stamp}"
    return f"users/{owner_id}/timelines/{folder}/events/{event_id}_{stamp}.{extension}"


@dataclass
class MediaContext:
    """Who owns the blobs and whether there is a stored version to compare against."""
    owner_id: str
    timeline_id: Optional[str]
    is_update: bool


class MediaLifecycleManager:
    """Resolves every event's media fields to a consistent final state."""

    def __init__(
        self,
        blob_store: BlobStore,
        max_image_bytes: int = 5 * 1024 * 1024,
        allowed_types: Optional[set[str]] = None,
    ):
        self.blob_store = blob_store
        self.max_image_bytes = max_image_bytes
        self.allowed_types = allowed_types or EVENT_IMAGE_TYPES

    def _match_prior(
        self,
        incoming: list[EventDraft],
        prior: list[Event],
    ) -> list[Optional[Event]]:
        prior_by_id = {event.id: event for event in prior}
        claimed = {draft.id for draft in incoming if draft.id in prior_by_id}

        matches: list[Optional[Event]] = []
        for index, draft in enumerate(incoming):
            if draft.id and draft.id in prior_by_id:
                matches.append(prior_by_id[draft.id])
            elif draft.id is None and index < len(prior) and prior[index].id not in claimed:
                # Clients that never received ids fall back to list position.
                claimed.add(prior[index].id)
                matches.append(prior[index])
            else:
                matches.append(None)
        return matches

    def _is_trusted_path(
        self,
        path: str,
        context: MediaContext,
        prior_paths: set[str],
    ) -> bool:
        if path in prior_paths:
            return True
        if not context.timeline_id:
            return False
        if any(part in ("", ".", "..") for part in path.split("/")):
            return False
        return path.startswith(f"users/{context.owner_id}/timelines/{context.timeline_id}/")

    async def _upload(
        self,
        index: int,
        event_id: str,
        attachment: ImageAttachment,
        context: MediaContext,
        result: ReconcileResult,
    ) -> Optional[dict]:
        try:
            validate_image(attachment, self.allowed_types, self.max_image_bytes)
            path = event_image_path(
                context.owner_id, context.timeline_id, event_id, attachment.extension
            )
            url = await self.blob_store.put(path, attachment.data, attachment.content_type)
        except (ValidationError, BlobStoreError) as exc:
            logger.warning(f"Dropping image for event {event_id[:8]}: {exc}")
            result.issues.append(MediaIssue(index=index, event_id=event_id, reason=str(exc)))
            return None

        result.uploaded_paths.append(path)
        logger.info(f"Uploaded image for event {event_id[:8]} to {path}")
        return {
            "has_image": True,
            "image_url": url,
            "image_storage_path": path,
            "image_file_name": attachment.file_name,
            "image_checksum": attachment.checksum,
        }

    async def _reconcile_event(
        self,
        index: int,
        draft: EventDraft,
        previous: Optional[Event],
        context: MediaContext,
        prior_paths: set[str],
        obsolete: set[str],
        result: ReconcileResult,
    ) -> Event:
        event_id = draft.id or (previous.id if previous else None) or str(uuid4())
        fields = {"id": event_id, **draft.layout_fields()}
        previous_path = previous.image_storage_path if previous else None
        attachment = draft.image

        if isinstance(attachment, ImageAttachment):
            # Re-submitted event whose attachment was already stored.
            if (
                draft.image_url
                and draft.image_storage_path
                and draft.image_checksum == attachment.checksum
                and self._is_trusted_path(draft.image_storage_path, context, prior_paths)
            ):
                return Event(
                    **fields,
                    has_image=True,
                    image_url=draft.image_url,
                    image_storage_path=draft.image_storage_path,
                    image_file_name=draft.image_file_name or attachment.file_name,
                    image_checksum=draft.image_checksum,
                )

            media = await self._upload(index, event_id, attachment, context, result)
            if media is None:
                if context.is_update and previous_path:
                    obsolete.add(previous_path)
                return Event(**fields, **_CLEARED_MEDIA)
            if context.is_update and previous_path and previous_path != media["image_storage_path"]:
                obsolete.add(previous_path)
            return Event(**fields, **media)

        if isinstance(attachment, str) and attachment.strip():
            if context.is_update and previous_path:
                obsolete.add(previous_path)
            return Event(
                **fields,
                has_image=True,
                image_url=attachment.strip(),
                image_storage_path=None,
                image_file_name=None,
                image_checksum=None,
            )

        if not draft.image_url:
            if previous is not None and previous.has_image and context.is_update and previous_path:
                obsolete.add(previous_path)
                logger.info(f"Image removed from event {event_id[:8]}")
            return Event(**fields, **_CLEARED_MEDIA)

        storage_path = draft.image_storage_path
        if storage_path and not self._is_trusted_path(storage_path, context, prior_paths):
            logger.warning(
                f"Ignoring foreign storage path on event {event_id[:8]}: {storage_path}"
            )
            storage_path = None
        if context.is_update and previous_path and previous_path != storage_path:
            obsolete.add(previous_path)
        return Event(
            **fields,
            has_image=True,
            image_url=draft.image_url,
            image_storage_path=storage_path,
            image_file_name=draft.image_file_name,
            image_checksum=draft.image_checksum if storage_path else None,
        )

    async def reconcile(
        self,
        incoming: list[EventDraft],
        prior: Optional[list[Event]],
        context: MediaContext,
        result: Optional[ReconcileResult] = None,
    ) -> ReconcileResult:
        """
        Resolve the media of every incoming event.

        :param incoming: Events as submitted by the client
        :type incoming: list[EventDraft]
        :param prior: Events as currently stored, or None for a new timeline
        :type prior: list[Event] | None
        :param context: Owner, timeline id and whether this is an update
        :type context: MediaContext
        :param result: Filled in place; holds the uploaded paths even if reconciling raises
        :type result: ReconcileResult | None
        :return: Normalized events plus uploaded and obsolete blob paths
        :rtype: ReconcileResult
        """
        ids = [draft.id for draft in incoming if draft.id]
        duplicates = sorted({event_id for event_id in ids if ids.count(event_id) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate event id(s): {', '.join(duplicates)}")

        prior = prior or []
        prior_paths = {event.image_storage_path for event in prior if event.image_storage_path}
        matches = self._match_prior(incoming, prior)
        obsolete: set[str] = set()
        result = result if result is not None else ReconcileResult()

        for index, (draft, previous) in enumerate(zip(incoming, matches)):
            event = await self._reconcile_event(
                index, draft, previous, context, prior_paths, obsolete, result
            )
            result.events.append(event)

        if context.is_update:
            matched_ids = {previous.id for previous in matches if previous is not None}
            for event in prior:
                if event.id not in matched_ids and event.image_storage_path:
                    obsolete.add(event.image_storage_path)

        live_paths = {event.image_storage_path for event in result.events if event.image_storage_path}
        result.obsolete_paths = sorted(obsolete - live_paths)
        return result
