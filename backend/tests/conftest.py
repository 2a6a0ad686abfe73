import pytest
from io import BytesIO

from PIL import Image

from timeline_studio.database.db import init_db
from timeline_studio.errors import BlobStoreError
from timeline_studio.models import ImageAttachment, Requester, TimelineDraft
from timeline_studio.services.backgrounds import BackgroundImageService
from timeline_studio.services.blob_store import LocalBlobStore
from timeline_studio.services.media import MediaLifecycleManager
from timeline_studio.services.media_cleanup import MediaCleanupService
from timeline_studio.services.timeline import TimelineRepository


class FlakyBlobStore(LocalBlobStore):
    """Local blob store whose writes and deletes can be switched to fail."""

    def __init__(self, root: str):
        super().__init__(root)
        self.fail_puts = False
        self.fail_deletes = False

    async def put(self, path, data, content_type=None):
        if self.fail_puts:
            raise BlobStoreError("storage unavailable")
        return await super().put(path, data, content_type)

    async def delete(self, path):
        if self.fail_deletes:
            raise BlobStoreError("storage unavailable")
        await super().delete(path)


def image_bytes(width=4, height=4, fmt="PNG", mode="RGBA", color=(200, 30, 30, 255)):
    if mode == "RGB" and len(color) == 4:
        color = color[:3]
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    return image_bytes


@pytest.fixture
def make_attachment():
    def _make(file_name="photo.png", data=None, content_type="image/png", color=(200, 30, 30, 255)):
        return ImageAttachment(
            file_name=file_name,
            content_type=content_type,
            data=data if data is not None else image_bytes(color=color),
        )
    return _make


@pytest.fixture
def make_draft():
    def _make(**overrides):
        payload = {
            "title": "Industrial Revolution",
            "start": "1760-01-01T00:00:00+00:00",
            "end": "1840-01-01T00:00:00+00:00",
            "events": [],
        }
        payload.update(overrides)
        return TimelineDraft.model_validate(payload)
    return _make


# ── Storage ──

@pytest.fixture
async def database(tmp_path):
    path = str(tmp_path / "timelines.db")
    await init_db(path)
    return path


@pytest.fixture
def blob_store(tmp_path):
    return FlakyBlobStore(str(tmp_path / "media"))


@pytest.fixture
def cleanup(database, blob_store):
    return MediaCleanupService(database, blob_store, max_attempts=3)


@pytest.fixture
def media(blob_store):
    return MediaLifecycleManager(blob_store, max_image_bytes=1024 * 1024)


@pytest.fixture
def repository(database, media, cleanup):
    return TimelineRepository(
        database,
        media,
        cleanup,
        max_timelines_per_user=10,
        public_list_default=10,
        public_list_max=100,
    )


@pytest.fixture
def backgrounds(blob_store):
    return BackgroundImageService(
        blob_store,
        max_bytes=1024 * 1024,
        max_width=64,
        max_height=32,
        jpeg_quality=80,
    )


# ── Requesters ──

@pytest.fixture
def owner():
    return Requester(id="user-owner", email="owner@example.com", display_name="Olive Owner")


@pytest.fixture
def editor():
    return Requester(id="user-editor", email="editor@example.com", display_name="Eddie Editor")


@pytest.fixture
def viewer():
    return Requester(id="user-viewer", email="viewer@example.com", display_name="Vera Viewer")


@pytest.fixture
def stranger():
    return Requester(id="user-stranger", email="stranger@example.com", display_name="Sam Stranger")


@pytest.fixture
async def shared_timeline(repository, owner, editor, viewer, make_draft):
    """A private timeline shared with one editor and one viewer."""
    result = await repository.save(owner, make_draft())
    await repository.add_collaborator(owner, result.timeline_id, editor.email, "editor")
    await repository.add_collaborator(owner, result.timeline_id, viewer.email, "viewer")
    return result.timeline_id
