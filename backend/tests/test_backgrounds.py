from io import BytesIO

import pytest
from PIL import Image

from timeline_studio.errors import AuthError, NotFoundError, PermissionDeniedError, ValidationError


def stored_image(blob_store, path):
    return Image.open(BytesIO((blob_store.root / path).read_bytes()))


class TestUpload:
    async def test_small_png_is_stored_as_is(self, backgrounds, blob_store, owner, make_attachment):
        attachment = make_attachment()

        upload = await backgrounds.upload(owner, attachment)

        assert upload.path.startswith(f"timeline-backgrounds/{owner.id}/{owner.id}_")
        assert upload.path.endswith(".png")
        assert upload.url == f"/media/{upload.path}"
        assert (blob_store.root / upload.path).read_bytes() == attachment.data

    async def test_large_jpeg_is_downsized(self, backgrounds, blob_store, owner, make_attachment, make_image):
        data = make_image(width=200, height=100, fmt="JPEG", mode="RGB")
        attachment = make_attachment(file_name="wide.jpg", data=data, content_type="image/jpeg")

        upload = await backgrounds.upload(owner, attachment)

        image = stored_image(blob_store, upload.path)
        assert image.format == "JPEG"
        assert image.size == (64, 32)
        assert upload.path.endswith(".jpg")

    async def test_large_png_keeps_format(self, backgrounds, blob_store, owner, make_attachment, make_image):
        attachment = make_attachment(data=make_image(width=40, height=120))

        upload = await backgrounds.upload(owner, attachment)

        image = stored_image(blob_store, upload.path)
        assert image.format == "PNG"
        assert image.size[1] == 32
        assert image.size[0] <= 64

    async def test_without_compression(self, backgrounds, blob_store, owner, make_attachment, make_image):
        attachment = make_attachment(data=make_image(width=200, height=100))

        upload = await backgrounds.upload(owner, attachment, compress=False)

        assert stored_image(blob_store, upload.path).size == (200, 100)

    async def test_rejects_gif(self, backgrounds, owner, make_attachment):
        with pytest.raises(ValidationError):
            await backgrounds.upload(owner, make_attachment(file_name="a.gif", content_type="image/gif"))

    async def test_rejects_oversized(self, backgrounds, owner, make_attachment):
        with pytest.raises(ValidationError, match="too large"):
            await backgrounds.upload(owner, make_attachment(data=b"x" * (1024 * 1024 + 1)))

    async def test_rejects_unreadable_image(self, backgrounds, owner, make_attachment):
        with pytest.raises(ValidationError, match="readable"):
            await backgrounds.upload(owner, make_attachment(data=b"definitely not a png"))

    async def test_requires_requester(self, backgrounds, make_attachment):
        with pytest.raises(AuthError):
            await backgrounds.upload(None, make_attachment())


class TestLibrary:
    async def test_list_only_own(self, backgrounds, owner, stranger, make_attachment):
        mine = await backgrounds.upload(owner, make_attachment())
        await backgrounds.upload(stranger, make_attachment())

        listed = await backgrounds.list(owner)

        assert [b.path for b in listed] == [mine.path]
        assert listed[0].url == mine.url

    async def test_delete_own(self, backgrounds, blob_store, owner, make_attachment):
        upload = await backgrounds.upload(owner, make_attachment())

        await backgrounds.delete(owner, upload.path)

        assert not await blob_store.exists(upload.path)
        assert await backgrounds.list(owner) == []

    async def test_cannot_delete_others(self, backgrounds, owner, stranger, make_attachment):
        upload = await backgrounds.upload(owner, make_attachment())
        with pytest.raises(PermissionDeniedError):
            await backgrounds.delete(stranger, upload.path)

    async def test_delete_missing(self, backgrounds, owner):
        with pytest.raises(NotFoundError):
            await backgrounds.delete(owner, f"timeline-backgrounds/{owner.id}/gone.png")
