"""Per-user library of uploaded timeline background images."""

import asyncio
import time
from io import BytesIO
from pathlib import PurePosixPath
from typing import Optional
from uuid import uuid4

from PIL import Image, UnidentifiedImageError

from timeline_studio.errors import NotFoundError, PermissionDeniedError, ValidationError
from timeline_studio.logging import get_logger
from timeline_studio.models import BackgroundUpload, ImageAttachment, Requester
from timeline_studio.services import access
from timeline_studio.services.blob_store import BlobStore
from timeline_studio.services.media import validate_image

logger = get_logger('services.backgrounds')

BACKGROUND_PREFIX = "timeline-backgrounds"
BACKGROUND_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

# Pillow format name -> (extension, content type)
_FORMATS = {
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
    "WEBP": ("webp", "image/webp"),
}


def _downsize(
    data: bytes,
    max_width: int,
    max_height: int,
    jpeg_quality: int,
) -> tuple[bytes, str, str]:
    """
    Shrink an image to fit the bounds, keeping its format.

    :return: Encoded bytes, file extension and content type
    :rtype: tuple[bytes, str, str]
    :raises ValidationError: The data is not a supported image
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValidationError("File is not a readable image") from exc

    image_format = img.format
    if image_format not in _FORMATS:
        raise ValidationError(f"Image format {image_format} is not supported")
    extension, content_type = _FORMATS[image_format]

    resized = False
    if img.width > max_width or img.height > max_height:
        ratio = min(max_width / img.width, max_height / img.height)
        new_size = (max(1, round(img.width * ratio)), max(1, round(img.height * ratio)))
        img = img.resize(new_size, Image.Resampling.LANCZOS)
        resized = True
    elif image_format != "JPEG":
        return data, extension, content_type

    output = BytesIO()
    if image_format == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(output, "JPEG", quality=jpeg_quality, optimize=True)
    else:
        img.save(output, image_format)
    encoded = output.getvalue()

    if not resized and len(encoded) >= len(data):
        return data, extension, content_type
    return encoded, extension, content_type


def background_path(user_id: str, extension: str) -> str:
    stamp = int(time.time() * 1000)
    return f"{BACKGROUND_PREFIX}/{user_id}/{user_id}_{stamp}_{uuid4().hex[:13]}.{extension}"


class BackgroundImageService:
    """Upload, list and delete a requester's background images."""

    def __init__(
        self,
        blob_store: BlobStore,
        max_bytes: int = 5 * 1024 * 1024,
        max_width: int = 1920,
        max_height: int = 1080,
        jpeg_quality: int = 80,
    ):
        self.blob_store = blob_store
        self.max_bytes = max_bytes
        self.max_width = max_width
        self.max_height = max_height
        self.jpeg_quality = jpeg_quality

    def _to_upload(self, path: str, url: str, size: Optional[int] = None) -> BackgroundUpload:
        return BackgroundUpload(
            path=path,
            url=url,
            file_name=PurePosixPath(path).name,
            size=size,
        )

    async def upload(
        self,
        requester: Optional[Requester],
        attachment: ImageAttachment,
        compress: bool = True,
    ) -> BackgroundUpload:
        """
        Store a background image in the requester's library.

        :param requester: Authenticated uploader
        :type requester: Requester | None
        :param attachment: Raw image file
        :type attachment: ImageAttachment
        :param compress: Downsize to the configured bounds before storing
        :type compress: bool
        :return: Stored path and URL
        :rtype: BackgroundUpload
        """
        requester = access.require_requester(requester)
        validate_image(attachment, BACKGROUND_IMAGE_TYPES, self.max_bytes)

        data = attachment.data
        extension = attachment.extension
        content_type = attachment.content_type
        if compress:
            data, extension, content_type = await asyncio.to_thread(
                _downsize, data, self.max_width, self.max_height, self.jpeg_quality
            )

        path = background_path(requester.id, extension)
        url = await self.blob_store.put(path, data, content_type)
        logger.info(
            f"Stored background for user {requester.id} at {path} "
            f"({attachment.size} -> {len(data)} bytes)"
        )
        return self._to_upload(path, url, len(data))

    async def list(self, requester: Optional[Requester]) -> list[BackgroundUpload]:
        requester = access.require_requester(requester)
        paths = await self.blob_store.list(f"{BACKGROUND_PREFIX}/{requester.id}/")
        return [self._to_upload(path, await self.blob_store.url_for(path)) for path in paths]

    async def delete(self, requester: Optional[Requester], path: str) -> None:
        """
        Delete one of the requester's own background images.

        :raises PermissionDeniedError: The path belongs to another user
        :raises NotFoundError: Nothing is stored at the path
        """
        requester = access.require_requester(requester)
        parts = path.strip("/").split("/")
        if len(parts) != 3 or parts[0] != BACKGROUND_PREFIX or parts[1] != requester.id:
            raise PermissionDeniedError("You can only delete your own background images")
        if parts[2] in ("", ".", ".."):
            raise ValidationError(f"Invalid background path: {path}")

        normalized = "/".join(parts)
        if not await self.blob_store.exists(normalized):
            raise NotFoundError("Background image not found")
        await self.blob_store.delete(normalized)
        logger.info(f"Deleted background {normalized}")
