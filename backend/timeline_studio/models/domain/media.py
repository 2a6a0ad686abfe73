"""Media domain models: raw image attachments and stored background uploads."""

import base64
import binascii
import hashlib
from pathlib import PurePosixPath

from pydantic import BaseModel, field_validator

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class ImageAttachment(BaseModel):
    """A raw image file submitted by a client, not yet stored."""

    file_name: str
    content_type: str
    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, value):
        # JSON clients send the file body base64 encoded
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError("image data must be base64 encoded") from exc
        return value

    @field_validator("content_type")
    @classmethod
    def normalize_content_type(cls, value: str) -> str:
        return value.split(";")[0].strip().lower()

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.data).hexdigest()

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.file_name).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        return CONTENT_TYPE_EXTENSIONS.get(self.content_type, "bin")


class BackgroundUpload(BaseModel):
    """A background image stored in the requester's background library."""

    path: str
    url: str
    file_name: str | None = None
    size: int | None = None


class BackgroundUploadCreate(BaseModel):
    """Payload for uploading a background image."""

    image: ImageAttachment
    compress: bool = True
