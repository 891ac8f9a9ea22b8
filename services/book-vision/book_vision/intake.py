"""Upload checks applied before any image is sent to the model."""

import logging

from book_vision.config import settings

logger = logging.getLogger(__name__)

FILE_TOO_LARGE = "file too large"
NOT_AN_IMAGE = "not an image"
NO_IMAGE = "No image file provided"


class InvalidUpload(Exception):
    """Upload rejected before processing (client error, needs a new upload)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def validate_upload(size: int, mime_type: str | None, max_bytes: int | None = None) -> None:
    """Raise InvalidUpload unless the upload is an image within the size limit."""
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES

    if size > limit:
        logger.info("Rejected upload: %d bytes exceeds limit of %d", size, limit)
        raise InvalidUpload(FILE_TOO_LARGE)

    if not mime_type or not mime_type.startswith("image/"):
        logger.info("Rejected upload: mime type %r is not an image", mime_type)
        raise InvalidUpload(NOT_AN_IMAGE)
