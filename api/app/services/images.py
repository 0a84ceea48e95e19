"""Product image uploads to object storage.

Only PNG/JPEG files up to max_image_bytes are accepted. Files are stored
under projects/<product_id>/<unix_ms>_<sanitized name> with an HTTP PUT to
the configured bucket URL; the public URL of the object is what ends up in
the product's image list.
"""

import re
import time
from typing import Optional

import httpx
import structlog

from app.config import settings
from app.errors import ValidationError, WriteError

log = structlog.get_logger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png"})

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def validate_image_upload(content_type: str, size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only PNG and JPG images are allowed")
    if size > settings.max_image_bytes:
        raise ValidationError(
            f"Image size must be less than {settings.max_image_bytes // 1024}KB. "
            f"Current size: {size / 1024:.1f}KB"
        )


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def storage_path(product_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return f"projects/{product_id}/{now_ms}_{sanitize_filename(filename)}"


class ImageStorage:
    def __init__(
        self,
        base_url: Optional[str] = None,
        public_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.object_storage_url).rstrip("/")
        self._public_url = (public_url or settings.object_storage_public_url).rstrip("/")
        self._transport = transport

    async def upload(self, product_id: str, filename: str, content_type: str, data: bytes) -> str:
        """Validate and store an image, returning its durable public URL.

        Raises:
            ValidationError: wrong type or too large.
            WriteError: storage rejected the upload or was unreachable.
        """
        validate_image_upload(content_type, len(data))
        path = storage_path(product_id, filename)

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.put(
                    f"{self._base_url}/{path}",
                    content=data,
                    headers={"Content-Type": content_type},
                )
        except httpx.HTTPError as exc:
            log.error("image_upload_failed", product_id=product_id, error=str(exc))
            raise WriteError("Image storage is unavailable") from exc

        if response.status_code >= 300:
            log.error("image_upload_rejected", product_id=product_id, status_code=response.status_code)
            raise WriteError(f"Image storage rejected the upload ({response.status_code})")

        log.info("image_uploaded", product_id=product_id, path=path, size=len(data))
        return f"{self._public_url}/{path}"
