from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from valuation_studio.config import settings
from valuation_studio.errors import InvalidImage
from valuation_studio.models import PendingUpload


def validate_upload(
    filename: str,
    content: bytes,
    max_bytes: int | None = None,
    allowed_formats: list[str] | None = None,
) -> PendingUpload:
    """
    Accept a user-supplied file as a pending image upload.

    Rejects empty or oversized payloads and anything Pillow cannot decode as one of the
    allowed formats. The returned payload carries the detected MIME type.
    """
    max_bytes = settings.max_image_bytes if max_bytes is None else max_bytes
    allowed = {f.upper() for f in (allowed_formats or settings.allowed_image_formats)}

    if not content:
        raise InvalidImage(filename, "file is empty")
    if len(content) > max_bytes:
        raise InvalidImage(filename, f"file is larger than {max_bytes} bytes")

    try:
        with Image.open(BytesIO(content)) as img:
            fmt = (img.format or "").upper()
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImage(filename, "not a readable image") from exc

    if fmt not in allowed:
        raise InvalidImage(filename, f"format {fmt or 'unknown'} is not allowed")

    return PendingUpload(
        filename=filename,
        content=content,
        content_type=Image.MIME.get(fmt),
    )
