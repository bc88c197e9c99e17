"""
Profile image handling — uploads and JSON data URIs both end up as a
``data:image/<type>;base64,...`` string on the row.
"""

from __future__ import annotations

import base64
import binascii
import re

from fastapi import UploadFile

from app.core.config import settings
from app.core.exceptions import BadInputError

_CHUNK_SIZE = 256 * 1024
DATA_URI_RE = re.compile(r"^data:image/([\w.+-]+);base64,([A-Za-z0-9+/]*={0,2})$")


def max_image_bytes() -> int:
    return settings.MAX_IMAGE_MB * 1024 * 1024


def _too_large() -> BadInputError:
    return BadInputError(f"Image must not exceed {settings.MAX_IMAGE_MB}MB.")


def to_data_uri(content_type: str, data: bytes) -> str:
    file_type = content_type.split("/", 1)[1]
    return f"data:image/{file_type};base64,{base64.b64encode(data).decode('ascii')}"


async def read_image(image: UploadFile | None) -> str | None:
    """Encode an uploaded image as a data URI, or ``None`` when nothing was sent.

    The declared size is checked before reading; the body is then read in
    chunks and abandoned as soon as it passes the limit.
    """
    if image is None or not image.filename:
        return None
    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        raise BadInputError(f"File '{image.filename}' is not an image.")

    limit = max_image_bytes()
    if image.size is not None and image.size > limit:
        raise _too_large()

    data = bytearray()
    while True:
        chunk = await image.read(_CHUNK_SIZE)
        if not chunk:
            break
        data.extend(chunk)
        if len(data) > limit:
            raise _too_large()
    return to_data_uri(content_type, bytes(data))


def validate_image_data_uri(value: str) -> str:
    """Check a data URI sent in a JSON body. Raises ``ValueError`` for pydantic."""
    match = DATA_URI_RE.match(value.strip())
    if match is None:
        raise ValueError("Image must be a base64 data:image/... URI")
    try:
        decoded = base64.b64decode(match.group(2), validate=True)
    except binascii.Error:
        raise ValueError("Image is not valid base64") from None
    if len(decoded) > max_image_bytes():
        raise ValueError(f"Image must not exceed {settings.MAX_IMAGE_MB}MB")
    return value.strip()
