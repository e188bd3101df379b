# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""JPEG encoding and validation for uploads.

Uploads are always JPEG.  Images are encoded with Pillow; raw bytes handed
to the client are checked to be a JPEG Pillow can read before anything is
hashed or signed.
"""

from __future__ import annotations

import io
from pathlib import Path

from PIL import Image, UnidentifiedImageError


#: Content-Type sent with every upload.
JPEG_CONTENT_TYPE = "image/jpg"

#: Extension appended to object keys that lack it.
JPEG_EXTENSION = ".jpg"

_JPEG_SOI = b"\xff\xd8"

# Modes Pillow can write as JPEG without conversion.
_JPEG_MODES = frozenset({"L", "RGB", "CMYK"})


class InvalidImageError(Exception):
    """Content is empty or is not an encodable/decodable JPEG."""


def encode_jpeg(image: Image.Image, *, quality: int = 90) -> bytes:
    """Encode a Pillow image as JPEG.

    Images with alpha or palette modes are flattened to RGB first.

    Args:
        image: Source image.
        quality: JPEG quality (1-95).

    Returns:
        JPEG bytes.

    Raises:
        InvalidImageError: If the image cannot be encoded.
    """
    if image.width == 0 or image.height == 0:
        raise InvalidImageError("Image has no pixels")

    if image.mode not in _JPEG_MODES:
        image = image.convert("RGB")

    buf = io.BytesIO()
    try:
        image.save(buf, format="JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise InvalidImageError(f"Cannot encode image as JPEG: {e}") from e
    return buf.getvalue()


def validate_jpeg(data: bytes) -> None:
    """Check that ``data`` is a non-empty JPEG.

    Raises:
        InvalidImageError: If the content is empty or not a JPEG.
    """
    if not data:
        raise InvalidImageError("Content is empty")
    if not data.startswith(_JPEG_SOI):
        raise InvalidImageError("Content is not a JPEG (missing SOI marker)")

    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format != "JPEG":
                raise InvalidImageError(
                    f"Content is {img.format}, expected JPEG"
                )
            img.verify()
    except Image.DecompressionBombError as e:
        raise InvalidImageError(f"Image is too large: {e}") from e
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImageError(f"Content is not a readable JPEG: {e}") from e


def load_image(path: Path) -> Image.Image:
    """Open an image file and load its pixels.

    Raises:
        InvalidImageError: If the file is missing or not an image.
    """
    try:
        with Image.open(path) as img:
            img.load()
            return img.copy()
    except (
        Image.DecompressionBombError,
        UnidentifiedImageError,
        OSError,
    ) as e:
        raise InvalidImageError(f"Cannot read image {path}: {e}") from e


def normalize_object_key(name: str, extension: str = JPEG_EXTENSION) -> str:
    """Append ``extension`` to ``name`` unless it already ends with it."""
    return name if name.endswith(extension) else name + extension
