"""Image normalizer for vision requests.

Uploaded photos of stamps are often large phone images. Before they are
sent to the vision model they are downscaled to fit within `max_size`,
flattened onto a white background, and re-encoded as JPEG, which keeps
request payloads small without losing the detail needed to read a stamp.

Example:
    normalizer = ImageNormalizer(max_size=(1024, 1024))
    jpeg_b64 = normalizer.to_base64_jpeg(upload_bytes)
"""
from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from utils.errors import ValidationError


class ImageNormalizer:
    """Downscale and re-encode image bytes.

    Args:
        max_size: Maximum width and height. Aspect ratio is preserved.
        background: Color used to flatten transparent images.
        quality: JPEG quality for the re-encoded image.
    """

    def __init__(
        self,
        max_size: Tuple[int, int] = (1024, 1024),
        background: Tuple[int, int, int] | None = None,
        quality: int = 85,
    ):
        self.max_size = max_size
        self.background = background or (255, 255, 255)
        self.quality = quality

    def to_jpeg(self, data: bytes) -> bytes:
        """Return `data` as a JPEG no larger than `max_size`.

        Raises:
            ValidationError: If the bytes cannot be opened as an image.
        """
        try:
            src = Image.open(io.BytesIO(data))
            src.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError("Uploaded file is not a readable image.") from exc

        src = src.convert("RGBA")
        src.thumbnail(self.max_size, Image.LANCZOS)

        flattened = Image.new("RGB", src.size, self.background)
        flattened.paste(src, mask=src.split()[3])

        out_io = io.BytesIO()
        flattened.save(out_io, format="JPEG", quality=self.quality, optimize=True)
        return out_io.getvalue()

    def to_base64_jpeg(self, data: bytes) -> str:
        return base64.b64encode(self.to_jpeg(data)).decode("utf-8")
