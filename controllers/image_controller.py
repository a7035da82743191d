from typing import Any, Dict, Optional
import asyncio
import logging

from fastapi import Request, UploadFile

from utils.errors import UpstreamTimeout, ValidationError
from utils.media_validation import read_image_upload


async def search_by_image(request: Request, image: Optional[UploadFile]) -> Dict[str, Any]:
    """Identify the stamp in an uploaded photo.

    Args:
        request: FastAPI Request object (used to access app.state for shared services).
        image: Uploaded image file (image/*, at most the configured size).

    Returns:
        ``{isStamp, confidence, message}`` for non-stamps, otherwise
        ``{isStamp, confidence, analysis, stampDetails, suggestions}``.

    Raises:
        ValidationError: Missing, non-image, empty, or oversized upload.
        UpstreamTimeout: Analysis did not finish within the non-streaming budget.
    """
    if image is None:
        raise ValidationError("No image file provided")
    settings = request.app.state.settings
    image_bytes = await read_image_upload(image, settings.max_image_bytes)
    logging.info("Image search upload %s (%d bytes, %s)", image.filename, len(image_bytes), image.content_type)

    try:
        return await asyncio.wait_for(
            request.app.state.image_search.search(image_bytes),
            timeout=settings.non_stream_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeout("Image processing timed out. Please try again with a simpler image.") from exc
