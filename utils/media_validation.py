"""Validation helpers for uploaded audio and image content."""

import base64
import binascii

from fastapi import UploadFile

from utils.errors import ValidationError

ALLOWED_AUDIO_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
}

# Buffers smaller than this are almost always test payloads, not speech.
MIN_AUDIO_BYTES = 100


def normalize_mime(mime_type: str | None) -> str:
    """Strip MIME parameters (e.g. 'audio/webm;codecs=opus') and lower-case."""
    return (mime_type or "").lower().split(";", 1)[0].strip()


def decode_base64_audio(audio_b64: str, mime_type: str = "audio/webm") -> bytes:
    """Decode a base64 audio payload and check its declared type."""
    if not audio_b64:
        raise ValidationError("No audio data provided")
    mime = normalize_mime(mime_type)
    if mime not in ALLOWED_AUDIO_TYPES:
        raise ValidationError(f"Unsupported audio content type: {mime_type}")
    # Data URLs from browsers carry a "data:audio/webm;base64," prefix.
    if audio_b64.startswith("data:") and "," in audio_b64:
        audio_b64 = audio_b64.split(",", 1)[1]
    try:
        return base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Audio payload must be base64-encoded.") from exc


async def read_image_upload(image_file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded image, rejecting non-images, empty files, and oversized files."""
    content_type = normalize_mime(image_file.content_type)
    if not content_type.startswith("image/"):
        raise ValidationError("Invalid file type. Please upload an image.")
    image_bytes = await image_file.read()
    if not image_bytes:
        raise ValidationError("Uploaded image is empty.")
    if len(image_bytes) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationError(f"File size too large. Please upload an image smaller than {limit_mb}MB.")
    return image_bytes
