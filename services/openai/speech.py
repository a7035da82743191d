"""Speech-to-text with Whisper and text-to-speech with the OpenAI TTS models."""

import logging
import os
import tempfile
from typing import Dict, List

from openai import AsyncOpenAI

from utils.errors import ValidationError
from utils.media_validation import MIN_AUDIO_BYTES, normalize_mime

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "mp4",
    "audio/m4a": "m4a",
    "audio/aac": "m4a",
    "audio/ogg": "ogg",
    "audio/opus": "ogg",
    "audio/flac": "flac",
}

VOICES: List[Dict[str, str]] = [
    {"id": "alloy", "name": "Alloy", "description": "Balanced and versatile"},
    {"id": "echo", "name": "Echo", "description": "Warm and clear"},
    {"id": "fable", "name": "Fable", "description": "Expressive storyteller"},
    {"id": "onyx", "name": "Onyx", "description": "Deep and authoritative"},
    {"id": "nova", "name": "Nova", "description": "Bright and friendly"},
    {"id": "shimmer", "name": "Shimmer", "description": "Soft and gentle"},
]
VOICE_IDS = {voice["id"] for voice in VOICES}
DEFAULT_VOICE = "alloy"
MAX_TTS_CHARACTERS = 4096


def filename_for_mime(mime_type: str) -> str:
    """Return a filename whose extension Whisper will accept for `mime_type`."""
    mime = normalize_mime(mime_type)
    if mime in _EXTENSIONS:
        return f"speech.{_EXTENSIONS[mime]}"
    subtype = mime.split("/")[-1] if "/" in mime else ""
    if subtype in {"webm", "wav", "mp3", "mp4", "mpeg", "mpga", "oga", "ogg", "flac", "m4a"}:
        return f"speech.{subtype}"
    return "speech.webm"


class SpeechToText:
    """Transcribe recorded audio buffers."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "whisper-1") -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    async def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> str:
        """Return the trimmed transcript for `audio_bytes`.

        Buffers under a hundred bytes are what browser test harnesses send
        when no microphone is attached; they are rejected before any upload.
        """
        if len(audio_bytes) < MIN_AUDIO_BYTES:
            raise ValidationError("Audio recording is too short to transcribe")

        # Whisper infers the container from the filename, so write a real file with the right suffix.
        suffix = os.path.splitext(filename_for_mime(mime_type))[1]
        tmp_file = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as handle:
                handle.write(audio_bytes)
                tmp_file = handle.name
            with open(tmp_file, "rb") as audio_file:
                try:
                    response = await self.client.audio.transcriptions.create(
                        model=self.model,
                        file=audio_file,
                        response_format="text",
                    )
                except Exception as exc:
                    logging.error("Transcription request failed: %s", exc)
                    raise
        finally:
            if tmp_file and os.path.exists(tmp_file):
                try:
                    os.remove(tmp_file)
                except OSError as exc:
                    logging.warning("Could not remove temp audio %s: %s", tmp_file, exc)

        text = response if isinstance(response, str) else getattr(response, "text", "")
        return (text or "").strip()


class SpeechSynthesizer:
    """Render text to mp3 audio."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "tts-1") -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    @staticmethod
    def voices() -> List[Dict[str, str]]:
        return list(VOICES)

    async def synthesize(self, text: str, voice: str = DEFAULT_VOICE, speed: float = 1.0) -> bytes:
        if not text or not text.strip():
            raise ValidationError("Text is required")
        if len(text) > MAX_TTS_CHARACTERS:
            raise ValidationError(f"Text must be at most {MAX_TTS_CHARACTERS} characters")
        if voice not in VOICE_IDS:
            raise ValidationError(f"Unknown voice '{voice}'", details=", ".join(sorted(VOICE_IDS)))
        if not 0.25 <= speed <= 4.0:
            raise ValidationError("Speed must be between 0.25 and 4.0")
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice,
                input=text,
                response_format="mp3",
                speed=speed,
            )
        except Exception as exc:
            logging.error("Speech synthesis failed: %s", exc)
            raise
        return response.content
