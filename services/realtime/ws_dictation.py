"""Handle audio transcription events coming over the chat websocket."""
from __future__ import annotations

from typing import Any, Dict

from services.openai.speech import SpeechToText
from utils.media_validation import decode_base64_audio


class TranscriptionMessageHandler:
	"""Transcribe base64 audio chunks sent by voice clients."""

	def __init__(self, speech: SpeechToText) -> None:
		self.speech = speech

	async def transcribe(self, payload: Dict[str, Any]) -> Dict[str, Any]:
		"""Return the transcript for a single audio chunk."""
		mime_type = payload.get("mime_type") or "audio/webm"
		audio_bytes = decode_base64_audio(payload.get("audio_b64") or "", mime_type)
		transcript = await self.speech.transcribe(audio_bytes, mime_type)
		return {"type": "audio.transcript", "text": transcript}
