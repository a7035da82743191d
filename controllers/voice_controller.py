"""Voice endpoint handlers: conversation, stamp search, speech in and out."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request, Response

from controllers.chat_controller import require_text
from services.chat.voice_service import parse_history
from services.openai.speech import DEFAULT_VOICE
from utils.errors import ValidationError
from utils.media_validation import decode_base64_audio


async def voice_chat(request: Request, message: Any, session_id: Optional[str], history: Any) -> Dict[str, Any]:
	settings = request.app.state.settings
	text = require_text(message, settings.max_message_length)
	voice = request.app.state.voice_service
	return await voice.converse(session_id or uuid4().hex, text, parse_history(history))


async def voice_stamp_search(request: Request, query: Any) -> Dict[str, Any]:
	"""Search the vector store directly. Upstream failures degrade to an empty result."""
	if not isinstance(query, str) or not query.strip():
		raise ValidationError("Query is required")
	query = query.strip()
	try:
		stamps = await request.app.state.vector_search.search(query)
	except Exception as exc:
		logging.warning("Voice stamp search failed for %r: %s", query, exc)
		return {
			"success": False,
			"stamps": [],
			"query": query,
			"totalFound": 0,
			"error": "Search failed, but I can still help with general stamp knowledge",
			"fallback": True,
		}
	return {"success": True, "stamps": stamps, "query": query, "totalFound": len(stamps)}


async def speech_to_text(request: Request, audio: Any, mime_type: Optional[str]) -> Dict[str, Any]:
	if not isinstance(audio, str):
		raise ValidationError("No audio data provided")
	audio_bytes = decode_base64_audio(audio, mime_type or "audio/webm")
	text = await request.app.state.speech_to_text.transcribe(audio_bytes, mime_type or "audio/webm")
	return {"text": text}


async def synthesize_speech(request: Request, text: Any, voice: Optional[str], speed: float = 1.0) -> Response:
	if not isinstance(text, str):
		raise ValidationError("Text is required")
	audio = await request.app.state.speech_synthesizer.synthesize(text, voice or DEFAULT_VOICE, speed)
	logging.info("Synthesized %d bytes of speech", len(audio))
	return Response(content=audio, media_type="audio/mpeg")


async def list_voices(request: Request) -> Dict[str, Any]:
	return {"voices": request.app.state.speech_synthesizer.voices()}
