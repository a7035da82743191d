"""Knowledge base and precise voice search handlers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from controllers.chat_controller import require_text
from utils.errors import ValidationError


def _require_session(session_id: Any) -> str:
	if not isinstance(session_id, str) or not session_id.strip():
		raise ValidationError("Session ID is required")
	return session_id.strip()


async def ask_knowledge_base(request: Request, message: Any, session_id: Any) -> Dict[str, Any]:
	settings = request.app.state.settings
	text = require_text(message, settings.max_message_length)
	return await request.app.state.knowledge_service.ask(_require_session(session_id), text)


async def knowledge_base_status(request: Request, session_id: Optional[str]) -> Dict[str, Any]:
	return await request.app.state.knowledge_service.status(session_id)


async def voice_vector_search(request: Request, transcript: Any, session_id: Any) -> Dict[str, Any]:
	settings = request.app.state.settings
	text = require_text(transcript, settings.max_message_length, field="Transcript")
	return await request.app.state.voice_search_service.ask(_require_session(session_id), text)


async def voice_vector_search_status(request: Request, session_id: Optional[str]) -> Dict[str, Any]:
	return await request.app.state.voice_search_service.status(session_id)
