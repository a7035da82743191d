"""Realtime voice session bootstrap."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Request

from services.openai.speech import DEFAULT_VOICE


async def create_realtime_session(request: Request, voice: Optional[str], instructions: Optional[str]) -> Dict[str, Any]:
	"""Create a client-side realtime session and return it, ephemeral secret included."""
	factory = request.app.state.realtime_sessions
	session = await factory.create(voice or DEFAULT_VOICE, instructions)
	logging.info("Realtime session %s created", session.get("id"))
	return session
