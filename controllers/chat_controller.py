"""Assistant chat endpoint handlers (streamed and non-streamed)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from fastapi import Request
from fastapi.responses import StreamingResponse

from services.chat.relay import QueueSink
from services.chat.voice_service import parse_history
from utils.errors import ValidationError

SSE_HEADERS = {
	"Cache-Control": "no-cache",
	"Connection": "keep-alive",
	"X-Accel-Buffering": "no",
}


def require_text(value: Any, max_length: int, *, field: str = "Message") -> str:
	"""Return the stripped text, or raise a 400 for missing, non-string, or oversized input."""
	if not isinstance(value, str) or not value.strip():
		raise ValidationError(f"{field} is required and must be a string")
	if len(value) > max_length:
		raise ValidationError(
			f"{field} is too long. Please keep your questions under {max_length} characters."
		)
	return value.strip()


def stream_events(request: Request, producer: Callable[[QueueSink], Awaitable[Any]]) -> StreamingResponse:
	"""Run `producer` in the background and stream whatever it emits as SSE.

	The producer keeps running if the client disconnects; its later writes
	are dropped by the relay.
	"""
	sink = QueueSink()

	async def run() -> None:
		try:
			await producer(sink)
		except Exception as exc:
			logging.error("Stream producer failed: %s", exc)
		finally:
			sink.finish()

	task = asyncio.create_task(run())
	tasks = request.app.state.background_tasks
	tasks.add(task)
	task.add_done_callback(tasks.discard)
	return StreamingResponse(sink.frames(), media_type="text/event-stream", headers=SSE_HEADERS)


async def chat(
	request: Request,
	message: Any,
	session_id: Optional[str],
	*,
	stream: bool = False,
	voice_chat: bool = False,
	history: Any = None,
):
	"""Handle one chat message. Returns a `StreamingResponse` or a JSON-ready dict."""
	settings = request.app.state.settings
	text = require_text(message, settings.max_message_length)
	session_id = session_id or uuid4().hex
	logging.info("Chat request for session %s (stream=%s, voice=%s)", session_id, stream, voice_chat)

	if voice_chat:
		voice = request.app.state.voice_service
		prior = parse_history(history)
		if stream:
			return stream_events(request, lambda sink: voice.stream_direct(text, prior, sink))
		return await voice.reply_direct(text, prior)

	turns = request.app.state.turn_service
	if stream:
		return stream_events(request, lambda sink: turns.stream_turn(session_id, text, sink))
	return await turns.complete_turn(session_id, text)


async def chat_status(request: Request) -> Dict[str, Any]:
	settings = request.app.state.settings
	registry = request.app.state.thread_registry
	return {
		"status": "healthy",
		"timestamp": datetime.now(timezone.utc).isoformat(),
		"assistantId": settings.openai_assistant_id,
		"timeout": settings.deadline_seconds,
		"activeThreads": await registry.count(),
		"inFlightRequests": len(request.app.state.chat_deduplicator),
	}
