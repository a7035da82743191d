"""WebSocket endpoint for streamed chat turns, voice replies, and transcription."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.realtime.ws_dictation import TranscriptionMessageHandler
from services.realtime.ws_session import ChatSocketHandler

router = APIRouter()


def _handler_for(websocket: WebSocket) -> ChatSocketHandler:
	state = websocket.app.state
	return ChatSocketHandler(
		state.turn_service,
		state.voice_service,
		state.thread_registry,
		TranscriptionMessageHandler(state.speech_to_text),
		max_message_length=state.settings.max_message_length,
	)


@router.websocket("/ws/{session_id}")
async def chat_socket(websocket: WebSocket, session_id: str):
	"""Serve one client session over a websocket until it disconnects."""
	await websocket.accept()
	handler = _handler_for(websocket)
	while True:
		try:
			raw = await websocket.receive_text()
		except WebSocketDisconnect:
			break
		except Exception as exc:
			logging.info("Websocket %s receive failed: %s", session_id, exc)
			break
		try:
			payload = json.loads(raw)
		except json.JSONDecodeError:
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON", "code": "validation_error"}))
			continue
		if not isinstance(payload, dict):
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be an object", "code": "validation_error"}))
			continue
		await handler.handle(websocket, session_id, payload)
	logging.info("Websocket %s closed", session_id)
