"""Dispatch chat websocket events to the appropriate handlers."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import WebSocket

from services.chat.relay import WebSocketSink
from services.chat.session_registry import SessionRegistry
from services.chat.turn_service import ChatTurnService
from services.chat.voice_service import VoiceChatService, parse_history
from services.realtime.ws_dictation import TranscriptionMessageHandler
from utils.errors import AppError, ValidationError


class ChatSocketHandler:
	"""Route websocket messages for one client session.

	``chat.message`` streams the same event frames as the SSE endpoint,
	each tagged with the caller's ``request_id``. The other message types
	answer with a single frame.
	"""

	def __init__(
		self,
		turns: ChatTurnService,
		voice: VoiceChatService,
		registry: SessionRegistry,
		transcription: TranscriptionMessageHandler,
		*,
		max_message_length: int = 2000,
	) -> None:
		self.turns = turns
		self.voice = voice
		self.registry = registry
		self.transcription = transcription
		self.max_message_length = max_message_length

	async def handle(self, websocket: WebSocket, session_id: str, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "chat.message":
				await self.turns.stream_turn(session_id, self._text(payload), WebSocketSink(websocket, request_id))
				return
			if message_type == "voice.chat":
				reply = await self.voice.converse(session_id, self._text(payload), parse_history(payload.get("history")))
				result = {"type": "voice.reply", **reply}
			elif message_type == "audio.transcribe":
				result = await self.transcription.transcribe(payload)
			elif message_type == "session.status":
				has_context, conversation_ref = await self.registry.get(session_id)
				result = {"type": "session.status", "hasContext": has_context, "conversationRef": conversation_ref}
			else:
				raise ValidationError("Unsupported message type.")
			result["request_id"] = request_id
			await self._send(websocket, result)
		except AppError as exc:
			await self._send_error(websocket, request_id, exc.message, exc.code)
		except Exception as exc:
			logging.error("Websocket %s message failed: %s", message_type, exc)
			await self._send_error(websocket, request_id, str(exc), "internal_error")

	def _text(self, payload: Dict[str, Any]) -> str:
		text = payload.get("text")
		if not isinstance(text, str) or not text.strip():
			raise ValidationError("Message text is required.")
		if len(text) > self.max_message_length:
			raise ValidationError(f"Message is too long. Please keep it under {self.max_message_length} characters.")
		return text.strip()

	async def _send_error(self, websocket: WebSocket, request_id: Any, detail: str, code: str) -> None:
		await self._send(websocket, {"type": "error", "request_id": request_id, "detail": detail, "code": code})

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload))
