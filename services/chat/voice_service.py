"""Voice conversations: direct spoken replies and stamp lookups with short-term memory."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from models.session_models import ConversationMessage
from models.stamp_record import NO_IMAGE_URL, StampRecord
from services.chat.relay import EventSink, StreamingRelay
from services.chat.session_registry import StampContextStore
from services.chat.turn_service import ChatTurnService
from services.openai.chat_completion import ChatCompletionService, build_messages
from services.openai.prompts import (
	VOICE_FALLBACK_REPLY,
	remembered_stamps_prompt,
	voice_conversation_system_prompt,
	voice_direct_system_prompt,
)

FOLLOW_UP_REFERENCE = re.compile(
	r"\b(it|its|that one|this one|that stamp|this stamp|these|those|them|they|both|compare|comparison|the first|the second|the last one)\b",
	re.IGNORECASE,
)


def stamp_uniqueness(stamp: StampRecord) -> str:
	if stamp.series:
		return f"It belongs to the {stamp.series} series, which collectors follow closely."
	if stamp.color:
		return f"Its {stamp.color} color makes it easy to recognise in an album."
	return "It would make a lovely addition to any collection."


def spoken_summary(stamps: Sequence[StampRecord]) -> str:
	"""Sentence read aloud after a successful stamp lookup."""
	first = stamps[0]
	details = (
		f"This is a {first.denomination or 'classic'} stamp from {first.country or 'an unknown country'}, "
		f"issued in {first.year or 'an unknown year'}."
	)
	if len(stamps) == 1:
		return f"I found the {first.title} stamp for you. {details} {stamp_uniqueness(first)}"
	return (
		f"I found {len(stamps)} stamps for you. Let me tell you about the {first.title} stamp. "
		f"{details} {stamp_uniqueness(first)} Would you like me to tell you about the others?"
	)


def stamp_details(stamp: StampRecord) -> Dict[str, Any]:
	image = stamp.image_url or NO_IMAGE_URL
	return {
		"type": "single_stamp",
		"stamp": {
			"id": stamp.id or "unknown",
			"name": stamp.name or stamp.title,
			"country": stamp.country or "Unknown",
			"issueYear": stamp.year or "Unknown",
			"color": stamp.color or "Unknown",
			"denominationValue": stamp.denomination_value or "Unknown",
			"denominationSymbol": stamp.denomination_symbol,
			"fullDenomination": stamp.denomination or "Unknown",
			"image": image,
		},
		"imageUrl": image,
	}


class VoiceChatService:
	"""Voice front end over the assistant turn and plain chat completions."""

	def __init__(
		self,
		turns: ChatTurnService,
		completions: ChatCompletionService,
		contexts: StampContextStore,
		*,
		conversation_model: Optional[str] = None,
	) -> None:
		self.turns = turns
		self.completions = completions
		self.contexts = contexts
		self.conversation_model = conversation_model

	async def stream_direct(self, message: str, history: Sequence[ConversationMessage], sink: EventSink) -> str:
		"""Stream a speech-friendly answer as raw model deltas, then ``complete``."""
		relay = StreamingRelay(sink, chunking=False)
		await relay.emit("status", status="processing")
		messages = build_messages(voice_direct_system_prompt(), history, message)
		content = ""
		try:
			async for delta in self.completions.stream(messages):
				content += delta
				if not await relay.emit("content", content=delta):
					logging.info("Voice stream client went away after %d characters", len(content))
					break
			await relay.emit("complete", content=content)
		except Exception as exc:
			logging.error("Direct voice chat failed: %s", exc)
			await relay.emit("error", error="Failed to process voice chat request")
		return content

	async def reply_direct(self, message: str, history: Sequence[ConversationMessage]) -> Dict[str, Any]:
		messages = build_messages(voice_direct_system_prompt(), history, message)
		response = await self.completions.complete(messages, max_tokens=1500, temperature=0.7)
		return {
			"response": response or "I couldn't generate a response for that query.",
			"structuredData": None,
			"foundStamps": 0,
			"metadata": {"source": "voice_direct"},
		}

	def expand_follow_up(self, session_id: str, message: str) -> str:
		"""Append remembered stamps when the message points back at them ("compare it", "that one")."""
		recent = self.contexts.recent(session_id)
		if not recent or not FOLLOW_UP_REFERENCE.search(message):
			return message
		return f"{message}\n\n{remembered_stamps_prompt([item.describe() for item in recent])}"

	async def converse(self, session_id: str, message: str, history: Sequence[ConversationMessage]) -> Dict[str, Any]:
		"""Look the message up as a stamp query; fall back to a short conversational reply."""
		query = self.expand_follow_up(session_id, message)
		result = await self.turns.collect_turn(session_id, query)
		if result.stamps:
			remembered = self.contexts.remember(session_id, result.stamps)
			return {
				"response": spoken_summary(result.stamps),
				"conversationLength": len(history) + 2,
				"source": "stamp_knowledge_base",
				"stampDetails": stamp_details(result.stamps[0]),
				"hasStamps": True,
				"rememberedStamps": [item.to_dict() for item in remembered],
			}
		if result.status in {"error", "failed", "timeout"}:
			logging.warning("Stamp lookup for voice chat ended %s; answering conversationally", result.status)

		recent = self.contexts.recent(session_id)
		context = remembered_stamps_prompt([item.describe() for item in recent]) if recent else None
		messages = build_messages(voice_conversation_system_prompt(), history, message, context=context)
		response = await self.completions.complete(
			messages, model=self.conversation_model, max_tokens=150, temperature=0.8
		)
		return {
			"response": response or VOICE_FALLBACK_REPLY,
			"conversationLength": len(history) + 2,
			"source": "general_knowledge",
			"hasStamps": False,
		}


def parse_history(payload: Any) -> List[ConversationMessage]:
	"""Keep the well-formed entries of a client-supplied history list."""
	if not isinstance(payload, list):
		return []
	messages = [ConversationMessage.from_payload(item) for item in payload]
	return [message for message in messages if message is not None]
