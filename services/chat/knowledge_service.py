"""Knowledge base question answering over the stamp vector store (Responses API)."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from services.chat.deduplicator import RequestDeduplicator, request_key
from services.chat.provider import ConversationProvider
from services.chat.session_registry import SessionRegistry
from services.chat.structured_reply import interpret_reply
from utils.errors import AppError


def friendly_error(exc: Exception, *, subject: str = "request") -> str:
	"""Map an upstream failure onto a message a user can act on."""
	text = str(exc)
	lowered = text.lower()
	if "timeout" in lowered:
		return f"The {subject} took too long to process. Please try a more specific question about stamps."
	if "rate limit" in lowered or "rate_limit" in lowered:
		return f"Too many {subject}s at once. Please wait a moment and try again."
	if "vector_store" in lowered or "file_search" in lowered:
		return "There was an issue accessing the stamp database. Please try again or ask a different question."
	return f"I encountered an error while processing your {subject}. Please try again."


class KnowledgeBaseService:
	"""Answer a question with `file_search`, chained to the session's previous response.

	Each session remembers the id of its last response, so follow-up
	questions keep their context. Concurrent identical questions from the
	same session share one upstream call.
	"""

	def __init__(
		self,
		provider: ConversationProvider,
		registry: SessionRegistry,
		deduplicator: RequestDeduplicator,
		*,
		vector_store_id: str,
		instructions: str,
		source: str,
		success_message: str,
		clarify_lead: str = "To narrow this down:",
		max_output_tokens: int = 1800,
		subject: str = "request",
		extra: Optional[Dict[str, Any]] = None,
	) -> None:
		self.provider = provider
		self.registry = registry
		self.deduplicator = deduplicator
		self.vector_store_id = vector_store_id
		self.instructions = instructions
		self.source = source
		self.success_message = success_message
		self.clarify_lead = clarify_lead
		self.max_output_tokens = max_output_tokens
		self.subject = subject
		self.extra = dict(extra or {})

	@property
	def tools(self):
		return [{"type": "file_search", "vector_store_ids": [self.vector_store_id]}]

	async def ask(self, session_id: str, message: str) -> Dict[str, Any]:
		# Namespaced so a chat turn with the same text is never shared with this one.
		key = request_key(f"{self.source}:{session_id}", message)
		try:
			return await self.deduplicator.run(key, lambda: self._ask(session_id, message))
		except AppError:
			raise
		except Exception as exc:
			logging.error("%s failed for session %s: %s", self.source, session_id, exc)
			raise AppError(friendly_error(exc, subject=self.subject), details=str(exc)) from exc

	async def _ask(self, session_id: str, message: str) -> Dict[str, Any]:
		_, previous_response_id = await self.registry.get(session_id)
		if previous_response_id:
			logging.info("Continuing %s context from %s", self.source, previous_response_id)
		response = await self.provider.create_response_with_tools(
			message,
			instructions=self.instructions,
			tools=self.tools,
			previous_response_id=previous_response_id,
			max_output_tokens=self.max_output_tokens,
		)
		reply = interpret_reply(response.output_text, clarify_lead=self.clarify_lead)
		await self.registry.update(session_id, response.id)
		result = {
			"success": True,
			"responseId": response.id,
			"content": reply.content,
			"source": self.source,
			"message": self.success_message,
			"hasContext": previous_response_id is not None,
			"structured": reply.structured,
		}
		result.update(self.extra)
		return result

	async def status(self, session_id: Optional[str] = None) -> Dict[str, Any]:
		if session_id:
			has_context, previous_response_id = await self.registry.get(session_id)
			return {
				"sessionId": session_id,
				"hasContext": has_context,
				"previousResponseId": previous_response_id,
			}
		return {
			"totalSessions": await self.registry.count(),
			"sessions": await self.registry.session_ids(),
		}
