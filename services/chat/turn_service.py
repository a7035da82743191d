"""One assistant turn: session lookup, dedup, run, tool calls, deadline, relay."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.stamp_record import StampRecord
from services.chat.cancellation import CancelToken
from services.chat.deadline import DeadlineGuard
from services.chat.deduplicator import RequestDeduplicator, request_key
from services.chat.extractor import extract_stamps
from services.chat.provider import ConversationProvider
from services.chat.relay import CollectingSink, EventSink, StreamingRelay
from services.chat.run_driver import RunDriver, TurnContext
from services.chat.session_registry import SessionRegistry
from services.openai.prompts import GENERIC_ERROR_MESSAGE, TIMEOUT_MESSAGE, story_focused_message
from utils.errors import AppError, UpstreamTerminalFailure, UpstreamTimeout


@dataclass
class TurnResult:
	"""The shareable result of a turn; concurrent duplicate requests all receive the same one."""

	status: str
	text: str = ""
	source: str = "assistant"
	conversation_id: Optional[str] = None
	stamps: List[StampRecord] = field(default_factory=list)
	presentation: Optional[Dict[str, Any]] = None
	extracted: List[Dict[str, Any]] = field(default_factory=list)
	error: Optional[str] = None
	failure: Optional[AppError] = None
	timed_out: bool = False

	@property
	def found_stamps(self) -> int:
		return len(self.stamps)


class ChatTurnService:
	"""Run assistant turns for the chat, voice, and WebSocket front ends."""

	def __init__(
		self,
		provider: ConversationProvider,
		registry: SessionRegistry,
		deduplicator: RequestDeduplicator,
		driver: RunDriver,
		guard: DeadlineGuard,
		*,
		stream_budget_seconds: float = 8.0,
		non_stream_budget_seconds: float = 12.0,
		chunk_words: int = 5,
		chunk_delay_seconds: float = 0.05,
	) -> None:
		self.provider = provider
		self.registry = registry
		self.deduplicator = deduplicator
		self.driver = driver
		self.guard = guard
		self.stream_budget_seconds = stream_budget_seconds
		self.non_stream_budget_seconds = non_stream_budget_seconds
		self.chunk_words = chunk_words
		self.chunk_delay_seconds = chunk_delay_seconds

	def relay_for(self, sink: EventSink, *, chunking: bool = True) -> StreamingRelay:
		return StreamingRelay(
			sink,
			chunk_words=self.chunk_words,
			chunk_delay_seconds=self.chunk_delay_seconds if chunking else 0,
			chunking=chunking,
		)

	async def stream_turn(self, session_id: str, message: str, sink: EventSink) -> TurnResult:
		"""Stream one turn to `sink`. Never raises; failures become ``error`` frames."""
		relay = self.relay_for(sink)
		key = request_key(session_id, message)
		try:
			pending = self.deduplicator.begin(key)
			if pending is not None:
				logging.info("Duplicate request for %s, sharing the in-flight turn", session_id)
				result = await asyncio.shield(pending)
				await self.replay(result, relay)
				return result
			return await self.deduplicator.run(
				key, lambda: self._run_turn(session_id, message, relay, self.stream_budget_seconds)
			)
		except Exception as exc:
			logging.error("Streaming turn for %s failed: %s", session_id, exc)
			await relay.emit("error", error="Failed to process request")
			return TurnResult(status="error", error=str(exc), source="error")

	async def collect_turn(self, session_id: str, message: str) -> TurnResult:
		"""Run one turn without a live client, sharing duplicates like the streaming path."""
		relay = self.relay_for(CollectingSink(), chunking=False)
		key = request_key(session_id, message)
		return await self.deduplicator.run(
			key, lambda: self._run_turn(session_id, message, relay, self.non_stream_budget_seconds)
		)

	async def complete_turn(self, session_id: str, message: str) -> Dict[str, Any]:
		"""Non-streaming turn.

		A run that ends failed, cancelled, or expired still answers 200 with an
		apology; only a deadline with nothing to show raises `UpstreamTimeout`.
		"""
		result = await self.collect_turn(session_id, message)
		if result.status == "timeout" and not result.presentation:
			raise UpstreamTimeout(TIMEOUT_MESSAGE)
		if result.status == "error":
			raise AppError(GENERIC_ERROR_MESSAGE, details=result.error)
		if result.status == "failed":
			code = result.failure.code if result.failure else UpstreamTerminalFailure.code
			logging.warning("Answering session %s with an apology: %s", session_id, result.error)
			return {
				"response": GENERIC_ERROR_MESSAGE,
				"structuredData": None,
				"foundStamps": 0,
				"metadata": {"source": "error", "code": code},
			}
		body: Dict[str, Any] = {
			"response": result.text,
			"structuredData": result.presentation,
			"foundStamps": result.found_stamps,
			"metadata": {"source": result.source},
		}
		if result.extracted:
			body["metadata"]["extractedStamps"] = result.extracted
		return body

	async def replay(self, result: TurnResult, relay: StreamingRelay) -> None:
		"""Send a joiner the terminal frames of a turn it did not drive."""
		if result.status in {"failed", "error"}:
			await relay.emit("error", error=result.error or "Failed to process request")
			return
		if result.presentation:
			await relay.emit("structured_data", data=result.presentation)
		if result.status == "timeout":
			await relay.emit("timeout", message=result.text or TIMEOUT_MESSAGE)
			await relay.emit("complete", source="timeout")
			return
		extra = {"source": result.source} if result.source != "assistant" else {}
		await relay.emit("complete_response", content=result.text, **extra)
		await relay.emit("complete", content=result.text, **extra)

	async def _run_turn(
		self,
		session_id: str,
		message: str,
		relay: StreamingRelay,
		budget_seconds: float,
	) -> TurnResult:
		token = CancelToken()
		context = TurnContext()
		bound = relay.bind(token)

		async def pipeline():
			conversation_id = await self.registry.get_or_create(session_id)
			if conversation_id is None:
				conversation_id = await self.provider.create_conversation()
				logging.info("New conversation %s for session %s", conversation_id, session_id)
			else:
				await self.driver.wait_for_active_runs(conversation_id, token)
			context.conversation_id = conversation_id
			await self.registry.update(session_id, conversation_id)
			run_id = await self.driver.start_run(conversation_id, story_focused_message(message), token, context)
			return await self.driver.drive(conversation_id, run_id, bound, token, context)

		try:
			race = await self.guard.race(pipeline(), relay, token, context, budget_seconds)
		except Exception as exc:
			logging.error("Turn for session %s failed: %s", session_id, exc)
			await relay.emit("error", error="Failed to process request")
			return TurnResult(status="error", error=str(exc), source="error", conversation_id=context.conversation_id)

		if race.timed_out:
			# Stamps validated before the deadline were already streamed as structured_data.
			found = list(context.stamps)
			if race.salvaged_text:
				return TurnResult(
					status="partial",
					text=race.salvaged_text,
					source="partial_response",
					conversation_id=context.conversation_id,
					stamps=found,
					presentation=context.presentation,
					timed_out=True,
				)
			return TurnResult(
				status="timeout",
				text=TIMEOUT_MESSAGE,
				source="timeout",
				conversation_id=context.conversation_id,
				stamps=found,
				presentation=context.presentation,
				timed_out=True,
			)

		outcome = race.value
		result = TurnResult(
			status=outcome.status,
			text=outcome.text,
			conversation_id=outcome.conversation_id,
			stamps=list(outcome.stamps),
			presentation=outcome.presentation,
			error=outcome.error,
			failure=outcome.failure,
		)
		if outcome.status == "partial":
			result.source = "partial_response"
		elif outcome.status == "still_working":
			result.source = "still_working"
		elif outcome.status == "cancelled":
			result.status = "timeout"
			result.source = "timeout"
		if outcome.tool_calls_seen == 0 and outcome.raw_text:
			# Prose-only answers: report guessed stamps separately from validated ones.
			result.extracted = extract_stamps(outcome.raw_text).stamps
		return result
