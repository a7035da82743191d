"""Poll an assistant run to a terminal state, relaying progress as it goes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.run_models import RunStatus
from models.stamp_record import StampRecord
from services.chat.cancellation import CancelToken
from services.chat.provider import ConversationProvider
from services.chat.relay import StreamingRelay
from services.chat.text_cleaner import clean_response_text
from services.chat.tool_resolver import ToolCallResolver
from services.openai.prompts import NO_STAMPS_MESSAGE, STILL_WORKING_MESSAGE
from utils.errors import UpstreamTerminalFailure


@dataclass
class TurnContext:
	"""The turn in flight: identifiers for salvage and the stamps validated so far."""

	conversation_id: Optional[str] = None
	run_id: Optional[str] = None
	stamps: List[StampRecord] = field(default_factory=list)
	presentation: Optional[Dict[str, Any]] = None


@dataclass
class RunOutcome:
	"""How a driven run ended.

	`status` is one of ``completed``, ``partial`` (poll budget spent, some
	text recovered), ``still_working`` (poll budget spent, nothing to show),
	``failed`` or ``cancelled``.
	"""

	status: str
	conversation_id: str
	run_id: str
	text: str = ""
	raw_text: str = ""
	stamps: List[StampRecord] = field(default_factory=list)
	presentation: Optional[Dict[str, Any]] = None
	fallback_message: Optional[str] = None
	error: Optional[str] = None
	failure: Optional[UpstreamTerminalFailure] = None
	tool_calls_seen: int = 0

	@property
	def partial(self) -> bool:
		return self.status == "partial"


class RunDriver:
	"""Single poll loop over the run state machine.

	queued / in_progress  -> poll again (status every poll, keep-alive every Nth)
	requires_action       -> resolve tool calls, submit, keep polling
	completed             -> clean the newest assistant text and stream it
	failed / cancelled / expired -> terminal ``error`` frame, no retry

	The attempt counter restarts after each tool-call round so the answer
	written after a submit gets a full poll budget.
	"""

	def __init__(
		self,
		provider: ConversationProvider,
		resolver: ToolCallResolver,
		*,
		poll_interval_seconds: float = 0.5,
		max_attempts: int = 15,
		keep_alive_every: int = 5,
		active_run_max_wait: int = 30,
		cleaner: Callable[[Optional[str]], str] = clean_response_text,
	) -> None:
		self.provider = provider
		self.resolver = resolver
		self.poll_interval_seconds = poll_interval_seconds
		self.max_attempts = max(1, max_attempts)
		self.keep_alive_every = keep_alive_every
		self.active_run_max_wait = active_run_max_wait
		self.cleaner = cleaner

	async def wait_for_active_runs(self, conversation_id: str, token: CancelToken) -> bool:
		"""Wait until the conversation has no active run. False if the wait was abandoned."""
		for _ in range(self.active_run_max_wait):
			if token.cancelled:
				return False
			try:
				active = await self.provider.list_active_runs(conversation_id)
			except Exception as exc:
				logging.warning("Could not list runs on %s: %s", conversation_id, exc)
				return False
			if not active:
				return True
			logging.info("Waiting on %d active run(s) on %s", len(active), conversation_id)
			if await token.sleep(self.poll_interval_seconds):
				return False
		logging.warning("Gave up waiting for active runs on %s", conversation_id)
		return False

	async def start_run(
		self,
		conversation_id: str,
		text: str,
		token: CancelToken,
		context: TurnContext,
		agent_config: Optional[Dict[str, Any]] = None,
	) -> str:
		await self.provider.append_user_message(conversation_id, text)
		run_id = await self.provider.create_run(conversation_id, agent_config)
		context.run_id = run_id
		logging.info("Run %s created on %s", run_id, conversation_id)
		return run_id

	async def drive(
		self,
		conversation_id: str,
		run_id: str,
		relay: StreamingRelay,
		token: CancelToken,
		context: Optional[TurnContext] = None,
	) -> RunOutcome:
		outcome = RunOutcome(status="cancelled", conversation_id=conversation_id, run_id=run_id)
		attempts = 0

		while not token.cancelled:
			snapshot = await self.provider.get_run(conversation_id, run_id)
			if token.cancelled:
				break
			status = snapshot.status
			attempts += 1
			await relay.emit("status", status=status.value)
			if self.keep_alive_every and attempts % self.keep_alive_every == 0:
				await relay.keep_alive()

			if status is RunStatus.REQUIRES_ACTION:
				resolution = await self.resolver.resolve(conversation_id, run_id, snapshot.tool_calls, relay)
				outcome.tool_calls_seen += resolution.calls_seen
				outcome.stamps.extend(resolution.stamps)
				outcome.presentation = resolution.presentation or outcome.presentation
				if resolution.fallback_message and not outcome.presentation:
					outcome.fallback_message = resolution.fallback_message
				if context is not None:
					context.stamps = list(outcome.stamps)
					context.presentation = outcome.presentation
				if not resolution.submitted:
					return await self._fail(outcome, relay, "Failed to submit tool outputs")
				attempts = 0
			elif status is RunStatus.COMPLETED:
				return await self._complete(outcome, relay)
			elif status.is_terminal_failure:
				return await self._fail(outcome, relay, f"Run {status.value}", snapshot.last_error)
			elif snapshot.last_error:
				return await self._fail(outcome, relay, snapshot.last_error)
			elif attempts >= self.max_attempts:
				return await self._salvage(outcome, relay, status)

			if await token.sleep(self.poll_interval_seconds):
				break

		logging.info("Stopped driving run %s: %s", run_id, token.reason)
		return outcome

	async def _complete(self, outcome: RunOutcome, relay: StreamingRelay) -> RunOutcome:
		raw = await self.provider.latest_assistant_message(outcome.conversation_id, run_id=outcome.run_id)
		outcome.raw_text = raw or ""
		text = self.cleaner(raw)
		if outcome.fallback_message and not outcome.presentation:
			# The stamp lookup came back empty, so any prose about specific stamps is unfounded.
			text = outcome.fallback_message
		elif not text and not outcome.presentation:
			text = NO_STAMPS_MESSAGE
		outcome.text = text
		outcome.status = "completed"
		await relay.emit_final_text(text)
		return outcome

	async def _fail(
		self,
		outcome: RunOutcome,
		relay: StreamingRelay,
		message: str,
		details: Optional[str] = None,
	) -> RunOutcome:
		logging.error("Run %s ended: %s (%s)", outcome.run_id, message, details or "no details")
		outcome.status = "failed"
		outcome.error = message
		outcome.failure = UpstreamTerminalFailure(message, details=details)
		await relay.emit("error", error=message)
		return outcome

	async def _salvage(self, outcome: RunOutcome, relay: StreamingRelay, status: RunStatus) -> RunOutcome:
		logging.warning("Run %s still %s after %d polls", outcome.run_id, status.value, self.max_attempts)
		try:
			partial = await self.provider.latest_assistant_message(outcome.conversation_id, run_id=outcome.run_id)
		except Exception as exc:
			logging.warning("Partial read for run %s failed: %s", outcome.run_id, exc)
			partial = None
		text = self.cleaner(partial)
		if text:
			outcome.status = "partial"
			outcome.raw_text = partial or ""
			outcome.text = text
			await relay.emit_final_text(text, source="partial_response")
			return outcome
		outcome.status = "still_working"
		outcome.text = STILL_WORKING_MESSAGE
		await relay.emit("status", status=status.value, message=STILL_WORKING_MESSAGE)
		await relay.emit("complete", content=STILL_WORKING_MESSAGE, source="still_working")
		return outcome
