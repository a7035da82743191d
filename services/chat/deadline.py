"""Race a turn against its execution budget and salvage what exists when time runs out."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from services.chat.cancellation import CancelToken
from services.chat.provider import ConversationProvider
from services.chat.relay import StreamingRelay
from services.chat.run_driver import TurnContext
from services.chat.text_cleaner import clean_response_text
from services.openai.prompts import TIMEOUT_MESSAGE

T = TypeVar("T")


@dataclass
class RaceResult(Generic[T]):
	value: Optional[T] = None
	timed_out: bool = False
	salvaged_text: Optional[str] = None


def _log_abandoned(task: "asyncio.Future[Any]") -> None:
	if task.cancelled():
		return
	exc = task.exception()
	if exc is not None:
		logging.info("Abandoned turn finished with error: %s", exc)
	else:
		logging.info("Abandoned turn finished after its deadline")


class DeadlineGuard:
	"""Stop waiting on a turn after `budget_seconds`.

	Expiry is cooperative: the token is cancelled so the work stops at its
	next check, but a provider call already in flight is left to finish on
	its own. The guard then makes one read of the run's newest assistant
	message and streams it as a partial answer, or sends ``timeout``.
	Either way the client receives a terminal ``complete``.
	"""

	def __init__(
		self,
		provider: ConversationProvider,
		budget_seconds: float = 8.0,
		cleaner: Callable[[Optional[str]], str] = clean_response_text,
	) -> None:
		self.provider = provider
		self.budget_seconds = budget_seconds
		self.cleaner = cleaner

	async def race(
		self,
		work: Awaitable[T],
		relay: StreamingRelay,
		token: CancelToken,
		context: TurnContext,
		budget_seconds: Optional[float] = None,
	) -> RaceResult[T]:
		budget = self.budget_seconds if budget_seconds is None else budget_seconds
		task = asyncio.ensure_future(work)
		try:
			done, _ = await asyncio.wait({task}, timeout=budget)
		except asyncio.CancelledError:
			token.cancel("caller cancelled")
			task.add_done_callback(_log_abandoned)
			raise
		if task in done:
			return RaceResult(value=task.result())

		token.cancel("deadline")
		task.add_done_callback(_log_abandoned)
		logging.warning("Turn exceeded %.1fs budget on %s", budget, context.conversation_id)

		salvaged = await self.salvage(context)
		if salvaged:
			await relay.emit("content", content=salvaged, source="partial_response")
			await relay.emit("complete", content=salvaged, source="partial_response")
		else:
			await relay.emit("timeout", message=TIMEOUT_MESSAGE)
			await relay.emit("complete", source="timeout")
		return RaceResult(timed_out=True, salvaged_text=salvaged)

	async def salvage(self, context: TurnContext) -> Optional[str]:
		"""Newest assistant text of the current run, cleaned, or None."""
		if not context.conversation_id or not context.run_id:
			return None
		try:
			text = await self.provider.latest_assistant_message(context.conversation_id, run_id=context.run_id)
		except Exception as exc:
			logging.warning("Salvage read on %s failed: %s", context.conversation_id, exc)
			return None
		return self.cleaner(text) or None
