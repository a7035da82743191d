"""Collapse concurrent identical requests onto one upstream call."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

T = TypeVar("T")


def normalize_message(message: str) -> str:
	return (message or "").strip().lower()


def request_key(session_id: str, message: str) -> str:
	return f"{session_id}:{normalize_message(message)}"


@dataclass
class InFlightRequest:
	key: str
	future: "asyncio.Future[Any]"
	started_at: float


class RequestDeduplicator:
	"""At most one in-flight upstream call per key.

	A caller that finds an unresolved entry for its key awaits that entry's
	result instead of issuing its own call. Entries are removed when their
	call settles (success or failure) and swept once they are older than
	`max_age_seconds`, even if they never settled.
	"""

	def __init__(self, max_age_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
		self.max_age_seconds = max_age_seconds
		self._clock = clock
		self._entries: Dict[str, InFlightRequest] = {}

	def sweep(self) -> int:
		"""Drop entries older than the max age. Returns how many were removed."""
		cutoff = self._clock() - self.max_age_seconds
		stale = [key for key, entry in self._entries.items() if entry.started_at < cutoff]
		for key in stale:
			logging.warning("Dropping stale in-flight request %s", key)
			del self._entries[key]
		return len(stale)

	def begin(self, key: str) -> Optional["asyncio.Future[Any]"]:
		"""Sweep, then return the pending future for `key` if one exists."""
		self.sweep()
		entry = self._entries.get(key)
		if entry is None or entry.future.done():
			return None
		return entry.future

	def register(self, key: str, future: "asyncio.Future[Any]") -> None:
		self._entries[key] = InFlightRequest(key=key, future=future, started_at=self._clock())

	def end(self, key: str, future: Optional["asyncio.Future[Any]"] = None) -> None:
		"""Remove `key`, unless it has since been taken over by a newer future."""
		entry = self._entries.get(key)
		if entry is None:
			return
		if future is not None and entry.future is not future:
			return
		del self._entries[key]

	async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
		"""Return the result of `factory()`, sharing it with concurrent callers on the same key."""
		existing = self.begin(key)
		if existing is not None:
			logging.info("Joining in-flight request %s", key)
			return await asyncio.shield(existing)

		task = asyncio.ensure_future(factory())
		self.register(key, task)
		task.add_done_callback(lambda done: self._settle(key, done))
		# Shielded so one caller disconnecting does not cancel the shared call.
		return await asyncio.shield(task)

	def _settle(self, key: str, task: "asyncio.Future[Any]") -> None:
		self.end(key, task)
		if not task.cancelled() and task.exception() is not None:
			logging.info("In-flight request %s failed: %s", key, task.exception())

	def __contains__(self, key: str) -> bool:
		return key in self._entries

	def __len__(self) -> int:
		return len(self._entries)
