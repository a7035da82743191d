"""Cooperative cancellation shared by the run driver and the deadline guard."""

from __future__ import annotations

import asyncio
from typing import Optional


class CancelToken:
	"""Set once; checked by long-running loops between awaits.

	Cancelling never aborts a provider call that is already in flight; the
	holder of the token simply stops doing further work after that call
	returns.
	"""

	def __init__(self) -> None:
		self._event = asyncio.Event()
		self.reason: Optional[str] = None

	def cancel(self, reason: str = "cancelled") -> None:
		if not self._event.is_set():
			self.reason = reason
			self._event.set()

	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	async def sleep(self, seconds: float) -> bool:
		"""Sleep up to `seconds`; return True if the token fired first."""
		if seconds <= 0:
			await asyncio.sleep(0)
			return self.cancelled
		try:
			await asyncio.wait_for(self._event.wait(), timeout=seconds)
		except asyncio.TimeoutError:
			return False
		return True
