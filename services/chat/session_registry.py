"""Session registry: client session id → provider conversation ref.

The registry sits on an injected `ConversationStore`, so the in-memory
dictionary used for a single instance can be swapped for the SQLite
store (``dal.conversation_dal``) or a fake in tests.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from models.session_models import Session, StampContext
from models.stamp_record import StampRecord


class ConversationStore(Protocol):
	async def get(self, session_id: str) -> Optional[Session]: ...

	async def put(self, session: Session) -> None: ...

	async def delete(self, session_id: str) -> bool: ...

	async def count(self) -> int: ...

	async def session_ids(self) -> List[str]: ...


class InMemoryConversationStore:
	"""Dictionary-backed store; contents live as long as the process."""

	def __init__(self) -> None:
		self._sessions: Dict[str, Session] = {}

	async def get(self, session_id: str) -> Optional[Session]:
		return self._sessions.get(session_id)

	async def put(self, session: Session) -> None:
		self._sessions[session.session_id] = session

	async def delete(self, session_id: str) -> bool:
		return self._sessions.pop(session_id, None) is not None

	async def count(self) -> int:
		return len(self._sessions)

	async def session_ids(self) -> List[str]:
		return list(self._sessions)


class SessionRegistry:
	"""Track which provider conversation each client session continues."""

	def __init__(self, store: ConversationStore) -> None:
		self.store = store

	async def get_or_create(self, session_id: Optional[str]) -> Optional[str]:
		"""Return the current conversation ref, or None to signal a brand-new conversation."""
		if not session_id:
			return None
		session = await self.store.get(session_id)
		return session.conversation_ref if session else None

	async def update(self, session_id: Optional[str], conversation_ref: str) -> None:
		"""Record the newest ref so the next turn continues the same conversation."""
		if not session_id or not conversation_ref:
			return
		existing = await self.store.get(session_id)
		await self.store.put(
			Session(
				session_id=session_id,
				conversation_ref=conversation_ref,
				created_implicitly=existing.created_implicitly if existing else True,
			)
		)

	async def get(self, session_id: str) -> Tuple[bool, Optional[str]]:
		session = await self.store.get(session_id)
		if session is None:
			return False, None
		return True, session.conversation_ref

	async def count(self) -> int:
		return await self.store.count()

	async def session_ids(self) -> List[str]:
		return await self.store.session_ids()


class StampContextStore:
	"""Per-session memory of the last few stamps discussed in voice chat.

	Entries older than `ttl_seconds` are dropped on every access, and a
	session with no remaining stamps is removed entirely.
	"""

	def __init__(
		self,
		*,
		ttl_seconds: float = 600.0,
		max_items: int = 5,
		clock: Callable[[], float] = time.time,
	) -> None:
		self.ttl_seconds = ttl_seconds
		self.max_items = max_items
		self._clock = clock
		self._contexts: Dict[str, List[StampContext]] = {}

	def sweep(self) -> None:
		cutoff = self._clock() - self.ttl_seconds
		for session_id in list(self._contexts):
			fresh = [item for item in self._contexts[session_id] if item.timestamp >= cutoff]
			if fresh:
				self._contexts[session_id] = fresh
			else:
				del self._contexts[session_id]

	def remember(self, session_id: str, stamps: List[StampRecord]) -> List[StampContext]:
		"""Add stamps (newest last), dropping duplicates and trimming to `max_items`."""
		self.sweep()
		if not session_id or not stamps:
			return self.recent(session_id)
		now = self._clock()
		current = self._contexts.get(session_id, [])
		for stamp in stamps:
			if not stamp.has_identity():
				continue
			key = stamp.id or f"{stamp.name}|{stamp.country}|{stamp.year}"
			current = [item for item in current if item.id != key]
			current.append(
				StampContext(
					id=key,
					name=stamp.name or stamp.title,
					country=stamp.country,
					year=stamp.year,
					denomination=stamp.denomination,
					color=stamp.color,
					series=stamp.series,
					timestamp=now,
				)
			)
		current = current[-self.max_items:]
		if current:
			self._contexts[session_id] = current
		return list(current)

	def recent(self, session_id: str) -> List[StampContext]:
		self.sweep()
		return list(self._contexts.get(session_id, []))

	def __len__(self) -> int:
		return len(self._contexts)
