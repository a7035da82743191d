"""Session domain models for chat and voice workflows."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Session:
	"""Link between a client session id and the provider-side conversation."""

	session_id: str
	conversation_ref: str
	created_implicitly: bool = True
	updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class StampContext:
	"""A stamp the user recently heard about, kept for follow-ups like "compare it"."""

	id: str
	name: str
	country: str = ""
	year: str = ""
	denomination: str = ""
	color: str = ""
	series: str = ""
	timestamp: float = field(default_factory=lambda: time.time())

	def describe(self) -> str:
		"""Return a one-line description used to ground follow-up questions."""
		parts = [self.name]
		if self.country:
			parts.append(f"from {self.country}")
		if self.year:
			parts.append(f"issued {self.year}")
		if self.denomination:
			parts.append(f"denomination {self.denomination}")
		if self.color:
			parts.append(f"color {self.color}")
		if self.series:
			parts.append(f"{self.series} series")
		return ", ".join(parts) + f" (id {self.id})"

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)


@dataclass
class ConversationMessage:
	"""One prior turn supplied by the client as conversation history."""

	role: str
	content: str

	@classmethod
	def from_payload(cls, payload: Any) -> Optional["ConversationMessage"]:
		"""Return a message for well-formed history entries, None otherwise."""
		if not isinstance(payload, dict):
			return None
		role = str(payload.get("role") or "").strip()
		content = payload.get("content")
		if role not in {"user", "assistant", "system"} or not isinstance(content, str) or not content.strip():
			return None
		return cls(role=role, content=content.strip())
