"""Provider-neutral view of assistant runs and tool calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RunStatus(str, Enum):
	QUEUED = "queued"
	IN_PROGRESS = "in_progress"
	REQUIRES_ACTION = "requires_action"
	COMPLETED = "completed"
	FAILED = "failed"
	CANCELLED = "cancelled"
	EXPIRED = "expired"
	# CANCELLING is still pending; INCOMPLETE ends the run like a failure.
	CANCELLING = "cancelling"
	INCOMPLETE = "incomplete"

	@classmethod
	def parse(cls, value: Any) -> "RunStatus":
		try:
			return cls(str(getattr(value, "value", value)))
		except ValueError:
			return cls.IN_PROGRESS

	@property
	def is_pending(self) -> bool:
		return self in {RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.CANCELLING}

	@property
	def is_terminal_failure(self) -> bool:
		return self in {RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED, RunStatus.INCOMPLETE}

	@property
	def is_active(self) -> bool:
		"""True while the provider would reject a new run on the same conversation."""
		return self.is_pending or self is RunStatus.REQUIRES_ACTION


@dataclass
class ToolCall:
	id: str
	function_name: str
	arguments_json: str = "{}"


@dataclass
class ToolOutput:
	tool_call_id: str
	output: str

	def to_dict(self) -> Dict[str, str]:
		return {"tool_call_id": self.tool_call_id, "output": self.output}


@dataclass
class RunSnapshot:
	"""The state of a run as observed by one poll."""

	id: str
	status: RunStatus
	last_error: Optional[str] = None
	tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass
class ResponseResult:
	"""Result of a single-shot Responses API call."""

	id: str
	output_text: str
