"""Validate `return_stamp_data` tool calls and hand their outputs back to the run."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from models.presentation import MAX_CAROUSEL_ITEMS, build_presentation
from models.run_models import ToolCall, ToolOutput
from models.stamp_record import StampRecord, parse_stamp_list
from services.chat.provider import ConversationProvider
from services.chat.relay import StreamingRelay
from services.openai.prompts import (
	NEUTRAL_TOOL_MESSAGE,
	NO_STAMPS_MESSAGE,
	STAMP_TOOL_NAME,
	tool_output_instructions,
)
from utils.errors import ProtocolViolation


@dataclass
class Resolution:
	"""What one `requires_action` interruption produced."""

	tool_outputs: List[ToolOutput] = field(default_factory=list)
	stamps: List[StampRecord] = field(default_factory=list)
	presentation: Optional[Dict[str, Any]] = None
	fallback_message: Optional[str] = None
	submitted: bool = False
	calls_seen: int = 0
	violations: List[ProtocolViolation] = field(default_factory=list)


def _neutral_output(call: ToolCall, message: str = NEUTRAL_TOOL_MESSAGE) -> ToolOutput:
	return ToolOutput(
		tool_call_id=call.id,
		output=json.dumps({"success": False, "stamps": [], "message": message}),
	)


class ToolCallResolver:
	"""Turns tool calls into one output per call plus, when possible, a card or carousel.

	A record only counts when it carries a name, country, or year; records
	with just an id are the assistant hallucinating a lookup and are
	dropped. Outputs are always submitted, so the run never stalls on a
	call this service did not understand.
	"""

	def __init__(self, provider: ConversationProvider, *, max_items: int = MAX_CAROUSEL_ITEMS) -> None:
		self.provider = provider
		self.max_items = max_items

	def validate(self, call: ToolCall) -> List[StampRecord]:
		"""Return the usable stamp records in one call's arguments."""
		try:
			return self._records(call)
		except ProtocolViolation as violation:
			logging.warning("Tool call %s: %s (%s)", call.id, violation.message, violation.details)
			return []

	def _records(self, call: ToolCall) -> List[StampRecord]:
		try:
			args = json.loads(call.arguments_json or "{}")
		except (TypeError, json.JSONDecodeError) as exc:
			raise ProtocolViolation("Malformed tool-call arguments", details=str(exc)) from exc
		raw_stamps = parse_stamp_list(args)
		if raw_stamps is None:
			logging.info("Tool call %s carried no stamps array", call.id)
			return []
		records = [StampRecord.from_args(raw) for raw in raw_stamps]
		valid = [record for record in records if record.has_identity()]
		if len(valid) < len(records):
			logging.info("Tool call %s: dropped %d record(s) without name, country, or year", call.id, len(records) - len(valid))
		return valid

	async def resolve(
		self,
		conversation_id: str,
		run_id: str,
		tool_calls: Sequence[ToolCall],
		relay: StreamingRelay,
	) -> Resolution:
		resolution = Resolution(calls_seen=len(tool_calls))

		for call in tool_calls:
			if call.function_name != STAMP_TOOL_NAME:
				logging.warning("Unknown tool %s requested by run %s", call.function_name, run_id)
				resolution.violations.append(ProtocolViolation(f"Unknown tool {call.function_name}", details=call.id))
				resolution.tool_outputs.append(_neutral_output(call, f"Unknown tool {call.function_name}"))
				continue
			try:
				valid = self._records(call)
			except ProtocolViolation as violation:
				logging.warning("Tool call %s on run %s: %s (%s)", call.id, run_id, violation.message, violation.details)
				resolution.violations.append(violation)
				valid = []
			if not valid:
				resolution.tool_outputs.append(_neutral_output(call))
				continue
			resolution.stamps.extend(valid)
			resolution.tool_outputs.append(
				ToolOutput(
					tool_call_id=call.id,
					output=json.dumps(
						{
							"success": True,
							"stamps": [record.raw for record in valid],
							"instructions": tool_output_instructions(),
						}
					),
				)
			)

		shown = resolution.stamps[:self.max_items]
		if shown:
			count = len(resolution.stamps)
			await relay.emit("stamp_preview", data={"count": count, "stamps": [record.preview() for record in shown]})
			await relay.emit("raw_stamp_data", data={"count": count, "stamps": [record.raw for record in shown]})
			resolution.presentation = build_presentation(shown)
			await relay.emit("structured_data", data=resolution.presentation)
		else:
			resolution.fallback_message = NO_STAMPS_MESSAGE

		try:
			await self.provider.submit_tool_outputs(conversation_id, run_id, resolution.tool_outputs)
			resolution.submitted = True
		except Exception as exc:
			logging.error("Submitting %d tool output(s) for run %s failed: %s", len(resolution.tool_outputs), run_id, exc)
		return resolution
