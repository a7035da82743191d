"""The narrow provider surface the conversation core depends on."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from models.run_models import ResponseResult, RunSnapshot, ToolOutput


class ConversationProvider(Protocol):
	"""Asynchronous conversation backend (threads, runs, and single-shot responses).

	Any backend with these operations can drive the core; the OpenAI
	implementation lives in ``services.openai.assistant_provider``.
	"""

	async def create_conversation(self) -> str: ...

	async def append_user_message(self, conversation_id: str, text: str) -> None: ...

	async def create_run(self, conversation_id: str, agent_config: Optional[Dict[str, Any]] = None) -> str: ...

	async def get_run(self, conversation_id: str, run_id: str) -> RunSnapshot: ...

	async def list_active_runs(self, conversation_id: str) -> List[RunSnapshot]: ...

	async def submit_tool_outputs(self, conversation_id: str, run_id: str, outputs: Sequence[ToolOutput]) -> None: ...

	async def latest_assistant_message(self, conversation_id: str, run_id: Optional[str] = None) -> Optional[str]:
		"""Newest assistant text on the conversation, limited to `run_id` when given."""
		...

	async def create_response_with_tools(
		self,
		input_text: str,
		*,
		instructions: str,
		tools: List[Dict[str, Any]],
		previous_response_id: Optional[str] = None,
		max_output_tokens: int = 1800,
	) -> ResponseResult: ...
