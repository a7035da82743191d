"""OpenAI-backed implementation of the conversation provider.

Threads and runs come from the Assistants API; the knowledge base endpoints
use the Responses API with ``file_search`` over the stamp vector store.
Every call logs failures and re-raises so the chat core can decide how the
turn ends.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.run_models import ResponseResult, RunSnapshot, RunStatus, ToolCall, ToolOutput
from services.openai.response_parser import extract_output_text, extract_tool_calls, message_text


class OpenAIAssistantProvider:
    """Drive assistant threads and runs through `AsyncOpenAI`."""

    def __init__(self, client: AsyncOpenAI, *, assistant_id: str, response_model: str = "gpt-4o") -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        if not assistant_id:
            raise ValueError("An assistant id is required.")
        self.client = client
        self.assistant_id = assistant_id
        self.response_model = response_model

    async def create_conversation(self) -> str:
        try:
            thread = await self.client.beta.threads.create()
        except Exception as exc:
            logging.error("Failed to create thread: %s", exc)
            raise
        return thread.id

    async def append_user_message(self, conversation_id: str, text: str) -> None:
        try:
            await self.client.beta.threads.messages.create(conversation_id, role="user", content=text)
        except Exception as exc:
            logging.error("Failed to add message to thread %s: %s", conversation_id, exc)
            raise

    async def create_run(self, conversation_id: str, agent_config: Optional[Dict[str, Any]] = None) -> str:
        config = dict(agent_config or {})
        assistant_id = config.pop("assistant_id", None) or self.assistant_id
        try:
            run = await self.client.beta.threads.runs.create(
                thread_id=conversation_id, assistant_id=assistant_id, **config
            )
        except Exception as exc:
            logging.error("Failed to create run on thread %s: %s", conversation_id, exc)
            raise
        if not getattr(run, "id", None):
            raise RuntimeError("Failed to create run - no run ID returned")
        return run.id

    async def get_run(self, conversation_id: str, run_id: str) -> RunSnapshot:
        run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=conversation_id)
        return self._snapshot(run)

    async def list_active_runs(self, conversation_id: str) -> List[RunSnapshot]:
        page = await self.client.beta.threads.runs.list(thread_id=conversation_id, limit=20)
        snapshots = [self._snapshot(run) for run in getattr(page, "data", [])]
        return [snapshot for snapshot in snapshots if snapshot.status.is_active]

    async def submit_tool_outputs(self, conversation_id: str, run_id: str, outputs: Sequence[ToolOutput]) -> None:
        try:
            await self.client.beta.threads.runs.submit_tool_outputs(
                run_id,
                thread_id=conversation_id,
                tool_outputs=[output.to_dict() for output in outputs],
            )
        except Exception as exc:
            logging.error("Failed to submit tool outputs for run %s: %s", run_id, exc)
            raise

    async def latest_assistant_message(self, conversation_id: str, run_id: Optional[str] = None) -> Optional[str]:
        page = await self.client.beta.threads.messages.list(conversation_id, order="desc", limit=10)
        for message in getattr(page, "data", []):
            if getattr(message, "role", None) != "assistant":
                continue
            if run_id and getattr(message, "run_id", None) not in (None, run_id):
                continue
            text = message_text(message)
            if text:
                return text
        return None

    async def create_response_with_tools(
        self,
        input_text: str,
        *,
        instructions: str,
        tools: List[Dict[str, Any]],
        previous_response_id: Optional[str] = None,
        max_output_tokens: int = 1800,
    ) -> ResponseResult:
        kwargs: Dict[str, Any] = {
            "model": self.response_model,
            "input": input_text,
            "instructions": instructions,
            "tools": tools,
            "temperature": 0,
            "max_output_tokens": max_output_tokens,
        }
        if previous_response_id:
            kwargs["previous_response_id"] = previous_response_id
        try:
            response = await self.client.responses.create(**kwargs)
        except Exception as exc:
            logging.error("OpenAI Responses API error: %s", exc)
            raise
        return ResponseResult(id=response.id, output_text=extract_output_text(response))

    @staticmethod
    def _snapshot(run: Any) -> RunSnapshot:
        last_error = getattr(run, "last_error", None)
        error_text = None
        if last_error is not None:
            error_text = getattr(last_error, "message", None) or str(last_error)
        tool_calls: List[ToolCall] = extract_tool_calls(run)
        return RunSnapshot(
            id=run.id,
            status=RunStatus.parse(getattr(run, "status", None)),
            last_error=error_text,
            tool_calls=tool_calls,
        )
