import asyncio
import json
from collections import defaultdict
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence

from models.run_models import ResponseResult, RunSnapshot, RunStatus, ToolCall, ToolOutput

PENNY_BLACK = {
    "Id": "gb-1840-penny-black",
    "Name": "Penny Black",
    "Country": "Great Britain",
    "IssueYear": "1840",
    "IssueDate": "1840-05-01",
    "DenominationValue": "1",
    "DenominationSymbol": "d",
    "Color": "Black",
    "StampImageUrl": "https://example.test/penny-black.png",
}


def stamp_call(stamps: Sequence[Dict[str, Any]], call_id: str = "call_1") -> ToolCall:
    return ToolCall(id=call_id, function_name="return_stamp_data", arguments_json=json.dumps({"stamps": list(stamps)}))


class FakeProvider:
    """Scripted conversation backend.

    Each run walks through ``statuses`` one poll at a time and then repeats
    the last one. ``tool_calls`` are attached to ``requires_action`` polls.
    """

    def __init__(
        self,
        *,
        statuses: Optional[Sequence[str]] = None,
        tool_calls: Optional[Sequence[ToolCall]] = None,
        reply: Optional[str] = "The Penny Black was the first adhesive postage stamp.",
        response_text: str = "The Penny Black was issued in 1840.",
        get_run_delay: float = 0.0,
        create_run_delay: float = 0.0,
        fail_submit: bool = False,
        run_error: Optional[str] = None,
        active_runs: Optional[List[List[RunSnapshot]]] = None,
    ) -> None:
        self.statuses = list(statuses or ["completed"])
        self.tool_calls = list(tool_calls or [])
        self.reply = reply
        self.response_text = response_text
        self.get_run_delay = get_run_delay
        self.create_run_delay = create_run_delay
        self.fail_submit = fail_submit
        self.run_error = run_error
        self.active_runs = list(active_runs or [])

        self.conversations: List[str] = []
        self.messages: Dict[str, List[str]] = defaultdict(list)
        self.runs_created = 0
        self.polls: Dict[str, int] = defaultdict(int)
        self.submitted: List[List[ToolOutput]] = []
        self.message_reads: List[Optional[str]] = []
        self.responses: List[Dict[str, Any]] = []

    async def create_conversation(self) -> str:
        conversation_id = f"thread_{len(self.conversations) + 1}"
        self.conversations.append(conversation_id)
        return conversation_id

    async def append_user_message(self, conversation_id: str, text: str) -> None:
        self.messages[conversation_id].append(text)

    async def create_run(self, conversation_id: str, agent_config=None) -> str:
        if self.create_run_delay:
            await asyncio.sleep(self.create_run_delay)
        self.runs_created += 1
        return f"run_{self.runs_created}"

    async def get_run(self, conversation_id: str, run_id: str) -> RunSnapshot:
        if self.get_run_delay:
            await asyncio.sleep(self.get_run_delay)
        index = self.polls[run_id]
        self.polls[run_id] += 1
        status = RunStatus(self.statuses[min(index, len(self.statuses) - 1)])
        return RunSnapshot(
            id=run_id,
            status=status,
            last_error=self.run_error if status.is_terminal_failure else None,
            tool_calls=list(self.tool_calls) if status is RunStatus.REQUIRES_ACTION else [],
        )

    async def list_active_runs(self, conversation_id: str) -> List[RunSnapshot]:
        return self.active_runs.pop(0) if self.active_runs else []

    async def submit_tool_outputs(self, conversation_id: str, run_id: str, outputs) -> None:
        if self.fail_submit:
            raise RuntimeError("submit rejected")
        self.submitted.append(list(outputs))

    async def latest_assistant_message(self, conversation_id: str, run_id: Optional[str] = None) -> Optional[str]:
        self.message_reads.append(run_id)
        return self.reply

    async def create_response_with_tools(
        self,
        input_text: str,
        *,
        instructions: str,
        tools,
        previous_response_id: Optional[str] = None,
        max_output_tokens: int = 1800,
    ) -> ResponseResult:
        self.responses.append(
            {
                "input": input_text,
                "instructions": instructions,
                "tools": tools,
                "previous_response_id": previous_response_id,
                "max_output_tokens": max_output_tokens,
            }
        )
        return ResponseResult(id=f"resp_{len(self.responses)}", output_text=self.response_text)


def _content_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


class FakeOpenAIClient:
    """Just enough of `AsyncOpenAI` for the speech, completion, search, vision and realtime services."""

    def __init__(
        self,
        *,
        transcript: str = " Tell me about the Penny Black ",
        speech_bytes: bytes = b"ID3-fake-mp3",
        completion_text: str = "Stamps tell wonderful stories.",
        stream_parts: Sequence[str] = ("Stamps ", "tell ", "stories."),
        search_hits: Optional[List[Dict[str, Any]]] = None,
        search_error: Optional[Exception] = None,
        image_analysis: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.transcript = transcript
        self.speech_bytes = speech_bytes
        self.completion_text = completion_text
        self.stream_parts = list(stream_parts)
        self.search_hits = search_hits if search_hits is not None else [PENNY_BLACK]
        self.search_error = search_error
        self.image_analysis = image_analysis or {
            "isStamp": True,
            "confidence": 0.9,
            "description": "black stamp with queen profile",
            "country": "Great Britain",
            "year": "1840",
            "denomination": "1d",
            "colors": ["black"],
            "subject": "queen victoria",
        }
        self.calls: List[tuple] = []

        self.audio = SimpleNamespace(
            transcriptions=SimpleNamespace(create=self._transcribe),
            speech=SimpleNamespace(create=self._speech),
        )
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._chat))
        self.vector_stores = SimpleNamespace(search=self._vector_search)
        self.beta = SimpleNamespace(realtime=SimpleNamespace(sessions=SimpleNamespace(create=self._realtime)))
        self.responses = SimpleNamespace(create=self._responses)

    async def _transcribe(self, **kwargs):
        self.calls.append(("transcribe", {"model": kwargs["model"], "filename": kwargs["file"].name}))
        return self.transcript

    async def _speech(self, **kwargs):
        self.calls.append(("speech", kwargs))
        return SimpleNamespace(content=self.speech_bytes)

    async def _chat(self, **kwargs):
        self.calls.append(("chat", kwargs))
        if kwargs.get("stream"):
            return self._stream_chunks()
        message = SimpleNamespace(content=self.completion_text)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    async def _stream_chunks(self):
        for part in self.stream_parts:
            yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=part))])

    async def _vector_search(self, vector_store_id, **kwargs):
        self.calls.append(("vector_search", {"vector_store_id": vector_store_id, **kwargs}))
        if self.search_error is not None:
            raise self.search_error
        data = [
            SimpleNamespace(file_id=f"file_{index}", score=0.9, content=[_content_part(json.dumps(hit))])
            for index, hit in enumerate(self.search_hits)
        ]
        return SimpleNamespace(data=data)

    async def _realtime(self, **kwargs):
        self.calls.append(("realtime", kwargs))
        payload = {"id": "sess_test", "client_secret": {"value": "ek_test"}, **kwargs}
        return SimpleNamespace(model_dump=lambda: payload)

    async def _responses(self, **kwargs):
        self.calls.append(("responses", kwargs))
        call = SimpleNamespace(
            type="function_call",
            name=kwargs["tool_choice"]["name"],
            arguments=json.dumps(self.image_analysis),
        )
        return SimpleNamespace(output=[call], usage=SimpleNamespace(input_tokens=10, output_tokens=5))
