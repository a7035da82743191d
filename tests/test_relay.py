import asyncio
import json

import pytest

from services.chat.cancellation import CancelToken
from services.chat.deadline import DeadlineGuard
from services.chat.relay import CollectingSink, QueueSink, StreamingRelay, sse_frame
from services.chat.run_driver import TurnContext
from services.openai.prompts import TIMEOUT_MESSAGE
from tests.fakes import FakeProvider
from utils.errors import TransportClosed


class BrokenSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def send_event(self, event):
        self.attempts += 1
        raise TransportClosed("gone")


def test_sse_frame_format():
    assert sse_frame({"type": "status", "status": "queued"}) == 'data: {"type": "status", "status": "queued"}\n\n'


@pytest.mark.asyncio
async def test_final_text_sends_full_answer_before_chunks():
    sink = CollectingSink()
    relay = StreamingRelay(sink, chunk_words=2, chunk_delay_seconds=0, keep_alive_every_chunks=0)

    await relay.emit_final_text("one two three four five", source="partial_response")

    assert [event["type"] for event in sink.events] == [
        "complete_response",
        "content",
        "content",
        "content",
        "complete",
    ]
    assert [event["content"] for event in sink.of_type("content")] == ["one two ", "three four ", "five"]
    assert all(event["source"] == "partial_response" for event in sink.events)


@pytest.mark.asyncio
async def test_first_failed_write_closes_relay():
    sink = BrokenSink()
    relay = StreamingRelay(sink)

    assert await relay.emit("status", status="queued") is False
    assert await relay.emit("status", status="in_progress") is False
    assert relay.closed
    assert sink.attempts == 1


@pytest.mark.asyncio
async def test_bound_relay_goes_quiet_when_token_fires():
    sink = CollectingSink()
    relay = StreamingRelay(sink)
    token = CancelToken()
    bound = relay.bind(token)

    assert await bound.emit("status", status="queued")
    token.cancel("deadline")
    assert await bound.emit("status", status="in_progress") is False
    assert await relay.emit("timeout", message="late")
    assert [event["type"] for event in sink.events] == ["status", "timeout"]


@pytest.mark.asyncio
async def test_queue_sink_yields_frames_until_finished():
    sink = QueueSink()
    await sink.send_event({"type": "status", "status": "queued"})
    sink.finish()

    frames = [frame async for frame in sink.frames()]

    assert [json.loads(frame[len("data: "):]) for frame in frames] == [{"type": "status", "status": "queued"}]
    assert sink.closed
    with pytest.raises(TransportClosed):
        await sink.send_event({"type": "status"})


@pytest.mark.asyncio
async def test_deadline_salvages_the_current_run():
    provider = FakeProvider(reply="What I know so far about the **Inverted Jenny**.")
    guard = DeadlineGuard(provider, budget_seconds=0.05)
    sink = CollectingSink()
    token = CancelToken()
    context = TurnContext(conversation_id="thread_1", run_id="run_7")

    result = await guard.race(asyncio.sleep(5), StreamingRelay(sink), token, context)

    assert result.timed_out
    assert token.cancelled and token.reason == "deadline"
    assert result.salvaged_text == "What I know so far about the Inverted Jenny."
    assert provider.message_reads == ["run_7"]
    assert sink.events[-1] == {"type": "complete", "content": result.salvaged_text, "source": "partial_response"}


@pytest.mark.asyncio
async def test_deadline_without_run_sends_timeout():
    provider = FakeProvider(reply="Old answer from a previous turn.")
    guard = DeadlineGuard(provider, budget_seconds=0.05)
    sink = CollectingSink()

    result = await guard.race(asyncio.sleep(5), StreamingRelay(sink), CancelToken(), TurnContext("thread_1"))

    assert result.salvaged_text is None
    assert provider.message_reads == []
    assert sink.events == [
        {"type": "timeout", "message": TIMEOUT_MESSAGE},
        {"type": "complete", "source": "timeout"},
    ]


@pytest.mark.asyncio
async def test_work_inside_budget_returns_value():
    guard = DeadlineGuard(FakeProvider(), budget_seconds=1)

    async def work():
        return "done"

    result = await guard.race(work(), StreamingRelay(CollectingSink()), CancelToken(), TurnContext())

    assert result.value == "done"
    assert not result.timed_out
