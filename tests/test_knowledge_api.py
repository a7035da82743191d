import json

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from tests.fakes import FakeProvider


class FailingResponsesProvider(FakeProvider):
    async def create_response_with_tools(self, input_text, **kwargs):
        raise RuntimeError("Request timeout while reading vector store")


@pytest.mark.asyncio
async def test_knowledge_turns_chain_previous_response(client):
    first = await client.post("/api/philaguide-v2", json={"message": "What is the Penny Black?", "sessionId": "k1"})
    second = await client.post("/api/philaguide-v2", json={"message": "Who designed it?", "sessionId": "k1"})

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["responseId"] == "resp_1"
    assert body["content"] == "The Penny Black was issued in 1840."
    assert body["source"] == "knowledge_base"
    assert body["hasContext"] is False
    assert second.json()["hasContext"] is True

    calls = client.provider.responses
    assert calls[0]["previous_response_id"] is None
    assert calls[1]["previous_response_id"] == "resp_1"
    assert calls[0]["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_test"]}]


@pytest.mark.asyncio
async def test_knowledge_status_by_session_and_overall(client):
    await client.post("/api/philaguide-v2", json={"message": "Hello", "sessionId": "k1"})

    single = (await client.get("/api/philaguide-v2", params={"sessionId": "k1"})).json()
    assert single == {"sessionId": "k1", "hasContext": True, "previousResponseId": "resp_1"}

    overall = (await client.get("/api/philaguide-v2")).json()
    assert overall == {"totalSessions": 1, "sessions": ["k1"]}


@pytest.mark.asyncio
async def test_knowledge_requires_session_id(client):
    res = await client.post("/api/philaguide-v2", json={"message": "Hello"})
    assert res.status_code == 400
    assert res.json()["error"] == "Session ID is required"


@pytest.mark.asyncio
async def test_voice_vector_search_renders_clarifying_questions(app_factory):
    envelope = {"mode": "clarify", "clarifyingQuestions": ["The 1935 issue?", "The 1960 reprint?"]}
    provider = FakeProvider(response_text=json.dumps(envelope))
    app, _, _ = app_factory(provider=provider)
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            res = await client.post("/api/voice-vector-search", json={"transcript": "the kiwi stamp", "sessionId": "v1"})
            status = (await client.get("/api/voice-vector-search", params={"sessionId": "v1"})).json()
            knowledge_status = (await client.get("/api/philaguide-v2", params={"sessionId": "v1"})).json()

    body = res.json()
    assert body["content"] == "Which one do you mean?\n- The 1935 issue?\n- The 1960 reprint?"
    assert body["structured"] == envelope
    assert body["isVoiceResponse"] is True
    assert body["source"] == "voice_vector_search"
    assert provider.responses[0]["max_output_tokens"] == 600
    assert status["hasContext"] is True
    assert knowledge_status["hasContext"] is False


@pytest.mark.asyncio
async def test_upstream_failure_becomes_friendly_error(app_factory):
    app, _, _ = app_factory(provider=FailingResponsesProvider())
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            res = await client.post("/api/philaguide-v2", json={"message": "Hello", "sessionId": "k1"})

    assert res.status_code == 500
    body = res.json()
    assert body["code"] == "internal_error"
    assert body["error"].startswith("The request took too long")
