import base64

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from tests.fakes import PENNY_BLACK, FakeOpenAIClient, FakeProvider, stamp_call

SPEECH = base64.b64encode(b"\x1aE\xdf\xa3" + b"\x00" * 196).decode()


async def run_requests(app, *requests):
    responses = []
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            for method, url, payload in requests:
                responses.append(await client.request(method, url, json=payload))
    return responses


@pytest.mark.asyncio
async def test_voice_chat_speaks_found_stamp_and_remembers_it(app_factory):
    provider = FakeProvider(statuses=["requires_action", "completed"], tool_calls=[stamp_call([PENNY_BLACK])])
    app, _, _ = app_factory(provider=provider)

    first, second = await run_requests(
        app,
        ("POST", "/api/voice-chat", {"message": "Penny Black", "sessionId": "v1"}),
        ("POST", "/api/voice-chat", {"message": "How much is it worth?", "sessionId": "v1"}),
    )

    body = first.json()
    assert body["source"] == "stamp_knowledge_base"
    assert body["hasStamps"] is True
    assert body["response"].startswith("I found the Penny Black stamp for you.")
    assert body["stampDetails"]["type"] == "single_stamp"
    assert body["stampDetails"]["stamp"]["fullDenomination"] == "1d"
    assert [stamp["name"] for stamp in body["rememberedStamps"]] == ["Penny Black"]
    assert second.json()["hasStamps"] is True
    follow_up = provider.messages["thread_1"][1]
    assert "How much is it worth?" in follow_up
    assert "Penny Black, from Great Britain" in follow_up


@pytest.mark.asyncio
async def test_voice_chat_without_stamps_answers_conversationally(client):
    res = await client.post(
        "/api/voice-chat",
        json={"message": "Why do people collect stamps?", "sessionId": "v1", "conversationHistory": [{"role": "assistant", "content": "Hi!"}]},
    )

    body = res.json()
    assert body == {
        "response": "Stamps tell wonderful stories.",
        "conversationLength": 3,
        "source": "general_knowledge",
        "hasStamps": False,
    }
    _, call = client.openai_client.calls[-1]
    assert call["max_tokens"] == 150
    assert call["model"] == "gpt-4.1"


@pytest.mark.asyncio
async def test_speech_to_text_transcribes_with_matching_suffix(client):
    res = await client.post("/api/speech-to-text", json={"audio": SPEECH, "mimeType": "audio/webm;codecs=opus"})

    assert res.status_code == 200
    assert res.json() == {"text": "Tell me about the Penny Black"}
    _, call = client.openai_client.calls[-1]
    assert call["model"] == "whisper-1"
    assert call["filename"].endswith(".webm")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"audio": base64.b64encode(b"tiny").decode(), "mimeType": "audio/webm"},
        {"audio": SPEECH, "mimeType": "video/mp4"},
        {"audio": "not base64!!", "mimeType": "audio/wav"},
    ],
)
async def test_speech_to_text_rejects_bad_audio(client, payload):
    res = await client.post("/api/speech-to-text", json=payload)
    assert res.status_code == 400
    assert res.json()["code"] == "validation_error"
    assert client.openai_client.calls == []


@pytest.mark.asyncio
async def test_voice_synthesis_returns_mp3(client):
    res = await client.post("/api/voice-synthesis", json={"text": "The Penny Black.", "voice": "nova"})

    assert res.status_code == 200
    assert res.headers["content-type"] == "audio/mpeg"
    assert res.content == b"ID3-fake-mp3"
    _, call = client.openai_client.calls[-1]
    assert call["voice"] == "nova"
    assert call["response_format"] == "mp3"


@pytest.mark.asyncio
async def test_voice_synthesis_validates_voice_and_lists_voices(client):
    res = await client.post("/api/voice-synthesis", json={"text": "Hello", "voice": "robot"})
    assert res.status_code == 400

    voices = (await client.get("/api/voice-synthesis")).json()["voices"]
    assert [voice["id"] for voice in voices] == ["alloy", "echo", "fable", "onyx", "nova", "shimmer"]


@pytest.mark.asyncio
async def test_voice_stamp_search_summarizes_hits(client):
    res = await client.post("/api/voice-stamp-search", json={"query": "penny black"})

    body = res.json()
    assert body["success"] is True
    assert body["totalFound"] == 1
    assert body["stamps"][0]["title"] == "Penny Black"
    assert body["stamps"][0]["country"] == "Great Britain"
    _, call = client.openai_client.calls[-1]
    assert call == {"vector_store_id": "vs_test", "query": "penny black", "max_num_results": 5}


@pytest.mark.asyncio
async def test_voice_stamp_search_degrades_on_upstream_failure(app_factory):
    app, _, _ = app_factory(openai_client=FakeOpenAIClient(search_error=RuntimeError("vector store offline")))

    (res,) = await run_requests(app, ("POST", "/api/voice-stamp-search", {"query": "kiwi"}))

    assert res.status_code == 200
    assert res.json()["fallback"] is True
    assert res.json()["stamps"] == []


@pytest.mark.asyncio
async def test_realtime_session_creation(client):
    res = await client.post("/api/realtime-session", json={"voice": "verse"})
    assert res.status_code == 200
    assert res.json()["id"] == "sess_test"
    assert res.json()["voice"] == "verse"

    rejected = await client.post("/api/realtime-session", json={"voice": "robot"})
    assert rejected.status_code == 400
