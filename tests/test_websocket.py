import base64

from fastapi.testclient import TestClient

from tests.fakes import PENNY_BLACK, FakeProvider, stamp_call


def receive_until(websocket, event_type):
    events = []
    while True:
        event = websocket.receive_json()
        events.append(event)
        if event["type"] == event_type:
            return events


def test_chat_message_streams_tagged_events(app_factory):
    provider = FakeProvider(statuses=["requires_action", "completed"], tool_calls=[stamp_call([PENNY_BLACK])])
    app, _, _ = app_factory(provider=provider)

    with TestClient(app) as client:
        with client.websocket_connect("/ws/w1") as websocket:
            websocket.send_json({"type": "chat.message", "text": "Penny Black", "request_id": "r1"})
            events = receive_until(websocket, "complete")

    assert {event["request_id"] for event in events} == {"r1"}
    types = [event["type"] for event in events]
    assert "structured_data" in types
    assert types.index("complete_response") < types.index("complete")


def test_session_status_and_unknown_type(app_factory):
    app, _, _ = app_factory()

    with TestClient(app) as client:
        with client.websocket_connect("/ws/w1") as websocket:
            websocket.send_json({"type": "chat.message", "text": "Hello", "request_id": "r1"})
            receive_until(websocket, "complete")

            websocket.send_json({"type": "session.status", "request_id": "r2"})
            status = websocket.receive_json()

            websocket.send_json({"type": "dance", "request_id": "r3"})
            error = websocket.receive_json()

    assert status == {"type": "session.status", "hasContext": True, "conversationRef": "thread_1", "request_id": "r2"}
    assert error == {"type": "error", "request_id": "r3", "detail": "Unsupported message type.", "code": "validation_error"}


def test_audio_transcription_and_bad_payloads(app_factory):
    app, _, _ = app_factory()
    audio = base64.b64encode(b"\x00" * 200).decode()

    with TestClient(app) as client:
        with client.websocket_connect("/ws/w1") as websocket:
            websocket.send_json({"type": "audio.transcribe", "audio_b64": audio, "mime_type": "audio/wav", "request_id": "a1"})
            transcript = websocket.receive_json()

            websocket.send_text("not json")
            invalid = websocket.receive_json()

            websocket.send_json({"type": "chat.message", "text": "", "request_id": "a2"})
            empty = websocket.receive_json()

    assert transcript == {"type": "audio.transcript", "text": "Tell me about the Penny Black", "request_id": "a1"}
    assert invalid["type"] == "error"
    assert empty["code"] == "validation_error"
    assert empty["request_id"] == "a2"
