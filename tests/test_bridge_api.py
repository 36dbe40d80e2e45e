import pytest

from voicebridge.backend import bridge


@pytest.fixture
def llm_calls(monkeypatch):
    calls = []
    replies = []

    def fake_request_json(**kwargs):
        calls.append(kwargs)
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(bridge, "request_json", fake_request_json)
    return calls, replies


def test_correct_requires_input(client):
    response = client.post("/api/bridge/correct", json={"context": "at the cafe"})
    assert response.status_code == 400
    assert response.json()["error"] == "Either rawTranscript or audioBase64 is required"


def test_correct_text(client, llm_calls):
    calls, replies = llm_calls
    replies.append(
        {
            "correctedText": "I want water.",
            "confidence": 130,
            "corrections": [
                {"type": "stutter", "original": "I-I-I", "corrected": "I"},
                {"type": "mystery", "original": "wat", "corrected": "water"},
                "junk",
            ],
            "intent": "Request",
        }
    )
    response = client.post("/api/bridge/correct", json={"rawTranscript": "I-I-I want wat...", "context": "thirsty"})
    data = response.json()["data"]
    assert data["originalText"] == "I-I-I want wat..."
    assert data["correctedText"] == "I want water."
    assert data["confidence"] == 100
    assert [item["type"] for item in data["corrections"]] == ["stutter", "unclear"]
    assert data["intent"] == "Request"
    assert "Context: thirsty" in calls[0]["user_prompt"]
    assert calls[0]["system_prompt"] == bridge.SYSTEM_PROMPT


def test_correct_text_fallback_keeps_transcript(client, llm_calls):
    _, replies = llm_calls
    replies.append(RuntimeError("Gemini request timed out."))
    response = client.post("/api/bridge/correct", json={"rawTranscript": "um hello"})
    data = response.json()["data"]
    assert data["correctedText"] == "um hello"
    assert data["confidence"] == 0
    assert data["intent"] == "Unable to determine intent"


def test_correct_audio_takes_priority(client, llm_calls):
    calls, replies = llm_calls
    replies.append({"originalText": "c-c-can I", "correctedText": "", "confidence": 64})
    response = client.post(
        "/api/bridge/correct",
        json={"rawTranscript": "ignored", "audioBase64": "AAAA", "mimeType": "audio/mp4"},
    )
    data = response.json()["data"]
    assert data["originalText"] == "c-c-can I"
    assert data["correctedText"] == "c-c-can I"
    assert data["confidence"] == 64
    assert data["intent"] == "Communication"
    assert calls[0]["audio_base64"] == "AAAA"
    assert calls[0]["audio_mime_type"] == "audio/mp4"


def test_correct_without_credentials_is_server_error(client):
    response = client.post("/api/bridge/correct", json={"rawTranscript": "hello"})
    assert response.status_code == 500


def test_exchange_history(client, user):
    invalid = client.post("/api/bridge/exchange", json={"userId": user.id, "originalText": "uh hi"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "userId, originalText, and correctedText are required"

    unknown = client.post(
        "/api/bridge/exchange",
        json={"userId": "ghost", "originalText": "uh hi", "correctedText": "Hi"},
    )
    assert unknown.status_code == 404

    for confidence in (80, 90):
        saved = client.post(
            "/api/bridge/exchange",
            json={
                "userId": user.id,
                "originalText": "uh hi",
                "correctedText": "Hi",
                "confidence": confidence,
                "corrections": [{"type": "filler", "original": "uh", "corrected": ""}],
            },
        )
        assert saved.status_code == 200
        assert saved.json()["data"]["id"]

    history = client.get("/api/bridge/exchange", params={"userId": user.id, "limit": 1}).json()["data"]
    assert len(history["exchanges"]) == 1
    assert history["exchanges"][0]["correctedText"] == "Hi"
    assert history["stats"] == {"totalExchanges": 2, "averageConfidence": 85.0}

    cleared = client.delete("/api/bridge/exchange", params={"userId": user.id})
    assert cleared.json() == {"success": True, "message": "History cleared"}
    after = client.get("/api/bridge/exchange", params={"userId": user.id}).json()["data"]
    assert after == {"exchanges": [], "stats": {"totalExchanges": 0, "averageConfidence": 0.0}}


def test_exchange_routes_require_user(client):
    assert client.get("/api/bridge/exchange").status_code == 400
    assert client.delete("/api/bridge/exchange").status_code == 400
