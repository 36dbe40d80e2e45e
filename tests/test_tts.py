import base64
import json

import httpx
import pytest

from voicebridge.backend import tts


@pytest.fixture
def upstream(monkeypatch):
    monkeypatch.setenv("ELEVENLABS_API_KEY", "test-key")
    requests = []
    responses = {}

    def handler(request):
        requests.append(request)
        status, body = responses.get(request.url.path, (404, {"detail": "no such route"}))
        if isinstance(body, bytes):
            return httpx.Response(status, content=body, headers={"content-type": tts.AUDIO_CONTENT_TYPE})
        return httpx.Response(status, json=body)

    def fake_client():
        return httpx.Client(base_url=tts.DEFAULT_BASE_URL, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(tts, "_http_client", fake_client)
    return requests, responses


def test_tts_requires_api_key(client):
    response = client.post("/api/tts", json={"text": "hello"})
    assert response.status_code == 500
    assert response.json()["error"] == "ELEVENLABS_API_KEY is not configured"


def test_tts_requires_text(client, upstream):
    response = client.post("/api/tts", json={"text": ""})
    assert response.status_code == 400
    assert response.json()["error"] == "Text is required"


def test_tts_returns_base64_audio(client, upstream):
    requests, responses = upstream
    responses["/v1/text-to-speech/ThT5KcBeYPX3keUQqHPh"] = (200, b"ID3-mp3-bytes")

    response = client.post("/api/tts", json={"text": "Take a breath", "voiceId": "CALM", "stability": 0.3})
    assert response.status_code == 200
    data = response.json()["data"]
    assert base64.b64decode(data["audio"]) == b"ID3-mp3-bytes"
    assert data["contentType"] == "audio/mpeg"

    sent = requests[0]
    assert sent.headers["xi-api-key"] == "test-key"
    body = json.loads(sent.content)
    assert body["text"] == "Take a breath"
    assert body["model_id"] == tts.DEFAULT_MODEL_ID
    assert body["voice_settings"]["stability"] == 0.3
    assert body["voice_settings"]["similarity_boost"] == 0.75
    assert "speed" not in body["voice_settings"]


def test_therapy_tts_uses_calm_settings(client, upstream):
    requests, responses = upstream
    responses["/v1/text-to-speech/21m00Tcm4TlvDq8ikWAM"] = (200, b"audio")

    response = client.post("/api/therapy/tts", json={"text": "Say: red lorry", "speed": 2.0})
    assert response.status_code == 200
    settings = json.loads(requests[0].content)["voice_settings"]
    assert settings["stability"] == 0.7
    assert settings["similarity_boost"] == 0.8
    assert settings["speed"] == tts.MAX_SPEED


def test_tts_upstream_error_is_bad_gateway(client, upstream):
    _, responses = upstream
    responses["/v1/text-to-speech/21m00Tcm4TlvDq8ikWAM"] = (401, {"detail": {"status": "invalid_api_key", "message": "Invalid key"}})

    response = client.post("/api/tts", json={"text": "hello"})
    assert response.status_code == 502
    assert response.json()["error"] == "Failed to generate speech: ElevenLabs error 401: Invalid key"


def test_tts_stream(client, upstream):
    _, responses = upstream
    responses["/v1/text-to-speech/21m00Tcm4TlvDq8ikWAM/stream"] = (200, b"chunk-1chunk-2")

    response = client.post("/api/tts/stream", json={"text": "hello"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.content == b"chunk-1chunk-2"


def test_tts_stream_error_surfaces_before_body(client, upstream):
    _, responses = upstream
    responses["/v1/text-to-speech/21m00Tcm4TlvDq8ikWAM/stream"] = (429, {"detail": "quota exceeded"})

    response = client.post("/api/tts/stream", json={"text": "hello"})
    assert response.status_code == 502
    assert "quota exceeded" in response.json()["error"]


def test_list_voices(client, upstream):
    _, responses = upstream
    responses["/v1/voices"] = (200, {"voices": [{"voice_id": "abc", "name": "Rachel"}]})

    response = client.get("/api/voices")
    assert response.json() == {"voices": [{"voice_id": "abc", "name": "Rachel"}]}


def test_resolve_voice_and_speed(monkeypatch):
    monkeypatch.setenv("ELEVENLABS_DEFAULT_VOICE_ID", "custom")
    assert tts.resolve_voice_id(None) == "custom"
    assert tts.resolve_voice_id("EMPATHETIC") == "EXAVITQu4vr4xnSDxMaL"
    assert tts.resolve_voice_id("raw-id") == "raw-id"
    assert tts.clamp_speed(0.1) == tts.MIN_SPEED
    assert tts.clamp_speed(1.0) == 1.0
    assert tts.clamp_speed(None) is None
