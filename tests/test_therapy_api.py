import json

import pytest

from voicebridge.backend import therapy


@pytest.fixture
def llm_reply(monkeypatch):
    calls = []

    def install(reply):
        def fake_request_json(**kwargs):
            calls.append(kwargs)
            if isinstance(reply, Exception):
                raise reply
            return reply

        monkeypatch.setattr(therapy, "request_json", fake_request_json)
        return calls

    return install


def test_analyze_requires_target(client):
    response = client.post("/api/therapy/analyze", json={"transcribedText": "hello"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Target text is required"}


def test_analyze_empty_transcription_skips_model(client, llm_reply):
    calls = llm_reply(AssertionError("model should not be called"))
    response = client.post("/api/therapy/analyze", json={"targetText": "Hello there", "transcribedText": "   "})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["overallScore"] == 0
    assert data["recommendations"][0] == "We couldn't detect any speech. Please try again."
    assert calls == []


def test_analyze_uses_model_scores(client, llm_reply):
    calls = llm_reply(
        {
            "accuracy": 92,
            "clarityScore": 140,
            "overallScore": 88.5,
            "fluencyScore": 80,
            "wordAnalysis": [{"word": "hello", "status": "correct", "position": 0}, "junk"],
            "phonemeIssues": [{"phoneme": "th", "frequency": 2}],
            "recommendations": ["Slow down", ""],
            "emotion": "Confident",
            "prosody": {"pace": "steady"},
        }
    )
    response = client.post(
        "/api/therapy/analyze",
        json={"targetText": "hello there", "transcribedText": "hello dere", "audioData": "data:audio/webm;base64,AAAA"},
    )
    data = response.json()["data"]
    assert data["accuracy"] == 92.0
    assert data["clarityScore"] == 100.0
    assert data["overallScore"] == 88.5
    assert data["fluencyScore"] == 80.0
    assert data["wordAnalysis"] == [{"word": "hello", "status": "correct", "position": 0}]
    assert data["recommendations"] == ["Slow down"]
    assert data["emotion"] == "confident"
    assert data["prosody"] == {"pace": "steady"}
    assert calls[0]["audio_base64"] == "data:audio/webm;base64,AAAA"
    assert "hello dere" in calls[0]["user_prompt"]


def test_analyze_child_prompt_carries_persona(llm_reply):
    calls = llm_reply({"overallScore": 70})
    therapy.analyze_speech("red car", "wed car", audience="child", persona="robot")
    assert "Beep boop" in calls[0]["user_prompt"]


def test_analyze_falls_back_to_local_alignment(client, llm_reply):
    llm_reply(RuntimeError("Model output is not valid JSON."))
    response = client.post(
        "/api/therapy/analyze",
        json={"targetText": "The quick brown fox", "transcribedText": "the quick brown fox"},
    )
    data = response.json()["data"]
    assert data["accuracy"] == 100.0
    assert data["clarityScore"] == 100.0
    assert data["overallScore"] == 100.0
    assert [item["status"] for item in data["wordAnalysis"]] == ["correct"] * 4
    assert data["recommendations"] == therapy.FALLBACK_RECOMMENDATIONS


def test_analyze_without_credentials_is_server_error(client):
    response = client.post("/api/therapy/analyze", json={"targetText": "hello", "transcribedText": "hello"})
    assert response.status_code == 500
    assert "GEMINI_API_KEY" in response.json()["error"]


def test_list_prompts_defaults(client):
    response = client.get("/api/therapy/prompts", params={"difficulty": "hard"})
    prompts = response.json()["data"]
    assert len(prompts) == 5
    assert {item["difficulty"] for item in prompts} == {"hard"}
    assert prompts[0]["text"].startswith("Peter Piper")


def test_list_prompts_targeted_uses_model(client, llm_reply):
    calls = llm_reply({"prompts": [{"text": "Three thin things", "targetPhonemes": ["th"]}, {"text": ""}]})
    response = client.get("/api/therapy/prompts", params={"difficulty": "medium", "phonemes": "th, r"})
    prompts = response.json()["data"]
    assert prompts == [
        {
            "id": "ai_medium_0",
            "text": "Three thin things",
            "difficulty": "medium",
            "category": "General",
            "targetPhonemes": ["th"],
        }
    ]
    assert "th, r" in calls[0]["user_prompt"]


def test_list_prompts_targeted_without_credentials_uses_defaults(client):
    response = client.get("/api/therapy/prompts", params={"phonemes": "s"})
    assert response.status_code == 200
    assert response.json()["data"][0]["text"] == "Hello, how are you today?"


def test_generate_prompts(client, llm_reply):
    llm_reply({"prompts": [{"text": "Sally sells", "targetPhonemes": ["s"], "category": "S Sounds"}]})
    response = client.post("/api/therapy/prompts", json={"difficulty": "EASY", "targetPhonemes": ["s"]})
    assert response.json()["data"][0]["id"] == "gen_easy_0"
    assert response.json()["data"][0]["category"] == "S Sounds"


def test_generate_prompts_failure_returns_defaults(client, llm_reply):
    llm_reply(RuntimeError("Gemini request failed (503): overloaded"))
    response = client.post("/api/therapy/prompts", json={"difficulty": "medium"})
    assert response.json()["data"] == therapy.default_prompts("medium")


def test_realtime_feedback(client, llm_reply):
    missing = client.post("/api/therapy/feedback", json={"partialTranscript": "hel"})
    assert missing.status_code == 400

    llm_reply({"feedback": "Nice start", "encouragement": ""})
    response = client.post("/api/therapy/feedback", json={"partialTranscript": "hel", "targetText": "hello"})
    assert response.json()["data"] == {"feedback": "Nice start", "encouragement": "You're doing great!"}


def test_realtime_feedback_without_credentials_is_gentle(client):
    response = client.post("/api/therapy/feedback", json={"partialTranscript": "hel", "targetText": "hello"})
    assert response.json()["data"] == therapy.REALTIME_FALLBACK


def test_emotion_from_audio(client, llm_reply):
    missing = client.post("/api/therapy/emotion", json={})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Audio data is required"

    calls = llm_reply({"emotion": "anxious", "confidence": 77, "details": {"tone": "shaky"}})
    response = client.post("/api/therapy/emotion", json={"audioBase64": "AAAA", "mimeType": "audio/wav"})
    data = response.json()["data"]
    assert data["emotion"] == "anxious"
    assert data["confidence"] == 77.0
    assert data["details"]["tone"] == "shaky"
    assert data["details"]["energy"] == "medium"
    assert calls[0]["audio_mime_type"] == "audio/wav"


def test_emotion_fallback_on_provider_error(client, llm_reply):
    llm_reply(RuntimeError("Gemini request timed out."))
    response = client.post("/api/therapy/emotion", json={"audioBase64": "AAAA"})
    assert response.json()["data"]["emotion"] == "neutral"
    assert response.json()["data"]["confidence"] == 0


def test_session_roundtrip_and_stats(client, user):
    missing = client.post("/api/therapy/session", json={"userId": user.id})
    assert missing.status_code == 400
    assert missing.json()["error"] == "User ID and target text are required"

    unknown = client.post("/api/therapy/session", json={"userId": "ghost", "targetText": "hi"})
    assert unknown.status_code == 404

    for score in (80, 90):
        saved = client.post(
            "/api/therapy/session",
            json={
                "userId": user.id,
                "targetText": "She sells seashells",
                "transcribedText": "she sells seashells",
                "duration": 30,
                "accuracy": score,
                "clarityScore": score,
                "overallScore": score,
                "phonemeIssues": [{"phoneme": "sh", "frequency": 1}],
            },
        )
        assert saved.status_code == 200
        assert saved.json()["data"]["createdAt"].endswith("Z")

    history = client.get("/api/therapy/session", params={"userId": user.id, "limit": 1})
    data = history.json()["data"]
    assert len(data["sessions"]) == 1
    assert data["total"] == 2
    assert data["stats"]["averageOverallScore"] == 85.0
    assert data["sessions"][0]["overallScore"] in (80.0, 90.0)

    stats = client.get("/api/therapy/stats", params={"userId": user.id}).json()["data"]
    assert stats["sessionsToday"] == 2
    assert stats["totalSpeakingTime"] == 60
    assert stats["wordsPracticed"] == 6
    assert stats["avgOverallScore"] == 85


def test_session_list_requires_user(client):
    response = client.get("/api/therapy/session")
    assert response.status_code == 400
    assert response.json()["error"] == "User ID is required"


def test_export_json_and_csv(client, user, store):
    store.create_therapy_session(user.id, target_text="Hello, friend", duration=75, accuracy=90.5, overall_score=88)

    as_json = client.get("/api/therapy/export", params={"userId": user.id})
    assert as_json.status_code == 200
    assert as_json.headers["content-type"].startswith("application/json")
    assert 'attachment; filename="voicebridge-sessions-' in as_json.headers["content-disposition"]
    document = json.loads(as_json.content)
    assert document["summary"]["totalSessions"] == 1
    assert document["sessions"][0]["durationFormatted"] == "1:15"

    as_csv = client.get("/api/therapy/export", params={"userId": user.id, "format": "csv"})
    assert as_csv.headers["content-type"].startswith("text/csv")
    lines = as_csv.text.strip().splitlines()
    assert lines[0].startswith("Date,Target Text,Transcribed Text")
    assert '"Hello, friend"' in lines[1]
    assert ",90.5,0.0,88.0," in lines[1]

    other = client.get("/api/therapy/export", params={"userId": user.id, "format": "xml"})
    assert other.status_code == 200
    assert other.headers["content-type"].startswith("application/json")
