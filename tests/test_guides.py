from voicebridge.backend import phoneme_guides


def test_list_guides_with_filters(client):
    everything = client.get("/api/guides").json()
    assert everything["success"] is True
    assert everything["count"] == len(phoneme_guides.PHONEME_GUIDES) == 12

    fricatives = client.get("/api/guides", params={"category": "fricatives"}).json()
    assert {guide["id"] for guide in fricatives["data"]} == {"th", "s", "sh", "f", "v"}

    easy_stops = client.get("/api/guides", params={"category": "Stops", "difficulty": "easy"}).json()
    assert easy_stops["count"] == 4


def test_get_guide(client):
    response = client.get("/api/guides/th")
    assert response.status_code == 200
    assert response.json()["data"]["phoneme"] == "/θ/"

    missing = client.get("/api/guides/zz")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Phoneme guide not found"}


def test_guides_are_copies():
    guide = phoneme_guides.get_guide("s")
    guide["examples"].append("mutated")
    assert "mutated" not in phoneme_guides.get_guide("s")["examples"]


def test_guide_progress_lifecycle(client):
    invalid = client.post("/api/guides/progress", json={"phonemeId": "th"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "phonemeId and progress are required"

    out_of_range = client.post("/api/guides/progress", json={"phonemeId": "th", "progress": 101})
    assert out_of_range.json()["error"] == "Progress must be between 0 and 100"

    first = client.post("/api/guides/progress", json={"userId": "u1", "phonemeId": "th", "progress": 40})
    assert first.status_code == 200
    assert first.json()["message"] == "Progress updated successfully"
    assert first.json()["data"]["practiceCount"] == 1
    assert first.json()["data"]["accuracyHistory"] == [40]

    second = client.post(
        "/api/guides/progress",
        json={"userId": "u1", "phonemeId": "th", "progress": 60, "accuracy": 75},
    ).json()["data"]
    assert second["practiceCount"] == 2
    assert second["accuracyHistory"] == [40, 75]
    assert second["createdAt"] == first.json()["data"]["createdAt"]

    client.post("/api/guides/progress", json={"userId": "u1", "phonemeId": "r", "progress": 10})

    single = client.get("/api/guides/progress", params={"userId": "u1", "phonemeId": "th"}).json()
    assert single["data"]["progress"] == 60

    listing = client.get("/api/guides/progress", params={"userId": "u1"}).json()
    assert listing["count"] == 2

    reset_one = client.delete("/api/guides/progress", params={"userId": "u1", "phonemeId": "th"}).json()
    assert reset_one["message"] == "Progress reset for phoneme th"
    gone = client.get("/api/guides/progress", params={"userId": "u1", "phonemeId": "th"}).json()
    assert gone == {"success": True, "data": None}

    reset_all = client.delete("/api/guides/progress", params={"userId": "u1"}).json()
    assert reset_all["message"] == "All progress reset"
    assert client.get("/api/guides/progress", params={"userId": "u1"}).json()["count"] == 0


def test_guide_progress_defaults_to_demo_user(client):
    client.post("/api/guides/progress", json={"phonemeId": "k", "progress": 20})
    response = client.get("/api/guides/progress").json()
    assert response["data"][0]["userId"] == "demo-user"


def test_history_keeps_last_ten_scores(store):
    from voicebridge.backend.progress import record_guide_progress

    for score in range(1, 13):
        record = record_guide_progress(store, "u2", "s", score)
    assert record.practice_count == 12
    assert record.accuracy_history == list(range(3, 13))
