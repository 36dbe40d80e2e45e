import pytest

from conftest import NOW, add_session, days_ago

from voicebridge.backend import progress


def test_round_half_up():
    assert progress.round_half_up(2.5) == 3
    assert progress.round_half_up(84.125, 2) == 84.13
    assert isinstance(progress.round_half_up(1.2), int)


def test_chart_week_buckets_by_weekday(store, user):
    add_session(store, user.id, days_ago(0), overall_score=80, duration=120)
    add_session(store, user.id, days_ago(0, hours=2), overall_score=90, duration=60)
    add_session(store, user.id, days_ago(3), overall_score=50, duration=30)

    series = progress.chart_series(store.list_therapy_sessions(user.id), "week", now=NOW)
    assert [bucket["date"] for bucket in series] == ["Thu", "Fri", "Sat", "Sun", "Mon", "Tue", "Wed"]
    assert series[-1] == {"date": "Wed", "sessions": 2, "avgScore": 85, "totalMinutes": 3}
    assert series[3]["sessions"] == 1
    assert series[0] == {"date": "Thu", "sessions": 0, "avgScore": 0, "totalMinutes": 0}


def test_chart_month_and_all(store, user):
    add_session(store, user.id, days_ago(1), overall_score=70)
    add_session(store, user.id, days_ago(9), overall_score=60)
    add_session(store, user.id, days_ago(40), overall_score=40)

    sessions = store.list_therapy_sessions(user.id)
    month = progress.chart_series(sessions, "month", now=NOW)
    assert [bucket["date"] for bucket in month] == ["3 weeks ago", "2 weeks ago", "Last Week", "This Week"]
    assert [bucket["sessions"] for bucket in month] == [0, 0, 1, 1]

    year = progress.chart_series(sessions, "all", now=NOW)
    assert len(year) == 12
    assert year[0]["date"] == "Jun"
    assert year[-1]["date"] == "May"
    assert year[-1]["sessions"] == 2
    assert year[-2]["sessions"] == 1


def test_chart_rejects_unknown_range():
    with pytest.raises(ValueError):
        progress.chart_series([], "decade", now=NOW)


def test_practice_streak(store, user):
    assert progress.practice_streak([], now=NOW) == 0
    for days in (1, 2, 3, 5):
        add_session(store, user.id, days_ago(days))
    sessions = store.list_therapy_sessions(user.id)
    # Nothing today yet, so the streak counts back from yesterday.
    assert progress.practice_streak(sessions, now=NOW) == 3
    add_session(store, user.id, days_ago(0))
    assert progress.practice_streak(store.list_therapy_sessions(user.id), now=NOW) == 4


def test_phoneme_stats_and_moods(store, user):
    add_session(store, user.id, days_ago(0), overall_score=60, emotion="calm", phoneme_issues=[{"phoneme": "th"}])
    add_session(
        store,
        user.id,
        days_ago(1),
        overall_score=80,
        emotion="calm",
        phoneme_issues=[{"phoneme": "th"}, {"phoneme": "r"}, {"phoneme": ""}],
    )
    add_session(store, user.id, days_ago(2), overall_score=90, emotion="happy")
    sessions = store.list_therapy_sessions(user.id)

    assert progress.phoneme_stats(sessions) == [
        {"phoneme": "th", "count": 2, "avgScore": 70},
        {"phoneme": "r", "count": 1, "avgScore": 80},
    ]
    assert progress.mood_summary(sessions) == [{"emotion": "calm", "count": 2}, {"emotion": "happy", "count": 1}]


def test_progress_route(client, user, store):
    add_session(store, user.id, days_ago(0), overall_score=75, duration=90)
    response = client.get("/api/progress", params={"userId": user.id, "range": "month"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["range"] == "month"
    assert data["stats"]["totalSessions"] == 1
    assert len(data["chart"]) == 4
    assert data["recentSessions"][0]["overallScore"] == 75

    bad = client.get("/api/progress", params={"userId": user.id, "range": "decade"})
    assert bad.status_code == 400
    assert client.get("/api/progress").status_code == 400


def test_session_history_total_comes_from_store_count(store, user, monkeypatch):
    for days in range(3):
        add_session(store, user.id, days_ago(days))
    counted = []
    original = store.count_therapy_sessions

    def count(user_id):
        counted.append(user_id)
        return original(user_id)

    monkeypatch.setattr(store, "count_therapy_sessions", count)
    history = progress.session_history(store, user.id, limit=1)
    assert len(history["sessions"]) == 1
    assert history["total"] == 3
    assert counted == [user.id]
