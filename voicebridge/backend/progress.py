import logging
import math
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from .models import PhonemeProgressRecord, TherapySessionRecord, guide_progress_payload, session_payload, utc_now
from .storage import Store


logger = logging.getLogger("uvicorn.error")

DEFAULT_SESSION_LIMIT = 10
PROGRESS_SESSION_WINDOW = 100
ACCURACY_HISTORY_LENGTH = 10
TOP_PHONEMES = 6
TOP_MOODS = 5
MAX_STREAK_DAYS = 365
CHART_RANGES = ("week", "month", "all")
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _session_day(session: TherapySessionRecord) -> date:
    created = session.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(timezone.utc).date()


def save_session(store: Store, user_id: Optional[str], target_text: Optional[str], **values: Any) -> TherapySessionRecord:
    if not user_id or not target_text:
        raise ValueError("User ID and target text are required")
    if store.get_user(user_id) is None:
        raise LookupError("User not found")

    session = store.create_therapy_session(
        user_id,
        target_text=target_text,
        transcribed_text=values.get("transcribed_text") or "",
        duration=values.get("duration") or 0,
        accuracy=values.get("accuracy") or 0.0,
        clarity_score=values.get("clarity_score") or 0.0,
        overall_score=values.get("overall_score") or 0.0,
        word_analysis=list(values.get("word_analysis") or []),
        phoneme_issues=list(values.get("phoneme_issues") or []),
        recommendations=list(values.get("recommendations") or []),
        difficulty=values.get("difficulty") or "easy",
        category=values.get("category") or "General",
        emotion=values.get("emotion") or "neutral",
    )
    logger.info("user_id=%s therapy_session_saved id=%s", user_id, session.id)
    return session


def aggregate_stats(sessions: Sequence[TherapySessionRecord]) -> Dict[str, Any]:
    return {
        "totalSessions": len(sessions),
        "totalDuration": sum(session.duration or 0 for session in sessions),
        "averageAccuracy": round_half_up(_average([s.accuracy or 0 for s in sessions]), 2),
        "averageClarityScore": round_half_up(_average([s.clarity_score or 0 for s in sessions]), 2),
        "averageOverallScore": round_half_up(_average([s.overall_score or 0 for s in sessions]), 2),
    }


def session_history(store: Store, user_id: Optional[str], limit: int = DEFAULT_SESSION_LIMIT, offset: int = 0) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("User ID is required")
    page = store.list_therapy_sessions(user_id, limit=max(limit, 0), offset=max(offset, 0))
    everything = store.list_therapy_sessions(user_id)
    return {
        "sessions": [session_payload(item) for item in page],
        "total": store.count_therapy_sessions(user_id),
        "stats": aggregate_stats(everything),
    }


def today_stats(store: Store, user_id: Optional[str], now: Optional[datetime] = None) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("User ID is required")
    now = now or utc_now()
    start = _day_start(now.astimezone(timezone.utc).date())
    sessions = store.list_therapy_sessions(user_id, since=start, until=start + timedelta(days=1))

    count = len(sessions)
    return {
        "sessionsToday": count,
        "totalSpeakingTime": sum(session.duration or 0 for session in sessions),
        "wordsPracticed": sum(len((session.target_text or "").split()) for session in sessions),
        "avgAccuracy": round_half_up(_average([s.accuracy or 0 for s in sessions])) if count else 0,
        "avgClarityScore": round_half_up(_average([s.clarity_score or 0 for s in sessions])) if count else 0,
        "avgOverallScore": round_half_up(_average([s.overall_score or 0 for s in sessions])) if count else 0,
    }


def _bucket(label: str, sessions: List[TherapySessionRecord]) -> Dict[str, Any]:
    return {
        "date": label,
        "sessions": len(sessions),
        "avgScore": round_half_up(_average([s.overall_score or 0 for s in sessions])) if sessions else 0,
        "totalMinutes": round_half_up(sum(s.duration or 0 for s in sessions) / 60),
    }


def _shift_month(day: date, months_back: int) -> date:
    index = day.year * 12 + (day.month - 1) - months_back
    return date(index // 12, index % 12 + 1, 1)


def chart_series(sessions: Sequence[TherapySessionRecord], time_range: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Bucketed practice activity: 7 days, 4 rolling weeks or 12 calendar months."""
    if time_range not in CHART_RANGES:
        raise ValueError(f"Invalid range: {time_range}. Expected one of {', '.join(CHART_RANGES)}")
    today = (now or utc_now()).astimezone(timezone.utc).date()
    by_day: Dict[date, List[TherapySessionRecord]] = {}
    for session in sessions:
        by_day.setdefault(_session_day(session), []).append(session)

    def _between(first: date, last: date) -> List[TherapySessionRecord]:
        collected: List[TherapySessionRecord] = []
        for day, items in by_day.items():
            if first <= day <= last:
                collected.extend(items)
        return collected

    series = []
    if time_range == "week":
        for back in range(6, -1, -1):
            day = today - timedelta(days=back)
            series.append(_bucket(WEEKDAY_LABELS[day.weekday()], by_day.get(day, [])))
    elif time_range == "month":
        for back in range(3, -1, -1):
            week_end = today - timedelta(days=back * 7)
            if back == 0:
                label = "This Week"
            elif back == 1:
                label = "Last Week"
            else:
                label = f"{back} weeks ago"
            series.append(_bucket(label, _between(week_end - timedelta(days=6), week_end)))
    else:
        for back in range(11, -1, -1):
            month_start = _shift_month(today, back)
            month_end = _shift_month(today, back - 1) - timedelta(days=1)
            series.append(_bucket(MONTH_LABELS[month_start.month - 1], _between(month_start, month_end)))
    return series


def phoneme_stats(sessions: Sequence[TherapySessionRecord], top: int = TOP_PHONEMES) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    totals: Dict[str, float] = {}
    for session in sessions:
        for issue in session.phoneme_issues or []:
            phoneme = str(issue.get("phoneme") or "").strip() if isinstance(issue, dict) else ""
            if not phoneme:
                continue
            counts[phoneme] = counts.get(phoneme, 0) + 1
            totals[phoneme] = totals.get(phoneme, 0.0) + (session.overall_score or 0)

    ranked = sorted(counts, key=lambda key: counts[key], reverse=True)[:top]
    return [
        {"phoneme": key, "count": counts[key], "avgScore": round_half_up(totals[key] / counts[key])}
        for key in ranked
    ]


def practice_streak(sessions: Sequence[TherapySessionRecord], now: Optional[datetime] = None) -> int:
    """Consecutive practice days ending today, or yesterday if today has no session yet."""
    if not sessions:
        return 0
    days = {_session_day(session) for session in sessions}
    today = (now or utc_now()).astimezone(timezone.utc).date()

    streak = 0
    for back in range(MAX_STREAK_DAYS):
        if today - timedelta(days=back) in days:
            streak += 1
        elif back > 0:
            break
    return streak


def mood_summary(sessions: Sequence[TherapySessionRecord], top: int = TOP_MOODS) -> List[Dict[str, Any]]:
    counts = Counter(session.emotion or "neutral" for session in sessions)
    return [{"emotion": emotion, "count": count} for emotion, count in counts.most_common(top)]


def progress_overview(
    store: Store,
    user_id: Optional[str],
    time_range: str = "week",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("User ID is required")
    sessions = store.list_therapy_sessions(user_id, limit=PROGRESS_SESSION_WINDOW)
    return {
        "range": time_range,
        "stats": aggregate_stats(store.list_therapy_sessions(user_id)),
        "chart": chart_series(sessions, time_range, now=now),
        "phonemeStats": phoneme_stats(sessions),
        "streak": practice_streak(sessions, now=now),
        "moods": mood_summary(sessions),
        "recentSessions": [session_payload(item) for item in sessions[:5]],
    }


def record_guide_progress(
    store: Store,
    user_id: str,
    phoneme_id: Optional[str],
    progress: Optional[float],
    accuracy: Optional[float] = None,
) -> PhonemeProgressRecord:
    if not phoneme_id or progress is None:
        raise ValueError("phonemeId and progress are required")
    if progress < 0 or progress > 100:
        raise ValueError("Progress must be between 0 and 100")

    now = utc_now()
    existing = store.get_phoneme_progress(user_id, phoneme_id)
    history = list(existing.accuracy_history) if existing else []
    history.append(accuracy if accuracy else progress)

    record = PhonemeProgressRecord(
        user_id=user_id,
        phoneme_id=phoneme_id,
        progress=progress,
        practice_count=(existing.practice_count if existing else 0) + 1,
        last_practiced_at=now,
        accuracy_history=history[-ACCURACY_HISTORY_LENGTH:],
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )
    store.save_phoneme_progress(record)
    logger.info("user_id=%s guide_progress_saved phoneme_id=%s progress=%s", user_id, phoneme_id, progress)
    return record


def guide_progress(store: Store, user_id: str, phoneme_id: Optional[str] = None) -> Any:
    if phoneme_id:
        record = store.get_phoneme_progress(user_id, phoneme_id)
        return guide_progress_payload(record) if record else None
    return [guide_progress_payload(record) for record in store.list_phoneme_progress(user_id)]


def reset_guide_progress(store: Store, user_id: str, phoneme_id: Optional[str] = None) -> str:
    removed = store.delete_phoneme_progress(user_id, phoneme_id)
    logger.info("user_id=%s guide_progress_reset phoneme_id=%s removed=%s", user_id, phoneme_id or "*", removed)
    if phoneme_id:
        return f"Progress reset for phoneme {phoneme_id}"
    return "All progress reset"
