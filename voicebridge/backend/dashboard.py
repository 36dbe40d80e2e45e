from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from .models import TherapySessionRecord, UserRecord, isoformat, utc_now
from .progress import round_half_up
from .storage import Store


WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
SESSIONS_TARGET = 7
PRACTICE_TIME_TARGET = 60 * 60
WEEKLY_SESSION_GOAL = 3
TOP_EMOTIONS = 4
RECENT_SESSIONS = 5
MAX_RECOMMENDATIONS = 3
DEFAULT_INTERESTS = ["speech practice", "communication", "self-improvement"]
INTEREST_KEYWORDS = {"reading", "writing", "music", "sports", "art", "coding", "games", "cooking", "travel"}
EMOTION_MAP = {
    "happy": "happy",
    "joyful": "happy",
    "excited": "happy",
    "calm": "calm",
    "relaxed": "calm",
    "peaceful": "calm",
    "confident": "confident",
    "proud": "confident",
    "determined": "confident",
    "frustrated": "frustrated",
    "angry": "frustrated",
    "annoyed": "frustrated",
    "sad": "frustrated",
    "neutral": "neutral",
}


class UserNotFoundError(LookupError):
    pass


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _plain_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def format_practice_time(seconds: float) -> str:
    seconds = seconds or 0
    if seconds < 60:
        return f"{_plain_number(seconds)} sec"
    if seconds < 3600:
        return f"{round_half_up(seconds / 60)} min"
    hours = int(seconds // 3600)
    minutes = round_half_up((seconds % 3600) / 60)
    return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"


def _clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_session_date(created_at: datetime, now: Optional[datetime] = None) -> str:
    created = _utc(created_at)
    diff_days = (_utc(now or utc_now()) - created) // timedelta(days=1)
    clock = _clock(created)
    if diff_days == 0:
        return f"Today, {clock}"
    if diff_days == 1:
        return f"Yesterday, {clock}"
    if diff_days < 7:
        return f"{WEEKDAY_NAMES[created.weekday()]}, {clock}"
    return f"{MONTH_LABELS[created.month - 1]} {created.day}, {clock}"


def session_title(category: Optional[str], created_at: datetime) -> str:
    hour = _utc(created_at).hour
    if 5 <= hour < 12:
        time_of_day = "Morning"
    elif 12 <= hour < 17:
        time_of_day = "Afternoon"
    elif 17 <= hour < 21:
        time_of_day = "Evening"
    else:
        time_of_day = "Night"

    if category and category != "General":
        return f"{time_of_day} {category} Practice"
    return f"{time_of_day} Practice"


def map_emotion(emotion: Optional[str]) -> str:
    return EMOTION_MAP.get((emotion or "").lower(), "neutral")


def communication_style(session_count: int, average_duration: float) -> str:
    if session_count >= 20 and average_duration >= 300:
        return "Expressive Communicator"
    if session_count >= 10:
        return "Active Initiator"
    if average_duration >= 600:
        return "Deep Conversationalist"
    if session_count >= 5:
        return "Growing Speaker"
    return "Emerging Voice"


def learning_style(sessions: Sequence[TherapySessionRecord]) -> str:
    if not sessions:
        return "Explorer"

    total = len(sessions)
    hard = sum(1 for session in sessions if session.difficulty == "hard")
    easy = sum(1 for session in sessions if session.difficulty == "easy")
    categories = {session.category for session in sessions}

    if hard >= total * 0.4:
        return "Challenge Seeker"
    if len(categories) >= 4:
        return "Versatile Learner"
    if easy >= total * 0.6:
        return "Steady Builder"
    return "Collaborative Learner"


def parse_interests(trigger_words: Optional[List[str]], description: Optional[str]) -> List[str]:
    if trigger_words:
        return list(trigger_words[:3])
    if description:
        found = [word for word in description.lower().split() if word in INTEREST_KEYWORDS]
        if found:
            return found[:3]
    return list(DEFAULT_INTERESTS)


def build_recommendations(
    struggle_phonemes: List[str],
    week_session_count: int,
    average_score: float,
) -> List[Dict[str, Any]]:
    recommendations: List[Dict[str, Any]] = []

    if struggle_phonemes:
        recommendations.append(
            {
                "id": "phoneme-practice",
                "title": f"Practice '{struggle_phonemes[0]}' sounds",
                "description": "5 min targeted exercise",
                "type": "phoneme",
                "priority": "high",
                "link": "/guides",
                "completed": False,
            }
        )

    if week_session_count < WEEKLY_SESSION_GOAL:
        recommendations.append(
            {
                "id": "more-sessions",
                "title": "Complete a therapy session",
                "description": f"{WEEKLY_SESSION_GOAL - week_session_count} more sessions this week",
                "type": "practice",
                "priority": "high",
                "link": "/therapy",
                "completed": False,
            }
        )

    recommendations.append(
        {
            "id": "bridge-mode",
            "title": "Try Bridge Mode",
            "description": "Real conversation practice",
            "type": "bridge",
            "priority": "medium",
            "link": "/bridge",
            "completed": False,
        }
    )

    if average_score < 70:
        recommendations.append(
            {
                "id": "improve-score",
                "title": "Review pronunciation guides",
                "description": "Focus on fundamentals",
                "type": "guide",
                "priority": "medium",
                "link": "/guides",
                "completed": False,
            }
        )

    return recommendations[:MAX_RECOMMENDATIONS]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rounded_mean(values: Sequence[float]) -> int:
    return round_half_up(_mean(values)) if values else 0


def improvement_metrics(sessions: Sequence[TherapySessionRecord], now: datetime) -> Dict[str, int]:
    if not sessions:
        return {"language": 0, "empathy": 0, "clarity": 0}

    oldest = min(_utc(session.created_at) for session in sessions)
    weeks_active = max(1, -(-(now - oldest) // timedelta(weeks=1)))
    sessions_per_week = len(sessions) / weeks_active
    average_duration = _mean([session.duration or 0 for session in sessions])
    # Consistency target: five sessions a week, ten minutes each.
    empathy = min(100, round_half_up(sessions_per_week / 5 * 50 + average_duration / 600 * 50))

    return {
        "language": _rounded_mean([session.accuracy or 0 for session in sessions]),
        "empathy": empathy,
        "clarity": _rounded_mean([session.clarity_score or 0 for session in sessions]),
    }


def emotion_breakdown(sessions: Sequence[TherapySessionRecord]) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    durations: Dict[str, float] = {}
    for session in sessions:
        emotion = session.emotion or "neutral"
        counts[emotion] = counts.get(emotion, 0) + 1
        durations[emotion] = durations.get(emotion, 0.0) + (session.duration or 0)

    total = sum(durations.values())
    breakdown = [
        {
            "emotion": emotion,
            "time": format_practice_time(durations[emotion]),
            "percentage": round_half_up(durations[emotion] / total * 100) if total > 0 else 0,
            "count": counts[emotion],
        }
        for emotion in counts
    ]
    breakdown.sort(key=lambda item: item["percentage"], reverse=True)
    return breakdown[:TOP_EMOTIONS]


def _issue_weight(frequency: Any) -> float:
    if isinstance(frequency, bool) or not isinstance(frequency, (int, float)) or frequency <= 0:
        return 1
    return frequency


def struggle_phonemes(sessions: Sequence[TherapySessionRecord], top: int = 3) -> List[str]:
    weights: Dict[str, float] = {}
    for session in sessions:
        for issue in session.phoneme_issues or []:
            if not isinstance(issue, dict) or not issue.get("phoneme"):
                continue
            phoneme = str(issue["phoneme"])
            weights[phoneme] = weights.get(phoneme, 0) + _issue_weight(issue.get("frequency"))
    return sorted(weights, key=lambda key: weights[key], reverse=True)[:top]


def start_of_week(now: datetime) -> datetime:
    """Sunday 00:00 UTC of the week containing ``now``."""
    now = _utc(now)
    days_since_sunday = (now.weekday() + 1) % 7
    return (now - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)


def weekly_stats(sessions: Sequence[TherapySessionRecord], now: datetime) -> Dict[str, Any]:
    this_week_start = start_of_week(now)
    last_week_start = this_week_start - timedelta(days=7)
    this_week = [s for s in sessions if _utc(s.created_at) >= this_week_start]
    last_week = [s for s in sessions if last_week_start <= _utc(s.created_at) < this_week_start]

    practice_time = sum(s.duration or 0 for s in this_week)
    last_practice_time = sum(s.duration or 0 for s in last_week)
    average_score = _rounded_mean([s.overall_score or 0 for s in this_week])
    last_average_score = _rounded_mean([s.overall_score or 0 for s in last_week])

    return {
        "sessions": len(this_week),
        "sessionsTarget": SESSIONS_TARGET,
        "sessionsChange": len(this_week) - len(last_week),
        "practiceTime": practice_time,
        "practiceTimeFormatted": format_practice_time(practice_time),
        "practiceTimeTarget": PRACTICE_TIME_TARGET,
        "practiceTimeChange": practice_time - last_practice_time,
        "avgScore": average_score,
        "avgScoreChange": average_score - last_average_score,
    }


def _user_card(user: UserRecord, sessions: Sequence[TherapySessionRecord]) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "disabilityType": user.disability_type,
        "memberSince": isoformat(user.created_at),
        "communicationStyle": communication_style(len(sessions), _mean([s.duration or 0 for s in sessions])),
        "learningStyle": learning_style(sessions),
        "interests": parse_interests(user.trigger_words, user.disability_description),
    }


def build_dashboard(store: Store, user_id: Optional[str], now: Optional[datetime] = None) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("User ID is required")
    user = store.get_user(user_id)
    if user is None:
        raise UserNotFoundError("User not found")

    now = _utc(now or utc_now())
    sessions = store.list_therapy_sessions(user_id)
    recent = sessions[:RECENT_SESSIONS]
    week = weekly_stats(sessions, now)
    emotions = emotion_breakdown(sessions)
    total_duration = sum(session.duration or 0 for session in sessions)

    return {
        "user": _user_card(user, sessions),
        "improvementMetrics": improvement_metrics(sessions, now),
        "emotionData": emotions,
        "recentSessions": [
            {
                "id": session.id,
                "date": format_session_date(session.created_at, now),
                "title": session_title(session.category, session.created_at),
                "score": round_half_up(session.overall_score or 0),
                "duration": format_practice_time(session.duration),
                "emotion": map_emotion(session.emotion),
                "category": session.category,
                "difficulty": session.difficulty,
            }
            for session in recent
        ],
        "weeklyStats": week,
        "recommendations": build_recommendations(struggle_phonemes(recent), week["sessions"], week["avgScore"]),
        "totalStats": {
            "totalSessions": len(sessions),
            "totalPracticeTime": total_duration,
            "totalPracticeTimeFormatted": format_practice_time(total_duration),
            "overallAvgScore": _rounded_mean([s.overall_score or 0 for s in sessions]),
        },
    }
