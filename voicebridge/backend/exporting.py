import csv
import io
import json
from datetime import datetime
from typing import Optional, Sequence, Tuple

from .models import TherapySessionRecord, isoformat, utc_now
from .progress import aggregate_stats
from .text_alignment import format_clock
from .storage import Store


CSV_HEADERS = [
    "Date",
    "Target Text",
    "Transcribed Text",
    "Duration (seconds)",
    "Accuracy (%)",
    "Clarity Score (%)",
    "Overall Score (%)",
    "Difficulty",
    "Category",
    "Emotion",
]


def export_filename(export_format: str, now: Optional[datetime] = None) -> str:
    stamp = (now or utc_now()).strftime("%Y-%m-%d")
    return f"voicebridge-sessions-{stamp}.{export_format}"


def sessions_to_csv(sessions: Sequence[TherapySessionRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for session in sessions:
        writer.writerow(
            [
                isoformat(session.created_at),
                session.target_text,
                session.transcribed_text,
                session.duration,
                f"{session.accuracy or 0:.1f}",
                f"{session.clarity_score or 0:.1f}",
                f"{session.overall_score or 0:.1f}",
                session.difficulty,
                session.category,
                session.emotion,
            ]
        )
    return buffer.getvalue()


def sessions_to_json(sessions: Sequence[TherapySessionRecord], now: Optional[datetime] = None) -> str:
    stats = aggregate_stats(sessions)
    document = {
        "exportedAt": isoformat(now or utc_now()),
        "summary": {
            "totalSessions": stats["totalSessions"],
            "totalPracticeTime": stats["totalDuration"],
            "averageAccuracy": stats["averageAccuracy"],
            "averageClarityScore": stats["averageClarityScore"],
            "averageOverallScore": stats["averageOverallScore"],
        },
        "sessions": [
            {
                "id": session.id,
                "date": isoformat(session.created_at),
                "targetText": session.target_text,
                "transcribedText": session.transcribed_text,
                "duration": session.duration,
                "durationFormatted": format_clock(session.duration),
                "accuracy": session.accuracy,
                "clarityScore": session.clarity_score,
                "overallScore": session.overall_score,
                "difficulty": session.difficulty,
                "category": session.category,
                "emotion": session.emotion,
                "wordAnalysis": session.word_analysis,
                "phonemeIssues": session.phoneme_issues,
                "recommendations": session.recommendations,
            }
            for session in sessions
        ],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_sessions(
    store: Store,
    user_id: Optional[str],
    export_format: Optional[str] = "json",
    now: Optional[datetime] = None,
) -> Tuple[str, str, str]:
    """Return (body, media_type, filename) for a user's full session history."""
    if not user_id:
        raise ValueError("User ID is required")
    now = now or utc_now()
    sessions = store.list_therapy_sessions(user_id)
    if (export_format or "").lower() == "csv":
        return sessions_to_csv(sessions), "text/csv", export_filename("csv", now)
    return sessions_to_json(sessions, now), "application/json", export_filename("json", now)
