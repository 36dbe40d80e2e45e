from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_DISABILITY_TYPE, DEFAULT_SEVERITY, DEFAULT_VOICE_ID


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    name: str
    created_at: datetime
    updated_at: datetime
    avatar: Optional[str] = None
    is_email_verified: bool = False
    verification_code: Optional[str] = None
    verification_code_expires_at: Optional[datetime] = None
    disability_type: str = DEFAULT_DISABILITY_TYPE
    disability_severity: int = DEFAULT_SEVERITY
    trigger_words: List[str] = field(default_factory=list)
    disability_description: Optional[str] = None
    voice_id: str = DEFAULT_VOICE_ID
    speed: float = 1.0
    font_mode: str = "default"
    text_size: str = "normal"
    high_contrast: bool = False
    reduced_motion: bool = False


@dataclass
class TherapySessionRecord:
    id: str
    user_id: str
    created_at: datetime
    target_text: str
    transcribed_text: str = ""
    duration: float = 0
    accuracy: float = 0.0
    clarity_score: float = 0.0
    overall_score: float = 0.0
    word_analysis: List[dict] = field(default_factory=list)
    phoneme_issues: List[dict] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    difficulty: str = "easy"
    category: str = "General"
    emotion: str = "neutral"


@dataclass
class BridgeExchangeRecord:
    id: str
    user_id: str
    created_at: datetime
    original_text: str
    corrected_text: str
    confidence: float = 0.0
    intent: Optional[str] = None
    corrections: List[dict] = field(default_factory=list)
    context: Optional[str] = None


@dataclass
class PhonemeProgressRecord:
    user_id: str
    phoneme_id: str
    progress: float
    practice_count: int
    last_practiced_at: datetime
    accuracy_history: List[float]
    created_at: datetime
    updated_at: datetime


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    disability_type: Optional[str] = None
    severity: Optional[int] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyEmailRequest(CamelModel):
    email: Optional[str] = None
    code: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class DisabilityProfileUpdateRequest(CamelModel):
    # Loosely typed so the handlers can report field-specific messages.
    user_id: Optional[str] = None
    type: Any = None
    severity: Any = None
    trigger_words: Any = None
    description: Optional[str] = None


class SettingsUpdateRequest(CamelModel):
    user_id: Optional[str] = None
    voice_id: Optional[str] = None
    speed: Any = None
    font_mode: Any = None
    text_size: Any = None
    high_contrast: Any = None
    reduced_motion: Any = None


class AnalyzeSpeechRequest(CamelModel):
    target_text: Optional[str] = None
    transcribed_text: Optional[str] = None
    audio_data: Optional[str] = None
    audience: Optional[str] = None
    persona: Optional[str] = None


class EmotionRequest(CamelModel):
    audio_base64: Optional[str] = None
    mime_type: Optional[str] = None


class RealtimeFeedbackRequest(CamelModel):
    partial_transcript: Optional[str] = None
    target_text: Optional[str] = None


class GeneratePromptsRequest(CamelModel):
    difficulty: str = "easy"
    target_phonemes: List[str] = []
    category: Optional[str] = None


class SaveSessionRequest(CamelModel):
    user_id: Optional[str] = None
    target_text: Optional[str] = None
    transcribed_text: Optional[str] = None
    duration: Optional[float] = None
    accuracy: Optional[float] = None
    clarity_score: Optional[float] = None
    overall_score: Optional[float] = None
    word_analysis: Optional[List[dict]] = None
    phoneme_issues: Optional[List[dict]] = None
    recommendations: Optional[List[str]] = None
    difficulty: Optional[str] = None
    category: Optional[str] = None
    emotion: Optional[str] = None


class BridgeCorrectRequest(CamelModel):
    raw_transcript: Optional[str] = None
    audio_base64: Optional[str] = None
    mime_type: Optional[str] = None
    context: Optional[str] = None


class SaveExchangeRequest(CamelModel):
    user_id: Optional[str] = None
    original_text: Optional[str] = None
    corrected_text: Optional[str] = None
    confidence: Optional[float] = None
    intent: Optional[str] = None
    corrections: Optional[List[dict]] = None
    context: Optional[str] = None


class TTSRequest(CamelModel):
    text: Optional[str] = None
    voice_id: Optional[str] = None
    stability: Optional[float] = None
    similarity_boost: Optional[float] = None


class TherapyTTSRequest(CamelModel):
    text: Optional[str] = None
    voice_id: Optional[str] = None
    speed: Optional[float] = None


class GuideProgressRequest(CamelModel):
    user_id: str = "demo-user"
    phoneme_id: Optional[str] = None
    progress: Optional[float] = None
    accuracy: Optional[float] = None


class MirrorRequest(CamelModel):
    text: Optional[str] = None
    audio_data: Optional[str] = None
    persona: Optional[str] = None


class PlayRequest(CamelModel):
    scenario: Optional[str] = None
    child_input: Optional[str] = None
    history: Optional[List[str]] = None
    persona: Optional[str] = None


class ColorReporterRequest(CamelModel):
    color: Optional[str] = None
    audio_data: Optional[str] = None
    persona: Optional[str] = None


def user_payload(user: UserRecord) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "avatar": user.avatar,
        "isEmailVerified": user.is_email_verified,
        "disabilityProfile": {
            "type": user.disability_type,
            "severity": user.disability_severity,
            "triggerWords": list(user.trigger_words or []),
            "description": user.disability_description,
        },
        "settings": {
            "voiceId": user.voice_id,
            "speed": user.speed,
            "fontMode": user.font_mode,
            "textSize": user.text_size,
            "highContrast": user.high_contrast,
            "reducedMotion": user.reduced_motion,
        },
        "createdAt": isoformat(user.created_at),
        "updatedAt": isoformat(user.updated_at),
    }


def session_payload(session: TherapySessionRecord) -> Dict[str, Any]:
    return {
        "id": session.id,
        "userId": session.user_id,
        "createdAt": isoformat(session.created_at),
        "targetText": session.target_text,
        "transcribedText": session.transcribed_text,
        "duration": session.duration,
        "accuracy": session.accuracy,
        "clarityScore": session.clarity_score,
        "overallScore": session.overall_score,
        "wordAnalysis": session.word_analysis,
        "phonemeIssues": session.phoneme_issues,
        "recommendations": session.recommendations,
        "difficulty": session.difficulty,
        "category": session.category,
        "emotion": session.emotion,
    }


def exchange_payload(exchange: BridgeExchangeRecord) -> Dict[str, Any]:
    return {
        "id": exchange.id,
        "userId": exchange.user_id,
        "createdAt": isoformat(exchange.created_at),
        "originalText": exchange.original_text,
        "correctedText": exchange.corrected_text,
        "confidence": exchange.confidence,
        "intent": exchange.intent,
        "corrections": exchange.corrections,
        "context": exchange.context,
    }


def guide_progress_payload(record: PhonemeProgressRecord) -> Dict[str, Any]:
    return {
        "userId": record.user_id,
        "phonemeId": record.phoneme_id,
        "progress": record.progress,
        "practiceCount": record.practice_count,
        "lastPracticedAt": isoformat(record.last_practiced_at),
        "accuracyHistory": list(record.accuracy_history),
        "createdAt": isoformat(record.created_at),
        "updatedAt": isoformat(record.updated_at),
    }
