import base64
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import accounts, bridge, dashboard, exporting, kids, phoneme_guides, progress, therapy, tts
from .constants import MAX_REQUEST_BYTES
from .llm_client import LLMConfigurationError
from .models import (
    AnalyzeSpeechRequest,
    BridgeCorrectRequest,
    ColorReporterRequest,
    DisabilityProfileUpdateRequest,
    EmotionRequest,
    GeneratePromptsRequest,
    GuideProgressRequest,
    LoginRequest,
    MirrorRequest,
    PlayRequest,
    ProfileUpdateRequest,
    RealtimeFeedbackRequest,
    SaveExchangeRequest,
    SaveSessionRequest,
    SettingsUpdateRequest,
    SignupRequest,
    TherapyTTSRequest,
    TTSRequest,
    VerifyEmailRequest,
    guide_progress_payload,
    isoformat,
    user_payload,
)
from .storage import build_store


logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="VoiceBridge Backend")
store = build_store()

frontend_origins = os.getenv(
    "FRONTEND_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in frontend_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def enforce_request_size(request, call_next):
    if request.method in ("POST", "PUT", "PATCH") and request.url.path.startswith("/api/"):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > MAX_REQUEST_BYTES:
                    return JSONResponse(
                        status_code=413,
                        content={
                            "success": False,
                            "error": f"Request too large. Max size is {MAX_REQUEST_BYTES} bytes.",
                        },
                    )
            except ValueError:
                pass
    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_error_envelope(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_envelope(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"Invalid request: {location} {message}".strip() if location else f"Invalid request: {message}"
    return JSONResponse(status_code=400, content={"success": False, "error": detail})


@app.exception_handler(Exception)
async def unexpected_error_envelope(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def _ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": True}
    if data is not None or not extra:
        payload["data"] = data
    payload.update(extra)
    return payload


def _http_error(exc: Exception, failure: str) -> HTTPException:
    if isinstance(exc, (LLMConfigurationError, tts.TTSConfigurationError)):
        logger.error("provider_not_configured error=%s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, accounts.AccountError):
        return HTTPException(status_code=exc.status_code, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc) or "Not found")
    logger.warning("%s error=%s", failure.lower().replace(" ", "_"), exc)
    return HTTPException(status_code=502, detail=f"{failure}: {exc}")


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "storage": store.storage_name}


# Accounts


@app.post("/api/auth/signup")
def signup(body: SignupRequest) -> dict:
    try:
        user = accounts.signup(
            store,
            email=body.email,
            password=body.password,
            name=body.name,
            disability_type=body.disability_type,
            severity=body.severity,
        )
    except accounts.AccountError as exc:
        raise _http_error(exc, "Registration failed") from exc

    return _ok(
        {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "isEmailVerified": user.is_email_verified,
        },
        message="Account created successfully. Please verify your email.",
    )


@app.post("/api/auth/verify-email")
def verify_email(body: VerifyEmailRequest) -> dict:
    try:
        user = accounts.verify_email(store, email=body.email, code=body.code)
    except accounts.AccountError as exc:
        raise _http_error(exc, "Verification failed") from exc
    return _ok(user_payload(user), message="Email verified successfully")


@app.post("/api/auth/login")
def login(body: LoginRequest) -> dict:
    try:
        user = accounts.login(store, email=body.email, password=body.password)
    except accounts.AccountError as exc:
        raise _http_error(exc, "Login failed") from exc
    return _ok(user_payload(user), message="Login successful")


@app.patch("/api/user/profile")
def update_profile(body: ProfileUpdateRequest) -> dict:
    try:
        user = accounts.update_profile(store, body.user_id, name=body.name, email=body.email)
    except accounts.AccountError as exc:
        raise _http_error(exc, "Profile update failed") from exc
    return _ok(user_payload(user), message="Profile updated successfully")


@app.patch("/api/user/disability-profile")
def update_disability_profile(body: DisabilityProfileUpdateRequest) -> dict:
    changes = body.model_dump(include=body.model_fields_set - {"user_id"})
    try:
        user = accounts.update_disability_profile(store, body.user_id, changes)
    except accounts.AccountError as exc:
        raise _http_error(exc, "Disability profile update failed") from exc
    return _ok(user_payload(user), message="Disability profile updated successfully")


@app.patch("/api/user/settings")
def update_settings(body: SettingsUpdateRequest) -> dict:
    changes = body.model_dump(include=body.model_fields_set - {"user_id"})
    try:
        user = accounts.update_settings(store, body.user_id, changes)
    except accounts.AccountError as exc:
        raise _http_error(exc, "Settings update failed") from exc
    return _ok(user_payload(user), message="Settings updated successfully")


# Therapy


@app.post("/api/therapy/analyze")
def analyze_speech(body: AnalyzeSpeechRequest) -> dict:
    if not body.target_text:
        raise HTTPException(status_code=400, detail="Target text is required")
    if not (body.transcribed_text or "").strip():
        return _ok(therapy.empty_speech_result(body.target_text))

    try:
        result = therapy.analyze_speech(
            body.target_text,
            body.transcribed_text,
            audio_base64=body.audio_data,
            audience=body.audience or "adult",
            persona=body.persona or "friend",
        )
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to analyze speech") from exc
    return _ok(result)


@app.post("/api/therapy/emotion")
def analyze_emotion(body: EmotionRequest) -> dict:
    if not body.audio_base64:
        raise HTTPException(status_code=400, detail="Audio data is required")
    try:
        result = therapy.analyze_emotion_from_audio(body.audio_base64, body.mime_type or "audio/webm")
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to analyze emotion from audio") from exc
    return _ok(result)


@app.post("/api/therapy/feedback")
def realtime_feedback(body: RealtimeFeedbackRequest) -> dict:
    if not body.target_text:
        raise HTTPException(status_code=400, detail="Target text is required")
    return _ok(therapy.get_realtime_feedback(body.partial_transcript or "", body.target_text))


@app.get("/api/therapy/prompts")
def list_prompts(
    difficulty: Optional[str] = "easy",
    category: Optional[str] = None,
    phonemes: Optional[str] = None,
) -> dict:
    target_phonemes = [item.strip() for item in (phonemes or "").split(",") if item.strip()]
    return _ok(therapy.list_practice_prompts(difficulty, target_phonemes, category))


@app.post("/api/therapy/prompts")
def generate_prompts(body: GeneratePromptsRequest) -> dict:
    try:
        prompts = therapy.create_practice_prompts(body.difficulty, body.target_phonemes, body.category)
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to generate prompts") from exc
    return _ok(prompts)


@app.post("/api/therapy/session")
def save_session(body: SaveSessionRequest) -> dict:
    try:
        session = progress.save_session(
            store,
            body.user_id,
            body.target_text,
            transcribed_text=body.transcribed_text,
            duration=body.duration,
            accuracy=body.accuracy,
            clarity_score=body.clarity_score,
            overall_score=body.overall_score,
            word_analysis=body.word_analysis,
            phoneme_issues=body.phoneme_issues,
            recommendations=body.recommendations,
            difficulty=body.difficulty,
            category=body.category,
            emotion=body.emotion,
        )
    except (ValueError, LookupError) as exc:
        raise _http_error(exc, "Failed to save session") from exc
    return _ok({"id": session.id, "createdAt": isoformat(session.created_at)})


@app.get("/api/therapy/session")
def list_sessions(userId: Optional[str] = None, limit: int = 10, offset: int = 0) -> dict:
    try:
        history = progress.session_history(store, userId, limit=limit, offset=offset)
    except ValueError as exc:
        raise _http_error(exc, "Failed to get sessions") from exc
    return _ok(history)


@app.get("/api/therapy/stats")
def session_stats(userId: Optional[str] = None) -> dict:
    try:
        stats = progress.today_stats(store, userId)
    except ValueError as exc:
        raise _http_error(exc, "Failed to fetch stats") from exc
    return _ok(stats)


@app.get("/api/therapy/export")
def export_sessions(
    userId: Optional[str] = None,
    export_format: Optional[str] = Query("json", alias="format"),
) -> Response:
    try:
        body, media_type, filename = exporting.export_sessions(store, userId, export_format)
    except ValueError as exc:
        raise _http_error(exc, "Failed to export data") from exc
    logger.info("user_id=%s sessions_exported format=%s", userId, export_format)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/therapy/tts")
def therapy_tts(body: TherapyTTSRequest) -> dict:
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        audio = tts.text_to_speech(
            body.text,
            voice_id=body.voice_id or tts.VOICE_PRESETS["THERAPY"],
            stability=0.7,
            similarity_boost=0.8,
            style=0.0,
            use_speaker_boost=True,
            speed=body.speed,
        )
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to generate speech") from exc
    return _ok({"audio": _b64(audio), "contentType": tts.AUDIO_CONTENT_TYPE})


# Bridge


@app.post("/api/bridge/correct")
def correct_speech(body: BridgeCorrectRequest) -> dict:
    try:
        if body.audio_base64:
            result = bridge.transcribe_and_correct_speech(body.audio_base64, body.mime_type or "audio/webm")
        elif body.raw_transcript:
            result = bridge.correct_speech(body.raw_transcript, body.context)
        else:
            raise HTTPException(status_code=400, detail="Either rawTranscript or audioBase64 is required")
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to correct speech") from exc
    return _ok(result)


@app.post("/api/bridge/exchange")
def save_exchange(body: SaveExchangeRequest) -> dict:
    try:
        exchange = bridge.save_exchange(
            store,
            user_id=body.user_id,
            original_text=body.original_text,
            corrected_text=body.corrected_text,
            confidence=body.confidence,
            intent=body.intent,
            corrections=body.corrections,
            context=body.context,
        )
    except (ValueError, LookupError) as exc:
        raise _http_error(exc, "Failed to save exchange") from exc
    return _ok({"id": exchange.id, "createdAt": isoformat(exchange.created_at)})


@app.get("/api/bridge/exchange")
def list_exchanges(userId: Optional[str] = None, limit: int = bridge.DEFAULT_EXCHANGE_LIMIT) -> dict:
    try:
        history = bridge.exchange_history(store, userId, limit=limit)
    except ValueError as exc:
        raise _http_error(exc, "Failed to get exchanges") from exc
    return _ok(history)


@app.delete("/api/bridge/exchange")
def clear_exchanges(userId: Optional[str] = None) -> dict:
    try:
        bridge.clear_exchanges(store, userId)
    except ValueError as exc:
        raise _http_error(exc, "Failed to clear history") from exc
    return _ok(message="History cleared")


# Dashboard & progress


@app.get("/api/dashboard")
def get_dashboard(userId: Optional[str] = None) -> dict:
    try:
        data = dashboard.build_dashboard(store, userId)
    except (ValueError, LookupError) as exc:
        raise _http_error(exc, "Failed to fetch dashboard data") from exc
    return _ok(data)


@app.get("/api/progress")
def get_progress(userId: Optional[str] = None, period: str = Query("week", alias="range")) -> dict:
    try:
        data = progress.progress_overview(store, userId, period)
    except ValueError as exc:
        raise _http_error(exc, "Failed to load progress") from exc
    return _ok(data)


# Phoneme guides


@app.get("/api/guides")
def list_guides(category: Optional[str] = None, difficulty: Optional[str] = None) -> dict:
    guides = phoneme_guides.list_guides(category=category, difficulty=difficulty)
    return _ok(guides, count=len(guides))


@app.get("/api/guides/progress")
def get_guide_progress(userId: str = "demo-user", phonemeId: Optional[str] = None) -> dict:
    data = progress.guide_progress(store, userId, phonemeId)
    if phonemeId:
        return _ok(data)
    return _ok(data, count=len(data))


@app.post("/api/guides/progress")
def update_guide_progress(body: GuideProgressRequest) -> dict:
    try:
        record = progress.record_guide_progress(
            store,
            body.user_id or "demo-user",
            body.phoneme_id,
            body.progress,
            body.accuracy,
        )
    except ValueError as exc:
        raise _http_error(exc, "Failed to update phoneme progress") from exc
    return _ok(guide_progress_payload(record), message="Progress updated successfully")


@app.delete("/api/guides/progress")
def reset_guide_progress(userId: str = "demo-user", phonemeId: Optional[str] = None) -> dict:
    return _ok(message=progress.reset_guide_progress(store, userId, phonemeId))


@app.get("/api/guides/{guide_id}")
def get_guide(guide_id: str) -> dict:
    guide = phoneme_guides.get_guide(guide_id)
    if guide is None:
        raise HTTPException(status_code=404, detail="Phoneme guide not found")
    return _ok(guide)


# Kids


@app.post("/api/kids/mirror")
def emotion_mirror(body: MirrorRequest) -> dict:
    if not body.text and not body.audio_data:
        raise HTTPException(status_code=400, detail="Missing text or audio data")
    try:
        result = kids.mirror_emotion(body.text or "Audio input", body.audio_data, body.persona)
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to analyze emotion") from exc
    return _ok(result)


@app.post("/api/kids/world-build")
def world_build(body: MirrorRequest) -> dict:
    if not body.text and not body.audio_data:
        raise HTTPException(status_code=400, detail="Missing input")
    try:
        result = kids.build_world(body.text or "A magical place", body.audio_data, body.persona)
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to build world") from exc
    return _ok(result)


@app.post("/api/kids/play")
def play(body: PlayRequest) -> dict:
    if not body.scenario or not body.child_input:
        raise HTTPException(status_code=400, detail="Missing scenario or child input")
    try:
        result = kids.play_response(body.scenario, body.child_input, body.history or [], body.persona)
    except (ValueError, RuntimeError) as exc:
        raise _http_error(exc, "Failed to generate play response") from exc
    return _ok(result)


@app.post("/api/kids/color-reporter")
def color_reporter(body: ColorReporterRequest) -> dict:
    if not body.color or not body.audio_data:
        raise HTTPException(status_code=400, detail="Missing color or audio data")
    try:
        result = kids.report_color_feeling(body.color, body.audio_data, body.persona)
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to analyze color emotion") from exc
    return _ok(result)


# Text-to-speech


def _b64(audio: bytes) -> str:
    return base64.b64encode(audio).decode("ascii")


@app.post("/api/tts")
def text_to_speech(body: TTSRequest) -> dict:
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        audio = tts.text_to_speech(
            body.text,
            voice_id=body.voice_id,
            stability=body.stability or 0.5,
            similarity_boost=body.similarity_boost or 0.75,
        )
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to generate speech") from exc
    return _ok({"audio": _b64(audio), "contentType": tts.AUDIO_CONTENT_TYPE})


@app.post("/api/tts/stream")
def stream_text_to_speech(body: TTSRequest) -> StreamingResponse:
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        chunks = tts.stream_speech(
            body.text,
            voice_id=body.voice_id,
            stability=body.stability or 0.5,
            similarity_boost=body.similarity_boost or 0.75,
        )
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to generate speech") from exc
    return StreamingResponse(chunks, media_type=tts.AUDIO_CONTENT_TYPE)


@app.get("/api/voices")
def list_voices() -> dict:
    try:
        voices: List[Dict[str, Any]] = tts.get_voices()
    except RuntimeError as exc:
        raise _http_error(exc, "Failed to fetch voices") from exc
    return {"voices": voices}
