import logging
import os
from typing import Any, Dict, Iterator, List, Optional

import httpx

from .constants import DEFAULT_VOICE_ID, MAX_ERROR_CHARS


logger = logging.getLogger("uvicorn.error")

DEFAULT_BASE_URL = "https://api.elevenlabs.io"
DEFAULT_MODEL_ID = "eleven_monolingual_v1"
DEFAULT_TIMEOUT_SECONDS = 60.0
AUDIO_CONTENT_TYPE = "audio/mpeg"
MIN_SPEED = 0.7
MAX_SPEED = 1.2

VOICE_PRESETS = {
    "THERAPY": "21m00Tcm4TlvDq8ikWAM",  # Rachel
    "EMPATHETIC": "EXAVITQu4vr4xnSDxMaL",  # Bella
    "PROFESSIONAL": "pNInz6obpgDQGcFmaJgB",  # Adam
    "CALM": "ThT5KcBeYPX3keUQqHPh",  # Dorothy
}


class TTSConfigurationError(RuntimeError):
    pass


def _truncate(text: str, max_chars: int = MAX_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."


def _get_api_key() -> str:
    api_key = os.getenv("ELEVENLABS_API_KEY", "").strip()
    if not api_key:
        raise TTSConfigurationError("ELEVENLABS_API_KEY is not configured")
    return api_key


def _default_voice_id() -> str:
    return os.getenv("ELEVENLABS_DEFAULT_VOICE_ID", DEFAULT_VOICE_ID).strip() or DEFAULT_VOICE_ID


def _model_id() -> str:
    return os.getenv("ELEVENLABS_MODEL_ID", DEFAULT_MODEL_ID).strip() or DEFAULT_MODEL_ID


def _http_client() -> httpx.Client:
    base_url = os.getenv("ELEVENLABS_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL
    timeout = float(os.getenv("ELEVENLABS_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))
    return httpx.Client(base_url=base_url, timeout=timeout)


def resolve_voice_id(voice_id: Optional[str]) -> str:
    if not voice_id:
        return _default_voice_id()
    return VOICE_PRESETS.get(voice_id, voice_id)


def clamp_speed(speed: Optional[float]) -> Optional[float]:
    if speed is None:
        return None
    return min(max(float(speed), MIN_SPEED), MAX_SPEED)


def _speech_request(
    text: str,
    *,
    voice_id: Optional[str],
    stability: float,
    similarity_boost: float,
    style: float,
    use_speaker_boost: bool,
    speed: Optional[float],
) -> Dict[str, Any]:
    voice_settings: Dict[str, Any] = {
        "stability": stability,
        "similarity_boost": similarity_boost,
        "style": style,
        "use_speaker_boost": use_speaker_boost,
    }
    if speed is not None:
        voice_settings["speed"] = clamp_speed(speed)
    return {
        "voice_id": resolve_voice_id(voice_id),
        "headers": {"xi-api-key": _get_api_key(), "Accept": AUDIO_CONTENT_TYPE},
        "json": {"text": text, "model_id": _model_id(), "voice_settings": voice_settings},
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return _truncate(response.text or "Unknown provider error")
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        detail = detail.get("message") or detail.get("status")
    return _truncate(str(detail or payload))


def text_to_speech(
    text: str,
    *,
    voice_id: Optional[str] = None,
    stability: float = 0.5,
    similarity_boost: float = 0.75,
    style: float = 0.0,
    use_speaker_boost: bool = True,
    speed: Optional[float] = None,
) -> bytes:
    """Synthesize ``text`` and return the complete MP3 payload."""
    speech = _speech_request(
        text,
        voice_id=voice_id,
        stability=stability,
        similarity_boost=similarity_boost,
        style=style,
        use_speaker_boost=use_speaker_boost,
        speed=speed,
    )
    try:
        with _http_client() as client:
            response = client.post(
                f"/v1/text-to-speech/{speech['voice_id']}",
                headers=speech["headers"],
                json=speech["json"],
            )
    except httpx.TimeoutException as exc:
        raise RuntimeError("ElevenLabs request timed out.") from exc
    except httpx.HTTPError as exc:
        raise RuntimeError(f"Failed to call ElevenLabs: {exc}") from exc

    if response.status_code >= 400:
        raise RuntimeError(f"ElevenLabs error {response.status_code}: {_error_detail(response)}")

    logger.info("tts_generated voice_id=%s chars=%s bytes=%s", speech["voice_id"], len(text), len(response.content))
    return response.content


def stream_speech(
    text: str,
    *,
    voice_id: Optional[str] = None,
    stability: float = 0.5,
    similarity_boost: float = 0.75,
    speed: Optional[float] = None,
) -> Iterator[bytes]:
    """Open a streaming synthesis request.

    The upstream status is checked before returning so that failures surface as
    errors rather than as a truncated audio body.
    """
    speech = _speech_request(
        text,
        voice_id=voice_id,
        stability=stability,
        similarity_boost=similarity_boost,
        style=0.0,
        use_speaker_boost=True,
        speed=speed,
    )
    client = _http_client()
    try:
        request = client.build_request(
            "POST",
            f"/v1/text-to-speech/{speech['voice_id']}/stream",
            headers=speech["headers"],
            json=speech["json"],
        )
        response = client.send(request, stream=True)
    except httpx.TimeoutException as exc:
        client.close()
        raise RuntimeError("ElevenLabs request timed out.") from exc
    except httpx.HTTPError as exc:
        client.close()
        raise RuntimeError(f"Failed to call ElevenLabs: {exc}") from exc

    if response.status_code >= 400:
        response.read()
        detail = _error_detail(response)
        response.close()
        client.close()
        raise RuntimeError(f"ElevenLabs error {response.status_code}: {detail}")

    def _chunks() -> Iterator[bytes]:
        try:
            for chunk in response.iter_bytes():
                if chunk:
                    yield chunk
        finally:
            response.close()
            client.close()

    return _chunks()


def get_voices() -> List[Dict[str, Any]]:
    headers = {"xi-api-key": _get_api_key()}
    try:
        with _http_client() as client:
            response = client.get("/v1/voices", headers=headers)
    except httpx.TimeoutException as exc:
        raise RuntimeError("ElevenLabs request timed out.") from exc
    except httpx.HTTPError as exc:
        raise RuntimeError(f"Failed to call ElevenLabs: {exc}") from exc

    if response.status_code >= 400:
        raise RuntimeError(f"ElevenLabs error {response.status_code}: {_error_detail(response)}")

    payload = response.json()
    voices = payload.get("voices") if isinstance(payload, dict) else None
    return voices if isinstance(voices, list) else []
