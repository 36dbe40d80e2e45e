import json
import os
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .constants import MAX_ERROR_CHARS
from .gcp_auth import get_access_token, get_gcp_credentials, get_project_id_hint, get_vertex_location


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
VERTEX_BASE_URL_TEMPLATE = (
    "https://{location}-aiplatform.googleapis.com/v1beta1/projects/{project}/locations/{location}/endpoints/openapi"
)
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT_SECONDS = 60.0
JSON_RESPONSE_FORMAT = {"type": "json_object"}
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
AUDIO_FORMATS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "mp4",
    "audio/aac": "aac",
    "audio/flac": "flac",
}


class LLMConfigurationError(RuntimeError):
    pass


def _truncate(text: str, max_chars: int = MAX_ERROR_CHARS) -> str:
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max_chars - 3] + "..."


def _env(*names: str) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def _model_name() -> str:
    return _env("GEMINI_MODEL", "GOOGLE_GEMINI_MODEL") or DEFAULT_MODEL


def _resolve_connection() -> Tuple[str, str, str]:
    """Return (base_url, api_key, model) for the configured Gemini backend."""
    api_key = _env("GEMINI_API_KEY", "GOOGLE_VERTEX_AI_API_KEY")
    if api_key:
        base_url = _env("GEMINI_BASE_URL") or DEFAULT_BASE_URL
        return base_url, api_key, _model_name()

    if get_gcp_credentials() is not None:
        project = get_project_id_hint()
        if not project:
            raise LLMConfigurationError("Service account credentials are set but no GCP project id could be determined.")
        base_url = VERTEX_BASE_URL_TEMPLATE.format(location=get_vertex_location(), project=project)
        model = _model_name()
        if "/" not in model:
            model = f"google/{model}"
        return base_url, get_access_token(), model

    raise LLMConfigurationError(
        "Missing GEMINI_API_KEY. Set it (or GOOGLE_VERTEX_AI_API_KEY, or Google service account "
        "credentials) before calling AI-backed endpoints."
    )


def _build_client() -> Tuple[OpenAI, str]:
    base_url, api_key, model = _resolve_connection()
    timeout = float(os.getenv("GEMINI_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))
    return OpenAI(base_url=base_url, api_key=api_key, timeout=timeout), model


def strip_data_url(audio_base64: str) -> str:
    value = (audio_base64 or "").strip()
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def audio_format_for(mime_type: Optional[str]) -> str:
    base = (mime_type or "audio/webm").split(";", 1)[0].strip().lower()
    if base in AUDIO_FORMATS:
        return AUDIO_FORMATS[base]
    return base.split("/", 1)[-1] or "webm"


def build_user_content(
    prompt: str,
    audio_base64: Optional[str] = None,
    audio_mime_type: Optional[str] = None,
) -> Union[str, List[Dict[str, Any]]]:
    if not audio_base64:
        return prompt
    return [
        {
            "type": "input_audio",
            "input_audio": {
                "data": strip_data_url(audio_base64),
                "format": audio_format_for(audio_mime_type),
            },
        },
        {"type": "text", "text": prompt},
    ]


def _extract_content(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts: List[str] = []
        for item in value:
            if isinstance(item, dict):
                text = item.get("text")
                if text:
                    parts.append(str(text))
        return "\n".join(parts).strip()
    return str(value or "").strip()


def _status_message(exc: APIStatusError) -> str:
    return (getattr(exc, "message", "") or str(exc)).lower()


def _unsupported_response_format(exc: APIStatusError) -> bool:
    message = _status_message(exc)
    return "response_format" in message or "json_object" in message or "response_mime_type" in message


def _unsupported_temperature(exc: APIStatusError) -> bool:
    message = _status_message(exc)
    return "temperature" in message


def request_chat_completion(
    *,
    user_prompt: str,
    system_prompt: Optional[str] = None,
    audio_base64: Optional[str] = None,
    audio_mime_type: Optional[str] = None,
    temperature: float = 0.4,
    max_tokens: int = 1500,
    response_format: Optional[Dict[str, Any]] = JSON_RESPONSE_FORMAT,
) -> str:
    client, model = _build_client()

    messages: List[Dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": build_user_content(user_prompt, audio_base64, audio_mime_type)})

    base_kwargs: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if response_format is not None:
        base_kwargs["response_format"] = response_format

    attempts = [
        dict(base_kwargs),
        {k: v for k, v in base_kwargs.items() if k != "response_format"},
        {k: v for k, v in base_kwargs.items() if k not in {"temperature", "response_format"}},
    ]
    seen_signatures: set = set()
    last_status_error: Optional[APIStatusError] = None

    for kwargs in attempts:
        signature = json.dumps(sorted(kwargs.keys()))
        if signature in seen_signatures:
            continue
        seen_signatures.add(signature)

        try:
            response = client.chat.completions.create(**kwargs)
        except APIStatusError as exc:
            last_status_error = exc
            if _unsupported_response_format(exc) or _unsupported_temperature(exc):
                continue
            break
        except APITimeoutError as exc:
            raise RuntimeError("Gemini request timed out.") from exc
        except APIConnectionError as exc:
            raise RuntimeError(f"Failed to connect to Gemini: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if choice is None:
            raise RuntimeError("Gemini response did not contain choices.")
        content = _extract_content(choice.message.content)
        if not content:
            raise RuntimeError("Gemini returned empty assistant content.")
        return content

    if last_status_error is not None:
        status_code = getattr(last_status_error, "status_code", None)
        detail = _truncate(getattr(last_status_error, "message", None) or str(last_status_error))
        if status_code is not None:
            raise RuntimeError(f"Gemini request failed ({status_code}): {detail}")
        raise RuntimeError(f"Gemini request failed: {detail}")
    raise RuntimeError("Gemini request failed before receiving a response.")


def _strip_code_fences(raw_content: str) -> str:
    return CODE_FENCE_PATTERN.sub("", raw_content or "").strip()


def parse_json_object(raw_content: str) -> Dict[str, Any]:
    text = _strip_code_fences(raw_content)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise RuntimeError("Model output is not valid JSON.")
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc:
            raise RuntimeError("Model output could not be repaired into valid JSON.") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError("Model JSON root must be an object.")
    return parsed


def request_json(**kwargs: Any) -> Dict[str, Any]:
    return parse_json_object(request_chat_completion(**kwargs))
