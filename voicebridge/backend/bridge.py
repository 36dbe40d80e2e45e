import logging
from typing import Any, Dict, List, Optional

from .llm_client import LLMConfigurationError, request_json
from .models import BridgeExchangeRecord, exchange_payload
from .prompts.bridge import CORRECTION_PROMPT_TEMPLATE, SYSTEM_PROMPT, TRANSCRIBE_AND_CORRECT_PROMPT
from .storage import Store


logger = logging.getLogger("uvicorn.error")

CORRECTION_TYPES = {"stutter", "repetition", "filler", "incomplete", "unclear"}
DEFAULT_EXCHANGE_LIMIT = 20


def _confidence(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return float(min(value, 100))


def _corrections(value: Any) -> List[Dict[str, str]]:
    if not isinstance(value, list):
        return []
    corrections = []
    for item in value:
        if not isinstance(item, dict):
            continue
        correction_type = str(item.get("type") or "unclear").strip().lower()
        corrections.append(
            {
                "type": correction_type if correction_type in CORRECTION_TYPES else "unclear",
                "original": str(item.get("original") or ""),
                "corrected": str(item.get("corrected") or ""),
            }
        )
    return corrections


def correct_speech(raw_transcript: str, context: Optional[str] = None) -> Dict[str, Any]:
    context_line = f"\nContext: {context}\n" if context else ""
    prompt = CORRECTION_PROMPT_TEMPLATE.replace("{raw_transcript}", raw_transcript).replace(
        "{context_line}", context_line
    )
    try:
        parsed = request_json(system_prompt=SYSTEM_PROMPT, user_prompt=prompt, temperature=0.2)
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("bridge_correction_fallback error=%s", exc)
        return {
            "originalText": raw_transcript,
            "correctedText": raw_transcript,
            "confidence": 0,
            "corrections": [],
            "intent": "Unable to determine intent",
        }

    return {
        "originalText": raw_transcript,
        "correctedText": str(parsed.get("correctedText") or raw_transcript),
        "confidence": _confidence(parsed.get("confidence"), 50),
        "corrections": _corrections(parsed.get("corrections")),
        "intent": str(parsed.get("intent") or "Communication"),
    }


def transcribe_and_correct_speech(audio_base64: str, mime_type: Optional[str] = "audio/webm") -> Dict[str, Any]:
    try:
        parsed = request_json(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=TRANSCRIBE_AND_CORRECT_PROMPT,
            audio_base64=audio_base64,
            audio_mime_type=mime_type or "audio/webm",
            temperature=0.2,
        )
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("bridge_transcription_fallback error=%s", exc)
        return {
            "originalText": "",
            "correctedText": "",
            "confidence": 0,
            "corrections": [],
            "intent": "Unable to process audio",
        }

    original = str(parsed.get("originalText") or "")
    return {
        "originalText": original,
        "correctedText": str(parsed.get("correctedText") or original),
        "confidence": _confidence(parsed.get("confidence"), 50),
        "corrections": _corrections(parsed.get("corrections")),
        "intent": str(parsed.get("intent") or "Communication"),
    }


def save_exchange(
    store: Store,
    *,
    user_id: Optional[str],
    original_text: Optional[str],
    corrected_text: Optional[str],
    confidence: Optional[float] = None,
    intent: Optional[str] = None,
    corrections: Optional[List[dict]] = None,
    context: Optional[str] = None,
) -> BridgeExchangeRecord:
    if not user_id or not original_text or not corrected_text:
        raise ValueError("userId, originalText, and correctedText are required")
    if store.get_user(user_id) is None:
        raise LookupError("User not found")

    exchange = store.create_bridge_exchange(
        user_id,
        original_text=original_text,
        corrected_text=corrected_text,
        confidence=float(confidence or 0),
        intent=intent or None,
        corrections=list(corrections or []),
        context=context or None,
    )
    logger.info("user_id=%s bridge_exchange_saved id=%s", user_id, exchange.id)
    return exchange


def exchange_history(store: Store, user_id: Optional[str], limit: int = DEFAULT_EXCHANGE_LIMIT) -> Dict[str, Any]:
    if not user_id:
        raise ValueError("User ID is required")
    exchanges = store.list_bridge_exchanges(user_id, limit=max(limit, 0))
    total, average = store.bridge_exchange_stats(user_id)
    return {
        "exchanges": [exchange_payload(item) for item in exchanges],
        "stats": {
            "totalExchanges": total,
            "averageConfidence": round(average, 2),
        },
    }


def clear_exchanges(store: Store, user_id: Optional[str]) -> int:
    if not user_id:
        raise ValueError("User ID is required")
    removed = store.delete_bridge_exchanges(user_id)
    logger.info("user_id=%s bridge_history_cleared removed=%s", user_id, removed)
    return removed
