import logging
from typing import Any, Dict, List, Optional

from .constants import DIFFICULTIES, EMOTIONS
from .llm_client import LLMConfigurationError, request_json
from .prompts.kids import persona_instruction
from .prompts.therapy import (
    ADULT_ANALYSIS_PROMPT_TEMPLATE,
    ADULT_MULTIMODAL_FIELDS,
    ADULT_MULTIMODAL_RULES,
    ANALYSIS_PROMPT_VERSION,
    CHILD_ANALYSIS_PROMPT_TEMPLATE,
    CHILD_MULTIMODAL_RULES,
    EMOTION_FROM_AUDIO_PROMPT,
    PRACTICE_PROMPTS_TEMPLATE,
    REALTIME_FEEDBACK_TEMPLATE,
)
from .text_alignment import calculate_accuracy, compare_words, levenshtein_distance, tokenize


logger = logging.getLogger("uvicorn.error")

NO_SPEECH_RECOMMENDATIONS = [
    "We couldn't detect any speech. Please try again.",
    "Make sure your microphone is working properly.",
    "Try speaking louder and clearer.",
]
FALLBACK_RECOMMENDATIONS = ["Keep practicing!", "Try speaking slowly and clearly."]
REALTIME_FALLBACK = {"feedback": "Keep going!", "encouragement": "You're doing great!"}

DEFAULT_PROMPTS: Dict[str, List[Dict[str, Any]]] = {
    "easy": [
        {"id": "e1", "text": "Hello, how are you today?", "category": "Greetings", "targetPhonemes": ["h", "ow"]},
        {"id": "e2", "text": "I would like a glass of water.", "category": "Daily Life", "targetPhonemes": ["l", "w"]},
        {"id": "e3", "text": "The sun is bright today.", "category": "Weather", "targetPhonemes": ["s", "b"]},
        {"id": "e4", "text": "Please pass the salt.", "category": "Daily Life", "targetPhonemes": ["p", "s"]},
        {"id": "e5", "text": "I need to go home now.", "category": "Daily Life", "targetPhonemes": ["n", "g"]},
    ],
    "medium": [
        {
            "id": "m1",
            "text": "The quick brown fox jumps over the lazy dog.",
            "category": "General",
            "targetPhonemes": ["th", "qu", "j"],
        },
        {"id": "m2", "text": "She sells seashells by the seashore.", "category": "S Sounds", "targetPhonemes": ["sh", "s"]},
        {
            "id": "m3",
            "text": "Thank you for your help with this project.",
            "category": "Politeness",
            "targetPhonemes": ["th", "h"],
        },
        {
            "id": "m4",
            "text": "I really appreciate your thoughtful response.",
            "category": "Politeness",
            "targetPhonemes": ["r", "th"],
        },
        {
            "id": "m5",
            "text": "Could you please repeat that more slowly?",
            "category": "Requests",
            "targetPhonemes": ["r", "sl"],
        },
    ],
    "hard": [
        {
            "id": "h1",
            "text": "Peter Piper picked a peck of pickled peppers.",
            "category": "P Sounds",
            "targetPhonemes": ["p"],
        },
        {
            "id": "h2",
            "text": "How much wood would a woodchuck chuck if a woodchuck could chuck wood?",
            "category": "W Sounds",
            "targetPhonemes": ["w", "ch"],
        },
        {
            "id": "h3",
            "text": "The thirty-three thieves thought they thrilled the throne throughout Thursday.",
            "category": "TH Sounds",
            "targetPhonemes": ["th"],
        },
        {
            "id": "h4",
            "text": "Red lorry, yellow lorry, red lorry, yellow lorry.",
            "category": "R/L Sounds",
            "targetPhonemes": ["r", "l"],
        },
        {
            "id": "h5",
            "text": "Specifically, the statistical analysis significantly simplified the situation.",
            "category": "S Sounds",
            "targetPhonemes": ["s", "st"],
        },
    ],
}


def _number(value: Any, default: float = 0.0, *, low: float = 0.0, high: float = 100.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(min(max(value, low), high))


def _list_of_dicts(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _list_of_strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item or "").strip()]


def normalize_emotion(value: Any) -> str:
    emotion = str(value or "").strip().lower()
    return emotion if emotion in EMOTIONS else "neutral"


def normalize_difficulty(value: Optional[str]) -> str:
    difficulty = (value or "").strip().lower()
    return difficulty if difficulty in DIFFICULTIES else "easy"


def empty_speech_result(target_text: str) -> Dict[str, Any]:
    return {
        "transcribedText": "",
        "targetText": target_text,
        "accuracy": 0,
        "clarityScore": 0,
        "wordAnalysis": [],
        "phonemeIssues": [],
        "overallScore": 0,
        "recommendations": list(NO_SPEECH_RECOMMENDATIONS),
        "emotion": "neutral",
    }


def _local_analysis(target_text: str, transcribed_text: str) -> Dict[str, Any]:
    accuracy = round(calculate_accuracy(transcribed_text, target_text), 2)
    word_analysis = compare_words(transcribed_text, target_text)
    spoken = " ".join(tokenize(transcribed_text))
    expected = " ".join(tokenize(target_text))
    longest = max(len(spoken), len(expected))
    clarity = round((1 - levenshtein_distance(spoken, expected) / longest) * 100, 2) if longest else 0.0
    for position, item in enumerate(word_analysis):
        item["position"] = position
    return {
        "transcribedText": transcribed_text,
        "targetText": target_text,
        "accuracy": accuracy,
        "clarityScore": clarity,
        "wordAnalysis": word_analysis,
        "phonemeIssues": [],
        "overallScore": round((accuracy + clarity) / 2, 2),
        "recommendations": list(FALLBACK_RECOMMENDATIONS),
        "emotion": "neutral",
    }


def build_analysis_prompt(
    target_text: str,
    transcribed_text: str,
    *,
    multimodal: bool,
    audience: str = "adult",
    persona: Optional[str] = None,
) -> str:
    if audience == "child":
        return (
            CHILD_ANALYSIS_PROMPT_TEMPLATE.replace("{persona_instruction}", persona_instruction(persona))
            .replace("{multimodal_rules}", CHILD_MULTIMODAL_RULES if multimodal else "")
            .replace("{target_text}", target_text)
            .replace("{transcribed_text}", transcribed_text)
        )
    return (
        ADULT_ANALYSIS_PROMPT_TEMPLATE.replace("{multimodal_rules}", ADULT_MULTIMODAL_RULES if multimodal else "")
        .replace("{multimodal_fields}", ADULT_MULTIMODAL_FIELDS if multimodal else "")
        .replace("{target_text}", target_text)
        .replace("{transcribed_text}", transcribed_text)
    )


def analyze_speech(
    target_text: str,
    transcribed_text: str,
    audio_base64: Optional[str] = None,
    audience: Optional[str] = "adult",
    persona: Optional[str] = "friend",
) -> Dict[str, Any]:
    """Grade one practice attempt against its target phrase.

    The model does the grading. If it is unreachable or answers with something
    that is not JSON, the attempt is scored locally by positional word match so
    the learner still gets a result.
    """
    multimodal = bool(audio_base64)
    prompt = build_analysis_prompt(
        target_text,
        transcribed_text,
        multimodal=multimodal,
        audience="child" if audience == "child" else "adult",
        persona=persona,
    )

    try:
        analysis = request_json(
            user_prompt=prompt,
            audio_base64=audio_base64,
            audio_mime_type="audio/webm",
            temperature=0.2,
        )
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("speech_analysis_fallback multimodal=%s error=%s", multimodal, exc)
        return _local_analysis(target_text, transcribed_text)

    result: Dict[str, Any] = {
        "transcribedText": transcribed_text,
        "targetText": target_text,
        "accuracy": _number(analysis.get("accuracy")),
        "clarityScore": _number(analysis.get("clarityScore")),
        "wordAnalysis": _list_of_dicts(analysis.get("wordAnalysis")),
        "phonemeIssues": _list_of_dicts(analysis.get("phonemeIssues")),
        "overallScore": _number(analysis.get("overallScore")),
        "recommendations": _list_of_strings(analysis.get("recommendations")),
        "emotion": normalize_emotion(analysis.get("emotion")),
    }
    if "fluencyScore" in analysis:
        result["fluencyScore"] = _number(analysis.get("fluencyScore"))
    if isinstance(analysis.get("prosody"), dict):
        result["prosody"] = analysis["prosody"]

    logger.info(
        "speech_analysis_done version=%s audience=%s multimodal=%s overall=%s",
        ANALYSIS_PROMPT_VERSION,
        audience,
        multimodal,
        result["overallScore"],
    )
    return result


def generate_practice_prompts(
    difficulty: str,
    target_phonemes: List[str],
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    prompt = (
        PRACTICE_PROMPTS_TEMPLATE.replace("{difficulty}", difficulty)
        .replace("{phonemes}", ", ".join(target_phonemes) or "general pronunciation")
        .replace("{category}", category or "general")
    )
    try:
        parsed = request_json(user_prompt=prompt, temperature=0.8)
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("practice_prompts_failed difficulty=%s error=%s", difficulty, exc)
        return []

    prompts = []
    for item in _list_of_dicts(parsed.get("prompts")):
        text = str(item.get("text") or "").strip()
        if not text:
            continue
        prompts.append(
            {
                "text": text,
                "targetPhonemes": _list_of_strings(item.get("targetPhonemes")),
                "category": str(item.get("category") or category or "General"),
            }
        )
    return prompts


def default_prompts(difficulty: str) -> List[Dict[str, Any]]:
    difficulty = normalize_difficulty(difficulty)
    return [dict(item, difficulty=difficulty) for item in DEFAULT_PROMPTS[difficulty]]


def _with_ids(prompts: List[Dict[str, Any]], prefix: str, difficulty: str) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"{prefix}_{difficulty}_{index}",
            "text": item["text"],
            "difficulty": difficulty,
            "category": item["category"],
            "targetPhonemes": item["targetPhonemes"],
        }
        for index, item in enumerate(prompts)
    ]


def list_practice_prompts(
    difficulty: Optional[str],
    target_phonemes: List[str],
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Prompts for the practice picker; only asks the model for targeted requests."""
    difficulty = normalize_difficulty(difficulty)
    if target_phonemes or category:
        try:
            generated = generate_practice_prompts(difficulty, target_phonemes, category)
        except LLMConfigurationError as exc:
            logger.warning("practice_prompts_defaults reason=%s", exc)
            generated = []
        if generated:
            return _with_ids(generated, "ai", difficulty)
    return default_prompts(difficulty)


def create_practice_prompts(
    difficulty: Optional[str],
    target_phonemes: List[str],
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    difficulty = normalize_difficulty(difficulty)
    generated = generate_practice_prompts(difficulty, target_phonemes, category)
    if not generated:
        return default_prompts(difficulty)
    return _with_ids(generated, "gen", difficulty)


def get_realtime_feedback(partial_transcript: str, target_text: str) -> Dict[str, str]:
    prompt = REALTIME_FEEDBACK_TEMPLATE.replace("{target_text}", target_text).replace(
        "{partial_transcript}", partial_transcript
    )
    try:
        parsed = request_json(user_prompt=prompt, temperature=0.6, max_tokens=200)
    except RuntimeError as exc:
        logger.warning("realtime_feedback_fallback error=%s", exc)
        return dict(REALTIME_FALLBACK)

    return {
        "feedback": str(parsed.get("feedback") or REALTIME_FALLBACK["feedback"]),
        "encouragement": str(parsed.get("encouragement") or REALTIME_FALLBACK["encouragement"]),
    }


def analyze_emotion_from_audio(audio_base64: str, mime_type: Optional[str] = "audio/webm") -> Dict[str, Any]:
    try:
        analysis = request_json(
            user_prompt=EMOTION_FROM_AUDIO_PROMPT,
            audio_base64=audio_base64,
            audio_mime_type=mime_type or "audio/webm",
            temperature=0.2,
        )
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("emotion_analysis_fallback error=%s", exc)
        return {
            "emotion": "neutral",
            "confidence": 0,
            "details": {
                "tone": "unknown",
                "energy": "medium",
                "description": "Could not analyze audio for emotion",
            },
        }

    details = analysis.get("details") if isinstance(analysis.get("details"), dict) else {}
    return {
        "emotion": normalize_emotion(analysis.get("emotion")),
        "confidence": _number(analysis.get("confidence"), 50),
        "details": {
            "tone": str(details.get("tone") or "unknown"),
            "energy": str(details.get("energy") or "medium"),
            "description": str(details.get("description") or "Unable to determine emotional state"),
        },
    }
