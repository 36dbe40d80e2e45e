import json
import logging
import os
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from .constants import PLAY_SCENARIOS
from .llm_client import LLMConfigurationError, request_json
from .prompts.kids import (
    COLOR_REPORTER_PROMPT_TEMPLATE,
    MIRROR_PROMPT_TEMPLATE,
    PLAY_PROMPT_TEMPLATE,
    PLAY_SCENARIOS as SCENARIO_PROMPTS,
    WORLD_BUILD_PROMPT_TEMPLATE,
    persona_instruction,
)


logger = logging.getLogger("uvicorn.error")

DEFAULT_IMAGE_MODEL = "dall-e-3"
IMAGE_SIZE = "1024x1024"
PLAY_HISTORY_TURNS = 3

MIRROR_FALLBACK = {
    "emotion": "Neutral",
    "reframe": "I am doing my best.",
    "comfortingMessage": "I'm listening.",
    "emoji": "\U0001F642",
}
WORLD_FALLBACK = {
    "story": "A magical place appears in the mist... but the story is hiding right now.",
    "imagePrompt": "A magical landscape in soft colors",
}
PLAY_FALLBACK = {
    "message": "That sounds fun! What happens next?",
    "action": "*smiles*",
    "therapeuticTheme": "Engagement",
}
COLOR_FALLBACK = {
    "emotion": "Feeling",
    "validation": "I hear you. That sounds important.",
    "summary": "Child spoke but analysis failed.",
    "copingStrategy": "Let's take a deep breath together.",
}


def _ask(prompt: str, fallback: Dict[str, str], event: str, audio_base64: Optional[str] = None) -> Dict[str, Any]:
    """Run a child-facing prompt; any provider or parse failure yields ``fallback``."""
    try:
        parsed = request_json(user_prompt=prompt, audio_base64=audio_base64, audio_mime_type="audio/webm", temperature=0.7)
    except LLMConfigurationError:
        raise
    except RuntimeError as exc:
        logger.warning("%s_fallback error=%s", event, exc)
        return dict(fallback)

    result: Dict[str, Any] = {}
    for key, default in fallback.items():
        value = parsed.get(key)
        result[key] = str(value).strip() if isinstance(value, (str, int, float)) and str(value).strip() else default
    return result


def mirror_emotion(text: str, audio_base64: Optional[str] = None, persona: Optional[str] = None) -> Dict[str, Any]:
    prompt = (
        MIRROR_PROMPT_TEMPLATE.replace("{persona_instruction}", persona_instruction(persona))
        .replace("{audio_note}", "(Audio provided for tone analysis)" if audio_base64 else "")
        .replace("{text}", text)
    )
    return _ask(prompt, MIRROR_FALLBACK, "emotion_mirror", audio_base64)


def _image_client() -> Optional[OpenAI]:
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        return None
    return OpenAI(api_key=api_key, timeout=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "90")))


def generate_image(image_prompt: str) -> Optional[str]:
    client = _image_client()
    if client is None:
        return None

    model = os.getenv("OPENAI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL).strip() or DEFAULT_IMAGE_MODEL
    try:
        response = client.images.generate(
            model=model,
            prompt=f"A cute, magical, child-friendly illustration of: {image_prompt}. Soft colors, storybook style.",
            n=1,
            size=IMAGE_SIZE,
        )
    except OpenAIError as exc:
        logger.warning("world_image_failed model=%s error=%s", model, exc)
        return None

    if not response.data:
        return None
    first = response.data[0]
    if first.url:
        return first.url
    if first.b64_json:
        return f"data:image/png;base64,{first.b64_json}"
    return None


def build_world(description: str, audio_base64: Optional[str] = None, persona: Optional[str] = None) -> Dict[str, Any]:
    prompt = (
        WORLD_BUILD_PROMPT_TEMPLATE.replace("{persona_instruction}", persona_instruction(persona))
        .replace("{audio_note}", "(Audio provided for context)" if audio_base64 else "")
        .replace("{description}", description)
    )
    world = _ask(prompt, WORLD_FALLBACK, "world_build", audio_base64)
    image = generate_image(world["imagePrompt"]) if world.get("imagePrompt") else None
    if image:
        world["image"] = image
    return world


def play_response(
    scenario: str,
    child_input: str,
    history: Optional[List[str]] = None,
    persona: Optional[str] = None,
) -> Dict[str, Any]:
    if scenario not in PLAY_SCENARIOS:
        raise ValueError(f"Unknown play scenario: {scenario}")

    recent = [str(turn) for turn in (history or [])][-PLAY_HISTORY_TURNS:]
    prompt = (
        PLAY_PROMPT_TEMPLATE.replace("{persona_instruction}", persona_instruction(persona))
        .replace("{scenario}", SCENARIO_PROMPTS[scenario])
        .replace("{history}", json.dumps(recent))
        .replace("{child_input}", child_input)
    )
    return _ask(prompt, PLAY_FALLBACK, "play_companion")


def report_color_feeling(color: str, audio_base64: str, persona: Optional[str] = None) -> Dict[str, Any]:
    prompt = COLOR_REPORTER_PROMPT_TEMPLATE.replace("{persona_instruction}", persona_instruction(persona)).replace(
        "{color}", color
    )
    return _ask(prompt, COLOR_FALLBACK, "color_reporter", audio_base64)
