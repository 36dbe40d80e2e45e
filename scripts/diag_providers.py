#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voicebridge.backend.llm_client import request_json  # noqa: E402
from voicebridge.backend.tts import get_voices, text_to_speech  # noqa: E402


def check_llm() -> None:
    parsed = request_json(
        user_prompt='Reply with JSON only: {"status": "ok"}',
        temperature=0.0,
        max_tokens=50,
    )
    if parsed.get("status") != "ok":
        raise RuntimeError(f"Unexpected model reply: {parsed}")
    print("llm: ok")


def check_tts(output: Path) -> None:
    voices = get_voices()
    print(f"tts voices: {len(voices)}")
    audio = text_to_speech("Hello from VoiceBridge.")
    output.write_bytes(audio)
    print(f"tts audio: {len(audio)} bytes -> {output}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Check that the configured AI providers answer.")
    parser.add_argument("--skip-llm", action="store_true", help="Do not call the language model.")
    parser.add_argument("--skip-tts", action="store_true", help="Do not call ElevenLabs.")
    parser.add_argument("--output", default="diag_tts.mp3", help="Where to write the synthesized sample.")
    args = parser.parse_args()

    if not args.skip_llm:
        check_llm()
    if not args.skip_tts:
        check_tts(Path(args.output).expanduser().resolve())
    print("provider diagnostics passed")


if __name__ == "__main__":
    main()
