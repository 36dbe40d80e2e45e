SYSTEM_PROMPT = (
    "You are a speech correction assistant for people with speech disabilities "
    "(stuttering, dyspraxia, apraxia, etc.). Return ONLY valid JSON. No markdown. No code fences."
)

CORRECTION_PROMPT_TEMPLATE = """Transform disfluent speech into clear, natural sentences while preserving the speaker's original intent.

Raw speech transcript (may contain stuttering, repetitions, fillers, incomplete words):
"{raw_transcript}"
{context_line}
IMPORTANT RULES:
1. PRESERVE the speaker's original meaning and intent exactly
2. Remove stutters (e.g., "I-I-I want" -> "I want")
3. Remove repetitions (e.g., "the the the" -> "the")
4. Remove filler words (um, uh, like, you know) unless they add meaning
5. Complete incomplete words based on context (e.g., "wat..." -> "water")
6. Fix word order issues caused by speech difficulty
7. Keep the tone casual or formal based on the original speech
8. If the speech is already clear, return it with minimal changes
9. NEVER add information that wasn't implied by the speaker
10. Make the output sound natural, as if spoken by a fluent speaker

Respond ONLY with valid JSON:
{
  "correctedText": "<the clean, corrected sentence>",
  "confidence": <0-100 how confident you are in the correction>,
  "corrections": [
    {
      "type": "<stutter|repetition|filler|incomplete|unclear>",
      "original": "<what was said>",
      "corrected": "<what it became>"
    }
  ],
  "intent": "<brief description of what the speaker was trying to communicate>"
}
"""

TRANSCRIBE_AND_CORRECT_PROMPT = """Listen to this audio and:

1. First, transcribe what the speaker is actually saying (including any stutters, repetitions, etc.)
2. Then, provide a corrected version that sounds natural and fluent

The speaker may have:
- Stuttering (repeating sounds or syllables)
- Blocks (pauses or getting stuck)
- Prolongations (stretching sounds)
- Word-finding difficulties
- Apraxia (difficulty coordinating speech)

IMPORTANT:
- PRESERVE the speaker's original meaning exactly
- Make the corrected version sound natural
- Be compassionate and accurate

Respond ONLY with valid JSON:
{
  "originalText": "<exact transcription of what was said, including disfluencies>",
  "correctedText": "<clean, fluent version of what the speaker meant>",
  "confidence": <0-100>,
  "corrections": [
    {
      "type": "<stutter|repetition|filler|incomplete|unclear>",
      "original": "<what was said>",
      "corrected": "<what it became>"
    }
  ],
  "intent": "<what the speaker was trying to communicate>"
}
"""
