MAX_REQUEST_BYTES = 25 * 1024 * 1024  # 25 MB (base64 audio inside JSON bodies)
MAX_ERROR_CHARS = 1200

DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_DISABILITY_TYPE = "other"
DEFAULT_SEVERITY = 5
VERIFICATION_CODE_TTL_HOURS = 24
MIN_PASSWORD_LENGTH = 6
# bcrypt input limit.
MAX_PASSWORD_BYTES = 72

DISABILITY_TYPES = {"dyspraxia", "apraxia", "stuttering", "als", "parkinsons", "other"}
FONT_MODES = {"default", "dyslexic", "hyperlegible"}
TEXT_SIZES = {"normal", "large", "extra-large"}
DIFFICULTIES = ("easy", "medium", "hard")
EMOTIONS = ("happy", "calm", "frustrated", "anxious", "confident", "neutral")
PLAY_SCENARIOS = ("magic_clay", "grumpy_dragon", "picnic")
