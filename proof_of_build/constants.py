"""Project-wide constants for the object-store layout and provider defaults.

The key layout below is shared with the upload tool and the playback UI,
so every prefix and suffix must stay bit-exact.
"""

import re

# Object-store namespaces
UPLOADS_PREFIX = "uploads/"
STATE_PREFIX = "state/"
SCRIPTS_PREFIX = "scripts/"
AUDIO_PREFIX = "audio/"

MANIFEST_FILENAME = "manifest.json"
MANIFEST_SUFFIX = f"/{MANIFEST_FILENAME}"

# uploads/<projectId>/manifest.json
MANIFEST_KEY_PATTERN = re.compile(r"^uploads/([^/]+)/manifest\.json$")

# Upload sub-directories per artifact kind
UPLOAD_SUBDIRS: dict[str, str] = {
    "screenshot": "frames",
    "terminal": "terminal",
    "log": "logs",
}

DEFAULT_AUDIO_EXTENSION = "m4a"

JSON_CONTENT_TYPE = "application/json"
DEFAULT_AUDIO_CONTENT_TYPE = "audio/mpeg"

SCHEMA_VERSION = "1.0"

# Artifact classification by extension
SCREENSHOT_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp", "svg"})
TERMINAL_EXTENSIONS = frozenset({"txt", "out", "term"})
LOG_EXTENSIONS = frozenset({"log", "err"})

# ElevenLabs
ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
DEFAULT_ELEVENLABS_VOICE_ID = "JBFqnCBsd6RMkjVDRZzb"
DEFAULT_ELEVENLABS_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_ELEVENLABS_OUTPUT_FORMAT = "mp3_44100_128"
ELEVENLABS_OUTPUT_FORMATS = frozenset(
    {
        "mp3_44100_128",
        "mp3_44100_192",
        "mp3_22050_32",
        "pcm_16000",
        "pcm_22050",
        "pcm_24000",
        "pcm_44100",
        "ulaw_8000",
    }
)
ELEVENLABS_VOICE_SETTINGS: dict[str, float] = {
    "stability": 0.5,
    "similarity_boost": 0.75,
}

# Cloudflare Workers AI
WORKERS_AI_API_BASE = "https://api.cloudflare.com/client/v4"
DEFAULT_WORKERS_AI_MODEL = "@cf/meta/llama-3.1-8b-instruct"
WORKERS_AI_MAX_TOKENS = 2000

SCRIPT_TONES = ("professional", "casual", "technical", "friendly")
DEFAULT_SCRIPT_TONE = "professional"
DEFAULT_SCRIPT_LANGUAGE = "en"

# Error codes recorded into ErrorState.code
DEFAULT_ERROR_CODE = "PIPELINE_ERROR"
