"""All magic numbers and configuration constants."""

DEFAULT_STABILITY = 0.75             # voice settings defaults (0.0–1.0)
DEFAULT_SIMILARITY_BOOST = 0.75
DEFAULT_STYLE = 0.5
DEFAULT_USE_SPEAKER_BOOST = True
THROTTLE_DELAY_SECONDS = 0.1         # pause between queue items
MAX_CHUNK_CHARS = 1000               # longest text sent in one synthesis request
MAPPING_STORAGE_KEY = "tts_speaker_mapping"
MAPPING_HISTORY_KEY = "tts_mapping_history"
MAPPING_HISTORY_LIMIT = 10           # most recent saved mappings kept
MAPPING_FORMAT_VERSION = "1.0"
ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
ELEVENLABS_MODEL = "eleven_multilingual_v2"
ELEVENLABS_OUTPUT_FORMAT = "mp3_44100_128"
ELEVENLABS_TIMEOUT = 60.0            # seconds per HTTP request
VOICE_CACHE_SECONDS = 3600           # voice catalog cache lifetime
SUBSCRIPTION_QUOTA = 1_000_000       # characters per billing period
COST_PER_CHARACTER = 0.00003         # USD, $30 per 1M overage characters
OUTPUT_DIR = "output"
STORE_PATH = "~/.voicecast/store.json"
VERSION = "0.1.0"
