import os
from datetime import datetime

DB_NAME = os.getenv("LEDGER_DB", "ledger.db")
LOG_DIR = "logs"
VOCABULARY_FILE = os.getenv("VOCABULARY_FILE", "vocabulary.json")

SUPPORTED_LANGUAGES = ("english", "malayalam")
DEFAULT_LANGUAGE = os.getenv("ASSISTANT_LANGUAGE", "english")

# Recognizer locale per conversation language
SPEECH_LOCALES = {
    "english": "en-IN",
    "malayalam": "ml-IN",
}

# Seconds to wait for the persistence result of a save before giving up
COMMIT_TIMEOUT_SECONDS = float(os.getenv("COMMIT_TIMEOUT_SECONDS", "15"))

# HTTP sessions untouched for this long are dropped
SESSION_IDLE_SECONDS = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))

LISTEN_DURATION_SECONDS = 5.0
SAMPLE_RATE = 44100
# Pause between the end of playback and re-opening the microphone
LISTEN_COOLDOWN_SECONDS = 0.5
MAX_IDLE_ATTEMPTS = 5

LOG_FILE = os.path.join(LOG_DIR, "app.log")

DATE_FORMAT = "%Y-%m-%d"

os.makedirs(LOG_DIR, exist_ok=True)

def timestamp():
    """Return current timestamp string."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
