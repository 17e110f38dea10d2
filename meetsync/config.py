import os

from dotenv import load_dotenv

load_dotenv()

# Outbound command channel (start-meeting, translate-text, ...)
BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8765")
COMMAND_TIMEOUT_SECONDS = float(os.getenv("COMMAND_TIMEOUT_SECONDS", "10"))

# Inbound event channel. Empty means the in-process event bus.
EVENTS_URL = os.getenv("EVENTS_URL", "")

# Languages
SOURCE_LANG = os.getenv("SOURCE_LANG", "en")
DEFAULT_TARGET_LANGS = [
    lang.strip()
    for lang in os.getenv("DEFAULT_TARGET_LANGS", "vi").split(",")
    if lang.strip()
]
MAX_TARGET_LANGS = int(os.getenv("MAX_TARGET_LANGS", "4"))

# Caption overlay
OVERLAY_MAX_CAPTIONS = int(os.getenv("OVERLAY_MAX_CAPTIONS", "4"))
OVERLAY_FONT_SIZE = int(os.getenv("OVERLAY_FONT_SIZE", "18"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
