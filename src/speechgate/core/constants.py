"""Constants for SpeechGate."""

import sys
from pathlib import Path

# Default paths. Bundled YAML ships inside the package; a frozen build keeps
# it next to the executable. Logs go to the working directory.
if getattr(sys, 'frozen', False):
    CONFIG_DIR = Path(sys.executable).parent / "config"
    LOGS_DIR = Path(sys.executable).parent / "logs"
else:
    # core/ -> speechgate/
    CONFIG_DIR = Path(__file__).parent.parent / "config"
    LOGS_DIR = Path.cwd() / "logs"

DEFAULT_LANGUAGE = "en"

# Declared fallback order: offline-capable engine first, then cloud providers.
DEFAULT_PRIORITY = ("local-model", "openai", "azure", "google", "os-native")

# Adapter call limits (seconds)
DEFAULT_INIT_TIMEOUT = 30.0
DEFAULT_TRANSCRIBE_TIMEOUT = 30.0
DEFAULT_STATUS_TIMEOUT = 10.0
DEFAULT_MAX_WORKERS = 8

# How often a waiting transcribe call checks for cancellation
CANCEL_POLL_INTERVAL = 0.05

# Environment variables holding provider credentials
CREDENTIAL_ENV_VARS = {
    "openai": {"api_key": "OPENAI_API_KEY"},
    "azure": {"subscription_key": "AZURE_SPEECH_KEY", "region": "AZURE_SPEECH_REGION"},
    "google": {"api_key": "GOOGLE_SPEECH_API_KEY"},
}

# Short language codes -> BCP-47 locales expected by cloud providers
LOCALE_MAP = {
    "en": "en-US",
    "uk": "uk-UA",
    "de": "de-DE",
    "fr": "fr-FR",
    "es": "es-ES",
    "it": "it-IT",
    "pt": "pt-BR",
    "pl": "pl-PL",
    "nl": "nl-NL",
    "ja": "ja-JP",
    "zh": "zh-CN",
}

# Audio defaults
DEFAULT_SAMPLE_RATE = 16000
DEFAULT_CHANNELS = 1
