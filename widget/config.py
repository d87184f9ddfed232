"""Widget settings loaded from environment variables."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

STORAGE_PREFIX = "intellibuddy-"

RATE_LIMITS_KEY = f"{STORAGE_PREFIX}rate-limits"
LANGUAGE_THROTTLE_KEY = f"{STORAGE_PREFIX}language-throttle"
RATE_LIMIT_BANNER_KEY = f"{STORAGE_PREFIX}rate-limit-banner"
LANGUAGE_KEY = f"{STORAGE_PREFIX}language"
USER_INFO_KEY = f"{STORAGE_PREFIX}user-info"

# Matches the relay's bound on a generate prompt.
MAX_MESSAGE_LENGTH = 2000

SUPPORTED_LANGUAGES = {
    "en": "English",
    "zh": "Chinese",
    "hi": "Hindi",
    "es": "Spanish",
    "ar": "Arabic",
    "fr": "French",
    "ko": "Korean",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "id": "Indonesian",
    "de": "German",
}


@dataclass
class WidgetConfig:
    """Runtime knobs for the chat widget.

    Attributes:
        api_url: Base URL of the backend relay.
        storage_url: SQLAlchemy URL of the durable local storage.
        max_requests_per_minute: Local cap on model calls per minute.
        max_requests_per_day: Local cap on model calls per day.
        context_max_messages: History turns included in the model context.
        response_timeout: Seconds before a relay call is abandoned.
        default_language: ISO-639-1 code used when nothing is stored.
    """
    api_url: str = "http://localhost:8000"
    storage_url: str = "sqlite:///data/intellibuddy.sqlite"
    max_requests_per_minute: int = 12
    max_requests_per_day: int = 1400
    context_max_messages: int = 50
    response_timeout: float = 30.0
    default_language: str = "en"

    @classmethod
    def from_env(cls) -> "WidgetConfig":
        return cls(
            api_url=os.environ.get("INTELLIBUDDY_API_URL", "http://localhost:8000"),
            storage_url=os.environ.get("INTELLIBUDDY_STORAGE_URL", "sqlite:///data/intellibuddy.sqlite"),
            max_requests_per_minute=int(os.environ.get("RATE_LIMIT_PER_MINUTE", "12")),
            max_requests_per_day=int(os.environ.get("RATE_LIMIT_PER_DAY", "1400")),
            context_max_messages=int(os.environ.get("CONTEXT_MAX_MESSAGES", "50")),
            response_timeout=float(os.environ.get("RESPONSE_TIMEOUT", "30")),
            default_language=os.environ.get("DEFAULT_LANGUAGE", "en"),
        )


def language_name(code: str) -> str:
    """Human-readable language name, falling back to the code itself."""
    return SUPPORTED_LANGUAGES.get(code, code)
