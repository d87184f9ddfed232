"""Remembered user profile: name plus free-form facts, kept across restarts."""

import structlog

from widget.config import USER_INFO_KEY
from widget.core.context_builder import extract_profile_facts
from widget.core.storage import LocalStorage

logger = structlog.get_logger(__name__)


class UserProfileStore:
    """Persists the user-info blob under one storage key."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def _load(self) -> dict:
        blob = self.storage.get_json(USER_INFO_KEY, {})
        if not isinstance(blob, dict):
            return {"context": {}}
        if not isinstance(blob.get("context"), dict):
            blob["context"] = {}
        return blob

    @property
    def name(self) -> str | None:
        name = self._load().get("name")
        return name if isinstance(name, str) and name else None

    @property
    def facts(self) -> dict:
        return dict(self._load()["context"])

    def set_name(self, name: str) -> None:
        blob = self._load()
        blob["name"] = name
        self.storage.set_json(USER_INFO_KEY, blob)
        logger.info("profile.name_saved")

    def record_message(self, message: str) -> dict[str, str]:
        """Extract and store any profile facts found in a user message."""
        facts = extract_profile_facts(message)
        if facts:
            blob = self._load()
            blob["context"].update(facts)
            self.storage.set_json(USER_INFO_KEY, blob)
            logger.debug("profile.facts_saved", keys=sorted(facts))
        return facts

    def clear(self) -> None:
        self.storage.remove(USER_INFO_KEY)
