"""Shared fixtures for all tests."""

from datetime import datetime, timedelta, timezone

import pytest

from widget.core.relay_client import DEFAULT_SUGGESTIONS
from widget.core.session_store import SessionStore
from widget.core.storage import LocalStorage
from widget.schemas import TextResult


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeRelay:
    """In-process stand-in for RelayClient with scripted replies."""

    def __init__(self):
        self.replies: list = []
        self.sent = []
        self.suggestion_calls = 0
        self.translations: dict[str, str] = {}
        self.translate_error: Exception | None = None
        self.online = True

    async def send(self, payload):
        self.sent.append(payload)
        if self.replies:
            return self.replies.pop(0)
        return TextResult(text="Here is an answer.")

    async def suggestions(self, last_message, session_id, language="en"):
        self.suggestion_calls += 1
        return list(DEFAULT_SUGGESTIONS)

    async def translate(self, text, target_language):
        if self.translate_error:
            raise self.translate_error
        return self.translations.get(text, f"[{target_language}] {text}")

    async def health(self):
        return self.online


@pytest.fixture
def clock() -> FakeClock:
    # 10:00 UTC, a "morning" greeting
    return FakeClock(datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage() -> LocalStorage:
    return LocalStorage("sqlite:///:memory:")


@pytest.fixture
def store(clock) -> SessionStore:
    return SessionStore(clock=clock)


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()
