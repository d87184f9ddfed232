"""Contract tests for the relay HTTP API (FastAPI TestClient, fake model)."""

import pytest
from fastapi.testclient import TestClient

import backend.main
from backend.api.routes import APOLOGY_TEXT, OFFLINE_TEXT
from backend.core.llm_adapter import LLMRateLimitError, LLMUnavailableError
from backend.core.prompts import DEFAULT_SUGGESTIONS


class FakeAdapter:
    """Stands in for LLMAdapter; replies are scripted per test."""

    def __init__(self):
        self.cerebras_key = "key"
        self.groq_key = ""
        self.prompts = []
        self.reply = "Hello!"
        self.error = None

    def is_healthy(self):
        return bool(self.cerebras_key or self.groq_key)

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def fake_llm():
    return FakeAdapter()


@pytest.fixture
def client(fake_llm, mocker):
    mocker.patch("backend.main.LLMAdapter", return_value=fake_llm)
    backend.main._rate_buckets.clear()
    with TestClient(backend.main.app) as c:
        yield c
    backend.main._rate_buckets.clear()


def generate_body(**overrides):
    body = {
        "prompt": "Explain gravity",
        "sessionId": "s1",
        "isQuickReply": False,
        "language": "en",
        "context": "ctx",
        "enhancedPrompt": "Explain gravity",
        "enhancedContext": "enhanced ctx",
        "isFirstInteraction": False,
        "hasJustProvidedName": False,
    }
    body.update(overrides)
    return body


class TestGenerate:

    def test_reply(self, client, fake_llm):
        resp = client.post("/generate", json=generate_body())
        assert resp.status_code == 200
        assert resp.json() == {"text": "Hello!", "sessionId": "s1"}
        assert fake_llm.prompts == ["enhanced ctx"]

    def test_falls_back_to_plain_context(self, client, fake_llm):
        client.post("/generate", json=generate_body(enhancedContext=None))
        assert fake_llm.prompts == ["ctx"]

    def test_offline_flag(self, client, fake_llm):
        resp = client.post("/generate", json=generate_body(offline=True))
        assert resp.json()["text"] == OFFLINE_TEXT
        assert fake_llm.prompts == []

    def test_rate_limited_model(self, client, fake_llm):
        fake_llm.error = LLMRateLimitError("429")
        resp = client.post("/generate", json=generate_body())
        assert resp.status_code == 429
        data = resp.json()
        assert data["isRateLimitError"] is True
        assert data["message"]
        assert data["nextAvailableTime"]

    def test_other_errors_are_apologies(self, client, fake_llm):
        fake_llm.error = LLMUnavailableError("down")
        resp = client.post("/generate", json=generate_body())
        assert resp.status_code == 200
        assert resp.json()["text"] == APOLOGY_TEXT

    def test_echo_rewrite(self, client, fake_llm):
        fake_llm.reply = "Nice to meet you, pizza! Pizza is great."
        resp = client.post("/generate", json=generate_body(prompt="pizza"))
        assert resp.json()["text"] == "About pizza, Pizza is great."

    def test_missing_session_id(self, client):
        resp = client.post("/generate", json=generate_body(sessionId=None))
        assert resp.json()["sessionId"] == "new-session"

    def test_empty_prompt_rejected(self, client):
        assert client.post("/generate", json=generate_body(prompt="")).status_code == 422


class TestThrottleMiddleware:

    def test_per_session_limit(self, client, monkeypatch):
        monkeypatch.setattr(backend.main, "RATE_LIMIT", 2)

        assert client.post("/generate", json=generate_body()).status_code == 200
        assert client.post("/generate", json=generate_body()).status_code == 200
        blocked = client.post("/generate", json=generate_body())

        assert blocked.status_code == 429
        assert blocked.json()["isRateLimitError"] is True
        assert client.post("/generate", json=generate_body(sessionId="s2")).status_code == 200

    def test_other_routes_not_throttled(self, client, monkeypatch):
        monkeypatch.setattr(backend.main, "RATE_LIMIT", 1)
        for _ in range(3):
            assert client.get("/health").status_code == 200


class TestSuggestions:

    def test_parses_fenced_json(self, client, fake_llm):
        fake_llm.reply = '```json\n["Yes please", "No thanks", "Maybe"]\n```'
        resp = client.post("/suggestions", json={"lastMessage": "Want more?", "sessionId": "s1", "language": "fr"})
        assert resp.json() == {"suggestions": ["Yes please", "No thanks"]}
        assert "Want more?" in fake_llm.prompts[0]
        assert "fr language" in fake_llm.prompts[0]

    def test_unparsable_output(self, client, fake_llm):
        fake_llm.reply = "Sure! Here are some ideas."
        resp = client.post("/suggestions", json={"lastMessage": "Hi"})
        assert resp.json()["suggestions"] == DEFAULT_SUGGESTIONS

    def test_model_failure(self, client, fake_llm):
        fake_llm.error = LLMUnavailableError("down")
        resp = client.post("/suggestions", json={"lastMessage": "Hi"})
        assert resp.json()["suggestions"] == DEFAULT_SUGGESTIONS


class TestTranslate:

    def test_translates(self, client, fake_llm):
        fake_llm.reply = "  Hola  "
        resp = client.post("/translate", json={"text": "Hello", "targetLanguage": "es"})
        assert resp.json() == {"translatedText": "Hola"}

    def test_failure_echoes(self, client, fake_llm):
        fake_llm.error = LLMUnavailableError("down")
        resp = client.post("/translate", json={"text": "Hello", "targetLanguage": "es"})
        assert resp.json() == {"translatedText": "Hello"}


class TestHealth:

    def test_degraded_with_one_key(self, client):
        data = client.get("/health").json()
        assert data["status"] == "degraded"
        assert data["components"] == {"cerebras": "ok", "groq": "error"}
        assert data["hasApiKey"] is True

    def test_root(self, client):
        assert client.get("/").json()["service"] == "intellibuddy-api"
