"""Unit tests for relay prompt helpers."""

from backend.core.prompts import (
    DEFAULT_SUGGESTIONS,
    build_suggestions_prompt,
    build_translate_prompt,
    clean_json_response,
    parse_suggestions,
)


class TestPrompts:

    def test_suggestions_prompt(self):
        prompt = build_suggestions_prompt("How are you?", "de")
        assert '"How are you?"' in prompt
        assert "MUST be in de language" in prompt

    def test_translate_prompt(self):
        prompt = build_translate_prompt("Hello", "ja")
        assert prompt.startswith("Translate the following text to ja language.")
        assert prompt.endswith("Hello")


class TestParseSuggestions:

    def test_clean_fences(self):
        assert clean_json_response('```json\n["a", "b"]\n```') == '["a", "b"]'

    def test_plain_array(self):
        assert parse_suggestions('["Go on", "Stop"]') == ["Go on", "Stop"]

    def test_too_few(self):
        assert parse_suggestions('["Go on"]') == DEFAULT_SUGGESTIONS

    def test_not_strings(self):
        assert parse_suggestions("[1, 2]") == DEFAULT_SUGGESTIONS

    def test_not_json(self):
        assert parse_suggestions("nope") == DEFAULT_SUGGESTIONS
