"""Unit tests for name and non-name heuristics."""

import pytest

from widget.core.heuristics import is_valid_name, looks_like_non_name, match_name


class TestMatchName:

    @pytest.mark.parametrize("message,expected", [
        ("My name is Alex.", "Alex"),
        ("my name is Maria Lopez", "Maria Lopez"),
        ("Call me Sam!", "Sam"),
        ("I'm Priya, nice to meet you", "Priya"),
        ("I am Jordan", "Jordan"),
    ])
    def test_patterns(self, message, expected):
        assert match_name(message) == expected

    def test_no_match(self):
        assert match_name("Tell me about physics") is None


class TestNonName:

    @pytest.mark.parametrize("text", [
        "What time is it?",
        "who knows",
        "hey there",
        "sup",
        "your name",
        "thanks bro",
    ])
    def test_rejected(self, text):
        assert looks_like_non_name(text) is True

    @pytest.mark.parametrize("text", ["Alex", "My name is Alex.", "Call me Sam"])
    def test_accepted(self, text):
        assert looks_like_non_name(text) is False

    def test_slang_matches_whole_words_only(self):
        assert looks_like_non_name("Pamela") is False


class TestValidName:

    @pytest.mark.parametrize("name", ["Alex", "Maria Lopez", "Jo"])
    def test_valid(self, name):
        assert is_valid_name(name) is True

    @pytest.mark.parametrize("name", ["A", "hello", "the robot", "just Alex", "Alex please"])
    def test_invalid(self, name):
        assert is_valid_name(name) is False
