"""Prompt templates for suggestion and translation calls."""

import json
import re

SUGGESTIONS_PROMPT_TEMPLATE = """Based on this message from an AI assistant: "{last_message}"
Generate two short (2-5 words) response options that a user might want to reply with.
Format your response as a JSON array with exactly two strings and nothing else:
["suggestion 1", "suggestion 2"]
Important: The suggestions MUST be in {language} language."""

TRANSLATE_PROMPT_TEMPLATE = """Translate the following text to {language} language.
The source language could be any language - detect it automatically.
Preserve all formatting, markdown, and special characters.
Only return the translated text with no explanations:

{text}"""

DEFAULT_SUGGESTIONS = ["Tell me more", "Thanks for the info"]

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def build_suggestions_prompt(last_message: str, language: str = "en") -> str:
    return SUGGESTIONS_PROMPT_TEMPLATE.format(last_message=last_message, language=language)


def build_translate_prompt(text: str, language: str) -> str:
    return TRANSLATE_PROMPT_TEMPLATE.format(text=text, language=language)


def clean_json_response(response_text: str) -> str:
    """Strip markdown code fences around a JSON reply."""
    return _CODE_FENCE.sub("", response_text).strip()


def parse_suggestions(response_text: str) -> list[str]:
    """Parse the model's suggestion array.

    Args:
        response_text: Raw model output, possibly fenced.

    Returns:
        The first two suggestions, or the default pair when the output is
        not a JSON array of at least two non-empty strings.
    """
    try:
        suggestions = json.loads(clean_json_response(response_text))
    except ValueError:
        return list(DEFAULT_SUGGESTIONS)

    if (
        isinstance(suggestions, list)
        and len(suggestions) >= 2
        and all(isinstance(s, str) and s.strip() for s in suggestions[:2])
    ):
        return [s.strip() for s in suggestions[:2]]
    return list(DEFAULT_SUGGESTIONS)
