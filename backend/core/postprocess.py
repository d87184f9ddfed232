"""Server-side rewrite of "Nice to meet you, <prompt>" echoes."""

import re

_GREETING_WITH_SUBJECT = re.compile(r"Nice to meet you,?\s+([^!.]+)[!.]?")


def rewrite_reply(text: str, prompt: str, is_quick_reply: bool, is_first_interaction: bool) -> str:
    """Rewrite greetings that treat the prompt as a name.

    Quick replies have any "Nice to meet you, X" turned into "Regarding X,".
    Outside the opening exchange, an echo of the prompt itself becomes
    "About <prompt>,".
    """
    if is_quick_reply and "Nice to meet you" in text:
        text = _GREETING_WITH_SUBJECT.sub(r"Regarding \1,", text)

    if (is_quick_reply or not is_first_interaction) and prompt:
        echo = re.compile(rf"Nice to meet you,?\s+{re.escape(prompt)}[!.]?", re.IGNORECASE)
        text = echo.sub(lambda _: f"About {prompt},", text, count=1)

    return text
