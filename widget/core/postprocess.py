"""Rewrites for known quirks in model replies.

The model sometimes answers a quick reply or a later message with "Nice to
meet you, <text>!" as if the text were a freshly introduced name. These
rewrites are best-effort polish, not a guarantee.
"""

import re

import structlog

from widget.responses import TELL_ME_MORE, THANKS_FOR_INFO

logger = structlog.get_logger(__name__)

_NICE_TO_MEET_YOU = re.compile(r"nice to meet you", re.IGNORECASE)
_GREETING_WITH_SUBJECT = re.compile(r"Nice to meet you,\s+([^!]+)!", re.IGNORECASE)


def rewrite_greeting_quirks(
    text: str,
    prompt: str,
    is_quick_reply: bool,
    is_first_interaction: bool,
    user_name: str | None = None,
) -> str:
    """Suppress spurious "Nice to meet you" phrases.

    Args:
        text: Model reply.
        prompt: The user text that was answered.
        is_quick_reply: The prompt came from a quick-reply button.
        is_first_interaction: The session is still in its opening exchange.
        user_name: Known name, if any.

    Returns:
        The rewritten reply; the original when nothing applies or the
        rewrite would leave nothing.
    """
    if not _NICE_TO_MEET_YOU.search(text) or not (is_quick_reply or not is_first_interaction):
        return text

    rewritten = text
    if is_quick_reply and prompt.lower() in text.lower():
        replacement = r"About \1:" if prompt in (TELL_ME_MORE, THANKS_FOR_INFO) else r"I understand you're asking about \1."
        rewritten = _GREETING_WITH_SUBJECT.sub(replacement, rewritten)

    if prompt.strip():
        echo = re.compile(rf"Nice to meet you,?\s+{re.escape(prompt.strip())}[!.]?", re.IGNORECASE)
        rewritten = echo.sub(f"About {prompt.strip()},", rewritten)

    name_part = rf"(?:,?\s+{re.escape(user_name)})?" if user_name else ""
    regreet = re.compile(rf"Nice to meet you{name_part}\s*[!.]?\s*", re.IGNORECASE)
    rewritten = regreet.sub("", rewritten).strip()

    if not rewritten:
        return text
    if rewritten != text:
        logger.info("postprocess.greeting_rewritten", quick_reply=is_quick_reply)
    return rewritten
