"""Prompt-context assembly for model calls.

Turns a session's history and known user facts into the single context
string sent to the relay. `build_context` is a pure function of its inputs;
fact extraction and persistence live beside it but are applied by callers.
"""

from dataclasses import dataclass, field

import structlog

from widget.config import language_name
from widget.core.heuristics import (
    LANGUAGE_PATTERNS,
    PROFILE_PATTERNS,
    QUESTION_PREFIXES,
    SIMPLE_NAME_MAX_LENGTH,
    TOPIC_VOCABULARY,
    match_name,
)
from widget.schemas import Message, Session

logger = structlog.get_logger(__name__)

ASSISTANT_NAME = "IntelliBuddy"
MAX_CONTEXT_MESSAGES = 50
FIRST_INTERACTION_MAX_MESSAGES = 3

PERSONA_INSTRUCTION = f"You are {ASSISTANT_NAME}, a helpful AI assistant. Provide friendly, concise responses."

FORMATTING_NOTICE = (
    " You can and should use markdown formatting in your responses when appropriate,"
    " including **bold** for emphasis, *italics*, `code`, bullet lists, numbered lists,"
    " headings with #, ##, and tables. Format code blocks using triple backticks."
)


@dataclass
class UserFacts:
    """Facts pulled out of a single user message."""
    name: str | None = None
    topics: set[str] = field(default_factory=set)


def extract_topics(message: str) -> list[str]:
    """Return vocabulary subjects mentioned in the message, in vocabulary order."""
    lowered = message.lower()
    return [subject for subject in TOPIC_VOCABULARY if subject in lowered]


def extract_user_facts(message: str) -> UserFacts:
    """Extract a name candidate and topics from a user message.

    The name pattern table is tried in order; failing that, a short message
    with no whitespace is taken as the name itself.

    Args:
        message: Raw user text.

    Returns:
        UserFacts with the name (or None) and the set of topics found.
    """
    name = match_name(message)
    if name is None:
        trimmed = message.strip()
        if trimmed and len(trimmed) < SIMPLE_NAME_MAX_LENGTH and not any(c.isspace() for c in trimmed):
            name = trimmed.rstrip(".,!?") or None
    return UserFacts(name=name, topics=set(extract_topics(message)))


def is_question(message: str) -> bool:
    """Heuristic: contains a question mark or opens with how/what/why."""
    lowered = message.strip().lower()
    return "?" in message or lowered.startswith(QUESTION_PREFIXES)


def detect_language(message: str) -> str | None:
    """Guess a language from common phrases. None means 'assume English'."""
    for code, pattern in LANGUAGE_PATTERNS:
        if pattern.search(message):
            return code
    return None


def extract_profile_facts(message: str) -> dict[str, str]:
    """Pull free-form profile facts (favourite colour/food, location)."""
    facts: dict[str, str] = {}
    lowered = message.lower()
    for key, triggers, pattern in PROFILE_PATTERNS:
        if triggers and not any(t in lowered for t in triggers):
            continue
        match = pattern.search(message)
        if match and match.group(1).strip():
            value = match.group(1).strip()
            facts[key] = value.lower() if key == "favorite_color" else value
    return facts


def apply_user_facts(session: Session, message: str) -> dict:
    """Compute the updated user context for a new message.

    Topics are merged without duplicates, the first topic found becomes the
    last topic, and question-like messages are appended to the question log.

    Args:
        session: Current session (not mutated).
        message: Raw user text.

    Returns:
        Dict of UserInfo fields to merge via SessionStore.update_user_info.
    """
    current = session.user_info.context
    topics = extract_topics(message)
    context = current.model_copy(deep=True)

    if topics:
        context.last_topic = topics[0]
        for topic in topics:
            if topic not in context.topics:
                context.topics.append(topic)

    if is_question(message):
        context.questions.append(message)

    update: dict = {"context": context}
    if not session.user_info.language:
        detected = detect_language(message)
        if detected:
            update["language"] = detected

    logger.debug("context.facts_applied", session_id=session.session_id,
                 topics=topics, language=update.get("language"))
    return update


def _format_turn(message: Message) -> str:
    speaker = "User" if message.sender == "user" else ASSISTANT_NAME
    return f"{speaker}: {message.text}"


def build_context(
    session: Session,
    new_message: str,
    is_quick_reply: bool = False,
    max_messages: int = MAX_CONTEXT_MESSAGES,
) -> str:
    """Compose the context string for a model call.

    Args:
        session: Session whose history and user facts personalize the prompt.
        new_message: The user turn being answered.
        is_quick_reply: True when the turn came from a quick-reply button.
        max_messages: How many recent history messages to include.

    Returns:
        Persona and personalization instructions, recent history and an
        open continuation cue for the assistant.
    """
    info = session.user_info
    context = PERSONA_INSTRUCTION + FORMATTING_NOTICE

    if is_quick_reply:
        context += (
            " This message is from a quick reply button, NOT a new user introducing themselves."
            ' DO NOT respond with "Nice to meet you" phrases or treat the message text as a name.'
        )
        if info.name:
            context += f' The user\'s name is ONLY "{info.name}", not any part of their current message.'

    if info.name:
        if len(session.messages) <= FIRST_INTERACTION_MAX_MESSAGES:
            context += (
                f" You're talking to {info.name}. This is your FIRST conversation with them."
                ' Use "Nice to meet you" instead of "Nice to talk to you again" when greeting them.'
            )
        else:
            context += (
                f" You're talking to {info.name}. Address them by name occasionally"
                " and do not greet them again."
            )

    if info.context.topics:
        context += f" The user has previously asked about: {', '.join(info.context.topics)}."
    if info.context.last_topic:
        context += f" Their most recent topic of interest was {info.context.last_topic}."

    if info.language and info.language != "en":
        context += f" Respond only in {language_name(info.language)} language."

    # Model history holds only real exchanges: no reaction acks, no locally generated notices.
    history = [m for m in session.messages if not (m.is_reaction_response or m.is_local_notice)]
    recent = history[-max_messages:] if max_messages else []
    if recent:
        turns = "\n".join(_format_turn(m) for m in recent)
        context += f"\n\nConversation history:\n{turns}"

    context += f"\n\nUser: {new_message}\n{ASSISTANT_NAME}:"
    return context
