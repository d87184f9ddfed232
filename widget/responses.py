"""Canned bot texts: greetings, feature summaries and reaction acknowledgements."""

from datetime import datetime

from widget.schemas import QuickReply, ReactionKind

TELL_ME_MORE_ABOUT = "Tell me more about IntelliBuddy"
WHAT_CAN_YOU_HELP = "What can you help me with?"
TELL_ME_MORE = "Tell me more"
THANKS_FOR_INFO = "Thanks for the info"

NAME_QUESTION_MARKERS = ("What's your name", "Could you please tell me your name")

NOT_A_NAME_TEXT = "That doesn't seem like a name. Could you please tell me your actual name?"
INVALID_NAME_TEXT = "That doesn't look like a name. Please tell me your name so I can address you properly."
NO_NAME_FOUND_TEXT = "I didn't catch your name. Could you please tell me what I should call you?"
NAME_UNKNOWN_TEXT = "I don't believe you've told me your name yet. What should I call you?"
IDENTITY_TEXT = "I'm IntelliBuddy, your AI assistant. How can I help you today?"
OFFLINE_TEXT = "You're currently offline. Please check your internet connection and try again."
APOLOGY_TEXT = "Sorry, I encountered an error. Please try again later."
MESSAGE_TOO_LONG_TEXT = "That message is too long. Please keep it under {limit} characters."

FEATURES_TEXT = """# IntelliBuddy Features

IntelliBuddy is an AI assistant backed by a hosted language model. It offers:

* **Context-Aware Conversations**: I remember our conversation history
* **Time-Based Personalized Greetings** that adjust to your local time
* **Multi-Language Support** for communication in 10+ languages
* **Smart Suggestions** based on conversation context
* **Message Reactions** for feedback (try the emoji reactions below!)
* **Rate-Limiting Awareness** for optimal experience
* **Offline Mode Detection** to maintain continuity
* **Personal Information Memory** across sessions
* **Markdown Rendering** for formatted responses

## How can I help you today?"""

SERVICES_TEXT = """## I can assist you with a variety of tasks:

* **Answering general knowledge questions**
* **Providing information on specific topics**
* **Explaining concepts and ideas**
* **Giving recommendations and suggestions**
* **Helping with creative tasks like writing and brainstorming**
* **Remembering our conversation context and your preferences**
* **Translating between languages**
* **Solving simple calculations and problems**

## I also offer these special features:

* **Time-Based Greetings** - Personalized greetings based on your local time
* **Message Reactions** - Express your feelings about responses with emoji reactions
* **Quick Reply Suggestions** - Smart contextual suggestions for faster interactions
* **Rate Limit Awareness** - Optimized experience that respects API usage limits
* **Offline Mode Detection** - Automatic notification when your connection is lost
* **Multi-Language Support** - Communication in 12 different languages

## What specific area would you like assistance with today?"""


def quick_replies(*pairs: tuple[str, str]) -> list[QuickReply]:
    return [QuickReply(label=label, trigger_text=trigger) for label, trigger in pairs]


# Replies answered locally, without a model call: trigger -> (text, follow-up quick replies)
CANNED_REPLIES = {
    TELL_ME_MORE_ABOUT: (FEATURES_TEXT, quick_replies(
        ("How do you remember context?", "How do you remember context?"),
        ("Tell me about language support", "Tell me about language support"),
    )),
    WHAT_CAN_YOU_HELP: (SERVICES_TEXT, quick_replies(
        ("General knowledge question", "I have a general knowledge question"),
        ("Help with writing", "I need help with writing something"),
    )),
}

INTRO_QUICK_REPLIES = quick_replies(
    (TELL_ME_MORE_ABOUT, TELL_ME_MORE_ABOUT),
    (WHAT_CAN_YOU_HELP, WHAT_CAN_YOU_HELP),
)

FALLBACK_QUICK_REPLIES = quick_replies(
    (TELL_ME_MORE, TELL_ME_MORE),
    (THANKS_FOR_INFO, THANKS_FOR_INFO),
)

REACTION_EMOJIS: dict[ReactionKind, str] = {
    "heart": "❤️",
    "laugh": "\U0001f602",
    "wow": "\U0001f62e",
    "smile": "\U0001f60a",
    "sad": "\U0001f622",
    "angry": "\U0001f620",
}

REACTION_RESPONSES: dict[ReactionKind, list[str]] = {
    "heart": [
        "I'm so glad you loved that! \U0001f970",
        "Thank you for the love! \U0001f970 Is there anything else you'd like to explore?",
        "I'm happy my response was helpful! ❤️",
    ],
    "laugh": [
        "Glad I could bring a smile to your face! \U0001f92d",
        "Happy to hear that was amusing! \U0001f606 Anything else you'd like to know?",
        "Always nice to share a laugh! \U0001f602",
    ],
    "smile": [
        "Glad that was helpful! \U0001f60a",
        "Thanks for the positive feedback! \U0001f60a",
        "I'm happy that was useful for you! \U0001f60a",
    ],
    "angry": [
        "I apologize if my response wasn't what you needed. How can I improve? \U0001f614",
        "I'm sorry that wasn't helpful. Could you let me know what you're looking for? \U0001f614",
        "I'll try to do better next time. What information would be more useful? \U0001f614",
    ],
    "sad": [
        "I'm sorry if my answer wasn't what you expected. \U0001f622 How can I help better?",
        "Let me try to improve on that. \U0001f622 What specific information are you looking for?",
        "I apologize if that wasn't helpful. \U0001f622 Please let me know how I can assist you better.",
    ],
    "wow": [
        "I'm glad you found that impressive! \U0001f62e",
        "Thank you! I aim to amaze! \U0001f62e",
        "Wow indeed! \U0001f92f If you have more questions, feel free to ask!",
    ],
}


def time_of_day(now: datetime) -> str:
    """morning 5-12, afternoon 12-17, evening 17-19, otherwise night."""
    hour = now.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 19:
        return "evening"
    return "night"


def full_greeting(now: datetime, user_name: str | None = None) -> str:
    """Opening message. Night-time greetings drop the time phrase."""
    period = time_of_day(now)
    prefix = "" if period == "night" else f"Good {period}! "

    if user_name:
        return f"{prefix}Welcome back, {user_name}. How can I help you today?"
    return (
        f"{prefix}I'm IntelliBuddy. What's your name and how can I help you today?\n\n"
        "Tip: You can select your preferred language before starting to chat!"
    )


def nice_to_meet_you(name: str) -> str:
    return f"Nice to meet you, {name}! How can I help you today?"


def rate_limit_wait_text(seconds: int) -> str:
    return f"Rate limit reached. Please wait {seconds} seconds before sending another message."


def your_name_is(name: str) -> str:
    return f"Your name is {name}. How can I help you today?"
