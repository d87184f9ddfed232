"""Pydantic models for the widget client.

Sessions, messages and the payload/result types exchanged with the relay.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Sender = Literal["user", "bot"]
ReactionKind = Literal["heart", "laugh", "smile", "angry", "sad", "wow"]


class QuickReply(BaseModel):
    """A canned reply button offered under a bot message."""
    label: str
    trigger_text: str


class Reaction(BaseModel):
    """Reaction counter on a single message."""
    count: int = 1
    user_added: bool = False


class Message(BaseModel):
    """Single chat message. Copied on update, never edited in place."""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    sender: Sender
    timestamp: datetime
    quick_replies: list[QuickReply] = Field(default_factory=list)
    reactions: dict[ReactionKind, Reaction] = Field(default_factory=dict)
    is_quick_reply: bool = False
    is_reaction_response: bool = False
    is_local_notice: bool = False
    parent_message_id: str | None = None

    @property
    def user_reaction(self) -> ReactionKind | None:
        """The reaction kind the user set on this message, if any."""
        for kind, reaction in self.reactions.items():
            if reaction.user_added:
                return kind
        return None


class UserContext(BaseModel):
    """Facts accumulated from the user's messages."""
    topics: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    last_topic: str | None = None


class UserInfo(BaseModel):
    """What the assistant knows about the user in one session."""
    name: str | None = None
    language: str | None = None
    last_interaction: datetime
    context: UserContext = Field(default_factory=UserContext)


class Session(BaseModel):
    """One logical conversation."""
    session_id: str
    messages: list[Message] = Field(default_factory=list)
    user_info: UserInfo


class GeneratePayload(BaseModel):
    """Body of POST /generate, serialized with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    session_id: str = Field(alias="sessionId")
    is_quick_reply: bool = Field(False, alias="isQuickReply")
    language: str = "en"
    context: str
    enhanced_prompt: str = Field(alias="enhancedPrompt")
    enhanced_context: str = Field(alias="enhancedContext")
    is_first_interaction: bool = Field(False, alias="isFirstInteraction")
    has_just_provided_name: bool = Field(False, alias="hasJustProvidedName")


@dataclass
class TextResult:
    """Model text returned by the relay.

    Attributes:
        text: Reply text, verbatim from the relay.
        degraded: True when the text is a local failure notice rather than
            a model reply.
    """
    text: str
    degraded: bool = False
    kind: Literal["text"] = "text"


@dataclass
class RateLimitSignal:
    """Relay reported that the model's rate limit was hit."""
    message: str
    next_available_time: datetime
    kind: Literal["rate_limit"] = "rate_limit"


RelayResult = TextResult | RateLimitSignal


@dataclass
class RateLimitStatus:
    """Outcome of a local rate-limit check."""
    can_proceed: bool
    next_available_time: datetime | None = None
    message: str | None = None


class RateLimitBanner(BaseModel):
    """The single user-facing rate-limit indicator."""
    is_limited: bool = False
    message: str = ""
    next_available: datetime | None = None
    source: Literal["api", "language"] = "api"

    def seconds_left(self, now: datetime) -> int:
        """Whole seconds until the banner expires (never negative)."""
        if not self.next_available:
            return 0
        remaining = (self.next_available - now).total_seconds()
        return max(0, math.ceil(remaining))


class ExchangeState(str, Enum):
    """Lifecycle of a single user exchange."""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    DELIVERED = "delivered"
    RATE_LIMITED = "rate_limited"
    ERRORED = "errored"
