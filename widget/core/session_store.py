"""In-memory store for conversation sessions.

One instance is constructed at startup and handed to the coordinator.
Unknown session ids are never an error: `get_or_create` silently starts a
new conversation, and only `clear` reports a missing id.
"""

from datetime import datetime, timezone
from itertools import count
from typing import Callable
from uuid import uuid4

import structlog

from widget.schemas import Message, Sender, Session, UserInfo

logger = structlog.get_logger(__name__)

DEFAULT_GREETING = "Hi there! I'm IntelliBuddy. What's your name?"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Owns session records keyed by session id."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._sessions: dict[str, Session] = {}
        self._clock = clock
        self._seq = count()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def _next_message_id(self) -> str:
        """Ids sort in creation order: millisecond timestamp, then a sequence number."""
        millis = int(self._clock().timestamp() * 1000)
        return f"{millis:013d}-{next(self._seq):06d}"

    def create_session(self, greeting: str | None = None) -> Session:
        """Create a session seeded with one bot greeting."""
        now = self._clock()
        session = Session(
            session_id=uuid4().hex,
            user_info=UserInfo(last_interaction=now),
        )
        session.messages.append(Message(
            id=self._next_message_id(),
            text=greeting or DEFAULT_GREETING,
            sender="bot",
            timestamp=now,
        ))
        self._sessions[session.session_id] = session
        logger.info("session.created", session_id=session.session_id)
        return session

    def get(self, session_id: str | None) -> Session | None:
        """Return a session without creating or touching it."""
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str | None = None) -> Session:
        """Return the session for `session_id`, or a brand-new one.

        An existing session has its last-interaction time refreshed.
        """
        session = self.get(session_id)
        if session is None:
            return self.create_session()
        session.user_info = session.user_info.model_copy(update={"last_interaction": self._clock()})
        return session

    def add_message(self, session_id: str | None, text: str, sender: Sender, **fields) -> Message:
        """Append a message, assigning its id and timestamp.

        Args:
            session_id: Target session; an unknown id starts a new session.
            text: Message body.
            sender: "user" or "bot".
            **fields: Optional Message fields (quick_replies, is_quick_reply, ...).

        Returns:
            The stored Message.
        """
        session = self.get_or_create(session_id)
        message = Message(
            id=self._next_message_id(),
            text=text,
            sender=sender,
            timestamp=self._clock(),
            **fields,
        )
        session.messages.append(message)
        return message

    def update_message(self, session_id: str, message_id: str, **fields) -> Message | None:
        """Replace a message with a copy carrying the updated fields.

        Position in the list is kept. Returns None if either id is unknown.
        """
        session = self.get(session_id)
        if session is None:
            return None
        for index, message in enumerate(session.messages):
            if message.id == message_id:
                updated = message.model_copy(update=fields)
                session.messages[index] = updated
                return updated
        return None

    def remove_message(self, session_id: str, message_id: str) -> bool:
        """Delete one message. Used for reaction acknowledgements only."""
        session = self.get(session_id)
        if session is None:
            return False
        before = len(session.messages)
        session.messages[:] = [m for m in session.messages if m.id != message_id]
        return len(session.messages) < before

    def update_user_info(self, session_id: str | None, **fields) -> Session:
        """Shallow-merge user info: given fields overwrite, omitted fields stay."""
        session = self.get_or_create(session_id)
        fields.setdefault("last_interaction", self._clock())
        session.user_info = session.user_info.model_copy(update=fields)
        return session

    def clear(self, session_id: str) -> bool:
        """Remove a session. False if it did not exist."""
        removed = self._sessions.pop(session_id, None) is not None
        logger.info("session.cleared", session_id=session_id, existed=removed)
        return removed
