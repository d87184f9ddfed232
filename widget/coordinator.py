"""Conversation coordinator: the widget's orchestration core.

Receives typed input, quick-reply clicks, reactions and language switches;
drives the session store, rate limiters and relay client; and publishes the
resulting message list to subscribed listeners.

All message-list mutations go through one asyncio.Lock. Network awaits
happen outside it, and a result is dropped when the session it belongs to
was cleared while the call was in flight.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Callable

import structlog
from pydantic import ValidationError

from widget.config import (
    LANGUAGE_KEY,
    MAX_MESSAGE_LENGTH,
    RATE_LIMIT_BANNER_KEY,
    SUPPORTED_LANGUAGES,
    WidgetConfig,
)
from widget.core.context_builder import apply_user_facts, build_context, extract_user_facts
from widget.core.heuristics import is_valid_name, looks_like_non_name
from widget.core.postprocess import rewrite_greeting_quirks
from widget.core.profile import UserProfileStore
from widget.core.rate_limiter import LanguageSwitchThrottle, RateLimiter
from widget.core.relay_client import RelayClient
from widget.core.session_store import SessionStore
from widget.core.storage import LocalStorage
from widget.responses import (
    APOLOGY_TEXT,
    CANNED_REPLIES,
    FALLBACK_QUICK_REPLIES,
    IDENTITY_TEXT,
    INTRO_QUICK_REPLIES,
    INVALID_NAME_TEXT,
    MESSAGE_TOO_LONG_TEXT,
    NAME_QUESTION_MARKERS,
    NAME_UNKNOWN_TEXT,
    NO_NAME_FOUND_TEXT,
    NOT_A_NAME_TEXT,
    OFFLINE_TEXT,
    REACTION_RESPONSES,
    full_greeting,
    nice_to_meet_you,
    quick_replies,
    rate_limit_wait_text,
    your_name_is,
)
from widget.schemas import (
    ExchangeState,
    GeneratePayload,
    Message,
    QuickReply,
    RateLimitBanner,
    RateLimitSignal,
    RateLimitStatus,
    Reaction,
    ReactionKind,
    Session,
    TextResult,
)

logger = structlog.get_logger(__name__)

# Name collection stops after this many user turns without a valid name.
NAME_COLLECTION_MAX_TURNS = 2

QUICK_REPLY_NOTE = (
    "\n(NOTE: This message is from a Quick Reply button click, not a new user introduction."
    " Do NOT respond with 'Nice to meet you' or treat this text as the user's name."
    " The user has already introduced themselves earlier in the conversation.)"
)

Listener = Callable[[list[Message]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatCoordinator:
    """Orchestrates one chat widget instance."""

    def __init__(
        self,
        store: SessionStore,
        rate_limiter: RateLimiter,
        language_throttle: LanguageSwitchThrottle,
        relay: RelayClient,
        storage: LocalStorage,
        profile: UserProfileStore | None = None,
        config: WidgetConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.language_throttle = language_throttle
        self.relay = relay
        self.storage = storage
        self.profile = profile or UserProfileStore(storage)
        self.config = config or WidgetConfig()
        self._clock = clock
        self._rng = rng or random.Random()

        self._lock = asyncio.Lock()
        self._listeners: list[Listener] = []
        self.online = True
        self.is_loading = False
        self.state = ExchangeState.IDLE

        self.language = self._load_language()
        self._banner = self._load_banner()
        self._session_id = self._new_session(self.profile.name).session_id

    # State loading / persistence

    def _load_language(self) -> str:
        saved = self.storage.get_json(LANGUAGE_KEY)
        if isinstance(saved, str) and saved in SUPPORTED_LANGUAGES:
            return saved
        return self.config.default_language

    def _load_banner(self) -> RateLimitBanner:
        saved = self.storage.get_json(RATE_LIMIT_BANNER_KEY)
        if saved is None:
            return RateLimitBanner()
        try:
            banner = RateLimitBanner.model_validate(saved)
        except ValidationError as e:
            logger.warning("coordinator.banner_corrupt", error=str(e))
            return RateLimitBanner()
        if not banner.is_limited or not banner.next_available or banner.next_available <= self._clock():
            self.storage.remove(RATE_LIMIT_BANNER_KEY)
            return RateLimitBanner()
        return banner

    def _set_banner(self, message: str, next_available: datetime, source: str) -> None:
        self._banner = RateLimitBanner(
            is_limited=True, message=message, next_available=next_available, source=source,
        )
        self.storage.set_json(RATE_LIMIT_BANNER_KEY, self._banner.model_dump(mode="json"))

    def _new_session(self, user_name: str | None) -> Session:
        session = self.store.create_session(greeting=full_greeting(self._clock(), user_name))
        self.store.update_user_info(session.session_id, name=user_name, language=self.language)
        return session

    # Read-only views

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def session(self) -> Session:
        return self.store.get_or_create(self._session_id)

    @property
    def messages(self) -> list[Message]:
        session = self.store.get(self._session_id)
        return list(session.messages) if session else []

    def banner(self) -> RateLimitBanner:
        """Current rate-limit banner; expires lazily once its time has passed."""
        banner = self._banner
        if banner.is_limited and (not banner.next_available or banner.next_available <= self._clock()):
            self._banner = RateLimitBanner()
            self.storage.remove(RATE_LIMIT_BANNER_KEY)
        return self._banner

    # Listeners and connectivity

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for message-list updates. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self) -> None:
        snapshot = self.messages
        for listener in list(self._listeners):
            listener(snapshot)

    def set_online(self, online: bool) -> None:
        if online != self.online:
            logger.info("coordinator.connectivity", online=online)
        self.online = online

    async def refresh_connectivity(self) -> bool:
        """Probe the relay and update the online flag."""
        self.set_online(await self.relay.health())
        return self.online

    # Message-list mutations (always under the lock)

    async def _append(self, session_id: str, text: str, sender: str, **fields) -> Message | None:
        async with self._lock:
            if session_id != self._session_id or self.store.get(session_id) is None:
                logger.info("coordinator.result_discarded", session_id=session_id)
                return None
            message = self.store.add_message(session_id, text, sender, **fields)
        self._publish()
        return message

    async def _append_notice(self, session_id: str, text: str, **fields) -> Message | None:
        """Append a locally generated bot message; it stays out of model context."""
        return await self._append(session_id, text, "bot", is_local_notice=True, **fields)

    def _finish(self, state: ExchangeState) -> ExchangeState:
        self.state = state
        return state

    def _awaiting_name(self, session: Session) -> bool:
        # A session without a name always opens by asking for one.
        if session.user_info.name:
            return False
        user_turns = sum(1 for m in session.messages if m.sender == "user")
        return user_turns < NAME_COLLECTION_MAX_TURNS

    # Entry points

    async def start(self) -> None:
        """Translate the opening greeting when a non-English language is stored."""
        if self.language == "en":
            return
        session_id = self._session_id
        greeting = self.messages[0] if self.messages else None
        if greeting is None:
            return
        translated = await self.translate_message(greeting.text, self.language)
        async with self._lock:
            if session_id == self._session_id:
                self.store.update_message(session_id, greeting.id, text=translated)
        self._publish()

    async def send_message(self, text: str) -> ExchangeState:
        """Handle text typed by the user.

        Args:
            text: Raw input.

        Returns:
            Final state of the exchange.
        """
        text = text.strip()
        if not text:
            return self.state
        session_id = self._session_id

        if not self.online:
            await self._append_notice(session_id, OFFLINE_TEXT)
            return self._finish(ExchangeState.ERRORED)

        if len(text) > MAX_MESSAGE_LENGTH:
            logger.info("coordinator.message_too_long", length=len(text))
            await self._append_notice(session_id, MESSAGE_TOO_LONG_TEXT.format(limit=MAX_MESSAGE_LENGTH))
            return self._finish(ExchangeState.ERRORED)

        async with self._lock:
            awaiting_name = self._awaiting_name(self.session)
            user_message = self.store.add_message(session_id, text, "user")
        self._publish()
        self.profile.record_message(text)

        limited = await self._banner_gate(session_id)
        if limited is not None:
            return limited

        self.is_loading = True
        try:
            if awaiting_name:
                return await self._collect_name(session_id, text)

            special = await self._answer_special_question(session_id, text)
            if special is not None:
                return special

            return await self._remote_exchange(session_id, text, user_message.id, is_quick_reply=False)
        except Exception as e:
            logger.error("coordinator.send_failed", error=str(e))
            await self._append_notice(session_id, APOLOGY_TEXT)
            return self._finish(ExchangeState.ERRORED)
        finally:
            self.is_loading = False

    async def select_quick_reply(self, trigger_text: str) -> ExchangeState:
        """Handle a quick-reply click; the text is dispatched as a flagged user turn."""
        session_id = self._session_id

        if not self.online:
            await self._append_notice(session_id, OFFLINE_TEXT)
            return self._finish(ExchangeState.ERRORED)

        user_message = await self._append(session_id, trigger_text, "user", is_quick_reply=True)
        if user_message is None:
            return self._finish(ExchangeState.IDLE)

        limited = await self._banner_gate(session_id)
        if limited is not None:
            return limited

        self.is_loading = True
        try:
            if trigger_text in CANNED_REPLIES:
                return await self._canned_reply(session_id, trigger_text)
            return await self._remote_exchange(session_id, trigger_text, user_message.id, is_quick_reply=True)
        except Exception as e:
            logger.error("coordinator.quick_reply_failed", error=str(e))
            await self._append_notice(session_id, APOLOGY_TEXT)
            return self._finish(ExchangeState.ERRORED)
        finally:
            self.is_loading = False

    async def _banner_gate(self, session_id: str) -> ExchangeState | None:
        """Refuse a turn while a relay rate limit is in force. None means 'go ahead'."""
        banner = self.banner()
        if not (banner.is_limited and banner.source == "api"):
            return None
        # Acknowledged, not retried later.
        await self._append_notice(session_id, rate_limit_wait_text(banner.seconds_left(self._clock())))
        return self._finish(ExchangeState.RATE_LIMITED)

    async def _canned_reply(self, session_id: str, trigger_text: str) -> ExchangeState:
        text, replies = CANNED_REPLIES[trigger_text]
        await self._append_notice(session_id, text, quick_replies=list(replies))
        return self._finish(ExchangeState.DELIVERED)

    async def _collect_name(self, session_id: str, text: str) -> ExchangeState:
        """Name-collection phase: validate and commit a name, or ask again."""
        if looks_like_non_name(text):
            await self._append_notice(session_id, NOT_A_NAME_TEXT)
            return self._finish(ExchangeState.DELIVERED)

        name = extract_user_facts(text).name
        if not name:
            await self._append_notice(session_id, NO_NAME_FOUND_TEXT)
            return self._finish(ExchangeState.DELIVERED)

        if not is_valid_name(name):
            logger.info("coordinator.name_rejected", length=len(name))
            await self._append_notice(session_id, INVALID_NAME_TEXT)
            return self._finish(ExchangeState.DELIVERED)

        async with self._lock:
            if session_id != self._session_id:
                return self._finish(ExchangeState.IDLE)
            session = self.store.update_user_info(session_id, name=name)
            self.store.update_user_info(session_id, **apply_user_facts(session, text))
        self.profile.set_name(name)
        logger.info("coordinator.name_committed", session_id=session_id)

        await self._append_notice(session_id, nice_to_meet_you(name), quick_replies=list(INTRO_QUICK_REPLIES))
        return self._finish(ExchangeState.DELIVERED)

    async def _answer_special_question(self, session_id: str, text: str) -> ExchangeState | None:
        """Identity questions and typed feature requests. None means 'not special'."""
        lower = text.lower()

        if "what" in lower and ("my name" in lower or "call me" in lower):
            name = self.session.user_info.name
            await self._append_notice(session_id, your_name_is(name) if name else NAME_UNKNOWN_TEXT)
            return self._finish(ExchangeState.DELIVERED)

        if "who are you" in lower or ("what" in lower and "your name" in lower):
            await self._append_notice(session_id, IDENTITY_TEXT)
            return self._finish(ExchangeState.DELIVERED)

        for trigger in CANNED_REPLIES:
            if lower == trigger.lower():
                return await self._canned_reply(session_id, trigger)

        return None

    async def _rate_limited(self, session_id: str, message: str, next_available: datetime) -> ExchangeState:
        self._set_banner(message, next_available, source="api")
        await self._append_notice(session_id, message)
        return self._finish(ExchangeState.RATE_LIMITED)

    async def _remote_exchange(
        self, session_id: str, prompt: str, user_message_id: str, is_quick_reply: bool,
    ) -> ExchangeState:
        """Gate, compose, call the relay and deliver the reply.

        The local limiter is consulted first; a blocked call is never
        dispatched, so a backend 429 can only follow a locally permitted call.
        """
        self.state = ExchangeState.AWAITING_RESPONSE

        status = self.rate_limiter.check_limit()
        if not status.can_proceed:
            return await self._rate_limited(session_id, status.message, status.next_available_time)
        self.rate_limiter.increment_counter()

        async with self._lock:
            session = self.store.get(session_id)
            if session is None or session_id != self._session_id:
                return self._finish(ExchangeState.IDLE)
            session = self.store.update_user_info(session_id, **apply_user_facts(session, prompt))
            history = session.model_copy(
                update={"messages": [m for m in session.messages if m.id != user_message_id]}
            )
            user_name = session.user_info.name
            is_first_interaction = len(session.messages) <= 2
            enhanced_prompt = prompt + QUICK_REPLY_NOTE if is_quick_reply else prompt
            payload = GeneratePayload(
                prompt=prompt,
                session_id=session_id,
                is_quick_reply=is_quick_reply,
                language=self.language,
                context=build_context(history, prompt, is_quick_reply, self.config.context_max_messages),
                enhanced_prompt=enhanced_prompt,
                enhanced_context=build_context(
                    history, enhanced_prompt, is_quick_reply, self.config.context_max_messages,
                ),
                is_first_interaction=is_first_interaction,
                has_just_provided_name=bool(user_name) and len(session.messages) <= 4,
            )

        result = await self.relay.send(payload)

        if isinstance(result, RateLimitSignal):
            return await self._rate_limited(session_id, result.message, result.next_available_time)
        if not isinstance(result, TextResult):
            raise TypeError(f"Unexpected relay result: {result!r}")

        if result.degraded:
            await self._append_notice(session_id, result.text)
            return self._finish(ExchangeState.ERRORED)

        text = rewrite_greeting_quirks(
            result.text, prompt, is_quick_reply, is_first_interaction, user_name,
        )
        replies = await self._quick_replies_for(text, session_id)
        delivered = await self._append(session_id, text, "bot", quick_replies=replies)
        if delivered is None:
            return self._finish(ExchangeState.IDLE)
        logger.info("coordinator.delivered", session_id=session_id, quick_reply=is_quick_reply)
        return self._finish(ExchangeState.DELIVERED)

    async def _quick_replies_for(self, text: str, session_id: str) -> list[QuickReply]:
        """Follow-up buttons for a bot reply; suggestions are rate-limited on their own."""
        if any(marker in text for marker in NAME_QUESTION_MARKERS):
            return []
        if "Nice to meet you" in text and "How can I help you today" in text:
            return list(INTRO_QUICK_REPLIES)
        if self.banner().is_limited:
            return list(FALLBACK_QUICK_REPLIES)

        status = self.rate_limiter.check_limit()
        if not status.can_proceed:
            return list(FALLBACK_QUICK_REPLIES)
        self.rate_limiter.increment_counter()

        try:
            suggestions = await self.relay.suggestions(text, session_id, self.language)
        except Exception as e:
            logger.error("coordinator.suggestions_failed", error=str(e))
            return list(FALLBACK_QUICK_REPLIES)
        return quick_replies(*((s, s) for s in suggestions))

    # Reactions

    async def toggle_reaction(self, message_id: str, kind: ReactionKind) -> Message | None:
        """Set, switch or clear the user's reaction on a bot message.

        Only one user reaction per message is kept. Its acknowledgement
        message is replaced on a switch and removed when the reaction is
        toggled off.

        Returns:
            The updated message, or None if it is not a reactable bot message.
        """
        async with self._lock:
            session_id = self._session_id
            session = self.store.get(session_id)
            target = next((m for m in session.messages if m.id == message_id), None) if session else None
            if target is None or target.sender != "bot" or target.is_reaction_response:
                return None

            previous = target.user_reaction
            reactions = {k: v for k, v in target.reactions.items() if not v.user_added}

            for ack in [m for m in session.messages if m.is_reaction_response and m.parent_message_id == message_id]:
                self.store.remove_message(session_id, ack.id)

            if previous != kind:
                existing = reactions.get(kind)
                reactions[kind] = Reaction(count=(existing.count + 1) if existing else 1, user_added=True)

            updated = self.store.update_message(session_id, message_id, reactions=reactions)

            if previous != kind:
                self.store.add_message(
                    session_id,
                    self._rng.choice(REACTION_RESPONSES[kind]),
                    "bot",
                    is_reaction_response=True,
                    parent_message_id=message_id,
                )
        logger.debug("coordinator.reaction", message_id=message_id, kind=kind, previous=previous)
        self._publish()
        return updated

    # Language

    async def translate_message(self, text: str, language: str) -> str:
        """Translate one text; the original comes back if anything fails."""
        try:
            return await self.relay.translate(text, language)
        except Exception as e:
            logger.error("coordinator.translate_failed", language=language, error=str(e))
            return text

    async def _translate_one(self, message: Message, language: str) -> tuple[str, str, list[QuickReply]]:
        text_task = self.translate_message(message.text, language)
        label_tasks = [self.translate_message(r.label, language) for r in message.quick_replies]
        text, *labels = await asyncio.gather(text_task, *label_tasks)
        replies = [r.model_copy(update={"label": label}) for r, label in zip(message.quick_replies, labels)]
        return message.id, text, replies

    async def switch_language(self, language: str) -> RateLimitStatus:
        """Switch the conversation language, translating existing messages.

        Messages the user typed themselves keep their original wording; bot
        messages, quick-reply turns and quick-reply labels are translated.

        Args:
            language: ISO-639-1 code from SUPPORTED_LANGUAGES.

        Returns:
            The throttle decision; a refusal is also shown on the banner.

        Raises:
            ValueError: For a language code the widget does not offer.
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        if language == self.language:
            return RateLimitStatus(can_proceed=True)

        status = self.language_throttle.try_switch()
        if not status.can_proceed:
            self._set_banner(status.message, status.next_available_time, source="language")
            return status

        self.language = language
        self.storage.set_json(LANGUAGE_KEY, language)
        logger.info("coordinator.language_switched", language=language)

        async with self._lock:
            session_id = self._session_id
            self.store.update_user_info(session_id, language=language)
            eligible = [
                m for m in self.messages
                if not (m.sender == "user" and not m.is_quick_reply)
            ]

        self.is_loading = True
        try:
            translated = await asyncio.gather(*(self._translate_one(m, language) for m in eligible))
            async with self._lock:
                if session_id == self._session_id:
                    for message_id, text, replies in translated:
                        self.store.update_message(session_id, message_id, text=text, quick_replies=replies)
        finally:
            self.is_loading = False
        self._publish()
        return status

    # Session lifecycle

    async def clear_chat(self) -> Session:
        """Drop the conversation and start a fresh one that asks for the name again.

        Results of calls still in flight for the old session are discarded.
        """
        async with self._lock:
            self.store.clear(self._session_id)
            self.profile.clear()
            session = self._new_session(None)
            self._session_id = session.session_id
        self._publish()

        if self.language != "en":
            await self.start()
        return self.session


def build_coordinator(config: WidgetConfig | None = None) -> ChatCoordinator:
    """Wire a coordinator and its collaborators from configuration."""
    config = config or WidgetConfig.from_env()
    storage = LocalStorage(config.storage_url)
    return ChatCoordinator(
        store=SessionStore(),
        rate_limiter=RateLimiter(
            storage,
            max_requests_per_minute=config.max_requests_per_minute,
            max_requests_per_day=config.max_requests_per_day,
        ),
        language_throttle=LanguageSwitchThrottle(storage),
        relay=RelayClient(config.api_url, timeout=config.response_timeout),
        storage=storage,
        config=config,
    )
