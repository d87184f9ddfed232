"""HTTP client for the backend relay.

Never raises to the caller: transport and parse failures become a degraded
TextResult carrying a generic apology, rate limits become a RateLimitSignal,
and suggestion/translation calls fall back to fixed values.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import structlog

from widget.schemas import GeneratePayload, RateLimitSignal, RelayResult, TextResult

logger = structlog.get_logger(__name__)

GENERIC_FAILURE_TEXT = "I'm sorry, I encountered an error. Please try again later."
RATE_LIMIT_TEXT = "Rate limit exceeded. Please try again later."
DEFAULT_SUGGESTIONS = ["Tell me more", "Thanks for the info"]
DEFAULT_RETRY_AFTER = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_next_available(value, fallback: datetime) -> datetime:
    """Parse the relay's nextAvailableTime (ISO-8601, possibly with a trailing Z)."""
    if not isinstance(value, str) or not value:
        return fallback
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return fallback
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class RelayClient:
    """Talks to POST /generate, /suggestions, /translate and GET /health."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._clock = clock

    def _client(self) -> httpx.AsyncClient:
        # One client per call keeps the relay usable from any event loop.
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    def _rate_limit_signal(self, data) -> RateLimitSignal:
        fallback = self._clock() + DEFAULT_RETRY_AFTER
        if not isinstance(data, dict):
            return RateLimitSignal(message=RATE_LIMIT_TEXT, next_available_time=fallback)
        return RateLimitSignal(
            message=data.get("message") or RATE_LIMIT_TEXT,
            next_available_time=_parse_next_available(data.get("nextAvailableTime"), fallback),
        )

    async def send(self, payload: GeneratePayload) -> RelayResult:
        """Send a composed prompt to the relay.

        Args:
            payload: Prompt, context and conversation-phase flags.

        Returns:
            TextResult with the model text verbatim, RateLimitSignal on a
            429 / rate-limit body, or a degraded TextResult on any other
            failure.
        """
        logger.debug("relay.send", session_id=payload.session_id, quick_reply=payload.is_quick_reply)
        try:
            async with self._client() as client:
                response = await client.post("/generate", json=payload.model_dump(by_alias=True))

            if response.status_code == 429:
                try:
                    body = response.json()
                except ValueError:
                    body = None
                logger.warning("relay.rate_limited", session_id=payload.session_id)
                return self._rate_limit_signal(body)

            response.raise_for_status()
            data = response.json()

            if isinstance(data, dict) and data.get("isRateLimitError"):
                logger.warning("relay.rate_limited", session_id=payload.session_id)
                return self._rate_limit_signal(data)

            text = data.get("text") if isinstance(data, dict) else None
            if not isinstance(text, str):
                raise ValueError("relay response has no text field")
            return TextResult(text=text)

        except httpx.TimeoutException:
            logger.error("relay.timeout", threshold=self.timeout)
        except httpx.HTTPStatusError as e:
            logger.error("relay.http_error", status=e.response.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("relay.failed", error=str(e))

        return TextResult(text=GENERIC_FAILURE_TEXT, degraded=True)

    async def suggestions(self, last_message: str, session_id: str, language: str = "en") -> list[str]:
        """Fetch two short follow-up replies for the last bot message."""
        try:
            async with self._client() as client:
                response = await client.post("/suggestions", json={
                    "lastMessage": last_message,
                    "sessionId": session_id,
                    "language": language,
                })
            response.raise_for_status()
            suggestions = response.json().get("suggestions")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error("relay.suggestions_failed", error=str(e))
            return list(DEFAULT_SUGGESTIONS)

        if (
            isinstance(suggestions, list)
            and len(suggestions) >= 2
            and all(isinstance(s, str) and s.strip() for s in suggestions[:2])
        ):
            return [s.strip() for s in suggestions[:2]]
        return list(DEFAULT_SUGGESTIONS)

    async def translate(self, text: str, target_language: str) -> str:
        """Translate text; the original text comes back on any failure."""
        try:
            async with self._client() as client:
                response = await client.post("/translate", json={
                    "text": text,
                    "targetLanguage": target_language,
                })
            response.raise_for_status()
            translated = response.json().get("translatedText")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error("relay.translate_failed", language=target_language, error=str(e))
            return text
        return translated if isinstance(translated, str) and translated else text

    async def health(self) -> bool:
        """Liveness probe. True when the relay answers 200."""
        try:
            async with self._client() as client:
                response = await client.get("/health")
        except httpx.HTTPError as e:
            logger.warning("relay.unreachable", error=str(e))
            return False
        return response.status_code == 200
