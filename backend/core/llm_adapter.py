"""LLM adapter with Cerebras → Groq failover.

Cerebras is the primary (fast inference). On timeout, 5xx or 429 it falls back
to Groq. Other 4xx errors fail immediately; a bad request stays bad on a
different provider.
"""

import os

import structlog
from httpx import HTTPStatusError, ReadTimeout
from langchain_cerebras import ChatCerebras
from langchain_core.messages import BaseMessage, HumanMessage
from langchain_groq import ChatGroq

logger = structlog.get_logger(__name__)


class LLMError(Exception):
    """Non-retryable LLM error (e.g. 4xx bad request)."""
    pass


class LLMRateLimitError(LLMError):
    """Every provider answered 429."""
    pass


class LLMUnavailableError(Exception):
    """Both providers are down or timing out."""
    pass


def _status_code(error: Exception) -> int | None:
    """HTTP status of a provider error, if it carries one.

    Provider SDKs either raise httpx errors or their own APIStatusError with
    a `status_code` attribute.
    """
    if isinstance(error, HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


class LLMAdapter:
    """Wraps Cerebras + Groq with automatic failover."""

    def __init__(self):
        self.cerebras_key = os.environ.get("CEREBRAS_API_KEY", "")
        self.groq_key = os.environ.get("GROQ_API_KEY", "")

        self.cerebras_model_name = os.environ.get("CEREBRAS_MODEL", "gpt-oss-120b")
        self.groq_model_name = os.environ.get("GROQ_MODEL", "openai/gpt-oss-120b")

        self.temperature = float(os.environ.get("LLM_TEMPERATURE", "0.7"))
        self.max_tokens = int(os.environ.get("LLM_MAX_TOKENS", "1024"))
        self.timeout = int(os.environ.get("LLM_TIMEOUT", "30"))

        self.primary_llm = ChatCerebras(
            api_key=self.cerebras_key,
            model=self.cerebras_model_name,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )

        self.fallback_llm = ChatGroq(
            api_key=self.groq_key,
            model=self.groq_model_name,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )

    def is_healthy(self) -> bool:
        """Check if at least one provider has a key configured.

        Returns:
            True if either Cerebras or Groq API key is set.
        """
        return bool(self.cerebras_key) or bool(self.groq_key)

    def invoke_with_failover(self, messages: list[BaseMessage]) -> BaseMessage:
        """Try Cerebras first, fall back to Groq on timeout/5xx/429.

        Args:
            messages: List of LangChain message objects to send.

        Returns:
            AI response message from whichever provider succeeds.

        Raises:
            LLMError: If Cerebras returns a non-429 4xx (no fallback attempted).
            LLMRateLimitError: If both providers answer 429.
            LLMUnavailableError: If both providers fail otherwise.
        """
        logger.debug("llm.invoke", provider="cerebras", model=self.cerebras_model_name)
        primary_rate_limited = False

        try:
            return self.primary_llm.invoke(messages)

        except ReadTimeout:
            logger.warning("llm.timeout_fallback", threshold=self.timeout)

        except Exception as e:
            status = _status_code(e)
            if status == 429:
                primary_rate_limited = True
                logger.warning("llm.429_fallback")
            elif status is not None and 400 <= status < 500:
                logger.error("llm.4xx", status=status)
                raise LLMError(f"Cerebras API rejected request ({status}): {e}")
            elif status is not None:
                logger.warning("llm.5xx_fallback", status=status)
            else:
                logger.warning("llm.unknown_fallback", error=str(e))

        # Fallback to Groq
        logger.info("llm.groq_fallback", model=self.groq_model_name)
        try:
            response = self.fallback_llm.invoke(messages)
            logger.info("llm.groq_ok")
            return response

        except Exception as e:
            if primary_rate_limited and _status_code(e) == 429:
                logger.error("llm.rate_limited")
                raise LLMRateLimitError(f"Both providers are rate limited: {e}")
            logger.error("llm.both_failed", error=str(e))
            raise LLMUnavailableError(f"Both primary and fallback LLMs failed: {e}")

    def generate(self, prompt: str) -> str:
        """Single-turn completion for a fully composed prompt.

        Args:
            prompt: Prompt text, context included.

        Returns:
            The reply text (empty string if the model sent none).
        """
        response = self.invoke_with_failover([HumanMessage(content=prompt)])
        content = response.content
        if isinstance(content, list):
            content = "".join(
                part if isinstance(part, str) else part.get("text", "")
                for part in content
            )
        return content or ""
