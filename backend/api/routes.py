"""FastAPI endpoints for the IntelliBuddy relay.

POST /generate - run a composed prompt through the model
POST /suggestions - two short follow-up replies
POST /translate - translate a message
GET /health - component health check
"""

import time
from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from backend.api.schemas import (
    GenerateRequest,
    GenerateResponse,
    RateLimitResponse,
    SuggestionsRequest,
    SuggestionsResponse,
    TranslateRequest,
    TranslateResponse,
)
from backend.core.llm_adapter import LLMRateLimitError
from backend.core.postprocess import rewrite_reply
from backend.core.prompts import (
    DEFAULT_SUGGESTIONS,
    build_suggestions_prompt,
    build_translate_prompt,
    parse_suggestions,
)

logger = structlog.get_logger(__name__)

router = APIRouter()

OFFLINE_TEXT = "You appear to be offline. Please check your internet connection and try again."
APOLOGY_TEXT = "I'm sorry, I encountered an error. Please try again later."
RATE_LIMIT_TEXT = "Rate limit exceeded. Please try again later."
RATE_LIMIT_RETRY = timedelta(seconds=60)


def rate_limit_response(message: str, next_available: datetime) -> JSONResponse:
    """429 response in the shape the widget recognizes."""
    body = RateLimitResponse(message=message, next_available_time=next_available)
    return JSONResponse(status_code=429, content=body.model_dump(mode="json", by_alias=True))


@router.post("/generate", response_model=GenerateResponse)
def generate(request: GenerateRequest, req: Request):
    """Generate a reply: offline check -> model call -> greeting rewrite -> respond."""
    start = time.monotonic()
    session_id = request.session_id or "new-session"

    if request.offline:
        return GenerateResponse(text=OFFLINE_TEXT, session_id=session_id)

    logger.info("generate.request", session_id=session_id, quick_reply=request.is_quick_reply,
                prompt_len=len(request.prompt))

    llm = req.app.state.llm_adapter
    final_context = request.enhanced_context or request.context or request.prompt

    try:
        text = llm.generate(final_context)
    except LLMRateLimitError as e:
        logger.warning("generate.rate_limited", session_id=session_id, error=str(e))
        return rate_limit_response(RATE_LIMIT_TEXT, datetime.now(timezone.utc) + RATE_LIMIT_RETRY)
    except Exception as e:
        logger.error("generate.failed", session_id=session_id, error=str(e))
        return GenerateResponse(text=APOLOGY_TEXT, session_id=session_id)

    text = rewrite_reply(text, request.prompt, request.is_quick_reply, request.is_first_interaction)

    latency_ms = int((time.monotonic() - start) * 1000)
    logger.info("generate.response", session_id=session_id, latency_ms=latency_ms)
    return GenerateResponse(text=text, session_id=session_id)


@router.post("/suggestions", response_model=SuggestionsResponse)
def suggestions(request: SuggestionsRequest, req: Request):
    """Two follow-up replies for the last assistant message."""
    llm = req.app.state.llm_adapter
    try:
        raw = llm.generate(build_suggestions_prompt(request.last_message, request.language))
    except Exception as e:
        logger.error("suggestions.failed", error=str(e))
        return SuggestionsResponse(suggestions=list(DEFAULT_SUGGESTIONS))

    parsed = parse_suggestions(raw)
    if parsed == DEFAULT_SUGGESTIONS:
        logger.warning("suggestions.unparsable", raw_preview=raw[:200])
    return SuggestionsResponse(suggestions=parsed)


@router.post("/translate", response_model=TranslateResponse)
def translate(request: TranslateRequest, req: Request):
    """Translate text; the original text comes back on failure."""
    llm = req.app.state.llm_adapter
    try:
        translated = llm.generate(build_translate_prompt(request.text, request.target_language)).strip()
    except Exception as e:
        logger.error("translate.failed", language=request.target_language, error=str(e))
        return TranslateResponse(translated_text=request.text)
    return TranslateResponse(translated_text=translated or request.text)


@router.get("/health")
def health(req: Request):
    """Check health of all backend components."""
    llm = req.app.state.llm_adapter
    components = {
        "cerebras": "ok" if llm.cerebras_key else "error",
        "groq": "ok" if llm.groq_key else "error",
    }

    errors = [k for k, v in components.items() if v == "error"]
    if not errors:
        status = "healthy"
    elif len(errors) == len(components):
        status = "unhealthy"
    else:
        status = "degraded"

    return {"status": status, "components": components, "hasApiKey": llm.is_healthy()}


@router.get("/")
@router.head("/")
def root_health():
    """Basic root health check for deployment platforms like Render."""
    return {"status": "ok", "service": "intellibuddy-api"}
