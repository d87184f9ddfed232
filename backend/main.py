"""FastAPI application entry point.

Startup sequence: init LLM adapter → serve relay routes.
"""

import json
import os
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request as StarletteRequest

from backend.api.routes import rate_limit_response, router
from backend.core.llm_adapter import LLMAdapter

load_dotenv()

logger = structlog.get_logger(__name__)

RATE_LIMIT_WINDOW = 60.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("startup.begin")

    llm_adapter = LLMAdapter()
    app.state.llm_adapter = llm_adapter
    if llm_adapter.is_healthy():
        logger.info("startup.llm_initialized", healthy=True)
    else:
        logger.error("startup.llm_unconfigured", hint="Set CEREBRAS_API_KEY or GROQ_API_KEY in .env")

    logger.info("startup.complete")
    yield
    logger.info("shutdown.complete")


app = FastAPI(
    title="IntelliBuddy API",
    description="Relay between the IntelliBuddy chat widget and the language model",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for the widget frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.environ.get("FRONTEND_URL", "*")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiter: per-session request throttling
RATE_LIMIT = int(os.environ.get("RATE_LIMIT_PER_MIN", "15"))
_rate_buckets: dict[str, list[float]] = defaultdict(list)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Enforce per-session rate limiting on /generate."""
    if request.url.path != "/generate" or request.method != "POST":
        return await call_next(request)

    # Read request body to extract sessionId
    body = await request.body()
    try:
        data = json.loads(body)
        session_id = data.get("sessionId") or "unknown"
    except (ValueError, AttributeError):
        session_id = "unknown"

    now = time.time()

    # Prune timestamps older than the window; drop emptied buckets
    for key in list(_rate_buckets):
        _rate_buckets[key] = [t for t in _rate_buckets[key] if now - t < RATE_LIMIT_WINDOW]
        if not _rate_buckets[key]:
            del _rate_buckets[key]
    window = _rate_buckets[session_id]

    if len(window) >= RATE_LIMIT:
        logger.warning("rate_limit.exceeded", session_id=session_id)
        next_available = datetime.fromtimestamp(window[0] + RATE_LIMIT_WINDOW, tz=timezone.utc)
        return rate_limit_response("Too many requests. Please wait a moment.", next_available)

    window.append(now)

    # Reconstruct the request with the already-read body
    async def receive_body():
        return {"type": "http.request", "body": body}

    request = StarletteRequest(request.scope, receive_body)
    return await call_next(request)


app.include_router(router)
