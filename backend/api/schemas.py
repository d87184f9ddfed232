"""Pydantic models for the API layer.

Request/response bodies use camelCase keys on the wire.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(CamelModel):
    """Composed prompt from the widget."""
    prompt: str = Field(..., min_length=1, max_length=2000, description="User text as typed")
    session_id: str | None = Field(None, alias="sessionId")
    is_quick_reply: bool = Field(False, alias="isQuickReply")
    language: str = "en"
    context: str | None = None
    enhanced_prompt: str | None = Field(None, alias="enhancedPrompt")
    enhanced_context: str | None = Field(None, alias="enhancedContext")
    is_first_interaction: bool = Field(False, alias="isFirstInteraction")
    has_just_provided_name: bool = Field(False, alias="hasJustProvidedName")
    offline: bool = False


class GenerateResponse(CamelModel):
    """Model reply, or an apology when generation failed."""
    text: str
    session_id: str = Field(alias="sessionId")


class RateLimitResponse(CamelModel):
    """429 body shared by the route and the throttle middleware."""
    is_rate_limit_error: bool = Field(True, alias="isRateLimitError")
    message: str
    next_available_time: datetime = Field(alias="nextAvailableTime")


class SuggestionsRequest(CamelModel):
    last_message: str = Field(..., alias="lastMessage")
    session_id: str | None = Field(None, alias="sessionId")
    language: str = "en"


class SuggestionsResponse(CamelModel):
    suggestions: list[str] = Field(..., min_length=2, max_length=2)


class TranslateRequest(CamelModel):
    text: str
    target_language: str = Field(..., alias="targetLanguage")


class TranslateResponse(CamelModel):
    translated_text: str = Field(alias="translatedText")
