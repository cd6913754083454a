"""Chat service layer for the tutor endpoints.

Handles:
- Request validation and sanitization
- Content moderation before any completion call
- OpenAI chat completion with the locked system instructions
- Mapping provider errors to fixed HTTP statuses
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from app.config import settings
from app.core.instructions import build_messages
from app.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000
MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 1000
DEFAULT_MAX_TOKENS = 150
DEFAULT_TEMPERATURE = 0.7

FLAGGED_CONTENT_MESSAGE = (
    "Your message contains content that violates our usage policies. "
    "Please rephrase your question in a respectful and appropriate manner."
)

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")


class ChatValidationError(ValueError):
    """Raised when a chat request fails validation."""


class ContentFlaggedError(Exception):
    """Raised when moderation flags the user message."""

    def __init__(self, categories: list[str]):
        self.categories = categories
        super().__init__(FLAGGED_CONTENT_MESSAGE)


class ProviderError(Exception):
    """An LLM provider failure already mapped to an HTTP status."""

    def __init__(self, status_code: int, message: str, details: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


@dataclass
class ChatCompletionResult:
    """Text and accounting returned for one chat turn."""
    response: str
    model: str
    usage: Dict[str, Any] = field(default_factory=dict)


def _utf16_length(text: str) -> int:
    """Length in UTF-16 code units, as browsers count characters."""
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def validate_chat_request(message: Any, max_tokens: Any, temperature: Any) -> None:
    """
    Validate raw chat parameters.

    Raises:
        ChatValidationError: With a client-facing message for the first failed rule
    """
    if not isinstance(message, str) or not message.strip():
        raise ChatValidationError("Message is required")

    if _utf16_length(message) > MAX_MESSAGE_LENGTH:
        raise ChatValidationError(
            f"Message too long. Maximum {MAX_MESSAGE_LENGTH} characters allowed."
        )

    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or not (
        MIN_MAX_TOKENS <= max_tokens <= MAX_MAX_TOKENS
    ):
        raise ChatValidationError(
            f"maxTokens must be between {MIN_MAX_TOKENS} and {MAX_MAX_TOKENS}"
        )

    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)) or not (
        0 <= temperature <= 1
    ):
        raise ChatValidationError("temperature must be between 0 and 1")


def sanitize_message(message: str) -> str:
    """Strip script blocks, then any remaining HTML tags, then surrounding whitespace."""
    without_scripts = _SCRIPT_BLOCK.sub("", message)
    return _HTML_TAG.sub("", without_scripts).strip()


def map_provider_error(error: Exception) -> ProviderError:
    """Translate an OpenAI error into the fixed status the API reports."""
    code = getattr(error, "code", None)

    if code == "insufficient_quota":
        return ProviderError(402, "Insufficient OpenAI quota")
    if code == "invalid_api_key":
        return ProviderError(401, "Invalid OpenAI API key")
    if code == "rate_limit_exceeded":
        return ProviderError(429, "OpenAI rate limit exceeded")
    return ProviderError(500, "Internal server error", details=str(error))


def _usage_dict(usage: Any) -> Dict[str, Any]:
    if usage is None:
        return {}
    if isinstance(usage, dict):
        return usage
    return usage.model_dump(exclude_none=True)


class ChatService:
    """Service layer for chat operations."""

    def __init__(
        self,
        client: OpenAI,
        moderation: Optional[ModerationService] = None,
        model: str = settings.OPENAI_MODEL,
    ):
        """Initialize chat service."""
        self.client = client
        self.moderation = moderation or ModerationService(client)
        self.model = model

    def send_message(
        self,
        message: Any,
        max_tokens: Any = DEFAULT_MAX_TOKENS,
        temperature: Any = DEFAULT_TEMPERATURE,
    ) -> ChatCompletionResult:
        """
        Process one user message.

        Flow:
        1. Validate parameters
        2. Sanitize message
        3. Moderate sanitized text (fails open)
        4. Call completion with system instructions + sanitized message

        Raises:
            ChatValidationError: If the request is invalid
            ContentFlaggedError: If moderation flags the message
            ProviderError: If the completion call fails
        """
        validate_chat_request(message, max_tokens, temperature)

        sanitized = sanitize_message(message)
        if not sanitized:
            raise ChatValidationError("Message cannot be empty")

        verdict = self.moderation.check(sanitized)
        if verdict.flagged:
            raise ContentFlaggedError(verdict.categories)

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(sanitized),
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise map_provider_error(e) from e

        logger.info(
            f"Chat completion served: model={completion.model}, "
            f"message_chars={len(sanitized)}"
        )

        return ChatCompletionResult(
            response=completion.choices[0].message.content or "",
            model=completion.model,
            usage=_usage_dict(completion.usage),
        )
