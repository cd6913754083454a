"""Chat endpoint routes for the tutor.

Provides:
- POST /api/gpt - Send message to the tutor (authenticated)
- POST /api/public/gpt - Send message without an account (public rate limit)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field

from app.core.deps import get_current_user, get_openai_client
from app.core.rate_limit import RateLimitState, public_rate_limit, rate_limit_headers
from app.services.chat_service import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ChatService,
    ChatValidationError,
    ContentFlaggedError,
    ProviderError,
)
from app.services.identity_service import CurrentUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    """Request model for sending a chat message."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, alias="maxTokens")
    temperature: float = DEFAULT_TEMPERATURE


class ChatResponse(BaseModel):
    """Response model for a chat turn."""
    success: bool = True
    response: str
    usage: Dict[str, Any]
    model: str


def get_chat_service(client: OpenAI = Depends(get_openai_client)) -> ChatService:
    return ChatService(client)


def _run_chat(
    request: ChatRequest,
    chat_service: ChatService,
    headers: Optional[Dict[str, str]] = None,
) -> ChatResponse | JSONResponse:
    """Run one chat turn; headers are attached to error responses too."""
    try:
        result = chat_service.send_message(
            request.message,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
    except ChatValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e), headers=headers)
    except ContentFlaggedError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e), "flagged": True, "categories": e.categories},
            headers=headers,
        )
    except ProviderError as e:
        detail: Any = e.message if e.details is None else {"error": e.message, "details": e.details}
        raise HTTPException(status_code=e.status_code, detail=detail, headers=headers)

    return ChatResponse(response=result.response, usage=result.usage, model=result.model)


@router.post("/gpt", response_model=ChatResponse)
def send_chat_message(
    request: ChatRequest,
    current_user: CurrentUser = Depends(get_current_user),
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Send message to the tutor as an authenticated user.

    Raises:
        HTTPException: 400 on invalid or flagged input
        HTTPException: 401 if the bearer token is missing or invalid
        HTTPException: 402/401/429/500 on provider errors
    """
    logger.info(f"Chat request from user {current_user.id}")
    return _run_chat(request, chat_service)


@router.post("/public/gpt", response_model=ChatResponse)
def send_public_chat_message(
    request: ChatRequest,
    rate_limit: RateLimitState = Depends(public_rate_limit),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send message to the tutor without an account. Every response carries RateLimit-* headers."""
    return _run_chat(request, chat_service, headers=rate_limit_headers(rate_limit))
