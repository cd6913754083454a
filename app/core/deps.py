"""Shared FastAPI dependencies."""
import logging
from typing import Iterator, Optional

from fastapi import Depends, Header, HTTPException, status
from openai import OpenAI
from sqlmodel import Session

from app.config import settings
from app.database import get_session
from app.services.identity_service import CurrentUser, IdentityService, InvalidTokenError

logger = logging.getLogger(__name__)

_identity_service: Optional[IdentityService] = None
_openai_client: Optional[OpenAI] = None


def get_db() -> Iterator[Session]:
    """Database session for the duration of a request."""
    yield from get_session()


def get_identity_service() -> IdentityService:
    global _identity_service
    if _identity_service is None:
        _identity_service = IdentityService()
    return _identity_service


def get_openai_client() -> OpenAI:
    """Process-wide OpenAI client."""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT)
    return _openai_client


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    identity: IdentityService = Depends(get_identity_service),
) -> CurrentUser:
    """
    Re-derive the caller identity from the Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No valid authorization token provided",
        )

    token = authorization[len("Bearer "):].strip()
    try:
        return identity.verify_token(token)
    except InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
