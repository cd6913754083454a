"""Utility routes: health check and moderation diagnostics."""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from openai import OpenAI
from pydantic import BaseModel

from app.core.deps import get_openai_client
from app.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["utility"])

DEFAULT_TEST_MESSAGE = "This is a test message"


class ModerationTestRequest(BaseModel):
    message: Optional[str] = None


@router.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/test-moderation")
def test_moderation(
    request: Optional[ModerationTestRequest] = None,
    client: OpenAI = Depends(get_openai_client),
):
    """Run the moderation classifier on a message and report the raw verdict."""
    text = (request.message if request else None) or DEFAULT_TEST_MESSAGE
    logger.info(f"Testing moderation with {len(text)} chars")

    try:
        result = ModerationService(client).classify(text)
    except Exception as e:
        logger.error(f"Moderation test failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Moderation test failed", "details": str(e)},
        )

    return {
        "message": text,
        "flagged": result.flagged,
        "categories": result.categories,
        "scores": result.scores,
    }
