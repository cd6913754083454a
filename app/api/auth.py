"""Authentication routes.

Signup, login and password reset happen directly against the identity
provider; the API only helps with re-sending confirmation emails.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.core.deps import get_identity_service
from app.services.identity_service import IdentityProviderError, IdentityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class ResendConfirmationRequest(BaseModel):
    email: Optional[str] = None


@router.post("/resend-confirmation")
def resend_confirmation(
    payload: ResendConfirmationRequest,
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
):
    """
    Re-send the signup confirmation email.

    Raises:
        HTTPException: 400 if email is missing or already confirmed
        HTTPException: 500 if the provider rejects the request
    """
    if not payload.email or not payload.email.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")

    redirect_to = str(request.base_url)
    try:
        identity.resend_confirmation(payload.email.strip(), redirect_to)
    except IdentityProviderError as e:
        logger.error(f"Resend confirmation error: {e}")
        if "already been registered" in str(e):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered. Please check your inbox for the confirmation link.",
            )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to resend confirmation email",
        )

    return {"success": True, "message": "Confirmation email sent successfully"}
