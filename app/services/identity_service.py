"""Identity provider integration (Supabase Auth).

Handles:
- Bearer token verification (HS256 JWTs signed with the project secret)
- Admin calls for the signup confirmation flow
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from jose import JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be verified."""


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects an admin request."""


@dataclass
class CurrentUser:
    """Authenticated caller, decoded from the bearer token."""
    id: str
    email: Optional[str] = None
    token: str = ""


class IdentityService:
    """Thin client for the hosted identity provider."""

    def __init__(
        self,
        base_url: str = settings.SUPABASE_URL,
        jwt_secret: str = settings.SUPABASE_JWT_SECRET,
        service_role_key: str = settings.SUPABASE_SERVICE_ROLE_KEY,
        algorithm: str = settings.JWT_ALGORITHM,
        audience: str = settings.JWT_AUDIENCE,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.jwt_secret = jwt_secret
        self.service_role_key = service_role_key
        self.algorithm = algorithm
        self.audience = audience
        self.timeout = timeout

    def verify_token(self, token: str) -> CurrentUser:
        """
        Decode and validate an access token.

        Args:
            token: Raw JWT without the "Bearer " prefix

        Returns:
            CurrentUser with the subject id and email claims

        Raises:
            InvalidTokenError: If the token is malformed, expired or has no subject
        """
        if not self.jwt_secret:
            raise InvalidTokenError("Token verification secret is not configured")

        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.algorithm],
                audience=self.audience,
            )
        except JWTError as e:
            raise InvalidTokenError(str(e)) from e

        user_id = payload.get("sub")
        if not user_id:
            raise InvalidTokenError("Token has no subject")

        return CurrentUser(id=str(user_id), email=payload.get("email"), token=token)

    def resend_confirmation(self, email: str, redirect_to: str) -> None:
        """
        Ask the provider to issue a fresh signup confirmation link.

        Raises:
            IdentityProviderError: If the provider responds with an error
        """
        if not self.base_url or not self.service_role_key:
            raise IdentityProviderError("Identity provider admin access is not configured")

        try:
            response = httpx.post(
                f"{self.base_url}/auth/v1/admin/generate_link",
                json={"type": "signup", "email": email, "redirect_to": redirect_to},
                headers={
                    "apikey": self.service_role_key,
                    "Authorization": f"Bearer {self.service_role_key}",
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.is_error:
            raise IdentityProviderError(_provider_error_message(response))

        logger.info("Confirmation link generated")


def _provider_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if not isinstance(body, dict):
        return f"HTTP {response.status_code}"

    for key in ("msg", "message", "error_description", "error"):
        if body.get(key):
            return str(body[key])
    return f"HTTP {response.status_code}"
