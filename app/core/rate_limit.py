"""Privacy-friendly rate limiting.

Two policies:
- API policy: every /api/ path, keyed by the session id (issued on first use),
  or a salted daily hash of the client address when no session layer runs.
- Public policy: anonymous chat endpoint, keyed by client address, stricter.
"""
import hashlib
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 15 * 60
API_MAX_REQUESTS = 50
PUBLIC_MAX_REQUESTS = 10
SESSION_ID_KEY = "sid"

API_LIMIT_BODY = {
    "error": "Too many requests from this session, please try again later.",
    "retryAfter": "15 minutes",
}
PUBLIC_LIMIT_BODY = {
    "error": "Too many requests from this IP. Please sign up for more access.",
}


@dataclass
class RateLimitState:
    """Outcome of counting one request against a key."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class RateLimitExceeded(Exception):
    """Raised by the public rate limit dependency when a client is over its quota."""

    def __init__(self, state: RateLimitState, body: dict):
        self.state = state
        self.body = body
        super().__init__(body.get("error", "Too many requests"))


class RateLimiter:
    """
    Fixed-window rate limiting per key.

    Tracks requests per key per window; the counter resets when a new window
    starts for that key.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter."""
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # In-memory counter: {key: (count, window_start)}
        self._counters: Dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitState:
        """
        Count a request for key and report whether it is allowed.

        Returns:
            RateLimitState describing the window after this request
        """
        now = self._clock()
        with self._lock:
            count, window_start = self._counters.get(key, (0, now))

            # Start a new window once the old one has expired
            if now - window_start >= self.window_seconds:
                count, window_start = 0, now

            count += 1
            self._counters[key] = (count, window_start)

        reset_after = max(0, int(window_start + self.window_seconds - now))
        return RateLimitState(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after=reset_after,
        )

    def reset(self) -> None:
        """Forget all counters."""
        with self._lock:
            self._counters.clear()


api_limiter = RateLimiter(max_requests=API_MAX_REQUESTS)
public_limiter = RateLimiter(max_requests=PUBLIC_MAX_REQUESTS)


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def hashed_client_key(address: str, salt: Optional[str] = None, day: Optional[str] = None) -> str:
    """
    Salted SHA-256 of the client address and the current date.

    The date component rotates the key daily so no permanent identifier of
    the client is kept.
    """
    day = day or time.strftime("%a %b %d %Y")
    salt = settings.RATE_LIMIT_SALT if salt is None else salt
    return hashlib.sha256(f"{address}{day}{salt}".encode("utf-8")).hexdigest()


def api_rate_limit_key(request: Request) -> str:
    """
    Session id for the request, else the hashed address.

    A client without a session is issued one here and the current request is
    already counted against it. The hashed address is used only when no
    session layer is installed.
    """
    session = request.scope.get("session")
    if session is None:
        return hashed_client_key(client_address(request))

    session_id = session.get(SESSION_ID_KEY)
    if not session_id:
        session_id = secrets.token_urlsafe(24)
        session[SESSION_ID_KEY] = session_id
    return session_id


def rate_limit_headers(state: RateLimitState) -> Dict[str, str]:
    return {
        "RateLimit-Limit": str(state.limit),
        "RateLimit-Remaining": str(state.remaining),
        "RateLimit-Reset": str(state.reset_after),
    }


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    """Apply the API policy to every /api/ request. No rate limit headers are exposed."""

    def __init__(self, app, limiter: RateLimiter = api_limiter, prefix: str = "/api/"):
        super().__init__(app)
        self.limiter = limiter
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.prefix):
            state = self.limiter.hit(api_rate_limit_key(request))
            if not state.allowed:
                logger.warning("API rate limit exceeded for path=%s", request.url.path)
                return JSONResponse(status_code=429, content=API_LIMIT_BODY)

        return await call_next(request)


def public_rate_limit(request: Request, response: Response) -> RateLimitState:
    """
    Dependency applying the public policy, keyed by client address.

    Returns:
        RateLimitState, so routes can copy its headers onto error responses

    Raises:
        RateLimitExceeded: If the address is over its quota for the window
    """
    state = public_limiter.hit(client_address(request))
    response.headers.update(rate_limit_headers(state))
    if not state.allowed:
        logger.warning("Public rate limit exceeded")
        raise RateLimitExceeded(state, PUBLIC_LIMIT_BODY)
    return state


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content=exc.body,
        headers=rate_limit_headers(exc.state),
    )
