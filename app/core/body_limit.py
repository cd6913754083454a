"""Request body size cap for JSON endpoints."""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024

TOO_LARGE_BODY = {"detail": "Request body too large"}


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose body exceeds max_bytes with 413."""

    def __init__(self, app, max_bytes: int = MAX_BODY_BYTES):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length"})
            if declared > self.max_bytes:
                logger.warning(f"Rejected {declared} byte body on {request.url.path}")
                return JSONResponse(status_code=413, content=TOO_LARGE_BODY)
        elif "chunked" in request.headers.get("transfer-encoding", "").lower():
            # No declared length: read the body and measure it
            body = await request.body()
            if len(body) > self.max_bytes:
                logger.warning(f"Rejected chunked body on {request.url.path}")
                return JSONResponse(status_code=413, content=TOO_LARGE_BODY)

        return await call_next(request)
