"""FastAPI application entry point for the Honorably tutor API."""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from app.api.auth import router as auth_router
from app.api.routes.chat import router as chat_router
from app.api.routes.conversations import router as conversations_router
from app.api.routes.utility import router as utility_router
from app.config import settings
from app.core.body_limit import BodySizeLimitMiddleware
from app.core.frontend import SPAStaticFiles
from app.core.rate_limit import ApiRateLimitMiddleware, RateLimitExceeded, rate_limit_exceeded_handler
from app.database import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    init_db()
    logger.info("Database initialized")
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; chat endpoints will fail")
    if not settings.SUPABASE_JWT_SECRET:
        logger.warning("SUPABASE_JWT_SECRET is not set; authenticated routes will reject every token")

    yield


app = FastAPI(
    title="Honorably API",
    description="Educational tutor chat API with moderation and per-user conversation history",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware added last runs first: CORS -> session -> API rate limit -> body size cap
app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(ApiRateLimitMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie="sessionId",
    max_age=24 * 60 * 60,
    https_only=settings.is_production,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(utility_router)
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(conversations_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 instead of 422."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(status_code=400, content={"detail": "; ".join(problems) or "Invalid request"})


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Hide internal error details from clients."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# Prebuilt front end, when deployed alongside the API; unknown non-API paths get index.html
if os.path.isdir(settings.STATIC_DIR):
    app.mount("/", SPAStaticFiles(directory=settings.STATIC_DIR), name="frontend")
