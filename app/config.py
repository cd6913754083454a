"""Application settings loaded from environment variables.

Keep all credentials and config centralized here.
"""
import os
import secrets

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Runtime configuration for the Honorably API."""

    APP_ENV: str = os.getenv("APP_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # OpenAI
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_MODERATION_MODEL: str = os.getenv("OPENAI_MODERATION_MODEL", "omni-moderation-latest")
    OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "30"))

    # Persistence
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./honorably.db")
    ENCRYPT_MESSAGES: bool = _env_bool("ENCRYPT_MESSAGES")

    # Identity provider (Supabase Auth)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "").rstrip("/")
    SUPABASE_JWT_SECRET: str = os.getenv("SUPABASE_JWT_SECRET", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_AUDIENCE: str = os.getenv("JWT_AUDIENCE", "authenticated")

    # Sessions and rate limiting
    SESSION_SECRET: str = os.getenv("SESSION_SECRET") or secrets.token_hex(32)
    RATE_LIMIT_SALT: str = os.getenv("RATE_LIMIT_SALT", "default-salt")

    # HTTP surface
    CORS_ORIGIN: str = os.getenv("CORS_ORIGIN", "http://localhost:3000")
    STATIC_DIR: str = os.getenv("STATIC_DIR", "build")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


settings = Settings()
