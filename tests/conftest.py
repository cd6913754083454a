import os
import time
from types import SimpleNamespace

os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STATIC_DIR"] = "__no_static_build__"
os.environ["RATE_LIMIT_SALT"] = "test-salt"
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from openai import OpenAIError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core import rate_limit
from app.core.deps import get_db, get_openai_client
from app.main import app
from app.models import conversation  # noqa: F401


class FakeProviderError(OpenAIError):
    """OpenAI error carrying a provider error code."""

    def __init__(self, code, message="provider failure"):
        super().__init__(message)
        self.code = code


class FakeModerations:
    def __init__(self):
        self.flagged_categories = []
        self.error = None
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        categories = {"harassment": False, "violence": False, "self-harm": False}
        for name in self.flagged_categories:
            categories[name] = True
        scores = {name: (0.9 if hit else 0.01) for name, hit in categories.items()}
        result = SimpleNamespace(
            flagged=bool(self.flagged_categories),
            categories=categories,
            category_scores=scores,
        )
        return SimpleNamespace(results=[result])


class FakeCompletions:
    def __init__(self):
        self.reply = "Let's work through it together."
        self.error = None
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.reply))],
            model=kwargs["model"],
            usage={"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20},
        )


class FakeOpenAI:
    """Records moderation and completion calls made by the services."""

    def __init__(self):
        self.moderations = FakeModerations()
        self.chat = SimpleNamespace(completions=FakeCompletions())


def make_token(user_id="user-1", email="student@example.com", expires_in=3600, **claims):
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, "test-jwt-secret", algorithm="HS256")


def auth_headers(user_id="user-1"):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limit.api_limiter.reset()
    rate_limit.public_limiter.reset()
    yield
    rate_limit.api_limiter.reset()
    rate_limit.public_limiter.reset()


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def client(engine, fake_openai):
    def override_get_db():
        with Session(engine) as db_session:
            yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_openai_client] = lambda: fake_openai
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
