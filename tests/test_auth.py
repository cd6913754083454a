import httpx
import pytest

from app.core.deps import get_identity_service
from app.main import app
from app.services import identity_service
from app.services.identity_service import IdentityProviderError, IdentityService, InvalidTokenError
from conftest import make_token


def _service():
    return IdentityService(
        base_url="https://project.supabase.co",
        jwt_secret="test-jwt-secret",
        service_role_key="service-role",
    )


def test_verify_token_returns_user():
    user = _service().verify_token(make_token("abc-123", email="a@example.com"))

    assert user.id == "abc-123"
    assert user.email == "a@example.com"


@pytest.mark.parametrize(
    "token",
    [
        make_token(expires_in=-60),
        make_token(aud="anon"),
        make_token(user_id=""),
        "garbage",
    ],
)
def test_verify_token_rejects(token):
    with pytest.raises(InvalidTokenError):
        _service().verify_token(token)


def test_verify_token_rejects_wrong_secret():
    service = IdentityService(jwt_secret="other-secret")

    with pytest.raises(InvalidTokenError):
        service.verify_token(make_token())


def test_resend_confirmation_calls_admin_api(monkeypatch):
    captured = {}

    def fake_post(url, json, headers, timeout):
        captured.update(url=url, json=json, headers=headers)
        return httpx.Response(200, json={"action_link": "https://example"})

    monkeypatch.setattr(identity_service.httpx, "post", fake_post)

    _service().resend_confirmation("a@example.com", "http://localhost:3000/")

    assert captured["url"] == "https://project.supabase.co/auth/v1/admin/generate_link"
    assert captured["json"] == {
        "type": "signup",
        "email": "a@example.com",
        "redirect_to": "http://localhost:3000/",
    }
    assert captured["headers"]["apikey"] == "service-role"


def test_resend_confirmation_surfaces_provider_message(monkeypatch):
    def fake_post(url, json, headers, timeout):
        return httpx.Response(422, json={"msg": "A user with this email address has already been registered"})

    monkeypatch.setattr(identity_service.httpx, "post", fake_post)

    with pytest.raises(IdentityProviderError, match="already been registered"):
        _service().resend_confirmation("a@example.com", "http://localhost:3000/")


class FakeIdentity:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def resend_confirmation(self, email, redirect_to):
        self.calls.append((email, redirect_to))
        if self.error:
            raise self.error


@pytest.fixture
def identity(client):
    fake = FakeIdentity()
    app.dependency_overrides[get_identity_service] = lambda: fake
    return fake


def test_resend_confirmation_route(client, identity):
    response = client.post("/api/auth/resend-confirmation", json={"email": "a@example.com"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert identity.calls == [("a@example.com", "http://testserver/")]


def test_resend_confirmation_requires_email(client, identity):
    response = client.post("/api/auth/resend-confirmation", json={})

    assert response.status_code == 400
    assert identity.calls == []


def test_resend_confirmation_already_registered(client, identity):
    identity.error = IdentityProviderError("User has already been registered")

    response = client.post("/api/auth/resend-confirmation", json={"email": "a@example.com"})

    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


def test_resend_confirmation_provider_failure(client, identity):
    identity.error = IdentityProviderError("boom")

    response = client.post("/api/auth/resend-confirmation", json={"email": "a@example.com"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to resend confirmation email"
