from types import SimpleNamespace

from app.core.rate_limit import (
    SESSION_ID_KEY,
    RateLimiter,
    api_rate_limit_key,
    hashed_client_key,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_after_max_requests():
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

    states = [limiter.hit("key") for _ in range(4)]

    assert [s.allowed for s in states] == [True, True, True, False]
    assert states[2].remaining == 0


def test_limiter_window_resets():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert limiter.hit("key").allowed
    assert not limiter.hit("key").allowed

    clock.now += 60
    assert limiter.hit("key").allowed


def test_limiter_counts_keys_separately():
    limiter = RateLimiter(max_requests=1, clock=FakeClock())

    assert limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("a").allowed


def test_hashed_key_rotates_daily_and_hides_address():
    monday = hashed_client_key("203.0.113.9", salt="s", day="Mon Oct 19 2026")
    tuesday = hashed_client_key("203.0.113.9", salt="s", day="Tue Oct 20 2026")

    assert monday != tuesday
    assert monday == hashed_client_key("203.0.113.9", salt="s", day="Mon Oct 19 2026")
    assert "203.0.113.9" not in monday
    assert len(monday) == 64


def test_hashed_key_depends_on_salt():
    day = "Mon Oct 19 2026"
    assert hashed_client_key("10.0.0.1", salt="a", day=day) != hashed_client_key("10.0.0.1", salt="b", day=day)


def _request(session=None, host="198.51.100.7"):
    scope = {"type": "http"}
    if session is not None:
        scope["session"] = session
    return SimpleNamespace(scope=scope, client=SimpleNamespace(host=host))


def test_api_key_prefers_existing_session_id():
    assert api_rate_limit_key(_request(session={SESSION_ID_KEY: "abc"})) == "abc"


def test_api_key_issues_session_and_counts_first_request_against_it():
    session = {}
    key = api_rate_limit_key(_request(session=session))

    assert key == session[SESSION_ID_KEY]
    assert key != hashed_client_key("198.51.100.7")
    assert api_rate_limit_key(_request(session=session)) == key


def test_api_key_without_session_middleware():
    assert api_rate_limit_key(_request()) == hashed_client_key("198.51.100.7")


def test_api_routes_are_limited(client):
    statuses = [client.get("/api/conversations").status_code for _ in range(60)]

    assert 429 in statuses
    assert statuses.index(429) == 50

    blocked = client.get("/api/conversations")
    assert blocked.status_code == 429
    assert blocked.json()["retryAfter"] == "15 minutes"
    assert "RateLimit-Limit" not in blocked.headers


def test_health_is_never_limited(client):
    statuses = {client.get("/health").status_code for _ in range(60)}

    assert statuses == {200}


def test_public_endpoint_limited_per_address(client):
    statuses = [
        client.post("/api/public/gpt", json={"message": "What is a verb?"}).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429

    blocked = client.post("/api/public/gpt", json={"message": "again"})
    assert blocked.json()["error"].startswith("Too many requests from this IP")
    assert blocked.headers["RateLimit-Remaining"] == "0"
