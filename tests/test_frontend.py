from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.body_limit import MAX_BODY_BYTES, BodySizeLimitMiddleware
from app.core.frontend import SPAStaticFiles


def _spa_client(tmp_path):
    (tmp_path / "index.html").write_text("<div id='root'></div>")
    (tmp_path / "app.js").write_text("console.log('hi')")
    spa = FastAPI()
    spa.mount("/", SPAStaticFiles(directory=tmp_path), name="frontend")
    return TestClient(spa)


def test_front_end_routes_fall_back_to_index(tmp_path):
    client = _spa_client(tmp_path)

    response = client.get("/reset-password")

    assert response.status_code == 200
    assert response.text == "<div id='root'></div>"


def test_existing_assets_are_served_as_is(tmp_path):
    client = _spa_client(tmp_path)

    assert client.get("/app.js").text == "console.log('hi')"
    assert client.get("/").text == "<div id='root'></div>"


def test_unknown_api_paths_stay_404(tmp_path):
    client = _spa_client(tmp_path)

    assert client.get("/api/nope").status_code == 404


def test_oversized_body_is_rejected(client, fake_openai):
    payload = '{"message": "' + "a" * MAX_BODY_BYTES + '"}'

    response = client.post(
        "/api/public/gpt",
        content=payload,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 413
    assert response.json()["detail"] == "Request body too large"
    assert fake_openai.moderations.calls == []


def test_body_cap_is_configurable():
    capped = FastAPI()
    capped.add_middleware(BodySizeLimitMiddleware, max_bytes=10)

    @capped.post("/echo")
    def echo():
        return {"ok": True}

    client = TestClient(capped)

    assert client.post("/echo", content=b"x" * 10).status_code == 200
    assert client.post("/echo", content=b"x" * 11).status_code == 413
