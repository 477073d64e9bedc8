import json
import logging

from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from garage_console.app_logging import _install_access_logging, _scrub


def _create_app() -> FastAPI:
    app = FastAPI()

    @app.post("/api/garages")
    async def upsert(request: Request):
        return {"rid": request.state.request_id}

    @app.get("/api/health")
    async def health():  # pragma: no cover - simple
        return {"status": "ok"}

    _install_access_logging(app)
    return app


def test_access_logging_request_id_and_scrubbing(caplog, monkeypatch):
    monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger="uvicorn.access"),
    ):
        resp = client.post(
            "/api/garages",
            json={"name": "Main Street", "session_token": "secret"},
            headers={"X-Request-Id": "abc", "Authorization": "Bearer secret"},
        )

        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"] == "abc"
        assert resp.json() == {"rid": "abc"}

        record = caplog.records[0]
        data = json.loads(record.getMessage())
        assert data["request_id"] == "abc"
        assert data["path"] == "/api/garages"
        assert data["headers"]["authorization"] == "***"
        assert data["body"] == {"name": "Main Street", "session_token": "***"}

        caplog.clear()
        client.get("/api/health")
        assert len(caplog.records) == 0


def test_access_logging_generates_request_id(caplog):
    app = _create_app()

    with TestClient(app) as client, caplog.at_level(logging.INFO, logger="uvicorn.access"):
        resp = client.post("/api/garages", json={})

    generated = resp.headers["X-Request-Id"]
    assert len(generated) == 32
    assert json.loads(caplog.records[0].getMessage())["request_id"] == generated
    assert "body" not in json.loads(caplog.records[0].getMessage())


def test_scrub_handles_nested_identity_payloads():
    payload = {
        "user": {"email": "a@x.example", "id_token": "t"},
        "keys": [{"X-API-Key": "k"}],
    }

    assert _scrub(payload) == {
        "user": {"email": "a@x.example", "id_token": "***"},
        "keys": [{"X-API-Key": "***"}],
    }


def test_access_logging_masks_oauth_query_params(caplog):
    app = _create_app()

    @app.get("/api/garage/landing")
    async def landing():
        return {"action": "redirect"}

    with TestClient(app) as client, caplog.at_level(logging.INFO, logger="uvicorn.access"):
        client.get("/api/garage/landing", params={"plan": "basic", "code": "oauth-code"})

    data = json.loads(caplog.records[0].getMessage())
    assert data["query"] == {"plan": "basic", "code": "***"}
