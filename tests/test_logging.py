import json
import logging
from logging.handlers import TimedRotatingFileHandler

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from garage_console.app_logging import APP_LOGGER_NAME, JsonFormatter, init_logging


def _clear_handlers(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    return logger


@pytest.fixture
def log_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    yield tmp_path
    _clear_handlers(APP_LOGGER_NAME)
    _clear_handlers("uvicorn.access")


def test_timed_rotating_handler_configuration(log_dir, monkeypatch):
    monkeypatch.setenv("LOG_RETENTION_DAYS", "5")
    app_logger = _clear_handlers(APP_LOGGER_NAME)
    access_logger = _clear_handlers("uvicorn.access")

    init_logging(FastAPI())

    for logger in (app_logger, access_logger):
        handler = next(h for h in logger.handlers if isinstance(h, TimedRotatingFileHandler))
        assert handler.when == "MIDNIGHT"
        assert handler.backupCount == 5


def test_init_logging_replaces_existing_access_handlers(log_dir):
    access_logger = _clear_handlers("uvicorn.access")
    stream_handler = logging.StreamHandler()
    access_logger.addHandler(stream_handler)

    init_logging()

    assert stream_handler not in access_logger.handlers
    assert any(isinstance(h, TimedRotatingFileHandler) for h in access_logger.handlers)


def test_service_loggers_write_to_app_log(log_dir, app_factory):
    _clear_handlers(APP_LOGGER_NAME)
    _clear_handlers("uvicorn.access")
    app = app_factory(log_dir, log_request_bodies=True)

    logging.getLogger("garage_console.accounts.garages").info("Created garage G1")

    with TestClient(app) as client:
        resp = client.post(
            "/echo",
            json={"token": "secret", "value": 1},
            headers={"Authorization": "Bearer secret"},
        )
        assert resp.status_code == 200

    for name in (APP_LOGGER_NAME, "uvicorn.access"):
        for handler in logging.getLogger(name).handlers:
            handler.flush()

    assert "Created garage G1" in (log_dir / "app.log").read_text()

    access_line = (log_dir / "access.log").read_text().splitlines()[-1]
    data = json.loads(access_line.split(": ", 1)[1])
    assert data["headers"]["authorization"] == "***"
    assert data["body"]["token"] == "***"


def test_json_formatter_includes_logger_name():
    record = logging.LogRecord(
        "garage_console.accounts.provisioning",
        logging.WARNING,
        __file__,
        1,
        "Ignoring owner invitation for %s",
        ("a@x.example",),
        None,
    )

    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["logger"] == "garage_console.accounts.provisioning"
    assert data["message"] == "Ignoring owner invitation for a@x.example"
