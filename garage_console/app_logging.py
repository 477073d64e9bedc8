"""Application and access logging setup.

Service modules log through ``logging.getLogger(__name__)`` below the
``garage_console`` logger; :func:`init_logging` attaches the handlers:

- ``app.log`` for the service loggers and ``access.log`` for the
  ``uvicorn.access`` logger, both rotated at midnight;
- a JSON formatter (``LOG_JSON=true``) or a plain one;
- an HTTP middleware writing one JSON access line per request, tagged with an
  ``X-Request-Id``.  Credentials, identity tokens and the OAuth ``code`` and
  ``state`` returned to the landing page are masked.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

APP_LOGGER_NAME = "garage_console"
ACCESS_LOGGER_NAME = "uvicorn.access"
MASK = "***"

SENSITIVE_FIELDS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "id_token",
        "session_token",
        "api_key",
        "x-api-key",
    }
)
SENSITIVE_QUERY_PARAMS = frozenset({"code", "state", "token"})
UNLOGGED_PATHS = frozenset({"/api/health", "/api/metrics"})


@dataclasses.dataclass(frozen=True)
class LogSettings:
    log_dir: str = "logs"
    level: int = logging.INFO
    use_json: bool = False
    request_bodies: bool = False
    retention_days: int = 7
    rotate_utc: bool = False

    @classmethod
    def from_env(cls) -> "LogSettings":
        def flag(name: str) -> bool:
            return os.getenv(name, "false").lower() == "true"

        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            use_json=flag("LOG_JSON"),
            request_bodies=flag("LOG_REQUEST_BODIES"),
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=flag("LOG_ROTATE_UTC"),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when ``LOG_JSON=true``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _scrub(data: object) -> object:
    """Mask sensitive keys in nested dictionaries and lists."""

    if isinstance(data, dict):
        return {
            key: (MASK if key.lower() in SENSITIVE_FIELDS else _scrub(value))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_scrub(item) for item in data]
    return data


def _scrub_query(request: Request) -> dict[str, str]:
    return {
        key: (MASK if key.lower() in SENSITIVE_QUERY_PARAMS else value)
        for key, value in request.query_params.items()
    }


def _file_handler(settings: LogSettings, filename: str) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(settings.log_dir, filename),
        when="midnight",
        backupCount=settings.retention_days,
        utc=settings.rotate_utc,
    )
    if settings.use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")
        )
    return handler


async def _read_body(request: Request) -> object:
    """Return the decoded request body and make it readable again downstream."""

    body = await request.body()

    async def receive() -> dict:  # pragma: no cover - internal
        return {"type": "http.request", "body": body, "more_body": False}

    request._receive = receive  # type: ignore[attr-defined]

    if not body:
        return None
    try:
        return _scrub(json.loads(body))
    except ValueError:
        return body.decode("utf-8", errors="replace")


def _install_access_logging(app: FastAPI, settings: LogSettings | None = None) -> None:
    """Install the request/response access logging middleware."""

    settings = settings or LogSettings.from_env()
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in UNLOGGED_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        body = await _read_body(request) if settings.request_bodies else None

        response = await call_next(request)

        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and request.client is not None:
            client_ip = request.client.host

        entry: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "client_ip": client_ip,
            "headers": _scrub(dict(request.headers)),
        }
        if request.query_params:
            entry["query"] = _scrub_query(request)
        if body is not None:
            entry["body"] = body

        response.headers["X-Request-Id"] = request_id
        access_logger.info(json.dumps(entry, default=str))
        return response


def init_logging(app: FastAPI | None = None) -> None:
    """Attach file handlers to the service and access loggers.

    The service logger keeps handlers installed by an earlier call, the access
    logger always gets fresh ones.  When ``app`` is given the access logging
    middleware is installed on it as well.
    """

    settings = LogSettings.from_env()
    os.makedirs(settings.log_dir, exist_ok=True)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(_file_handler(settings, "app.log"))
    app_logger.setLevel(settings.level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(_file_handler(settings, "access.log"))
    access_logger.setLevel(settings.level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app, settings)
