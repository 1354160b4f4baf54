"""Application and access logging setup.

Both the API process and the SMS worker call :func:`init_logging`:

- Application logs (``contact_center.*`` loggers) go to ``app.log``; HTTP
  access logs go to ``access.log``. Both rotate at midnight.
- ``LOG_JSON=true`` switches to a one-object-per-line JSON formatter.
- The access middleware scrubs credentials, webhook tokens and OTP codes, and
  masks phone numbers down to their last four digits.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from .phone import mask_phone

APP_LOGGER_NAME = "contact_center"
ACCESS_LOGGER_NAME = "uvicorn.access"

SKIP_ACCESS_PATHS = frozenset({"/api/health", "/api/metrics"})

SENSITIVE_FIELDS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "token",
        "access_token",
        "refresh_token",
        "x-webhook-token",
        "x-api-key",
        "xi-api-key",
        "x-api-builderbot",
        "otp",
        "code",
    }
)

PHONE_FIELDS = frozenset({"phone", "from", "to", "number", "caller_id", "called_number", "remotejid"})

_PHONE_IN_PATH = re.compile(r"\+?\d{7,}")


def _flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


@dataclasses.dataclass(frozen=True)
class LogSettings:
    log_dir: str
    level: int
    json: bool
    request_bodies: bool
    retention_days: int
    rotate_utc: bool

    @classmethod
    def from_env(cls) -> "LogSettings":
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            json=_flag("LOG_JSON"),
            request_bodies=_flag("LOG_REQUEST_BODIES"),
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=_flag("LOG_ROTATE_UTC"),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - simple
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _formatter(settings: LogSettings) -> logging.Formatter:
    if settings.json:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


def _rotating_handler(settings: LogSettings, filename: str) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(settings.log_dir, filename),
        when="midnight",
        backupCount=settings.retention_days,
        utc=settings.rotate_utc,
    )
    handler.setFormatter(_formatter(settings))
    return handler


def _scrub(data: object) -> object:
    """Redact secrets and mask phone numbers in nested dicts and lists."""

    if isinstance(data, list):
        return [_scrub(item) for item in data]
    if not isinstance(data, dict):
        return data
    scrubbed: dict[object, object] = {}
    for key, value in data.items():
        name = str(key).lower()
        if name in SENSITIVE_FIELDS:
            scrubbed[key] = "***"
        elif name in PHONE_FIELDS and isinstance(value, str):
            scrubbed[key] = mask_phone(value)
        else:
            scrubbed[key] = _scrub(value)
    return scrubbed


def _masked_path(path: str) -> str:
    return _PHONE_IN_PATH.sub(lambda match: mask_phone(match.group(0)) or "", path)


async def _capture_body(request: Request) -> object | None:
    """Read the body for logging and replay it to the endpoint."""

    raw = await request.body()

    async def replay() -> dict:  # pragma: no cover - internal
        return {"type": "http.request", "body": raw, "more_body": False}

    request._receive = replay  # type: ignore[attr-defined]
    if not raw:
        return None
    try:
        return _scrub(json.loads(raw))
    except ValueError:
        return "<non-json body>"


def _access_record(
    request: Request, response: Response, request_id: str, started: float
) -> dict[str, Any]:
    client_ip = request.headers.get("X-Forwarded-For")
    if not client_ip and request.client is not None:
        client_ip = request.client.host
    return {
        "request_id": request_id,
        "method": request.method,
        "path": _masked_path(request.url.path),
        "status": response.status_code,
        "latency_ms": round((time.time() - started) * 1000, 2),
        "client_ip": client_ip,
        "headers": _scrub(dict(request.headers)),
    }


def _install_access_logging(app: FastAPI, settings: LogSettings | None = None) -> None:
    """Log one scrubbed JSON line per request and echo ``X-Request-Id``."""

    settings = settings or LogSettings.from_env()
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in SKIP_ACCESS_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        started = time.time()
        body = await _capture_body(request) if settings.request_bodies else None

        response = await call_next(request)

        record = _access_record(request, response, request_id, started)
        if body is not None:
            record["body"] = body
        response.headers["X-Request-Id"] = request_id
        access_logger.info(json.dumps(record, default=str))
        return response


def init_logging(app: FastAPI | None = None) -> None:
    """Attach rotating file handlers and, given ``app``, the access middleware."""

    settings = LogSettings.from_env()
    os.makedirs(settings.log_dir, exist_ok=True)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(_rotating_handler(settings, "app.log"))
    app_logger.setLevel(settings.level)

    # uvicorn installs its own access handlers; ours replace them.
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(_rotating_handler(settings, "access.log"))
    access_logger.setLevel(settings.level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app, settings)


__all__ = ["APP_LOGGER_NAME", "LogSettings", "init_logging"]
