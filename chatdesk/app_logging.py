"""Logging for the chat API.

``init_logging`` points the ``chatdesk`` application logger and the
``uvicorn.access`` logger at daily-rotating files under ``LOG_DIR``. The
access middleware writes one JSON line per request, tagged with a request id
that is echoed back in the ``X-Request-Id`` response header.

Chat traffic carries customer contact details. Logged headers and bodies are
scrubbed: credential and contact fields are masked wholesale, and email
addresses or phone numbers typed into free-text fields are masked in place.
Widget polling runs every few seconds per open chat, so those requests are
logged at DEBUG.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

from .conversations.contact import EMAIL_RE, PHONE_RE

APP_LOGGER_NAME = "chatdesk"
ACCESS_LOGGER_NAME = "uvicorn.access"
MASK = "***"

SENSITIVE_FIELDS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "token",
        "x-api-key",
        "email",
        "phone",
        "sms_number",
        "smsnumber",
        "alertemail",
        "alert_email",
    }
)
#: Fields where customers and operators type free text.
FREE_TEXT_FIELDS = frozenset({"message", "text", "content"})

_QUIET_PATHS = {"/api/metrics"}


def _flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


@dataclass(frozen=True)
class LogSettings:
    log_dir: str = "logs"
    level: int = logging.INFO
    as_json: bool = False
    request_bodies: bool = False
    retention_days: int = 7
    rotate_utc: bool = False

    @classmethod
    def from_env(cls) -> "LogSettings":
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            as_json=_flag("LOG_JSON"),
            request_bodies=_flag("LOG_REQUEST_BODIES"),
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=_flag("LOG_ROTATE_UTC"),
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - simple
        payload: dict[str, Any] = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _formatter(settings: LogSettings) -> logging.Formatter:
    if settings.as_json:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


def _rotating_handler(
    settings: LogSettings, filename: str, formatter: logging.Formatter
) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(settings.log_dir, filename),
        when="midnight",
        backupCount=settings.retention_days,
        utc=settings.rotate_utc,
    )
    handler.setFormatter(formatter)
    return handler


def mask_contacts(text: str) -> str:
    """Replace email addresses and phone numbers in ``text`` with a mask."""

    return PHONE_RE.sub(MASK, EMAIL_RE.sub(MASK, text))


def _scrub(data: object, field: str | None = None) -> object:
    """Recursively mask sensitive fields and contact details in free text."""

    if isinstance(data, dict):
        return {
            k: (MASK if k.lower() in SENSITIVE_FIELDS else _scrub(v, k.lower()))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_scrub(v, field) for v in data]
    if isinstance(data, str) and field in FREE_TEXT_FIELDS:
        return mask_contacts(data)
    return data


def _is_poll(request: Request) -> bool:
    path = request.url.path
    return request.method == "GET" and path.startswith("/api/chat/") and path.endswith("/messages")


def _install_access_logging(app: FastAPI, settings: LogSettings | None = None) -> None:
    """Install the request/response access-log middleware on ``app``."""

    settings = settings or LogSettings.from_env()
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        start = time.time()

        body: object = None
        if settings.request_bodies:
            body_bytes = await request.body()

            async def receive() -> dict:  # pragma: no cover - internal
                return {"type": "http.request", "body": body_bytes, "more_body": False}

            request._receive = receive  # type: ignore[attr-defined]
            if body_bytes:
                try:
                    body = _scrub(json.loads(body_bytes))
                except ValueError:
                    body = mask_contacts(body_bytes.decode("utf-8", errors="replace"))

        response = await call_next(request)

        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and request.client is not None:
            client_ip = request.client.host
        record: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round((time.time() - start) * 1000, 2),
            "client_ip": client_ip,
            "headers": _scrub(dict(request.headers)),
        }
        if body is not None:
            record["body"] = body
        response.headers["X-Request-Id"] = request_id

        level = logging.DEBUG if _is_poll(request) else logging.INFO
        access_logger.log(level, json.dumps(record, default=str))
        return response


def init_logging(app: FastAPI | None = None, settings: LogSettings | None = None) -> None:
    """Initialise application and access loggers, then hook ``app`` if given."""

    settings = settings or LogSettings.from_env()
    os.makedirs(settings.log_dir, exist_ok=True)
    formatter = _formatter(settings)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(_rotating_handler(settings, "chatdesk.log", formatter))
    app_logger.setLevel(settings.level)

    # uvicorn installs its own access handler; replace it with the file handler.
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(_rotating_handler(settings, "access.log", formatter))
    access_logger.setLevel(settings.level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app, settings)
