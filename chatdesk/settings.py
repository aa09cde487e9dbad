"""Runtime settings loaded from the environment."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


@dataclasses.dataclass(frozen=True)
class ChatSettings:
    """Configuration for the chat service and its external capabilities."""

    database_url: str | None = None
    config_dir: str = "configs"
    llm_provider: str = "openai"
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-haiku-20240307"
    completion_timeout: float = 15.0
    weather_timeout: float = 10.0
    weather_units: str = "imperial"
    notify_timeout: float = 10.0
    email_from: str | None = None
    twilio_from_number: str | None = None
    history_limit: int = 20
    session_idle_ttl_seconds: int = 60 * 60 * 24
    cache_sweep_interval_seconds: int = 60 * 60
    chat_max_message_length: int = 5000
    session_id_max_length: int = 64
    chat_rate_limit: str = "60/minute"
    dashboard_url: str | None = None
    cors_origins: tuple[str, ...] = ()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@lru_cache(maxsize=1)
def get_settings() -> ChatSettings:
    """Load settings from the environment with development defaults."""

    origins = os.getenv("CORS_ORIGINS", "")
    return ChatSettings(
        database_url=os.getenv("DATABASE_URL") or None,
        config_dir=os.getenv("CONFIG_DIR", "configs"),
        llm_provider=os.getenv("LLM_PROVIDER", "openai").lower(),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307"),
        completion_timeout=_float_env("COMPLETION_TIMEOUT", 15.0),
        weather_timeout=_float_env("WEATHER_TIMEOUT", 10.0),
        weather_units=os.getenv("WEATHER_UNITS", "imperial"),
        notify_timeout=_float_env("NOTIFY_TIMEOUT", 10.0),
        email_from=os.getenv("EMAIL_FROM") or None,
        twilio_from_number=os.getenv("TWILIO_FROM_NUMBER") or None,
        history_limit=_int_env("CHAT_HISTORY_LIMIT", 20),
        session_idle_ttl_seconds=_int_env("SESSION_IDLE_TTL_SECONDS", 60 * 60 * 24),
        cache_sweep_interval_seconds=_int_env("CACHE_SWEEP_INTERVAL_SECONDS", 60 * 60),
        chat_max_message_length=_int_env("CHAT_MAX_MESSAGE_LENGTH", 5000),
        session_id_max_length=_int_env("SESSION_ID_MAX_LENGTH", 64),
        chat_rate_limit=os.getenv("CHAT_RATE_LIMIT", "60/minute"),
        dashboard_url=os.getenv("DASHBOARD_URL") or None,
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
