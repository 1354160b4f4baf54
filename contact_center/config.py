"""Runtime configuration loaded once from the environment.

Settings are grouped per integration and passed explicitly into normalizers,
clients and services. Only the application wiring calls :func:`get_settings`.
"""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclasses.dataclass(frozen=True)
class ElevenLabsSettings:
    """Voice-AI provider credentials and webhook secret."""

    api_key: str | None = None
    api_url: str = "https://api.elevenlabs.io"
    agent_id: str | None = None
    webhook_token: str | None = None
    timeout_seconds: float = 15.0

    @property
    def sync_configured(self) -> bool:
        return bool(self.api_key and self.agent_id)


@dataclasses.dataclass(frozen=True)
class BuilderBotSettings:
    """WhatsApp bot provider credentials and webhook secret."""

    base_url: str = "https://app.builderbot.cloud"
    api_key: str | None = None
    bot_id: str | None = None
    webhook_token: str | None = None
    timeout_seconds: float = 15.0


@dataclasses.dataclass(frozen=True)
class TwilioSettings:
    """SMS gateway credentials."""

    account_sid: str | None = None
    auth_token: str | None = None
    from_number: str | None = None
    webhook_token: str | None = None
    default_country_code: str = "54"
    timeout_seconds: float = 15.0

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@dataclasses.dataclass(frozen=True)
class OtpSettings:
    ttl_seconds: int = 300
    max_attempts: int = 5
    rate_limit_window_seconds: int = 900
    rate_limit_max: int = 3


@dataclasses.dataclass(frozen=True)
class SyncSettings:
    enabled: bool = True
    interval_seconds: int = 300
    window_hours: int = 2
    batch_limit: int = 100
    full_window_hours: int = 24
    full_limit: int = 500


@dataclasses.dataclass(frozen=True)
class QueueSettings:
    broker_url: str = "redis://localhost:6379/0"
    result_backend: str | None = None
    concurrency: int = 5
    max_retries: int = 3


@dataclasses.dataclass(frozen=True)
class Settings:
    """Top-level application settings."""

    database_url: str | None = None
    api_token: str | None = None
    pii_masking_enabled: bool = False
    frontend_url: str = "http://localhost:3000"
    elevenlabs: ElevenLabsSettings = dataclasses.field(default_factory=ElevenLabsSettings)
    builderbot: BuilderBotSettings = dataclasses.field(default_factory=BuilderBotSettings)
    twilio: TwilioSettings = dataclasses.field(default_factory=TwilioSettings)
    otp: OtpSettings = dataclasses.field(default_factory=OtpSettings)
    sync: SyncSettings = dataclasses.field(default_factory=SyncSettings)
    queue: QueueSettings = dataclasses.field(default_factory=QueueSettings)


def _http_timeout() -> float:
    timeout = float(_env("HTTP_TIMEOUT_SECONDS", "15") or 15)
    # Vendor calls must stay bounded.
    return min(max(timeout, 10.0), 30.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment."""

    timeout = _http_timeout()
    return Settings(
        database_url=_env("DATABASE_URL"),
        api_token=_env("API_TOKEN"),
        pii_masking_enabled=_env_bool("PII_MASKING_ENABLED", False),
        frontend_url=(_env("FRONTEND_URL", "http://localhost:3000") or "").rstrip("/"),
        elevenlabs=ElevenLabsSettings(
            api_key=_env("ELEVENLABS_API_KEY"),
            api_url=(_env("ELEVENLABS_API_URL", "https://api.elevenlabs.io") or "").rstrip("/"),
            agent_id=_env("ELEVENLABS_AGENT_ID"),
            webhook_token=_env("ELEVENLABS_WEBHOOK_TOKEN"),
            timeout_seconds=timeout,
        ),
        builderbot=BuilderBotSettings(
            base_url=(_env("BUILDERBOT_BASE_URL", "https://app.builderbot.cloud") or "").rstrip("/"),
            api_key=_env("BUILDERBOT_API_KEY"),
            bot_id=_env("BUILDERBOT_BOT_ID"),
            webhook_token=_env("BUILDERBOT_WEBHOOK_TOKEN"),
            timeout_seconds=timeout,
        ),
        twilio=TwilioSettings(
            account_sid=_env("TWILIO_ACCOUNT_SID"),
            auth_token=_env("TWILIO_AUTH_TOKEN"),
            from_number=_env("TWILIO_FROM_NUMBER"),
            webhook_token=_env("TWILIO_WEBHOOK_TOKEN"),
            default_country_code=_env("DEFAULT_COUNTRY_CODE", "54") or "54",
            timeout_seconds=timeout,
        ),
        otp=OtpSettings(
            ttl_seconds=_env_int("OTP_TTL_SECONDS", 300),
            max_attempts=_env_int("OTP_MAX_ATTEMPTS", 5),
            rate_limit_window_seconds=_env_int("OTP_RATE_LIMIT_WINDOW_SECONDS", 900),
            rate_limit_max=_env_int("OTP_RATE_LIMIT_MAX", 3),
        ),
        sync=SyncSettings(
            enabled=_env_bool("SYNC_ENABLED", True),
            interval_seconds=_env_int("SYNC_INTERVAL_SECONDS", 300),
            window_hours=_env_int("SYNC_WINDOW_HOURS", 2),
            batch_limit=_env_int("SYNC_BATCH_LIMIT", 100),
            full_window_hours=_env_int("SYNC_FULL_WINDOW_HOURS", 24),
            full_limit=_env_int("SYNC_FULL_LIMIT", 500),
        ),
        queue=QueueSettings(
            broker_url=_env("CELERY_BROKER_URL", "redis://localhost:6379/0") or "redis://localhost:6379/0",
            result_backend=_env("CELERY_RESULT_BACKEND"),
            concurrency=_env_int("SMS_WORKER_CONCURRENCY", 5),
            max_retries=_env_int("SMS_JOB_MAX_RETRIES", 3),
        ),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()


__all__ = [
    "BuilderBotSettings",
    "ElevenLabsSettings",
    "OtpSettings",
    "QueueSettings",
    "Settings",
    "SyncSettings",
    "TwilioSettings",
    "get_settings",
    "reset_settings_cache",
]
