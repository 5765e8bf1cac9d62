from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

DEFAULT_B2_API_URL = "https://api.backblazeb2.com"
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
SUPPORTED_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _env_flag(name: str, default: str) -> bool:
    return (os.getenv(name, default) or "").strip().lower() in {"1", "true", "yes"}


def _check_positive_number(name: str, invalid_values: list[str], *, integer: bool) -> None:
    raw = _env(name)
    if raw is None:
        return
    try:
        parsed = int(raw) if integer else float(raw)
        if parsed <= 0:
            raise ValueError("must be positive")
    except ValueError:
        kind = "integer" if integer else "number"
        invalid_values.append(f"{name} must be a positive {kind}")


def collect_missing_storage_credentials() -> list[str]:
    """Names of storage variables that must be set before the first provider call.

    These are checked lazily so the server can boot (and report its own
    configuration) without credentials.
    """
    missing: list[str] = []
    if _env("B2_KEY_ID") is None and _env("B2_ACCOUNT_ID") is None:
        missing.append("B2_KEY_ID")
    if _env("B2_APPLICATION_KEY") is None:
        missing.append("B2_APPLICATION_KEY")
    if _env("B2_BUCKET_NAME") is None:
        missing.append("B2_BUCKET_NAME")
    return missing


def collect_invalid_env_values() -> list[str]:
    invalid_values: list[str] = []

    _check_positive_number("PORT", invalid_values, integer=True)
    _check_positive_number("MAX_UPLOAD_BYTES", invalid_values, integer=True)
    _check_positive_number("B2_REQUEST_TIMEOUT_SECONDS", invalid_values, integer=False)
    _check_positive_number("B2_TRANSFER_TIMEOUT_SECONDS", invalid_values, integer=False)

    cooldown = _env("B2_AUTH_COOLDOWN_SECONDS")
    if cooldown is not None:
        try:
            if float(cooldown) < 0:
                raise ValueError("must not be negative")
        except ValueError:
            invalid_values.append("B2_AUTH_COOLDOWN_SECONDS must be a non-negative number")

    log_level = _env("LOG_LEVEL")
    if log_level is not None and log_level.upper() not in SUPPORTED_LOG_LEVELS:
        invalid_values.append("LOG_LEVEL must be one of: critical, error, warning, info, debug")

    api_url = _env("B2_API_URL")
    if api_url is not None and not api_url.startswith(("http://", "https://")):
        invalid_values.append("B2_API_URL must be an http(s) URL")

    return invalid_values


def validate_required_environment() -> None:
    invalid_values = collect_invalid_env_values()
    if not invalid_values:
        return

    message_lines = ["Application startup blocked by invalid environment configuration."]
    message_lines.append("")
    message_lines.append("Invalid environment values:")
    message_lines.extend(f"- {message}" for message in invalid_values)
    raise RuntimeError("\n".join(message_lines))


@dataclass(frozen=True)
class Settings:
    env: str
    host: str
    port: int
    cors_origins: tuple[str, ...]
    debug_include_error_details: bool
    log_level: str
    b2_key_id: str | None
    b2_application_key: str | None
    b2_bucket_name: str | None
    b2_api_url: str
    b2_auth_cooldown_seconds: float
    b2_request_timeout_seconds: float
    b2_transfer_timeout_seconds: float
    b2_retry_on_expired: bool
    max_upload_bytes: int

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    validate_required_environment()

    return Settings(
        env=os.getenv("ENV", "development"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(_env("PORT") or 3001),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "*")),
        debug_include_error_details=_env_flag("DEBUG_INCLUDE_ERROR_DETAILS", "false"),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        # Key ids issued before application keys existed are the account id.
        b2_key_id=_env("B2_KEY_ID") or _env("B2_ACCOUNT_ID"),
        b2_application_key=_env("B2_APPLICATION_KEY"),
        b2_bucket_name=_env("B2_BUCKET_NAME"),
        b2_api_url=(_env("B2_API_URL") or DEFAULT_B2_API_URL).rstrip("/"),
        b2_auth_cooldown_seconds=float(_env("B2_AUTH_COOLDOWN_SECONDS") or 30),
        b2_request_timeout_seconds=float(_env("B2_REQUEST_TIMEOUT_SECONDS") or 15),
        b2_transfer_timeout_seconds=float(_env("B2_TRANSFER_TIMEOUT_SECONDS") or 120),
        b2_retry_on_expired=_env_flag("B2_RETRY_ON_EXPIRED", "true"),
        max_upload_bytes=int(_env("MAX_UPLOAD_BYTES") or DEFAULT_MAX_UPLOAD_BYTES),
    )
