"""
Configuration helpers for the Greenlight API server.

Values are read from the environment once at import time, with module
constants as defaults. Numeric values that fail to parse fall back to the
default instead of aborting startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_PORT = 4000
DEFAULT_ENV = "development"

# Rate limiter
DEFAULT_LIMITER_RPS = 2.0
DEFAULT_LIMITER_BURST = 4
DEFAULT_EVICTION_INTERVAL = 60.0
DEFAULT_IDLE_THRESHOLD = 180.0

# Background task drain on shutdown
DEFAULT_SHUTDOWN_DRAIN_DEADLINE = 30.0

# Mailer
DEFAULT_SMTP_HOST = "localhost"
DEFAULT_SMTP_PORT = 25
DEFAULT_SMTP_SENDER = "Greenlight <no-reply@greenlight.local>"

LOG_LEVEL = os.getenv("GREENLIGHT_LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("GREENLIGHT_LOG_FORMAT", "json")  # json or plain


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw:
        try:
            return float(raw)
        except ValueError:
            return default
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw:
        try:
            return int(raw)
        except ValueError:
            return default
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_origins(raw: str | None) -> List[str]:
    """Split a space separated list of trusted CORS origins."""
    if not raw:
        return []
    return raw.split()


@dataclass(slots=True)
class GreenlightConfig:
    """Runtime configuration for the API server."""

    port: int = field(default_factory=lambda: _env_int("PORT", DEFAULT_PORT))
    env: str = field(default_factory=lambda: os.getenv("ENV") or DEFAULT_ENV)
    limiter_enabled: bool = field(default_factory=lambda: _env_bool("LIMITER_ENABLED", True))
    limiter_rps: float = field(default_factory=lambda: _env_float("LIMITER_RPS", DEFAULT_LIMITER_RPS))
    limiter_burst: int = field(default_factory=lambda: _env_int("LIMITER_BURST", DEFAULT_LIMITER_BURST))
    limiter_eviction_interval: float = field(
        default_factory=lambda: _env_float("LIMITER_EVICTION_INTERVAL", DEFAULT_EVICTION_INTERVAL)
    )
    limiter_idle_threshold: float = field(
        default_factory=lambda: _env_float("LIMITER_IDLE_THRESHOLD", DEFAULT_IDLE_THRESHOLD)
    )
    trust_forwarded_for: bool = field(default_factory=lambda: _env_bool("TRUST_FORWARDED_FOR", False))
    shutdown_drain_deadline: float = field(
        default_factory=lambda: _env_float("SHUTDOWN_DRAIN_DEADLINE", DEFAULT_SHUTDOWN_DRAIN_DEADLINE)
    )
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST") or DEFAULT_SMTP_HOST)
    smtp_port: int = field(default_factory=lambda: _env_int("SMTP_PORT", DEFAULT_SMTP_PORT))
    smtp_username: str = field(default_factory=lambda: os.getenv("SMTP_USERNAME", ""))
    smtp_password: str = field(default_factory=lambda: os.getenv("SMTP_PASSWORD", ""))
    smtp_sender: str = field(default_factory=lambda: os.getenv("SMTP_SENDER") or DEFAULT_SMTP_SENDER)
    cors_trusted_origins: List[str] = field(
        default_factory=lambda: _parse_origins(os.getenv("CORS_TRUSTED_ORIGINS"))
    )
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT


default_config = GreenlightConfig()
