"""Configuration loader.

Reads environment variables and `.env` to configure the service.  Command
line flags take precedence over these values where both exist.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


# ---- Logging -----------------------------------------------------------------

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Polling -----------------------------------------------------------------

# Default interval between two checks, as a duration string ("90s", "1m", "1h30m").
POLL_INTERVAL: str = _get_env("POLL_INTERVAL", "1m")

# Timeout (seconds) applied to every outgoing HTTP request.
HTTP_TIMEOUT_SECONDS: float = _parse_float(_get_env("HTTP_TIMEOUT_SECONDS", "30"), 30.0)

# Total attempts per outgoing request, both project page fetches and Telegram
# sendMessage calls. 1 means no retry; higher values retry network errors and
# 5xx with back-off.
FETCH_RETRY_ATTEMPTS: int = max(1, _parse_int(_get_env("FETCH_RETRY_ATTEMPTS", "1"), 1))

USER_AGENT: str = _get_env(
    "USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
)

# ---- Telegram ----------------------------------------------------------------

# Defaults for --tg-token / --tg-user-id.
TELEGRAM_BOT_TOKEN: str = _get_env("TELEGRAM_BOT_TOKEN", "") or ""
TELEGRAM_USER_ID: int = _parse_int(_get_env("TELEGRAM_USER_ID", "0"), 0)


__all__ = [
    "LOG_LEVEL",
    "POLL_INTERVAL",
    "HTTP_TIMEOUT_SECONDS",
    "FETCH_RETRY_ATTEMPTS",
    "USER_AGENT",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_USER_ID",
]
