# gemini_calendar/settings.py
"""
Runtime settings, read from environment variables (and a local .env file).

Required:
  - GENAI_API_KEY (or GOOGLE_API_KEY): Gemini API key
  - a Google OAuth client secrets file at GOOGLE_CREDENTIALS_PATH (default credentials.json)

Everything else has a default that matches the interactive desktop setup:
the OAuth redirect lands on http://localhost:28080/ and new events are
written to the primary calendar in Asia/Tokyo time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from gemini_calendar.errors import ConfigurationError

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]

UNKNOWN_TOOL_POLICIES = ("report", "abort")


def _int_from_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    genai_api_key: Optional[str]
    genai_model: str
    genai_timeout_seconds: int
    genai_retry_attempts: int

    credentials_path: Path
    redirect_host: str
    redirect_port: int
    code_timeout_seconds: int
    shutdown_timeout_seconds: int

    calendar_id: str
    calendar_timezone: str
    calendar_http_timeout_seconds: int
    calendar_num_retries: int

    max_tool_calls_per_turn: int
    unknown_tool_policy: str
    log_level: str

    @property
    def redirect_uri(self) -> str:
        """Redirect target registered with Google; must match the callback listener's bind address."""
        return f"http://{self.redirect_host}:{self.redirect_port}/"

    @property
    def missing(self) -> list[str]:
        """Things the chat command cannot start without."""
        out = []
        if not self.genai_api_key:
            out.append("GENAI_API_KEY")
        if not self.credentials_path.exists():
            out.append(f"OAuth client secrets file ({self.credentials_path})")
        return out

    def require(self, *, need_model: bool = True) -> None:
        """Raise ConfigurationError if anything required is missing."""
        missing = self.missing if need_model else [m for m in self.missing if m != "GENAI_API_KEY"]
        if missing:
            raise ConfigurationError("Missing configuration: " + ", ".join(missing))

    @classmethod
    def from_env(cls) -> "Settings":
        policy = os.getenv("UNKNOWN_TOOL_POLICY", "report").strip().lower()
        if policy not in UNKNOWN_TOOL_POLICIES:
            raise ConfigurationError(
                f"UNKNOWN_TOOL_POLICY must be one of {', '.join(UNKNOWN_TOOL_POLICIES)}, got {policy!r}"
            )

        return cls(
            genai_api_key=os.getenv("GENAI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
            genai_model=os.getenv("GENAI_MODEL", "gemini-2.0-flash"),
            genai_timeout_seconds=_int_from_env("GENAI_TIMEOUT_SECONDS", 60, minimum=1),
            genai_retry_attempts=_int_from_env("GENAI_RETRY_ATTEMPTS", 3, minimum=1),
            credentials_path=Path(os.getenv("GOOGLE_CREDENTIALS_PATH", "credentials.json")),
            redirect_host=os.getenv("OAUTH_REDIRECT_HOST", "localhost"),
            redirect_port=_int_from_env("OAUTH_REDIRECT_PORT", 28080, minimum=1),
            code_timeout_seconds=_int_from_env("OAUTH_CODE_TIMEOUT_SECONDS", 300),
            shutdown_timeout_seconds=_int_from_env("OAUTH_SHUTDOWN_TIMEOUT_SECONDS", 10),
            calendar_id=os.getenv("CALENDAR_ID", "primary"),
            calendar_timezone=os.getenv("CALENDAR_TIMEZONE", "Asia/Tokyo"),
            calendar_http_timeout_seconds=_int_from_env("CALENDAR_HTTP_TIMEOUT_SECONDS", 30, minimum=1),
            calendar_num_retries=_int_from_env("CALENDAR_NUM_RETRIES", 2),
            max_tool_calls_per_turn=_int_from_env("MAX_TOOL_CALLS_PER_TURN", 8, minimum=1),
            unknown_tool_policy=policy,
            log_level=os.getenv("LOG_LEVEL", "WARNING"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    return Settings.from_env()
