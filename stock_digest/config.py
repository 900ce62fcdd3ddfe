"""
Configuration for the Stock Digest service.

Environment variables are read once, at startup, into an immutable
``Settings`` object. Every component receives that object explicitly; nothing
below this module calls ``os.getenv`` on its own.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from dotenv import load_dotenv


# ---------- Configuration ----------

PROFILES_TABLE = "profiles"
DIGESTS_TABLE = "digests"

# Default Gemini model; can be overridden via GEMINI_MODEL env var
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

# Resend's shared test domain; production deployments set EMAIL_FROM
DEFAULT_EMAIL_FROM = "Stock Summaries <onboarding@resend.dev>"

REQUIRED_KEYS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "GEMINI_API_KEY",  # used by google-genai
    "RESEND_API_KEY",  # used for email sending
    "CRON_SECRET",
    "APP_URL",
]


@dataclass(frozen=True)
class Settings:
    """Validated runtime configuration."""

    supabase_url: str
    supabase_service_role_key: str
    gemini_api_key: str
    resend_api_key: str
    cron_secret: str
    app_url: str
    gemini_model: str = DEFAULT_GEMINI_MODEL
    email_from: str = DEFAULT_EMAIL_FROM
    skip_sent_in_slot: bool = False
    log_level: str = "INFO"

    @property
    def dashboard_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/dashboard"


def configure_logging(level: str = "INFO") -> None:
    """Configure basic logging for the service."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build ``Settings`` from the environment and validate required keys.

    When ``environ`` is omitted, ``.env`` is loaded first and ``os.environ`` is
    used. Raises ``RuntimeError`` naming every missing variable.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    missing: List[str] = [key for key in REQUIRED_KEYS if not environ.get(key)]
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Settings(
        supabase_url=environ["SUPABASE_URL"],
        supabase_service_role_key=environ["SUPABASE_SERVICE_ROLE_KEY"],
        gemini_api_key=environ["GEMINI_API_KEY"],
        resend_api_key=environ["RESEND_API_KEY"],
        cron_secret=environ["CRON_SECRET"],
        app_url=environ["APP_URL"],
        gemini_model=environ.get("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        email_from=environ.get("EMAIL_FROM") or DEFAULT_EMAIL_FROM,
        skip_sent_in_slot=_as_bool(environ.get("DIGEST_SKIP_SENT_IN_SLOT")),
        log_level=environ.get("LOG_LEVEL") or "INFO",
    )
