from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

import dotenv

logger = logging.getLogger(__name__)

XERO_SCOPES = (
    "openid profile email accounting.settings accounting.reports.read accounting.journals.read "
    "accounting.contacts accounting.attachments accounting.transactions offline_access"
)

DEFAULT_PORT = 5000


class ConfigError(RuntimeError):
    """Required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    # OAuth app registration (required)
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: Tuple[str, ...]

    # Server
    port: int

    # Session configuration
    session_secret: Optional[str]  # None -> random per-process secret
    session_ttl_seconds: int
    cookie_secure: bool

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)


def _parse_bool(value: str, default: bool) -> bool:
    v = (value or "").strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    raw = (value or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        raise ConfigError(f"Invalid integer value: {raw!r}")


@lru_cache(maxsize=1)
def load_app_config() -> AppConfig:
    """
    Load application configuration from environment variables.

    A `.env` file in the working directory is read first; real environment
    variables always win over it.

    Raises:
        ConfigError if CLIENT_ID, CLIENT_SECRET or REDIRECT_URI is missing.
    """
    dotenv.load_dotenv(dotenv.find_dotenv(usecwd=True), override=False)

    client_id = (os.getenv("CLIENT_ID", "") or "").strip()
    client_secret = (os.getenv("CLIENT_SECRET", "") or "").strip()
    redirect_uri = (os.getenv("REDIRECT_URI", "") or "").strip()

    missing = [
        name
        for name, value in (
            ("CLIENT_ID", client_id),
            ("CLIENT_SECRET", client_secret),
            ("REDIRECT_URI", redirect_uri),
        )
        if not value
    ]
    if missing:
        raise ConfigError(
            f"Environment variables not all set ({', '.join(missing)}) - "
            "check the .env file in the project root or create one"
        )

    ttl = _parse_int(os.getenv("SESSION_TTL_SECONDS", ""), 24 * 3600)
    if ttl <= 60:
        ttl = 60

    session_secret = (os.getenv("SESSION_SECRET", "") or "").strip() or None
    if session_secret is None:
        logger.warning("SESSION_SECRET not set; sessions will not survive a restart")

    return AppConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scopes=tuple(XERO_SCOPES.split(" ")),
        port=_parse_int(os.getenv("PORT", ""), DEFAULT_PORT),
        session_secret=session_secret,
        session_ttl_seconds=ttl,
        cookie_secure=_parse_bool(os.getenv("COOKIE_SECURE", ""), False),
    )
