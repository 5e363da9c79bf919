from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path

from auth.models import Credentials
from auth.token_store import DEFAULT_TOKEN_FILE
from auth.urls import is_loopback_redirect_uri

from .constants import (
    DEFAULT_AUTH_TIMEOUT,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_REDIRECT_URI,
    ENV_ACCESS_TOKEN,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_PRINT_ACCESS_TOKEN,
    ENV_REDIRECT_URI,
    ENV_REFRESH_TOKEN,
    ENV_TOKEN_FILE,
    LOGGER,
)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def _require_positive_timeout(key: str, value: float) -> float:
    if not math.isfinite(value) or value <= 0:
        raise RuntimeError(f"{key} must be a finite number of seconds greater than zero.")
    return value


@dataclass(frozen=True)
class BackupConfig:
    access_token: str
    refresh_token: str
    client_id: str
    client_secret: str
    redirect_uri: str
    token_file: Path
    auth_timeout: int
    http_timeout: float
    print_access_token: bool = False

    def credentials(self) -> Credentials:
        return Credentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
        )

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    from dotenv import load_dotenv

    load_dotenv(env_path, override=False)


def load_config(*, default_redirect_uri: str = DEFAULT_REDIRECT_URI) -> BackupConfig:
    redirect_uri = os.getenv(ENV_REDIRECT_URI, "").strip() or default_redirect_uri
    if not is_loopback_redirect_uri(redirect_uri):
        LOGGER.warning(
            "%s=%s is not a loopback http URL; the local callback listener may be unreachable.",
            ENV_REDIRECT_URI,
            redirect_uri,
        )

    return BackupConfig(
        access_token=os.getenv(ENV_ACCESS_TOKEN, "").strip(),
        refresh_token=os.getenv(ENV_REFRESH_TOKEN, "").strip(),
        client_id=os.getenv(ENV_CLIENT_ID, "").strip(),
        client_secret=os.getenv(ENV_CLIENT_SECRET, "").strip(),
        redirect_uri=redirect_uri,
        token_file=Path(os.getenv(ENV_TOKEN_FILE, "").strip() or DEFAULT_TOKEN_FILE),
        auth_timeout=_require_positive_timeout(
            "SPOTIFY_AUTH_TIMEOUT",
            get_env_int("SPOTIFY_AUTH_TIMEOUT", DEFAULT_AUTH_TIMEOUT),
        ),
        http_timeout=_require_positive_timeout(
            "SPOTIFY_HTTP_TIMEOUT",
            _get_env_float("SPOTIFY_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        ),
        print_access_token=is_truthy(os.getenv(ENV_PRINT_ACCESS_TOKEN)),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("SPOTIFY_BACKUP_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
