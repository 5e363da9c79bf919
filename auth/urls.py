from __future__ import annotations

import urllib.parse

from auth.errors import ConfigurationInvalid
from auth.models import CallbackAddress
from spotify_backup.constants import ENV_REDIRECT_URI

DEFAULT_CALLBACK_PORT = 8888
DEFAULT_CALLBACK_PATH = "/callback"


def parse_callback_address(redirect_uri: str) -> CallbackAddress:
    """Work out where the local listener must bind for a redirect URI.

    ``localhost`` is bound as ``127.0.0.1``; a missing port falls back to
    8888 and a missing path to ``/callback``. Anything that is not an
    absolute http(s) URL with a valid port raises ``ConfigurationInvalid``.
    """
    parsed = urllib.parse.urlparse(redirect_uri)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationInvalid(
            ENV_REDIRECT_URI,
            f"not an absolute http(s) URL: {redirect_uri!r}",
        )
    try:
        port = parsed.port
    except ValueError as error:
        raise ConfigurationInvalid(ENV_REDIRECT_URI, f"{error} in {redirect_uri!r}") from error

    host = parsed.hostname
    if host == "localhost":
        host = "127.0.0.1"

    return CallbackAddress(
        host=host,
        port=port or DEFAULT_CALLBACK_PORT,
        path=parsed.path or DEFAULT_CALLBACK_PATH,
    )


def is_loopback_redirect_uri(uri: str) -> bool:
    parsed = urllib.parse.urlparse(uri)
    if parsed.scheme != "http":
        return False
    return parsed.hostname in {"127.0.0.1", "localhost", "::1"}
