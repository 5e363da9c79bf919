from __future__ import annotations

import logging

LOGGER = logging.getLogger("spotify_backup")
APP_VERSION = "0.1.0"
USER_AGENT = "spotify-backup/1.0"

ENV_ACCESS_TOKEN = "SPOTIFY_ACCESS_TOKEN"
ENV_REFRESH_TOKEN = "SPOTIFY_REFRESH_TOKEN"
ENV_CLIENT_ID = "SPOTIFY_CLIENT_ID"
ENV_CLIENT_SECRET = "SPOTIFY_CLIENT_SECRET"
ENV_REDIRECT_URI = "SPOTIFY_REDIRECT_URI"
ENV_TOKEN_FILE = "SPOTIFY_TOKEN_FILE"
ENV_PRINT_ACCESS_TOKEN = "SPOTIFY_PRINT_ACCESS_TOKEN"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_AUTH_TIMEOUT = 300
