from __future__ import annotations

import asyncio
import os

from auth.errors import TokenNotFound
from auth.token_store import RefreshTokenStore
from spotify_backup.cli import run_cli
from spotify_backup.constants import LOGGER
from spotify_backup.env import (
    get_env_int,
    is_truthy,
    load_config,
    load_env,
    setup_logging,
)
from spotify_backup.http import build_http_client
from spotify_backup.web import AppState, create_app


def create_web_app():
    load_env()
    setup_logging()

    port = get_env_int("PORT", 8080)
    config = load_config(
        default_redirect_uri=f"http://127.0.0.1:{port}/api/auth/callback",
    )
    store = RefreshTokenStore(config.token_file)
    state = AppState(
        redirect_uri=config.redirect_uri,
        client_id=config.client_id,
        client_secret=config.client_secret,
        access_token=config.access_token,
        refresh_token=config.refresh_token,
    )
    if not state.refresh_token:
        try:
            state.refresh_token = store.load()
        except TokenNotFound:
            pass
        else:
            LOGGER.info("Loaded refresh token from %s", store.path)

    return create_app(
        state,
        store,
        client=build_http_client(timeout=config.http_timeout),
    )


def main() -> None:
    load_env()
    if is_truthy(os.getenv("WEB_MODE")):
        import uvicorn

        host = os.getenv("HOST", "127.0.0.1")
        port = get_env_int("PORT", 8080)
        app = create_web_app()
        LOGGER.info("Starting web server on %s:%s", host, port)
        uvicorn.run(app, host=host, port=port)
        return

    raise SystemExit(asyncio.run(run_cli()))


if __name__ == "__main__":
    main()
