from __future__ import annotations

import sys

import httpx

from auth.errors import ConfigurationMissing, SpotifyAuthError, TokenNotFound
from auth.interactive import run_interactive_auth
from auth.spotify_oauth import refresh_access_token
from auth.token_store import RefreshTokenStore

from .constants import ENV_ACCESS_TOKEN, ENV_PRINT_ACCESS_TOKEN, LOGGER
from .env import BackupConfig, load_config, load_env, setup_logging
from .http import build_http_client


async def resolve_access_token(
    config: BackupConfig,
    store: RefreshTokenStore,
    *,
    client: httpx.AsyncClient | None = None,
    interactive_fn=run_interactive_auth,
    refresh_fn=refresh_access_token,
) -> str:
    """Obtain an access token for a backup run.

    Order of preference: an explicit access token, then a refresh token from
    the environment or the token file, then the interactive browser flow.
    A refresh token minted by the interactive flow is persisted.
    """
    if config.access_token:
        return config.access_token

    refresh_token = config.refresh_token
    if not refresh_token:
        try:
            refresh_token = store.load()
        except TokenNotFound:
            refresh_token = ""
        else:
            print(f"Loaded refresh token from {store.path}", file=sys.stderr)

    if not config.has_client_credentials:
        raise ConfigurationMissing(
            [f"{ENV_ACCESS_TOKEN} (or SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET)"]
        )

    if not refresh_token:
        print("No tokens found. Starting interactive OAuth flow...", file=sys.stderr)
        tokens = await interactive_fn(
            config.credentials(),
            timeout=config.auth_timeout,
            client=client,
        )
        try:
            store.save(tokens.refresh_token or "")
        except (SpotifyAuthError, OSError) as error:
            LOGGER.warning("Failed to save refresh token: %s", error)
        else:
            print(f"Refresh token saved to {store.path}", file=sys.stderr)
        return tokens.access_token

    access_token = await refresh_fn(
        client_id=config.client_id,
        client_secret=config.client_secret,
        refresh_token=refresh_token,
        client=client,
    )
    print("Got access token from refresh token", file=sys.stderr)
    return access_token


async def run_cli() -> int:
    load_env()
    setup_logging()

    try:
        config = load_config()
        store = RefreshTokenStore(config.token_file)
        async with build_http_client(timeout=config.http_timeout) as client:
            access_token = await resolve_access_token(config, store, client=client)
    except (RuntimeError, ValueError, httpx.HTTPError) as error:
        print(f"spotify-backup: {error}", file=sys.stderr)
        return 1

    if config.print_access_token:
        print(access_token)
    else:
        print(
            f"Access token ready. Set {ENV_PRINT_ACCESS_TOKEN}=1 to write it to stdout.",
            file=sys.stderr,
        )
    return 0
