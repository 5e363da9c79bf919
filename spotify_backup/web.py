from __future__ import annotations

import asyncio
import contextlib
import html
from dataclasses import dataclass, field

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route

from auth import spotify_oauth
from auth.callback_listener import ERROR_PAGE
from auth.errors import InvalidInput, SpotifyAuthError
from auth.token_store import RefreshTokenStore

from .constants import APP_VERSION, LOGGER

WEB_SUCCESS_PAGE = (
    "<html><body><h1>&#10003; Authorization successful!</h1>"
    "<p>You can close this window and return to the application.</p></body></html>"
)


@dataclass
class AppState:
    """Credentials and tokens for the single user of a web-mode process.

    One instance backs one app. Handlers mutate it under ``lock``; there is
    no per-browser session, so two users of the same server share it.
    """

    redirect_uri: str
    client_id: str = ""
    client_secret: str = ""
    access_token: str = ""
    refresh_token: str = ""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def has_token(self) -> bool:
        return bool(self.access_token or self.refresh_token)

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


def _error_page(message: str) -> str:
    return f"<html><body><h1>Error</h1><p>{html.escape(message)}</p></body></html>"


class WebAuthServer:
    def __init__(
        self,
        state: AppState,
        store: RefreshTokenStore,
        *,
        scopes: list[str] | None = None,
        exchange_code_fn=spotify_oauth.exchange_code,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.state = state
        self.store = store
        self.scopes = scopes or list(spotify_oauth.DEFAULT_SCOPES)
        self._exchange_code_fn = exchange_code_fn
        self._client = client

    def routes(self) -> list[Route]:
        return [
            Route("/health", self._handle_health, methods=["GET"]),
            Route("/api/status", self._handle_status, methods=["GET"]),
            Route("/api/auth/setup", self._handle_setup, methods=["POST"]),
            Route("/api/auth/start", self._handle_start, methods=["POST"]),
            Route("/api/auth/callback", self._handle_callback, methods=["GET"]),
            Route("/api/auth/logout", self._handle_logout, methods=["POST"]),
        ]

    # -- handlers --------------------------------------------------------------

    async def _handle_health(self, request: Request) -> Response:
        del request
        return JSONResponse({"status": "ok", "version": APP_VERSION, "mode": "web"})

    async def _handle_status(self, request: Request) -> Response:
        del request
        async with self.state.lock:
            has_token = self.state.has_token
            has_client_id = bool(self.state.client_id)

        if not has_client_id:
            message = "Please provide Spotify client ID and secret to begin"
        elif not has_token:
            message = "Client credentials configured. Ready to authenticate with Spotify"
        else:
            message = "Authentication complete. Ready to backup playlists"

        return JSONResponse(
            {
                "hasToken": has_token,
                "hasClientId": has_client_id,
                "needsSetup": not has_client_id,
                "message": message,
            }
        )

    async def _handle_setup(self, request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return self._error("Invalid request: body must be JSON.", 400)
        if not isinstance(payload, dict):
            return self._error("Invalid request: body must be a JSON object.", 400)

        client_id = payload.get("clientId")
        client_secret = payload.get("clientSecret")
        if not isinstance(client_id, str) or not client_id.strip():
            return self._error("Invalid request: clientId is required.", 400)
        if not isinstance(client_secret, str) or not client_secret.strip():
            return self._error("Invalid request: clientSecret is required.", 400)

        async with self.state.lock:
            self.state.client_id = client_id.strip()
            self.state.client_secret = client_secret.strip()
            auth_url = self._authorization_url()

        LOGGER.info("Client credentials configured through web setup")
        return JSONResponse(
            {
                "success": True,
                "message": "Client credentials saved. Please authorize the application",
                "authUrl": auth_url,
            }
        )

    async def _handle_start(self, request: Request) -> Response:
        del request
        async with self.state.lock:
            if not self.state.has_client_credentials:
                return self._error("Client credentials not configured", 400)
            auth_url = self._authorization_url()

        return JSONResponse(
            {
                "authUrl": auth_url,
                "message": "Please visit the auth URL to authorize the application",
            }
        )

    async def _handle_callback(self, request: Request) -> Response:
        code = request.query_params.get("code")
        if not code:
            provider_error = request.query_params.get("error")
            if provider_error:
                LOGGER.warning("Authorization denied by provider: %s", provider_error)
            return HTMLResponse(ERROR_PAGE, status_code=400)

        async with self.state.lock:
            client_id = self.state.client_id
            client_secret = self.state.client_secret
            redirect_uri = self.state.redirect_uri

        if not client_id or not client_secret:
            return HTMLResponse(_error_page("Client credentials not configured"), status_code=400)

        try:
            tokens = await self._exchange_code_fn(
                client_id=client_id,
                client_secret=client_secret,
                code=code,
                redirect_uri=redirect_uri,
                client=self._client,
            )
        except (SpotifyAuthError, httpx.HTTPError) as error:
            LOGGER.warning("Token exchange failed in web callback: %s", error)
            return HTMLResponse(
                _error_page(f"Failed to exchange authorization code: {error}"),
                status_code=502,
            )

        async with self.state.lock:
            self.state.access_token = tokens.access_token
            self.state.refresh_token = tokens.refresh_token or ""

        try:
            self.store.save(tokens.refresh_token or "")
        except (InvalidInput, OSError) as error:
            LOGGER.warning("Failed to save refresh token: %s", error)
        else:
            LOGGER.info("Refresh token saved to %s", self.store.path)

        return HTMLResponse(WEB_SUCCESS_PAGE)

    async def _handle_logout(self, request: Request) -> Response:
        del request
        async with self.state.lock:
            self.state.access_token = ""
            self.state.refresh_token = ""
        self.store.clear()
        return JSONResponse({"success": True, "message": "Stored tokens cleared"})

    # -- helpers ---------------------------------------------------------------

    def _authorization_url(self) -> str:
        return spotify_oauth.build_authorization_url(
            self.state.client_id,
            self.state.redirect_uri,
            self.scopes,
        )

    def _error(self, message: str, status_code: int) -> Response:
        return JSONResponse({"error": message}, status_code=status_code)


def create_app(
    state: AppState,
    store: RefreshTokenStore,
    *,
    client: httpx.AsyncClient | None = None,
    **kwargs,
) -> Starlette:
    web_server = WebAuthServer(state, store, client=client, **kwargs)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        del app
        try:
            yield
        finally:
            if client is not None:
                await client.aclose()

    app = Starlette(routes=web_server.routes(), lifespan=lifespan)
    app.state.web_server = web_server
    return app
