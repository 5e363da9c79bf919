from __future__ import annotations

import asyncio
import enum
import sys
import webbrowser
from typing import Awaitable, Callable

import httpx

from auth import spotify_oauth
from auth.callback_listener import CallbackListener
from auth.errors import AuthorizationTimeout, ConfigurationMissing
from auth.models import Credentials
from auth.spotify_oauth import TokenResponse
from auth.urls import parse_callback_address
from spotify_backup.constants import DEFAULT_AUTH_TIMEOUT, LOGGER


class AuthState(enum.Enum):
    IDLE = "idle"
    AWAITING_USER_CONSENT = "awaiting_user_consent"
    EXCHANGING_CODE = "exchanging_code"
    COMPLETE = "complete"
    FAILED = "failed"


ExchangeCodeFn = Callable[..., Awaitable[TokenResponse]]


class InteractiveAuthorization:
    """One browser-based authorization-code flow.

    The flow starts a local callback listener, sends the user to Spotify's
    consent page and waits for the first of: a code, a listener failure or
    the timeout. The listener is shut down exactly once whichever of these
    wins, before the code is exchanged for tokens.

    Only one flow can run per process at a time since every flow binds the
    port named in the redirect URI.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        scopes: list[str] | None = None,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
        open_browser: Callable[[str], bool] = webbrowser.open,
        exchange_code_fn: ExchangeCodeFn = spotify_oauth.exchange_code,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.scopes = scopes or list(spotify_oauth.DEFAULT_SCOPES)
        self.timeout = timeout
        self.state = AuthState.IDLE
        self.authorize_url: str | None = None

        self._open_browser = open_browser
        self._exchange_code_fn = exchange_code_fn
        self._client = client

    async def run(self) -> TokenResponse:
        if self.state is not AuthState.IDLE:
            raise RuntimeError("An authorization flow can only be run once.")

        try:
            code = await self._await_code()
            self._transition(AuthState.EXCHANGING_CODE)
            tokens = await self._exchange_code_fn(
                client_id=self.credentials.client_id,
                client_secret=self.credentials.client_secret,
                code=code,
                redirect_uri=self.credentials.redirect_uri,
                client=self._client,
            )
        except BaseException:
            self._transition(AuthState.FAILED)
            raise

        self._transition(AuthState.COMPLETE)
        return tokens

    async def _await_code(self) -> str:
        missing = self.credentials.missing()
        if missing:
            raise ConfigurationMissing(missing)
        parse_callback_address(self.credentials.redirect_uri)

        self.authorize_url = spotify_oauth.build_authorization_url(
            self.credentials.client_id,
            self.credentials.redirect_uri,
            self.scopes,
        )
        listener = CallbackListener(self.credentials.redirect_uri)
        await listener.start()
        self._transition(AuthState.AWAITING_USER_CONSENT)

        try:
            print("Starting Spotify authorization...", file=sys.stderr)
            self._launch_browser(self.authorize_url)
            print("Waiting for authorization...", file=sys.stderr)
            try:
                code = await asyncio.wait_for(listener.result, timeout=self.timeout)
            except asyncio.TimeoutError as error:
                raise AuthorizationTimeout(self.timeout) from error
        finally:
            await listener.shutdown()

        print("Authorization received.", file=sys.stderr)
        return code

    def _launch_browser(self, url: str) -> None:
        try:
            opened = self._open_browser(url)
        except (webbrowser.Error, OSError) as error:
            LOGGER.warning("Could not launch browser: %s", error)
            opened = False

        if not opened:
            LOGGER.warning("Browser did not open; authorization URL: %s", url)
            print(
                "\nCouldn't open browser automatically. Please open this URL manually:",
                file=sys.stderr,
            )
            print(f"\n   {url}\n", file=sys.stderr)

    def _transition(self, new_state: AuthState) -> None:
        LOGGER.info("Authorization state %s -> %s", self.state.value, new_state.value)
        self.state = new_state


async def run_interactive_auth(credentials: Credentials, **kwargs) -> TokenResponse:
    return await InteractiveAuthorization(credentials, **kwargs).run()
