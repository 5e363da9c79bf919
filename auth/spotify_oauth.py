from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

import httpx

from auth.errors import MalformedResponse, TokenExchangeFailed
from spotify_backup.http import build_http_client

SPOTIFY_AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"

DEFAULT_SCOPES = [
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-library-read",
]


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None
    expires_in: int
    scope: str = ""
    token_type: str = "Bearer"

    @classmethod
    def from_payload(cls, payload: dict, *, require_refresh_token: bool) -> "TokenResponse":
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in", 0)
        scope = payload.get("scope", "")
        token_type = payload.get("token_type", "Bearer")

        if not isinstance(access_token, str) or not access_token:
            raise MalformedResponse("Token response missing access_token.")
        if require_refresh_token and (not isinstance(refresh_token, str) or not refresh_token):
            raise MalformedResponse("Token response missing refresh_token.")
        if not isinstance(refresh_token, str) or not refresh_token:
            refresh_token = None
        if not isinstance(expires_in, int) or isinstance(expires_in, bool):
            raise MalformedResponse("Token response expires_in must be an integer.")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            scope=scope if isinstance(scope, str) else "",
            token_type=token_type if isinstance(token_type, str) else "Bearer",
        )


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
) -> str:
    query = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": " ".join(scopes or DEFAULT_SCOPES),
    }
    return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(query)}"


async def _token_request(
    client_id: str,
    client_secret: str,
    payload: dict[str, str],
    *,
    client: httpx.AsyncClient | None = None,
) -> dict:
    own_client = client is None
    http_client = client or build_http_client()

    try:
        response = await http_client.post(
            SPOTIFY_TOKEN_URL,
            data=payload,
            auth=(client_id, client_secret),
        )
    finally:
        if own_client:
            await http_client.aclose()

    if response.status_code != 200:
        raise TokenExchangeFailed(response.status_code, response.text)

    try:
        decoded = response.json()
    except ValueError as error:
        raise MalformedResponse(f"Token response is not valid JSON: {error}") from error
    if not isinstance(decoded, dict):
        raise MalformedResponse("Token response must be a JSON object.")
    return decoded


async def exchange_code(
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> TokenResponse:
    payload = await _token_request(
        client_id,
        client_secret,
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        },
        client=client,
    )
    return TokenResponse.from_payload(payload, require_refresh_token=True)


async def refresh_access_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Mint a new access token.

    Spotify may or may not rotate the refresh token on this grant, so only
    the access token is returned.
    """
    payload = await _token_request(
        client_id,
        client_secret,
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        client=client,
    )
    return TokenResponse.from_payload(payload, require_refresh_token=False).access_token
