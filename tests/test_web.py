import urllib.parse

import httpx
from starlette.testclient import TestClient

from auth.errors import MalformedResponse, TokenExchangeFailed
from auth.spotify_oauth import SPOTIFY_AUTHORIZE_URL, TokenResponse
from auth.token_store import RefreshTokenStore
from spotify_backup.web import AppState, create_app

REDIRECT_URI = "http://127.0.0.1:8080/api/auth/callback"


def _build_client(tmp_path, *, exchange_code_fn=None, **state_values):
    async def _default_exchange(**kwargs):
        del kwargs
        return TokenResponse(
            access_token="AT1",
            refresh_token="RT1",
            expires_in=3600,
        )

    state = AppState(redirect_uri=REDIRECT_URI, **state_values)
    store = RefreshTokenStore(tmp_path / ".token")
    app = create_app(state, store, exchange_code_fn=exchange_code_fn or _default_exchange)
    return state, store, TestClient(app)


def test_health(tmp_path) -> None:
    _, _, client = _build_client(tmp_path)

    payload = client.get("/health").json()

    assert payload == {"status": "ok", "version": "0.1.0", "mode": "web"}


def test_status_needs_setup(tmp_path) -> None:
    _, _, client = _build_client(tmp_path)

    payload = client.get("/api/status").json()

    assert payload == {
        "hasToken": False,
        "hasClientId": False,
        "needsSetup": True,
        "message": "Please provide Spotify client ID and secret to begin",
    }


def test_status_ready_to_authenticate(tmp_path) -> None:
    _, _, client = _build_client(tmp_path, client_id="abc", client_secret="xyz")

    payload = client.get("/api/status").json()

    assert payload["needsSetup"] is False
    assert payload["hasToken"] is False
    assert payload["message"] == "Client credentials configured. Ready to authenticate with Spotify"


def test_status_authenticated(tmp_path) -> None:
    _, _, client = _build_client(
        tmp_path, client_id="abc", client_secret="xyz", refresh_token="RT1"
    )

    payload = client.get("/api/status").json()

    assert payload["hasToken"] is True
    assert payload["message"] == "Authentication complete. Ready to backup playlists"


def test_setup_stores_credentials_and_returns_auth_url(tmp_path) -> None:
    state, _, client = _build_client(tmp_path)

    response = client.post("/api/auth/setup", json={"clientId": "abc", "clientSecret": "xyz"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["authUrl"].startswith(SPOTIFY_AUTHORIZE_URL)
    query = urllib.parse.parse_qs(urllib.parse.urlparse(payload["authUrl"]).query)
    assert query["client_id"] == ["abc"]
    assert query["redirect_uri"] == [REDIRECT_URI]
    assert (state.client_id, state.client_secret) == ("abc", "xyz")


def test_setup_requires_both_fields(tmp_path) -> None:
    state, _, client = _build_client(tmp_path)

    response = client.post("/api/auth/setup", json={"clientId": "abc"})

    assert response.status_code == 400
    assert "clientSecret" in response.json()["error"]
    assert state.client_id == ""


def test_setup_rejects_invalid_json(tmp_path) -> None:
    _, _, client = _build_client(tmp_path)

    response = client.post(
        "/api/auth/setup",
        content=b"not-json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400


def test_start_without_credentials(tmp_path) -> None:
    _, _, client = _build_client(tmp_path)

    response = client.post("/api/auth/start")

    assert response.status_code == 400
    assert response.json() == {"error": "Client credentials not configured"}


def test_start_returns_auth_url(tmp_path) -> None:
    _, _, client = _build_client(tmp_path, client_id="abc", client_secret="xyz")

    payload = client.post("/api/auth/start").json()

    assert payload["authUrl"].startswith(SPOTIFY_AUTHORIZE_URL)
    assert payload["message"] == "Please visit the auth URL to authorize the application"


def test_callback_exchanges_code_and_persists_refresh_token(tmp_path) -> None:
    calls: list[dict] = []

    async def _exchange(**kwargs):
        calls.append(kwargs)
        return TokenResponse(
            access_token="AT1",
            refresh_token="RT1",
            expires_in=3600,
        )

    state, store, client = _build_client(
        tmp_path, exchange_code_fn=_exchange, client_id="abc", client_secret="xyz"
    )

    response = client.get("/api/auth/callback", params={"code": "AUTH123"})

    assert response.status_code == 200
    assert "Authorization successful" in response.text
    assert calls[0]["code"] == "AUTH123"
    assert calls[0]["redirect_uri"] == REDIRECT_URI
    assert (state.access_token, state.refresh_token) == ("AT1", "RT1")
    assert store.load() == "RT1"


def test_callback_without_code(tmp_path) -> None:
    state, _, client = _build_client(tmp_path, client_id="abc", client_secret="xyz")

    response = client.get("/api/auth/callback", params={"error": "access_denied"})

    assert response.status_code == 400
    assert "No authorization code received" in response.text
    assert state.has_token is False


def test_callback_without_credentials(tmp_path) -> None:
    _, _, client = _build_client(tmp_path)

    response = client.get("/api/auth/callback", params={"code": "AUTH123"})

    assert response.status_code == 400
    assert "Client credentials not configured" in response.text


def test_callback_exchange_rejected(tmp_path) -> None:
    async def _exchange(**kwargs):
        raise TokenExchangeFailed(400, '{"error":"invalid_grant"}')

    state, store, client = _build_client(
        tmp_path, exchange_code_fn=_exchange, client_id="abc", client_secret="xyz"
    )

    response = client.get("/api/auth/callback", params={"code": "AUTH123"})

    assert response.status_code == 502
    assert "Token request failed with status 400" in response.text
    assert "&quot;invalid_grant&quot;" in response.text
    assert state.has_token is False
    assert not store.path.exists()


def test_callback_malformed_response(tmp_path) -> None:
    async def _exchange(**kwargs):
        raise MalformedResponse("Token response missing refresh_token.")

    _, _, client = _build_client(
        tmp_path, exchange_code_fn=_exchange, client_id="abc", client_secret="xyz"
    )

    response = client.get("/api/auth/callback", params={"code": "AUTH123"})

    assert response.status_code == 502
    assert "missing refresh_token" in response.text


def test_callback_network_error(tmp_path) -> None:
    async def _exchange(**kwargs):
        raise httpx.ReadTimeout("stalled")

    _, _, client = _build_client(
        tmp_path, exchange_code_fn=_exchange, client_id="abc", client_secret="xyz"
    )

    response = client.get("/api/auth/callback", params={"code": "AUTH123"})

    assert response.status_code == 502
    assert "stalled" in response.text


def test_logout_clears_tokens(tmp_path) -> None:
    state, store, client = _build_client(
        tmp_path, client_id="abc", client_secret="xyz", refresh_token="RT1"
    )
    store.save("RT1")

    response = client.post("/api/auth/logout")

    assert response.json()["success"] is True
    assert state.has_token is False
    assert not store.path.exists()
