from __future__ import annotations

import httpx

from .constants import DEFAULT_HTTP_TIMEOUT, LOGGER, USER_AGENT

_MAX_LOGGED_BODY = 1000


async def log_request(request: httpx.Request) -> None:
    LOGGER.info("Spotify request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.info(
        "Spotify response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )
    if response.status_code >= 400:
        body = await response.aread()
        text = body.decode("utf-8", errors="replace")
        if len(text) > _MAX_LOGGED_BODY:
            text = text[:_MAX_LOGGED_BODY] + "...<truncated>"
        LOGGER.warning("Spotify error body: %s", text)


def build_http_client(
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Client shared by every call to Spotify.

    The timeout is always finite so a stalled provider fails instead of
    hanging the process.
    """
    return httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=timeout,
        transport=transport,
        event_hooks={
            "request": [log_request],
            "response": [log_response],
        },
    )
