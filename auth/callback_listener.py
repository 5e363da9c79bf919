from __future__ import annotations

import asyncio
import os
import socket

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from auth.errors import ListenerBindFailure, ListenerError, MissingCode
from auth.urls import parse_callback_address
from spotify_backup.constants import LOGGER

DEFAULT_SHUTDOWN_GRACE = 5.0
_STARTUP_POLL_INTERVAL = 0.01
_REUSE_ADDRESS = os.name != "nt"

SUCCESS_PAGE = (
    "<html><body><h1>&#10003; Authorization successful!</h1>"
    "<p>You can close this window and return to the terminal.</p></body></html>"
)
ERROR_PAGE = "<html><body><h1>Error: No authorization code received</h1></body></html>"


class CallbackListener:
    """Short-lived HTTP listener that captures one OAuth redirect.

    ``result`` is a single-slot future: the first code or failure delivered
    wins and anything after it is dropped. Failures of the serve loop itself
    are delivered through the same slot so a waiting caller never hangs on a
    dead listener.
    """

    def __init__(
        self,
        redirect_uri: str,
        *,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
    ) -> None:
        self.address = parse_callback_address(redirect_uri)
        self.shutdown_grace = shutdown_grace

        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None
        self._result: asyncio.Future | None = None
        self._ready = False
        self._closing = False
        self._closed = False

    @property
    def result(self) -> asyncio.Future:
        if self._result is None:
            raise RuntimeError("Callback listener has not been started.")
        return self._result

    @property
    def is_serving(self) -> bool:
        return self._task is not None and not self._task.done()

    def deliver(self, outcome: str | BaseException) -> bool:
        result = self.result
        if result.done():
            LOGGER.debug("Discarding late callback signal: %r", outcome)
            return False

        if isinstance(outcome, BaseException):
            result.set_exception(outcome)
        else:
            result.set_result(outcome)
        return True

    def build_app(self) -> Starlette:
        return Starlette(
            routes=[Route(self.address.path, self._handle_callback, methods=["GET"])]
        )

    async def _handle_callback(self, request: Request) -> Response:
        code = request.query_params.get("code")
        if not code:
            self.deliver(MissingCode(request.query_params.get("error")))
            return HTMLResponse(ERROR_PAGE, status_code=400)

        self.deliver(code)
        return HTMLResponse(SUCCESS_PAGE)

    # -- lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Callback listener already started.")

        self._result = asyncio.get_running_loop().create_future()
        sock = self._bind()

        config = uvicorn.Config(
            self.build_app(),
            lifespan="off",
            log_config=None,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))
        self._task.add_done_callback(self._on_serve_done)

        try:
            while not self._server.started and not self._task.done():
                await asyncio.sleep(_STARTUP_POLL_INTERVAL)
        except BaseException:
            await self.shutdown()
            sock.close()
            self._result.cancel()
            raise

        if self._task.done():
            sock.close()
            self._closed = True
            self._result.cancel()
            error = None if self._task.cancelled() else self._task.exception()
            raise ListenerError(f"Callback listener failed to start: {error}") from error

        self._ready = True
        LOGGER.info(
            "Callback listener ready on http://%s:%s%s",
            self.address.host,
            self.address.port,
            self.address.path,
        )

    async def shutdown(self) -> None:
        if self._task is None or self._closed:
            return
        self._closed = True
        self._closing = True

        assert self._server is not None
        self._server.should_exit = True
        done, _ = await asyncio.wait({self._task}, timeout=self.shutdown_grace)
        if not done:
            LOGGER.warning(
                "Callback listener did not stop within %ss, forcing exit",
                self.shutdown_grace,
            )
            self._server.force_exit = True
            self._task.cancel()
            await asyncio.wait({self._task})

        # Older uvicorn releases skip their own close when told to exit during startup.
        for server in getattr(self._server, "servers", []):
            server.close()

        LOGGER.info("Callback listener on port %s shut down", self.address.port)

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.address.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        # On Windows SO_REUSEADDR lets a second socket take a port in use.
        if _REUSE_ADDRESS:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.address.host, self.address.port))
        except OSError as error:
            sock.close()
            raise ListenerBindFailure(
                self.address.host, self.address.port, str(error)
            ) from error
        return sock

    def _on_serve_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or not self._ready:
            return

        error = task.exception()
        if error is not None:
            self.deliver(ListenerError(f"Callback listener failed: {error}"))
        elif not self._closing:
            self.deliver(ListenerError("Callback listener stopped unexpectedly."))
