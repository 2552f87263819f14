"""Types server: FastAPI app, port-retry bind loop and the uvicorn listener.

The socket is bound here (not by uvicorn) so an occupied port can be
skipped: address-in-use moves on to the next port, any other bind failure
is a `BootstrapError`. The loop has no attempt cap; it ends at the first
port that binds, or at 65535 when the port number overflows.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import socket
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from openapi_ts_sync.core.domain.models import HTTP_LEVEL
from openapi_ts_sync.core.errors import BootstrapError

logger = logging.getLogger(__name__)

SocketFactory = Callable[[int, int], socket.socket]

_ADDRESS_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


def create_app(artifact_path: Path) -> FastAPI:
    """App with the single `GET /types` route.

    A relative `artifact_path` is resolved against the working directory at
    request time. Read failures answer 500 instead of raising.
    """

    app = FastAPI(title="openapi-ts-sync", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.artifact_path = artifact_path

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        response = await call_next(request)
        logger.log(HTTP_LEVEL, "%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.get("/types")
    async def get_types() -> Response:
        try:
            content = await run_in_threadpool(artifact_path.read_bytes)
        except OSError as exc:
            logger.error("Error sending file: %s", exc)
            return PlainTextResponse("Error retrieving types file", status_code=500)
        return Response(content=content, media_type="text/plain; charset=utf-8")

    return app


def bind_socket(
    host: str,
    preferred_port: int,
    *,
    socket_factory: SocketFactory = socket.socket,
) -> socket.socket:
    """Bind `preferred_port`, or the next free port above it."""

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    port = preferred_port
    while True:
        sock = socket_factory(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OverflowError as exc:
            sock.close()
            raise BootstrapError(f"No free port found above {preferred_port}", port=port) from exc
        except OSError as exc:
            sock.close()
            if exc.errno in _ADDRESS_IN_USE:
                logger.warning("Port %s is already in use, trying port %s", port, port + 1)
                port += 1
                continue
            raise BootstrapError(f"Could not bind {host}:{port}: {exc}", port=port) from exc
        return sock


class _ListenerServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the lifecycle manager."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        return None


@dataclass
class ListenerHandle:
    host: str
    port: int
    server: uvicorn.Server
    task: asyncio.Task[None]

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    async def close(self) -> None:
        """Stop accepting connections and let in-flight requests drain."""

        self.server.should_exit = True
        await self.task
        logger.info("Server closed")


async def start_server(
    app: FastAPI,
    *,
    host: str,
    preferred_port: int,
    socket_factory: SocketFactory = socket.socket,
) -> ListenerHandle:
    """Bind (with port retry) and serve `app` until `ListenerHandle.close()`."""

    sock = bind_socket(host, preferred_port, socket_factory=socket_factory)
    port = int(sock.getsockname()[1])
    config = uvicorn.Config(app, log_config=None, access_log=False, lifespan="off")
    server = _ListenerServer(config)
    task = asyncio.get_running_loop().create_task(server.serve(sockets=[sock]))

    while not server.started:
        if task.done():
            sock.close()
            cause = None if task.cancelled() else task.exception()
            raise BootstrapError(f"Server failed to start on port {port}", port=port) from cause
        await asyncio.sleep(0.01)

    return ListenerHandle(host=host, port=port, server=server, task=task)
