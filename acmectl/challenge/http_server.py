"""
Embedded HTTP server for ACME HTTP-01 challenges.

This module provides a minimal HTTP listener for hosts without a web
server on port 80. The aiohttp application runs on its own event loop in
a background thread, so the blocking orchestration thread can publish a
proof, wait for the CA, and stop the listener without killing threads.
"""

import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError

import psutil
from aiohttp import web
from aiohttp.web import Application, Request, Response

from ..types import ProviderUnavailableError
from .base import HttpChallengeProvider

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
DEFAULT_HOST = "0.0.0.0"
STARTUP_TIMEOUT = 10.0
SHUTDOWN_TIMEOUT = 10.0


def is_port_listening(port: int) -> bool:
    """Check whether any local TCP socket is listening on ``port``.

    Returns False when the connection table cannot be read; the bind
    attempt then surfaces a busy port instead.
    """
    try:
        connections = psutil.net_connections(kind="tcp")
    except (psutil.Error, OSError) as e:
        logger.warning(f"Cannot enumerate listening sockets: {e}")
        return False

    for conn in connections:
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        if conn.laddr.port == port:
            return True
    return False


class StandaloneHttpChallengeProvider(HttpChallengeProvider):
    """HTTP-01 provider answering every request with the current proof.

    The ACME server only ever asks for the token it is validating, and one
    challenge is validated at a time, so a single value is served for any
    path, as ``application/octet-stream``.
    """

    def __init__(self, port: int = DEFAULT_PORT, host: str = DEFAULT_HOST):
        """Start the listener.

        Args:
            port: Port to bind to (default: 80)
            host: Host to bind to (default: 0.0.0.0)

        Raises:
            ProviderUnavailableError: If the port already has a listener or
                the bind fails
        """
        self.host = host
        self.port = port
        self.runner: web.AppRunner | None = None

        self._token_contents = ""
        self._lock = threading.Lock()
        self._running = False

        if is_port_listening(port):
            raise ProviderUnavailableError(
                f"Port {port} is already in use, cannot start the HTTP "
                f"challenge listener"
            )

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name=f"acme-http-{port}", daemon=True
        )
        self._thread.start()

        future = asyncio.run_coroutine_threadsafe(self._start(), self._loop)
        try:
            future.result(timeout=STARTUP_TIMEOUT)
        except (OSError, FutureTimeoutError) as e:
            self._stop_loop()
            raise ProviderUnavailableError(
                f"Cannot listen on {host}:{port}: {e}"
            ) from e

        self._running = True
        logger.info(f"HTTP challenge listener started on {host}:{port}")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def create_app(self) -> Application:
        """Create the aiohttp application with a catch-all route."""
        app = web.Application()
        app.router.add_route("*", "/{path:.*}", self._handle_request)
        return app

    async def _start(self) -> None:
        self.runner = web.AppRunner(self.create_app())
        await self.runner.setup()
        try:
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()
        except OSError:
            await self.runner.cleanup()
            self.runner = None
            raise

    async def _handle_request(self, request: Request) -> Response:
        with self._lock:
            body = self._token_contents
        logger.debug(f"Challenge request for {request.path} from {request.remote}")
        return web.Response(
            body=body.encode("ascii"), content_type="application/octet-stream"
        )

    async def _cleanup(self) -> None:
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    def _stop_loop(self) -> None:
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=SHUTDOWN_TIMEOUT)
        if not self._thread.is_alive():
            self._loop.close()

    @property
    def is_running(self) -> bool:
        """Check if the listener is currently running."""
        return self._running

    def prepare_challenge_for_validation(self, token: str, key_authz: str) -> bool:
        with self._lock:
            self._token_contents = key_authz
        logger.debug(f"Serving key authorization for token {token}")
        return True

    def cleanup_challenge_after_validation(self, token: str) -> None:
        with self._lock:
            self._token_contents = ""

    def end_all_challenge_validations(self) -> None:
        if not self._running:
            return

        logger.info("Stopping HTTP challenge listener...")
        future = asyncio.run_coroutine_threadsafe(self._cleanup(), self._loop)
        try:
            future.result(timeout=SHUTDOWN_TIMEOUT)
        except (OSError, RuntimeError, FutureTimeoutError) as e:
            logger.warning(f"HTTP challenge listener did not shut down cleanly: {e}")
        finally:
            self._stop_loop()
            self._running = False

        logger.info("HTTP challenge listener stopped")
