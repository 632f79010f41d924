# gemini_calendar/callback_server.py
"""
Local HTTP listener that catches the OAuth redirect.

Google sends the browser to http://localhost:28080/?code=... after consent.
This server's only job is to grab that code, hand it to the waiting
authorization flow through a SecretChannel, and show the user a page
telling them they can close the tab. It knows nothing about token exchange.

The server runs uvicorn on a background thread. The port is bound in the
caller's thread before uvicorn starts, so "port already in use" surfaces as
an exception instead of a log line on some other thread.
"""

from __future__ import annotations

import errno
import html
import logging
import socket
import threading
import time
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from gemini_calendar.errors import ListenerStartupError
from gemini_calendar.secret_channel import SecretChannel

logger = logging.getLogger(__name__)

_CONFIRMATION_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>Gemini Calendar authorization</title>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body>
  <h1>Authorization code:</h1>
  <pre>{code}</pre>
  <p>Authorization received. You can close this page and return to the terminal.</p>
</body>
</html>
"""

_STARTUP_TIMEOUT_SECONDS = 5.0

# Address families or addresses this host cannot bind (e.g. ::1 with IPv6 off).
_UNUSABLE_ADDRESS_ERRNOS = (errno.EADDRNOTAVAIL, errno.EAFNOSUPPORT)


def build_callback_app(channel: SecretChannel) -> FastAPI:
    """
    FastAPI app with a single catch-all route.

    Every request gets a 200 with the confirmation page, including requests
    without a code (favicon probes) and repeat hits after the code was taken.
    """
    app = FastAPI(title="OAuth callback", docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD", "POST"], response_class=HTMLResponse)
    def callback(request: Request, path: str) -> HTMLResponse:
        code = request.query_params.get("code", "")
        if code:
            if channel.publish(code):
                logger.info("Authorization code received on /%s", path)
            else:
                logger.debug("Ignoring repeated redirect on /%s", path)
        return HTMLResponse(_CONFIRMATION_PAGE.format(code=html.escape(code)), status_code=200)

    return app


class CallbackListener:
    """
    Background uvicorn server publishing the first ?code= it sees into `channel`.

    Usage:
        with CallbackListener(channel, port=28080):
            code = channel.await_value(timeout=300)
    """

    def __init__(
        self,
        channel: SecretChannel,
        host: str = "localhost",
        port: int = 28080,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self.channel = channel
        self.host = host
        self.port = port
        self.shutdown_timeout = shutdown_timeout
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _bind(self) -> List[socket.socket]:
        """
        Bind every address `host` resolves to, all on one port.

        "localhost" usually resolves to both ::1 and 127.0.0.1 and browsers may
        try either. Addresses this machine cannot use (::1 with IPv6 disabled)
        are skipped; any other bind failure is fatal.
        """
        try:
            infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ListenerStartupError(f"Cannot resolve {self.host!r} for the OAuth redirect: {e}") from e

        sockets: List[socket.socket] = []
        port = self.port
        seen = set()
        try:
            for family, socktype, proto, _, sockaddr in infos:
                if (family, sockaddr[0]) in seen:
                    continue
                seen.add((family, sockaddr[0]))
                sock = self._bind_one(family, socktype, proto, (sockaddr[0], port) + tuple(sockaddr[2:]))
                if sock is None:
                    continue
                sockets.append(sock)
                # Port 0 means "any free port"; the other families reuse the one we got.
                port = sock.getsockname()[1]
        except OSError as e:
            for sock in sockets:
                sock.close()
            raise ListenerStartupError(
                f"Cannot listen on {self.host}:{self.port} for the OAuth redirect: {e}"
            ) from e

        if not sockets:
            raise ListenerStartupError(f"No usable address for {self.host}:{self.port}")
        self.port = port
        return sockets

    @staticmethod
    def _bind_one(family, socktype, proto, address) -> Optional[socket.socket]:
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            if e.errno in _UNUSABLE_ADDRESS_ERRNOS:
                logger.debug("Skipping %s: %s", address[0], e)
                return None
            raise
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if family == socket.AF_INET6 and hasattr(socket, "IPV6_V6ONLY"):
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
            sock.bind(address)
            sock.listen(128)
        except OSError as e:
            sock.close()
            if e.errno in _UNUSABLE_ADDRESS_ERRNOS:
                logger.debug("Skipping %s: %s", address[0], e)
                return None
            raise
        return sock

    def _serve(self, sockets: List[socket.socket]) -> None:
        assert self._server is not None
        try:
            self._server.run(sockets=sockets)
        finally:
            for sock in sockets:
                sock.close()
            # Nothing can be published any more; release a waiter that has no code yet.
            self.channel.close()

    def start(self) -> "CallbackListener":
        if self.running:
            raise RuntimeError("callback listener already running")

        sockets = self._bind()

        config = uvicorn.Config(
            build_callback_app(self.channel),
            lifespan="off",
            log_level="warning",
            log_config=None,
            timeout_graceful_shutdown=max(1, int(self.shutdown_timeout)),
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._serve, args=(sockets,), name="oauth-callback", daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + _STARTUP_TIMEOUT_SECONDS
        while not self._server.started:
            if not self._thread.is_alive():
                raise ListenerStartupError(f"OAuth callback server on port {self.port} exited during startup")
            if time.monotonic() > deadline:
                self.stop()
                raise ListenerStartupError(f"OAuth callback server on port {self.port} did not start in time")
            time.sleep(0.01)

        logger.info("Listening for the OAuth redirect on http://%s:%d/", self.host, self.port)
        return self

    def stop(self) -> None:
        """
        Graceful shutdown bounded by `shutdown_timeout`. Safe to call more than once.

        If connections do not drain in time the server is forced down and the
        timeout is logged; it is not raised.
        """
        if self._server is None or self._thread is None:
            self.channel.close()
            return

        self._server.should_exit = True
        self._thread.join(self.shutdown_timeout + 1.0)
        if self._thread.is_alive():
            logger.warning(
                "OAuth callback server did not shut down within %.0fs; forcing exit",
                self.shutdown_timeout,
            )
            self._server.force_exit = True
            self._thread.join(1.0)

        self.channel.close()
        logger.debug("OAuth callback server on port %d stopped", self.port)

    def __enter__(self) -> "CallbackListener":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
