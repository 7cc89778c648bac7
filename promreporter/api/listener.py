"""Background scrape listener.

When a reporter has its own listen address, the scrape endpoint is
served by uvicorn on a daemon thread:

  build reporter ──► start Listener ──► return to caller
                          │
                          └─ thread: bind socket → uvicorn serve loop

The caller is never blocked on the network.  The thread binds the socket
itself (instead of letting uvicorn do it) so a taken port or a malformed
address surfaces as an ordinary exception that is handed to the error
callback, once.  There is no retry and no restart: after reporting, the
thread exits.

Listener.stop() is the shutdown hook: it asks uvicorn to exit and joins
the thread.  Tests use it to release ports; applications can call it
from their own shutdown path.
"""

from __future__ import annotations

import logging
import os
import socket
import threading
import time
from collections.abc import Callable

import uvicorn
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

_BACKLOG = 2048


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port``, ``:port`` or ``[v6]:port`` into host and port."""
    host, sep, port_raw = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"invalid port in address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in address {address!r}")
    return host, port


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if os.name != "nt":
            # Lets a restarted listener reclaim a port still in TIME_WAIT.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host or "0.0.0.0", port))
        sock.listen(_BACKLOG)
    except OSError:
        sock.close()
        raise
    return sock


def format_address(sockname: tuple) -> str:
    host, port = sockname[0], sockname[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class Listener:
    def __init__(
        self,
        address: str,
        app: ASGIApp,
        on_error: Callable[[BaseException], None],
    ) -> None:
        self.requested_address = address
        self._app = app
        self._on_error = on_error
        self._server: uvicorn.Server | None = None
        self._bound_address: str | None = None
        self._stop_requested = threading.Event()
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run,
            name=f"promreporter-listener[{address}]",
            daemon=True,
        )

    @property
    def address(self) -> str | None:
        """Actual bound ``host:port`` (resolves port 0), None until bound."""
        return self._bound_address

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    @property
    def started(self) -> bool:
        server = self._server
        return server is not None and server.started

    def start(self) -> Listener:
        self._thread.start()
        return self

    def wait_started(self, timeout: float = 5.0) -> bool:
        """Block until uvicorn accepts connections; False on failure or timeout."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.started:
                return True
            if self._done.is_set():
                return False
            time.sleep(0.01)
        return self.started

    def wait_stopped(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            self._stop_requested.set()
            if self._server is not None:
                self._server.should_exit = True
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _report(self, err: BaseException) -> None:
        logger.debug(
            "Metrics listener failed: %s", err, extra={"address": self.requested_address}
        )
        self._on_error(err)

    def _run(self) -> None:
        try:
            try:
                host, port = parse_address(self.requested_address)
                sock = bind_socket(host, port)
            except Exception as exc:
                self._report(exc)
                return

            try:
                self._serve(sock)
            finally:
                sock.close()
        finally:
            self._done.set()

    def _serve(self, sock: socket.socket) -> None:
        self._bound_address = format_address(sock.getsockname())
        config = uvicorn.Config(
            self._app,
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        server = uvicorn.Server(config)

        with self._lock:
            if self._stop_requested.is_set():
                return
            self._server = server

        logger.info(
            "Metrics listener serving on %s",
            self._bound_address,
            extra={"address": self._bound_address},
        )
        try:
            server.run(sockets=[sock])
        except (Exception, SystemExit) as exc:
            # uvicorn calls sys.exit(1) when startup fails.
            self._report(exc)
            return

        if not self._stop_requested.is_set():
            self._report(
                RuntimeError(f"metrics listener on {self._bound_address} stopped unexpectedly")
            )
        else:
            logger.info(
                "Metrics listener on %s stopped",
                self._bound_address,
                extra={"address": self._bound_address},
            )


def listen_and_serve(
    address: str,
    app: ASGIApp,
    on_error: Callable[[BaseException], None],
) -> Listener:
    """Serve ``app`` on ``address`` from a background thread and return its handle."""
    return Listener(address, app, on_error).start()
