"""Path-to-handler routing tables for scrape endpoints.

A ServeMux is a FastAPI application used purely as a routing table:
``handle(path, endpoint)`` adds a GET route, and the mux itself is the
ASGI app handed to uvicorn.

DEFAULT_SERVE_MUX is the process-wide table used when a reporter is not
given a listen address.  Embedding applications mount it (it is a plain
ASGI app) or serve it themselves.  Tests should pass their own ServeMux
instead of touching the shared one.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI
from starlette.types import Receive, Scope, Send

from promreporter.core.errors import ConfigurationError, RouteConflictError


class ServeMux:
    def __init__(self) -> None:
        self.app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
        self._paths: set[str] = set()
        self._lock = threading.Lock()

    def handle(self, path: str, endpoint: Callable[..., Any]) -> None:
        """Register ``endpoint`` for GET requests on ``path``.

        Raises RouteConflictError if the path is already taken; routes are
        never replaced silently.
        """
        if not path.startswith("/"):
            raise ConfigurationError(f"handler path must start with '/' (got {path!r})")
        with self._lock:
            if path in self._paths:
                raise RouteConflictError(path)
            self._paths.add(path)
            self.app.add_api_route(path, endpoint, methods=["GET"], include_in_schema=False)

    @property
    def paths(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)


DEFAULT_SERVE_MUX = ServeMux()
