from __future__ import annotations

import socket
import threading
from collections.abc import Iterator

import pytest

from promreporter.api.serve_mux import ServeMux
from promreporter.services.assembly import ReporterHandle


class ErrorRecorder:
    """Error callback that remembers what it was given."""

    def __init__(self) -> None:
        self.errors: list[BaseException] = []
        self.called = threading.Event()

    def __call__(self, err: BaseException) -> None:
        self.errors.append(err)
        self.called.set()

    def wait(self, timeout: float = 5.0) -> bool:
        return self.called.wait(timeout)


@pytest.fixture
def recorder() -> ErrorRecorder:
    return ErrorRecorder()


@pytest.fixture
def mux() -> ServeMux:
    """An isolated default mux so tests never touch DEFAULT_SERVE_MUX."""
    return ServeMux()


@pytest.fixture
def handles() -> Iterator[list[ReporterHandle]]:
    """Collect reporter handles; their listeners are stopped after the test."""
    built: list[ReporterHandle] = []
    yield built
    for handle in built:
        handle.close()


@pytest.fixture
def occupied_port() -> Iterator[int]:
    """A localhost port with a listening socket already on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()
