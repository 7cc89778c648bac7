"""Exception hierarchy for the reporter.

Synchronous problems (a broken configuration document, a dynamic listen
address that cannot be resolved, a route registered twice) are raised to
the caller.  Asynchronous problems (metric registration, socket bind,
serve loop) never surface here as raises; they are wrapped and handed to
the reporter's error policy instead.
"""

from __future__ import annotations


class ReporterError(Exception):
    """Base class for every error raised by promreporter."""


class ConfigurationError(ReporterError, ValueError):
    """A configuration document or environment setting is invalid."""


class ListenAddressError(ConfigurationError):
    """A dynamic listen address strategy could not produce an address."""


class RouteConflictError(ReporterError):
    """A handler is already registered for this path on the serve mux."""

    def __init__(self, path: str) -> None:
        super().__init__(f"a handler is already registered for path {path!r}")
        self.path = path


class RegistrationError(ReporterError):
    """The metrics registry refused a metric."""

    def __init__(self, metric: str, reason: str) -> None:
        super().__init__(f"cannot register metric {metric!r}: {reason}")
        self.metric = metric
        self.reason = reason
