"""Build a running reporter from a Configuration.

ORDER OF OPERATIONS
--------------------
  1. Error policy     one handler, fixed before anything can fail
  2. Metric shape     timer type, default buckets, default objectives
  3. Reporter         private registry using the Options above
  4. Handler path     trimmed handlerPath, or /metrics
  5. Listen address   dynamic > static > none; failure raises here
  6. No socket        handler registered on the default mux
  7. Socket           private mux + background listener; bind and serve
                      errors go to the error policy, not to the caller

Step 5 runs after the reporter exists but before anything is exposed, so
a failing dynamic address leaves nothing half-registered behind.  The
listener thread starts last, once the reporter is complete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from promreporter.api.listener import Listener, listen_and_serve
from promreporter.api.serve_mux import DEFAULT_SERVE_MUX, ServeMux
from promreporter.models.configuration import Configuration, ConfigurationOptions
from promreporter.services.error_policy import resolve_error_handler
from promreporter.services.listen_address import resolve_listen_address
from promreporter.services.metric_shape import translate_metric_shape
from promreporter.services.reporter import Reporter

logger = logging.getLogger(__name__)

DEFAULT_HANDLER_PATH = "/metrics"


@dataclass(frozen=True)
class ReporterHandle:
    """A built reporter and where its scrape endpoint lives."""

    reporter: Reporter
    path: str
    mux: ServeMux
    listener: Listener | None = None

    @property
    def owns_socket(self) -> bool:
        return self.listener is not None

    def close(self, timeout: float = 5.0) -> None:
        """Stop the background listener, if any.  Idempotent."""
        if self.listener is not None:
            self.listener.stop(timeout)


def effective_handler_path(handler_path: str) -> str:
    return handler_path.strip() or DEFAULT_HANDLER_PATH


def new_reporter(
    config: Configuration,
    options: ConfigurationOptions | None = None,
    *,
    default_mux: ServeMux | None = None,
) -> ReporterHandle:
    """Build a reporter and expose its scrape endpoint.

    Args:
        config: Declarative reporter configuration.
        options: Optional overrides; ``options.on_error`` supersedes
                 ``config.on_error``.
        default_mux: Routing table used when no listen address is set.
                     Defaults to the process-wide DEFAULT_SERVE_MUX.

    Raises:
        ListenAddressError: the dynamic listen address could not be resolved.
        RouteConflictError: the default mux already serves this path.
    """
    options = options or ConfigurationOptions()

    on_error = resolve_error_handler(options.on_error, config.on_error)
    registry_options = translate_metric_shape(config, on_error)
    reporter = Reporter(registry_options)

    path = effective_handler_path(config.handler_path)
    resolved = resolve_listen_address(config)

    if not resolved.bind:
        mux = default_mux if default_mux is not None else DEFAULT_SERVE_MUX
        mux.handle(path, reporter.http_handler())
        logger.info(
            "Metrics handler registered on the default mux at %s",
            path,
            extra={"path": path},
        )
        return ReporterHandle(reporter=reporter, path=path, mux=mux)

    mux = ServeMux()
    mux.handle(path, reporter.http_handler())
    listener = listen_and_serve(resolved.address, mux, on_error)
    logger.info(
        "Metrics listener starting on %s at %s",
        resolved.address,
        path,
        extra={"address": resolved.address, "path": path},
    )
    return ReporterHandle(reporter=reporter, path=path, mux=mux, listener=listener)
