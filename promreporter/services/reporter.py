"""Reporter: a private Prometheus registry with configured defaults.

Every reporter owns its own CollectorRegistry instead of using the
global prometheus_client.REGISTRY.  Two reporters in one process (or
two tests in one pytest run) never see each other's metrics.

REGISTRATION ERRORS
--------------------
prometheus_client raises ValueError when a metric cannot be registered:
a name already taken by another metric, unsorted buckets, an invalid
name.  The reporter never lets that escape into instrumentation code.
It wraps the failure in RegistrationError, hands it to
Options.on_register_error, and returns a no-op metric so the calling
code keeps running.

Asking for the same name, type and label names twice returns the
existing collector, so modules can declare their metrics lazily.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from promreporter.api.metrics_endpoint import ScrapeEndpoint, scrape_endpoint
from promreporter.core.errors import RegistrationError
from promreporter.services.error_policy import ErrorHandler
from promreporter.services.summary import QuantileSummary

logger = logging.getLogger(__name__)

DEFAULT_HISTOGRAM_BUCKETS: tuple[float, ...] = tuple(Histogram.DEFAULT_BUCKETS)

DEFAULT_SUMMARY_OBJECTIVES: Mapping[float, float] = {
    0.5: 0.01,
    0.75: 0.001,
    0.95: 0.001,
    0.99: 0.001,
    0.999: 0.0001,
}


class TimerType(enum.Enum):
    DEFAULT = "default"
    SUMMARY = "summary"
    HISTOGRAM = "histogram"


@dataclass(frozen=True)
class Options:
    on_register_error: ErrorHandler
    default_timer_type: TimerType = TimerType.DEFAULT
    # None means "use the registry's built-in defaults".
    default_histogram_buckets: tuple[float, ...] | None = None
    default_summary_objectives: dict[float, float] | None = None
    registry: CollectorRegistry | None = None


class _NoopMetric:
    """Stand-in returned when registration fails."""

    def labels(self, *args: Any, **kwargs: Any) -> _NoopMetric:
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def dec(self, amount: float = 1) -> None:
        pass

    def set(self, value: float) -> None:
        pass

    def observe(self, amount: float) -> None:
        pass

    @contextmanager
    def time(self) -> Iterator[None]:
        yield


NOOP_METRIC = _NoopMetric()


@dataclass(frozen=True, slots=True)
class _Registered:
    kind: str
    labelnames: tuple[str, ...]
    collector: Any


class Reporter:
    def __init__(self, options: Options) -> None:
        self.options = options
        self.registry = options.registry if options.registry is not None else CollectorRegistry()
        self._metrics: dict[str, _Registered] = {}
        self._lock = threading.Lock()

    @property
    def timer_type(self) -> TimerType:
        if self.options.default_timer_type is TimerType.HISTOGRAM:
            return TimerType.HISTOGRAM
        return TimerType.SUMMARY

    @property
    def histogram_buckets(self) -> tuple[float, ...]:
        return self.options.default_histogram_buckets or DEFAULT_HISTOGRAM_BUCKETS

    @property
    def summary_objectives(self) -> dict[float, float]:
        return dict(self.options.default_summary_objectives or DEFAULT_SUMMARY_OBJECTIVES)

    # ------------------------------------------------------------------
    # Metric constructors
    # ------------------------------------------------------------------

    def counter(self, name: str, help: str = "", labelnames: Sequence[str] = ()) -> Any:
        return self._register(
            name,
            "counter",
            labelnames,
            lambda: Counter(name, help or name, labelnames, registry=self.registry),
        )

    def gauge(self, name: str, help: str = "", labelnames: Sequence[str] = ()) -> Any:
        return self._register(
            name,
            "gauge",
            labelnames,
            lambda: Gauge(name, help or name, labelnames, registry=self.registry),
        )

    def histogram(
        self,
        name: str,
        help: str = "",
        labelnames: Sequence[str] = (),
        buckets: Sequence[float] | None = None,
    ) -> Any:
        bounds = tuple(buckets) if buckets is not None else self.histogram_buckets
        return self._register(
            name,
            "histogram",
            labelnames,
            lambda: Histogram(
                name, help or name, labelnames, registry=self.registry, buckets=bounds
            ),
        )

    def summary(
        self,
        name: str,
        help: str = "",
        labelnames: Sequence[str] = (),
        objectives: Mapping[float, float] | None = None,
    ) -> Any:
        targets = dict(objectives) if objectives is not None else self.summary_objectives
        return self._register(
            name,
            "summary",
            labelnames,
            lambda: QuantileSummary(
                name, help or name, labelnames, objectives=targets, registry=self.registry
            ),
        )

    def timer(self, name: str, help: str = "", labelnames: Sequence[str] = ()) -> Any:
        """Return a histogram or a summary depending on the configured timer type.

        Both expose ``observe(seconds)`` and ``time()``.
        """
        if self.timer_type is TimerType.HISTOGRAM:
            return self.histogram(name, help, labelnames)
        return self.summary(name, help, labelnames)

    def _register(
        self,
        name: str,
        kind: str,
        labelnames: Sequence[str],
        factory: Callable[[], Any],
    ) -> Any:
        labels = tuple(labelnames)
        error: RegistrationError | None = None

        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None:
                if existing.kind == kind and existing.labelnames == labels:
                    return existing.collector
                error = RegistrationError(
                    name,
                    f"already registered as {existing.kind} with labels {list(existing.labelnames)}",
                )
            else:
                try:
                    collector = factory()
                except ValueError as exc:
                    error = RegistrationError(name, str(exc))
                    error.__cause__ = exc
                else:
                    self._metrics[name] = _Registered(kind, labels, collector)
                    return collector

        # Outside the lock: the handler may log, write, or abort.
        logger.debug("Metric registration failed: %s", error, extra={"metric": name})
        self.options.on_register_error(error)
        return NOOP_METRIC

    # ------------------------------------------------------------------
    # Exposition
    # ------------------------------------------------------------------

    def http_handler(self) -> ScrapeEndpoint:
        """Return an endpoint serving this reporter's registry."""
        return scrape_endpoint(self.registry)

    def render(self) -> bytes:
        return generate_latest(self.registry)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
