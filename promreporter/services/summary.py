"""Summary collector with quantile objectives.

prometheus_client's own Summary only exports ``_count`` and ``_sum``.
Timers configured as summaries are expected to publish quantiles
(p50, p99, ...), so this collector keeps a sliding window of recent
observations and reports the requested quantiles on every scrape:

  rpc_latency_seconds{quantile="0.5"}   0.012
  rpc_latency_seconds{quantile="0.99"}  0.231
  rpc_latency_seconds_sum               1834.2
  rpc_latency_seconds_count             90412

Quantiles are computed exactly (nearest rank) over the window, so every
objective's allowed error is met.  ``_sum`` and ``_count`` are cumulative
over the process lifetime, like any other summary.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager

from prometheus_client import CollectorRegistry
from prometheus_client.metrics_core import Metric
from prometheus_client.utils import floatToGoString

# Window length for quantile estimation, matching the Prometheus Go client default.
DEFAULT_MAX_AGE_SECONDS = 600.0
DEFAULT_MAX_SAMPLES = 4096


def validate_objectives(objectives: Mapping[float, float]) -> None:
    for quantile, allowed_error in objectives.items():
        if not 0.0 < quantile < 1.0:
            raise ValueError(f"illegal objective quantile {quantile!r}, must be in (0, 1)")
        if not 0.0 <= allowed_error < 1.0:
            raise ValueError(
                f"illegal objective error {allowed_error!r} for quantile {quantile!r}"
            )


class _Window:
    def __init__(self, max_age: float, max_samples: int, clock: Callable[[], float]) -> None:
        self._max_age = max_age
        self._clock = clock
        self._samples: deque[tuple[float, float]] = deque(maxlen=max_samples)
        self._lock = threading.Lock()
        self.count = 0
        self.sum = 0.0

    def observe(self, value: float) -> None:
        now = self._clock()
        with self._lock:
            self._samples.append((now, value))
            self.count += 1
            self.sum += value
            self._expire(now)

    def _expire(self, now: float) -> None:
        cutoff = now - self._max_age
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    def snapshot(self, quantiles: Sequence[float]) -> tuple[dict[float, float], int, float]:
        with self._lock:
            self._expire(self._clock())
            values = sorted(value for _, value in self._samples)
            count, total = self.count, self.sum

        result: dict[float, float] = {}
        for q in quantiles:
            if not values:
                result[q] = math.nan
                continue
            rank = max(0, min(len(values) - 1, math.ceil(q * len(values)) - 1))
            result[q] = values[rank]
        return result, count, total


class _SummaryChild:
    def __init__(self, window: _Window) -> None:
        self._window = window

    def observe(self, amount: float) -> None:
        self._window.observe(float(amount))

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(max(time.perf_counter() - start, 0.0))


class QuantileSummary:
    """A summary exporting windowed quantiles in addition to sum and count."""

    def __init__(
        self,
        name: str,
        documentation: str,
        labelnames: Sequence[str] = (),
        *,
        objectives: Mapping[float, float],
        registry: CollectorRegistry | None = None,
        max_age: float = DEFAULT_MAX_AGE_SECONDS,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        validate_objectives(objectives)
        if "quantile" in labelnames:
            raise ValueError("'quantile' is a reserved label name for summaries")
        # Metric() validates the name; fail before touching the registry.
        Metric(name, documentation, "summary")

        self.name = name
        self.documentation = documentation
        self.labelnames = tuple(labelnames)
        self.objectives = dict(objectives)
        self._quantiles = sorted(self.objectives)
        self._max_age = max_age
        self._max_samples = max_samples
        self._clock = clock
        self._children: dict[tuple[str, ...], _SummaryChild] = {}
        self._windows: dict[tuple[str, ...], _Window] = {}
        self._lock = threading.Lock()

        if not self.labelnames:
            self._child(())

        if registry is not None:
            registry.register(self)

    def _child(self, key: tuple[str, ...]) -> _SummaryChild:
        with self._lock:
            child = self._children.get(key)
            if child is None:
                window = _Window(self._max_age, self._max_samples, self._clock)
                child = _SummaryChild(window)
                self._windows[key] = window
                self._children[key] = child
            return child

    def labels(self, *labelvalues: str, **labelkwargs: str) -> _SummaryChild:
        if not self.labelnames:
            raise ValueError(f"No label names were set when constructing {self.name}")
        if labelvalues and labelkwargs:
            raise ValueError("Can't pass both *args and **kwargs")
        if labelkwargs:
            if sorted(labelkwargs) != sorted(self.labelnames):
                raise ValueError("Incorrect label names")
            labelvalues = tuple(labelkwargs[name] for name in self.labelnames)
        if len(labelvalues) != len(self.labelnames):
            raise ValueError("Incorrect label count")
        return self._child(tuple(str(value) for value in labelvalues))

    def observe(self, amount: float) -> None:
        self._unlabelled().observe(amount)

    def time(self):
        return self._unlabelled().time()

    def _unlabelled(self) -> _SummaryChild:
        if self.labelnames:
            raise ValueError(f"{self.name} has labels; call labels() first")
        return self._children[()]

    def describe(self) -> list[Metric]:
        return [Metric(self.name, self.documentation, "summary")]

    def collect(self) -> list[Metric]:
        metric = Metric(self.name, self.documentation, "summary")
        with self._lock:
            windows = list(self._windows.items())
        for key, window in windows:
            labels = dict(zip(self.labelnames, key))
            values, count, total = window.snapshot(self._quantiles)
            for q in self._quantiles:
                metric.add_sample(
                    self.name, {**labels, "quantile": floatToGoString(q)}, values[q]
                )
            metric.add_sample(self.name + "_count", labels, float(count))
            metric.add_sample(self.name + "_sum", labels, total)
        return [metric]
