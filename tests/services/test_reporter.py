"""Tests for the Reporter facade over prometheus_client.

Every reporter owns a private CollectorRegistry, so these tests read
absolute values instead of deltas against the global registry.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry, Histogram

from promreporter.api.serve_mux import ServeMux
from promreporter.core.errors import RegistrationError
from promreporter.services.reporter import (
    DEFAULT_HISTOGRAM_BUCKETS,
    DEFAULT_SUMMARY_OBJECTIVES,
    NOOP_METRIC,
    Options,
    Reporter,
    TimerType,
)
from promreporter.services.summary import QuantileSummary


def _reporter(recorder, **kwargs) -> Reporter:
    return Reporter(Options(on_register_error=recorder, **kwargs))


# ---- registration ----


def test_counter_is_exposed(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.counter("jobs_total", "Jobs processed").inc(3)
    assert reporter.registry.get_sample_value("jobs_total") == 3
    assert recorder.errors == []


def test_same_metric_twice_returns_cached_collector(recorder) -> None:
    reporter = _reporter(recorder)
    first = reporter.gauge("queue_depth", labelnames=["queue"])
    second = reporter.gauge("queue_depth", labelnames=["queue"])
    assert first is second
    assert recorder.errors == []


def test_conflicting_kind_goes_to_error_handler(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.counter("requests")
    metric = reporter.gauge("requests")

    assert metric is NOOP_METRIC
    assert len(recorder.errors) == 1
    err = recorder.errors[0]
    assert isinstance(err, RegistrationError)
    assert err.metric == "requests"
    assert "already registered as counter" in str(err)


def test_conflicting_labels_go_to_error_handler(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.counter("calls", labelnames=["method"])
    assert reporter.counter("calls", labelnames=["method", "code"]) is NOOP_METRIC
    assert len(recorder.errors) == 1


def test_registry_value_error_is_wrapped(recorder) -> None:
    reporter = _reporter(recorder)
    metric = reporter.histogram("unsorted", buckets=[5.0, 1.0])

    assert metric is NOOP_METRIC
    err = recorder.errors[0]
    assert isinstance(err, RegistrationError)
    assert isinstance(err.__cause__, ValueError)
    assert "not in sorted order" in str(err)


def test_failed_metric_can_be_retried_with_valid_shape(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.histogram("retry_seconds", buckets=[5.0, 1.0])
    assert isinstance(reporter.histogram("retry_seconds", buckets=[1.0, 5.0]), Histogram)


def test_noop_metric_accepts_all_calls() -> None:
    NOOP_METRIC.labels("a", b="c").inc()
    NOOP_METRIC.dec(2)
    NOOP_METRIC.set(1.0)
    NOOP_METRIC.observe(0.5)
    with NOOP_METRIC.time():
        pass


def test_explicit_registry_is_used(recorder) -> None:
    registry = CollectorRegistry()
    reporter = _reporter(recorder, registry=registry)
    reporter.counter("shared_total").inc()
    assert registry.get_sample_value("shared_total") == 1


def test_reporters_do_not_share_registries(recorder) -> None:
    a = _reporter(recorder)
    b = _reporter(recorder)
    a.counter("only_in_a_total").inc()
    assert b.registry.get_sample_value("only_in_a_total") is None
    # same name in another reporter is not a conflict
    b.counter("only_in_a_total")
    assert recorder.errors == []


# ---- shape defaults ----


def test_histogram_uses_builtin_buckets_by_default(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.histogram("latency_seconds")
    assert reporter.histogram_buckets == DEFAULT_HISTOGRAM_BUCKETS
    assert reporter.registry.get_sample_value("latency_seconds_bucket", {"le": "0.005"}) == 0


def test_histogram_uses_configured_buckets(recorder) -> None:
    reporter = _reporter(recorder, default_histogram_buckets=(10.0, 50.0, 100.0))
    reporter.histogram("size_bytes")
    registry = reporter.registry
    assert registry.get_sample_value("size_bytes_bucket", {"le": "50.0"}) == 0
    assert registry.get_sample_value("size_bytes_bucket", {"le": "0.005"}) is None


def test_summary_uses_builtin_objectives_by_default(recorder) -> None:
    reporter = _reporter(recorder)
    summary = reporter.summary("payload_bytes")
    assert summary.objectives == dict(DEFAULT_SUMMARY_OBJECTIVES)


def test_summary_uses_configured_objectives(recorder) -> None:
    reporter = _reporter(recorder, default_summary_objectives={0.5: 0.02, 0.99: 0.001})
    summary = reporter.summary("payload_bytes")
    assert summary.objectives == {0.5: 0.02, 0.99: 0.001}


def test_bad_objectives_go_to_error_handler(recorder) -> None:
    reporter = _reporter(recorder, default_summary_objectives={1.5: 0.01})
    assert reporter.summary("broken") is NOOP_METRIC
    assert "illegal objective quantile" in str(recorder.errors[0])


# ---- timers ----


def test_default_timer_is_a_summary(recorder) -> None:
    reporter = _reporter(recorder)
    assert reporter.timer_type is TimerType.SUMMARY
    assert isinstance(reporter.timer("op_seconds"), QuantileSummary)


def test_summary_timer_type(recorder) -> None:
    reporter = _reporter(recorder, default_timer_type=TimerType.SUMMARY)
    assert isinstance(reporter.timer("op_seconds"), QuantileSummary)


def test_histogram_timer_type(recorder) -> None:
    reporter = _reporter(
        recorder,
        default_timer_type=TimerType.HISTOGRAM,
        default_histogram_buckets=(0.1, 1.0),
    )
    timer = reporter.timer("op_seconds")
    assert isinstance(timer, Histogram)
    timer.observe(0.05)
    assert reporter.registry.get_sample_value("op_seconds_bucket", {"le": "0.1"}) == 1


# ---- exposition ----


def test_http_handler_serves_registry(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.counter("served_total", "Served").inc()
    mux = ServeMux()
    mux.handle("/metrics", reporter.http_handler())

    resp = TestClient(mux).get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "served_total 1.0" in resp.text


def test_render_matches_registry(recorder) -> None:
    reporter = _reporter(recorder)
    reporter.gauge("temperature").set(21.5)
    assert b"temperature 21.5" in reporter.render()
    assert reporter.content_type.startswith("text/plain")
