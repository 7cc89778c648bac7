"""Translate declarative metric shapes into registry Options."""

from __future__ import annotations

from typing import TYPE_CHECKING

from promreporter.services.error_policy import ErrorHandler
from promreporter.services.reporter import Options, TimerType

if TYPE_CHECKING:
    from promreporter.models.configuration import Configuration

_TIMER_TYPES = {
    "summary": TimerType.SUMMARY,
    "histogram": TimerType.HISTOGRAM,
}


def timer_type_for(name: str) -> TimerType:
    # Exact match only: "Histogram" or " summary" fall back to the default.
    return _TIMER_TYPES.get(name, TimerType.DEFAULT)


def histogram_buckets_for(config: Configuration) -> tuple[float, ...] | None:
    if not config.default_histogram_buckets:
        return None
    # Order and duplicates are kept; the registry validates on use.
    return tuple(bucket.upper for bucket in config.default_histogram_buckets)


def summary_objectives_for(config: Configuration) -> dict[float, float] | None:
    if not config.default_summary_objectives:
        return None
    objectives: dict[float, float] = {}
    for objective in config.default_summary_objectives:
        # Later entries overwrite earlier ones with the same percentile.
        objectives[objective.percentile] = objective.allowed_error
    return objectives


def translate_metric_shape(config: Configuration, on_error: ErrorHandler) -> Options:
    """Build registry Options from a configuration and a resolved error handler.

    Empty bucket or objective lists leave the registry defaults in place.
    """
    return Options(
        on_register_error=on_error,
        default_timer_type=timer_type_for(config.timer_type),
        default_histogram_buckets=histogram_buckets_for(config),
        default_summary_objectives=summary_objectives_for(config),
    )
