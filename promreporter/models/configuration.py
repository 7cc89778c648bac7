"""Declarative reporter configuration.

The YAML surface keeps the camelCase keys operators already use:

    handlerPath: /metrics
    listenAddress: 0.0.0.0:9090
    timerType: histogram
    defaultHistogramBuckets:
      - upper: 0.1
      - upper: 0.5
    defaultSummaryObjectives:
      - percentile: 0.99
        allowedError: 0.001
    onError: log

Python callers may use the snake_case field names instead.  Every field
is optional; an empty document is a valid configuration that registers
the scrape handler on the default serve mux and aborts on errors.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from promreporter.core.errors import ConfigurationError
from promreporter.models.listen_address import (
    ListenAddressConfiguration,
    ListenAddressResolver,
)
from promreporter.services.error_policy import KNOWN_ERROR_MODES

if TYPE_CHECKING:
    from promreporter.api.serve_mux import ServeMux
    from promreporter.services.assembly import ReporterHandle

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], None]


class HistogramObjective(BaseModel):
    """One histogram bucket, identified by its upper bound."""

    model_config = ConfigDict(frozen=True)

    upper: float


class SummaryObjective(BaseModel):
    """One summary quantile and the rank error it tolerates."""

    model_config = ConfigDict(frozen=True, validate_by_name=True, validate_by_alias=True)

    percentile: float
    allowed_error: float = Field(alias="allowedError")


class Configuration(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        validate_by_name=True,
        validate_by_alias=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    handler_path: str = Field("", alias="handlerPath")
    listen_address: str = Field("", alias="listenAddress")
    # When set, listen_address is ignored.
    dynamic_listen_address: Any = Field(None, alias="dynamicListenAddress")
    timer_type: str = Field("", alias="timerType")
    default_histogram_buckets: list[HistogramObjective] = Field(
        default_factory=list, alias="defaultHistogramBuckets"
    )
    default_summary_objectives: list[SummaryObjective] = Field(
        default_factory=list, alias="defaultSummaryObjectives"
    )
    on_error: str = Field("", alias="onError")

    @field_validator("handler_path", "listen_address", "timer_type", "on_error", mode="before")
    @classmethod
    def none_is_empty(cls, value: Any) -> Any:
        # "handlerPath:" with no value parses to None in YAML
        return "" if value is None else value

    @field_validator("default_histogram_buckets", "default_summary_objectives", mode="before")
    @classmethod
    def none_is_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("dynamic_listen_address", mode="before")
    @classmethod
    def coerce_listen_address(cls, value: Any) -> Any:
        if value is None or isinstance(value, ListenAddressResolver):
            return value
        if isinstance(value, Mapping):
            return ListenAddressConfiguration.model_validate(dict(value))
        raise ValueError(
            "dynamicListenAddress must be a mapping or an object with resolve()"
        )

    @field_validator("on_error")
    @classmethod
    def warn_unknown_error_mode(cls, value: str) -> str:
        # Unknown modes still select the abort policy; a typo should at least be visible.
        if value and value not in KNOWN_ERROR_MODES:
            logger.warning(
                "Unrecognised onError mode %r, errors will abort the process "
                "unless an on_error callback is supplied",
                value,
                extra={"error_mode": value},
            )
        return value

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Configuration:
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                f"reporter configuration must be a mapping (got {type(data).__name__})"
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigurationError(f"invalid reporter configuration: {exc}") from exc

    @classmethod
    def from_yaml(cls, text: str) -> Configuration:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid reporter configuration YAML: {exc}") from exc
        return cls.from_mapping(data)

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> Configuration:
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def new_reporter(
        self,
        options: ConfigurationOptions | None = None,
        *,
        default_mux: ServeMux | None = None,
    ) -> ReporterHandle:
        """Build a reporter from this configuration.  See assembly.new_reporter."""
        from promreporter.services.assembly import new_reporter

        return new_reporter(self, options, default_mux=default_mux)


@dataclass(frozen=True)
class ConfigurationOptions:
    # Supersedes Configuration.on_error when set.
    on_error: ErrorCallback | None = None
