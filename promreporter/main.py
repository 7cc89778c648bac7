"""Standalone reporter process.

RUN:  REPORTER_CONFIG=reporter.yaml python -m promreporter.main

Loads the YAML configuration named by REPORTER_CONFIG (an empty
configuration when unset), builds the reporter and keeps the process
alive until interrupted.  Useful for checking a configuration file
before shipping it: the scrape endpoint comes up exactly as it would
inside the application.
"""

from __future__ import annotations

import logging
import threading

from promreporter.core.config import Settings, load_settings
from promreporter.core.logging import setup_logging
from promreporter.models.configuration import Configuration
from promreporter.services.assembly import ReporterHandle, new_reporter

logger = logging.getLogger("promreporter.main")


def load_configuration(settings: Settings) -> Configuration:
    if settings.reporter_config is None:
        return Configuration()
    return Configuration.from_yaml_file(settings.reporter_config)


def run(settings: Settings, stop: threading.Event | None = None) -> ReporterHandle:
    """Build the reporter and block until ``stop`` is set (forever when None)."""
    config = load_configuration(settings)
    handle = new_reporter(config)
    logger.info(
        "promreporter started  config=%s path=%s listener=%s",
        settings.reporter_config or "<defaults>",
        handle.path,
        handle.listener.requested_address if handle.listener else "default-mux",
    )
    try:
        (stop or threading.Event()).wait()
    finally:
        handle.close()
    return handle


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)
    try:
        run(settings)
    except KeyboardInterrupt:
        logger.info("promreporter interrupted, shutting down")


if __name__ == "__main__":
    main()
