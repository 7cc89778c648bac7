"""Error policy: what the reporter does with errors nobody is waiting for.

Two kinds of failure happen after the caller has moved on:

  1. METRIC REGISTRATION — a second metric with the same name but a
     different type, an invalid name, unsorted buckets.  Instrumentation
     code calls reporter.counter(...) deep inside a request path; raising
     there would break the request, not the reporter.

  2. LISTENER — the scrape socket cannot be bound (port taken, bad
     address) or the serve loop dies.  This happens on a background
     thread; there is no caller to raise to.

Both go through ONE function, picked once when the reporter is built:

  explicit callback   ConfigurationOptions.on_error, always wins
  onError: stderr     one line on sys.stderr
  onError: log        logger.error on the "promreporter" logger
  onError: none       dropped
  anything else       abort the process (fail loud by default)

The abort policy is just another function in this table.  Nothing else
in the package terminates the process, so tests can always inject a
recorder and assert on what would have happened.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable

ErrorHandler = Callable[[BaseException], None]

ERROR_PREFIX = "promreporter prometheus reporter error"

# Same status the process would exit with on an unhandled crash of the runtime
ABORT_EXIT_CODE = 2


class ErrorMode:
    STDERR = "stderr"
    LOG = "log"
    NONE = "none"


KNOWN_ERROR_MODES = frozenset({ErrorMode.STDERR, ErrorMode.LOG, ErrorMode.NONE})

logger = logging.getLogger("promreporter")


def write_to_stderr(err: BaseException) -> None:
    # Resolve sys.stderr per call so redirected streams are honoured.
    sys.stderr.write(f"{ERROR_PREFIX}: {err}\n")
    sys.stderr.flush()


def write_to_log(err: BaseException) -> None:
    logger.error("%s: %s", ERROR_PREFIX, err)


def discard(err: BaseException) -> None:
    return None


def abort_on_error(err: BaseException) -> None:
    """Log the error and terminate the process immediately.

    os._exit skips atexit handlers and does not depend on the calling
    thread, so a listener failure on a background thread still brings the
    whole process down.
    """
    logger.critical("%s: %s", ERROR_PREFIX, err, exc_info=err)
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(ABORT_EXIT_CODE)


_HANDLERS_BY_MODE: dict[str, ErrorHandler] = {
    ErrorMode.STDERR: write_to_stderr,
    ErrorMode.LOG: write_to_log,
    ErrorMode.NONE: discard,
}


def resolve_error_handler(on_error: ErrorHandler | None, mode: str) -> ErrorHandler:
    """Return the single error handler for a reporter.

    Args:
        on_error: Explicit callback.  When given, ``mode`` is ignored.
        mode: onError value from the configuration, matched exactly.
    """
    if on_error is not None:
        return on_error
    return _HANDLERS_BY_MODE.get(mode, abort_on_error)
