"""
trace_sinks.py
--------------
Trace sink implementations.

NullTraceSink   - discards everything; the default for RepositoryClient.
LoggingTraceSink - forwards spans and errors to a standard logging.Logger.
"""

import contextlib
import logging
import time
from typing import Iterator

from discovery.repository_interface import TraceSink


class NullTraceSink(TraceSink):
    """A trace sink that records nothing."""

    def enter_exit(self, operation: str) -> contextlib.AbstractContextManager[None]:
        return contextlib.nullcontext()

    def error(self, exc: BaseException) -> None:
        pass


NULL_TRACE_SINK = NullTraceSink()


class LoggingTraceSink(TraceSink):
    """
    A trace sink that writes to the logging system.

    Span entry and exit are logged at DEBUG (exit carries the elapsed time),
    errors at ERROR with the traceback attached.

    Args:
        logger (logging.Logger): Logger to write to. Defaults to the
            "discovery.trace" logger.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("discovery.trace")

    @contextlib.contextmanager
    def enter_exit(self, operation: str) -> Iterator[None]:
        self.logger.debug("Entering %s", operation)
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.logger.debug("Exiting %s (%.1f ms)", operation, elapsed_ms)

    def error(self, exc: BaseException) -> None:
        self.logger.error("%s: %s", type(exc).__name__, exc,
                          exc_info=(type(exc), exc, exc.__traceback__))
