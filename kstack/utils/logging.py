"""Structured logging setup using structlog.

Implements a **dual-renderer pattern**: the same shared processor chain
(context vars, log level, timestamps, stack info) feeds into either a
coloured ConsoleRenderer for local development or a JSONRenderer for
production.  The renderer is selected automatically based on the ``APP_ENV``
environment variable (default ``"development"``), or forced via the
``json_output`` flag.

A :class:`LogBuffer` processor sits in the shared chain and keeps the most
recent events as plain one-line strings, so the status endpoint can show
an operator what the running scrape is doing without reading log files.

Standard-library ``logging`` is also rewired through the same structlog
formatter so that third-party libraries (httpx, uvicorn, etc.) produce
identically formatted output.
"""

import logging
import os
import sys
import threading
from collections import deque
from typing import Any

import structlog

_DEFAULT_BUFFER_LINES = 2000


class LogBuffer:
    """In-memory ring buffer of rendered log lines.

    Used as a structlog processor: it records each event and passes the
    event dict through unchanged.
    """

    def __init__(self, max_lines: int = _DEFAULT_BUFFER_LINES) -> None:
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()
        self.enabled = True

    def __call__(
        self, logger: Any, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        if self.enabled:
            self.append(self._format(event_dict))
        return event_dict

    @staticmethod
    def _format(event_dict: structlog.types.EventDict) -> str:
        skip = {"event", "level", "timestamp", "logger_name"}
        extras = " ".join(
            f"{key}={value}" for key, value in event_dict.items() if key not in skip
        )
        level = str(event_dict.get("level", "info")).upper()
        line = f"{event_dict.get('timestamp', '')} [{level}] {event_dict.get('event', '')}"
        return f"{line} {extras}".rstrip()

    def append(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)

    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


# Process-wide buffer wired into configure_logging() by default; callers
# that need isolation (tests) pass their own instance.
log_buffer = LogBuffer()


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    buffer: LogBuffer | None = None,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR, FATAL).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).
        buffer: Log buffer that keeps recent lines in memory.  Defaults to
                the module-level :data:`log_buffer`.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"
    buffer = buffer if buffer is not None else log_buffer

    # Order matters: contextvars first, then level/timestamps, then the
    # buffer so it sees the timestamp.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        buffer,
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger.

    If structlog has not been configured yet, calls configure_logging() with defaults.

    Args:
        name: Logger name, typically the module name.

    Returns:
        A structlog BoundLogger bound with the given name.
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)
