"""Central logging configuration.

The composition root calls `configure_logging` once; adapters and managers
only emit through `LoggingPort` or module loggers and never touch handlers.
Records emitted by a poller tick carry the project id of its session, taken
from `project_id_var`, which the poller sets inside the timer tasks it owns.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Optional

project_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "project_id", default="-"
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s project=%(project_id)s: %(message)s"


def coerce_level(level: int | str | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    key = str(level).upper().strip()
    mapping = logging.getLevelNamesMapping()
    return mapping.get(key, logging.INFO)


class _ProjectIdFilter(logging.Filter):
    """Inject the current project id from the context variable into every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.project_id = project_id_var.get()
        return True


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno <= self.max_level


class _MinLevelFilter(logging.Filter):
    def __init__(self, min_level: int):
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover
        return record.levelno >= self.min_level


def configure_logging(level: int | str | None = None, fmt: Optional[str] = None) -> None:
    """Configure the root logger with separate stdout/stderr sinks.

    DEBUG/INFO go to stdout, WARNING and above to stderr. Existing root
    handlers are removed so repeated calls do not duplicate output.
    """
    numeric_level = coerce_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)
    pid_filter = _ProjectIdFilter()

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(_MaxLevelFilter(logging.INFO))
    stdout_handler.addFilter(pid_filter)
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.addFilter(_MinLevelFilter(logging.WARNING))
    stderr_handler.addFilter(pid_filter)
    stderr_handler.setFormatter(formatter)

    root.addHandler(stdout_handler)
    root.addHandler(stderr_handler)

    # aiohttp access chatter is rarely useful for a client
    logging.getLogger("aiohttp").setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger("TMS").debug("Logging configured level=%s", numeric_level)
