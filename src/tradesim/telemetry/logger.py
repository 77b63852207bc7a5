"""
Queue-based logging for the server process.

Records from the application and from uvicorn are pushed onto one queue
and written by a listener thread, so console and file I/O never stall
the event loop that runs the feed, the simulator and the API.
"""

import logging
import sys
from collections.abc import Iterable
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue

from tradesim.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


# Loggers routed through the queue
APP_LOGGERS: tuple[str, ...] = ("tradesim", "uvicorn")

# Third-party loggers capped at WARNING
QUIET_LOGGERS: tuple[str, ...] = ("aiohttp", "asyncio", "uvicorn.access")


class MicrosecondFormatter(logging.Formatter):
    """Formatter with microsecond precision timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime(datefmt or LOG_DATE_FORMAT)
        return f"{stamp}.{int(record.msecs * 1000):06d}"


class AsyncLogger:
    """
    Routes a set of named loggers through a single bounded queue.

    Console output honours the configured level; the optional log file
    receives everything from DEBUG up.
    """

    def __init__(
        self,
        names: Iterable[str] = APP_LOGGERS,
        level: int = logging.INFO,
        log_file: Path | None = None,
    ) -> None:
        """
        Args:
            names: Loggers whose records go through the queue.
            level: Console and logger level.
            log_file: Optional file that receives all records.
        """
        self._names = tuple(names)
        self._level = level
        self._log_file = log_file
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._queue_handler = QueueHandler(self._queue)
        self._listener: QueueListener | None = None

    def _build_handlers(self) -> list[logging.Handler]:
        formatter = MicrosecondFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        console.setLevel(self._level)
        handlers: list[logging.Handler] = [console]

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self._log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            handlers.append(file_handler)

        return handlers

    def start(self) -> None:
        """Attach the queue handler and start the writer thread."""
        if self._listener is not None:
            return

        for name in self._names:
            target = logging.getLogger(name)
            target.handlers.clear()
            target.addHandler(self._queue_handler)
            target.setLevel(logging.DEBUG if self._log_file else self._level)
            target.propagate = False

        self._listener = QueueListener(
            self._queue,
            *self._build_handlers(),
            respect_handler_level=True,
        )
        self._listener.start()

    def stop(self) -> None:
        """Flush pending records and detach from the routed loggers."""
        if self._listener is None:
            return

        self._listener.stop()
        self._listener = None

        for name in self._names:
            target = logging.getLogger(name)
            target.removeHandler(self._queue_handler)
            target.propagate = True

    @property
    def is_running(self) -> bool:
        return self._listener is not None


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> AsyncLogger:
    """
    Configure process-wide logging and start the queue writer.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.

    Returns:
        The running AsyncLogger; call ``stop()`` on shutdown.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    async_logger = AsyncLogger(level=numeric_level, log_file=log_file)
    async_logger.start()

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return async_logger
