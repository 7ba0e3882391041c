"""Logging setup for sshot.

Diagnostic logging is separate from the playbook transcript: the transcript
is what the operator reads on stdout, log records go to stderr (and
optionally a file) and are silent by default.

- ``-v`` shows INFO, ``-vv`` DEBUG and ``-vvv`` TRACE (every remote command)
- ``--log-file`` always records DEBUG detail
- :class:`StructuredLogger` appends ``host=``/``task=`` context to messages
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

DEFAULT_FORMAT = "%(levelname)s [%(name)s] %(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
TRACE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"

# More detailed than DEBUG
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: TRACE,
}

LEVEL_NAMES = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def get_level_from_verbosity(verbosity: int) -> int:
    """Map the number of ``-v`` flags to a logging level."""
    return VERBOSITY_LEVELS[max(0, min(verbosity, 3))]


def get_level_from_name(level_name: str) -> int:
    """Map a level name (case-insensitive) to a logging level.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LEVEL_NAMES[level_name.lower()]
    except KeyError:
        valid = ", ".join(LEVEL_NAMES)
        raise ValueError(f"Invalid log level: {level_name}. Valid levels: {valid}") from None


def configure_logging(
    level: int = logging.WARNING,
    log_file: str | Path | None = None,
    file_level: int = logging.DEBUG,
    format_string: str | None = None,
) -> None:
    """Install the stderr handler, and the file handler if requested.

    Args:
        level: Level for the stderr handler
        log_file: Optional path of a log file (parent directories are created)
        file_level: Level for the file handler
        format_string: Custom stderr format (chosen from ``level`` if None)

    Example:
        >>> configure_logging(level=logging.INFO)
        >>> configure_logging(level=logging.WARNING, log_file="/tmp/sshot.log")
    """
    if format_string is None:
        if level <= TRACE:
            format_string = TRACE_FORMAT
        elif level <= logging.DEBUG:
            format_string = DEBUG_FORMAT
        else:
            format_string = DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(min(level, file_level) if log_file else level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format_string))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
        root_logger.addHandler(file_handler)


def _with_context(message: str, context: dict[str, Any]) -> str:
    if not context:
        return message
    return f"{message} ({', '.join(f'{k}={v}' for k, v in context.items())})"


@contextmanager
def log_performance(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    threshold: float | None = None,
    **context: Any,
) -> Generator[None, None, None]:
    """Log how long the enclosed block took.

    Args:
        logger: Logger to write to
        operation: Description of the timed block
        level: Log level
        threshold: Only log when the block took at least this many seconds
        **context: Context appended to the message
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start
        if threshold is None or duration >= threshold:
            logger.log(level, _with_context(f"{operation} completed in {duration:.3f}s", context))


class StructuredLogger:
    """Logger that appends bound context to every message.

    Attributes:
        logger: Underlying Python logger
        context: Context appended to every message

    Example:
        >>> log = StructuredLogger("sshot.task_runner", host="web01")
        >>> log.info("Executing task", task="Install nginx")
        INFO [sshot.task_runner] Executing task (host=web01, task=Install nginx)
    """

    def __init__(self, name: str, **context: Any) -> None:
        self.logger = logging.getLogger(name)
        self.context: dict[str, Any] = dict(context)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger with ``context`` added to this one's."""
        return StructuredLogger(self.logger.name, **{**self.context, **context})

    def log(self, level: int, message: str, **extra: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, _with_context(message, {**self.context, **extra}))

    def trace(self, message: str, **extra: Any) -> None:
        self.log(TRACE, message, **extra)

    def debug(self, message: str, **extra: Any) -> None:
        self.log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self.log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self.log(logging.WARNING, message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        self.log(logging.ERROR, message, **extra)

    def exception(self, message: str, **extra: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self.logger.exception(_with_context(message, {**self.context, **extra}))

    @contextmanager
    def performance(
        self,
        operation: str,
        level: int = logging.DEBUG,
        threshold: float | None = None,
        **context: Any,
    ) -> Generator[None, None, None]:
        """Like :func:`log_performance`, with this logger's context."""
        with log_performance(self.logger, operation, level, threshold, **{**self.context, **context}):
            yield


def get_logger(name: str, **context: Any) -> StructuredLogger:
    """Create a :class:`StructuredLogger` (typically ``get_logger(__name__)``)."""
    return StructuredLogger(name, **context)
