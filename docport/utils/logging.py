"""Logging configuration using structlog."""

import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

BoundLogger = structlog.stdlib.BoundLogger


# =============================================================================
# Task Context
# =============================================================================

_run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
_file_context_var: ContextVar[str | None] = ContextVar("file_context", default=None)


def generate_run_id() -> str:
    """Generate a unique 8-character ID for one batch run."""
    return str(uuid.uuid4())[:8]


@contextmanager
def task_context(
    run_id: str | None = None,
    file_path: str | None = None,
) -> Generator[str, None, None]:
    """Bind a run ID and the file being processed to every log line.

    Context set here is restored on exit, so nested tasks keep their own file.

    Args:
        run_id: Optional run ID (inherited or generated if not provided)
        file_path: Optional file path being processed

    Yields:
        The run ID being used

    Example:
        >>> with task_context(file_path="Content/intro.htm"):
        ...     log.info("Converting")  # includes file=Content/intro.htm
    """
    old_run_id = _run_id_var.get()
    old_file = _file_context_var.get()

    new_run_id = run_id or old_run_id or generate_run_id()
    _run_id_var.set(new_run_id)
    if file_path is not None:
        _file_context_var.set(file_path)

    try:
        yield new_run_id
    finally:
        _run_id_var.set(old_run_id)
        _file_context_var.set(old_file)


def _inject_task_context(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Add run_id and file from the task context unless already present."""
    run_id = _run_id_var.get()
    if run_id and "run_id" not in event_dict:
        event_dict["run_id"] = run_id

    file_ctx = _file_context_var.get()
    if file_ctx and "file" not in event_dict:
        event_dict["file"] = file_ctx

    return event_dict


# =============================================================================
# Logging Configuration
# =============================================================================


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that replaces characters the console cannot encode."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            stream = self.stream
            try:
                stream.write(msg + self.terminator)
            except UnicodeEncodeError:
                safe_msg = msg.encode(stream.encoding or "utf-8", errors="replace").decode(
                    stream.encoding or "utf-8", errors="replace"
                )
                stream.write(safe_msg + self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


_console: Console | None = None
_log_output: TextIO = sys.stderr

_NOISY_LOGGERS = ["asyncio", "anyio"]

# Keys rendered by ConsoleRenderer itself
_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}


def get_console() -> Console:
    """Get the global Rich console for coordinated output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def set_log_output(output: TextIO) -> None:
    """Set the log output stream (for Progress console coordination)."""
    global _log_output
    _log_output = output


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Truncate long values so document content never floods the log."""
    max_value_length = 500
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > max_value_length:
            event_dict[key] = value[:max_value_length] + f"... [{len(value)} chars total]"
        elif isinstance(value, (bytes, bytearray)) and len(value) > max_value_length:
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
    return event_dict


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Separate the event message from context variables."""
    has_context = any(k not in _INTERNAL_KEYS for k in event_dict)
    if has_context and "event" in event_dict:
        event_dict["event"] = f"{event_dict['event']} |"
    return event_dict


def _console_renderer(colors: bool) -> structlog.dev.ConsoleRenderer:
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
        pad_event_to=0,
        pad_level=False,
        sort_keys=False,
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console: Console | None = None,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file, rotated daily with 7-day retention
        json_format: If True, render JSON instead of console lines
        console: Optional Rich Console for coordinated output with Progress
        console_level: Optional override for console handler level
        file_level: Optional override for file handler level
    """
    global _console

    log_level = getattr(logging, level.upper(), logging.INFO)

    if console is not None:
        _console = console

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _inject_task_context,
        _filter_event_dict,
        _add_separator,
    ]

    if json_format:
        final_processor: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = _console_renderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_processor,
        ],
    )

    console_handler = SafeStreamHandler(_log_output)
    c_level = getattr(logging, console_level.upper(), log_level) if console_level else log_level
    console_handler.setLevel(c_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_renderer = (
            structlog.processors.JSONRenderer() if json_format else _console_renderer(colors=False)
        )
        file_formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                file_renderer,
            ],
        )

        file_handler = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        f_level = getattr(logging, file_level.upper(), log_level) if file_level else log_level
        file_handler.setLevel(f_level)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name

    Returns:
        A structlog bound logger
    """
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "batch") -> tuple[str, Path]:
    """Create a unique log file path with timestamp and short ID.

    Returns:
        Tuple of (task_id, log_file_path), e.g. ``.logs/batch_20261018_143052_a1b2c3d4.log``
    """
    log_dir_path = Path(log_dir)
    log_dir_path.mkdir(parents=True, exist_ok=True)

    task_id = generate_run_id()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir_path / f"{prefix}_{timestamp}_{task_id}.log"

    return task_id, log_file


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "batch",
    verbose: bool = False,
) -> tuple[str, Path]:
    """Set up logging for one CLI task.

    The console shows WARNING and above unless ``verbose`` is set, which keeps
    progress bars readable. The task log file always receives DEBUG.

    Args:
        log_dir: Directory to store log files
        prefix: Prefix for the log file name
        verbose: Enable verbose console output

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)

    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level="DEBUG" if verbose else "WARNING",
        file_level="DEBUG",
    )

    return task_id, log_path
