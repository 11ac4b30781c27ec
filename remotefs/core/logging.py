"""
Rich-based logging for remotefs.

Library modules only call ``get_logger(__name__)``; the CLI calls
``setup_logging`` once per invocation. User-facing output goes through the
two shared consoles, never through loggers.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from .constants import DEFAULT_LOG_DIR

FILE_LOG_FORMAT = "%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s"

# Third-party loggers held at WARNING unless DEBUG is requested
NOISY_LOGGERS = ("paramiko", "paramiko.transport", "paramiko.transport.sftp")

# Consoles look up sys.stdout / sys.stderr on every write
_stdout_console = Console()
_stderr_console = Console(stderr=True)


def resolve_log_file(log_file: Union[str, Path]) -> Path:
    """
    Resolve a log file path.

    A bare file name (``transfers.log``) lands in ~/.remotefs/logs; any
    path with a directory part is used as given.
    """
    path = Path(log_file).expanduser()
    if path.parent == Path("."):
        path = Path(DEFAULT_LOG_DIR).expanduser() / path
    return path


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    rich_tracebacks: bool = True,
) -> None:
    """
    Route log records to stderr through rich, and optionally to a file.

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Optional log file (see ``resolve_log_file``)
        rich_tracebacks: Render exceptions with rich tracebacks
    """
    log_level = logging.getLevelName(str(level).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handlers = [
        RichHandler(
            console=_stderr_console,
            level=log_level,
            show_path=False,
            markup=False,
            rich_tracebacks=rich_tracebacks,
        )
    ]

    if log_file:
        path = resolve_log_file(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        handlers.append(file_handler)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if isinstance(handler, logging.FileHandler):
            handler.close()
    root.setLevel(log_level)
    for handler in handlers:
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    """Console for command output"""
    return _stdout_console


def get_stderr_console() -> Console:
    """Console for errors and log records"""
    return _stderr_console
