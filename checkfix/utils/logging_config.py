import logging
import os
import sys
import threading
from typing import Optional


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to console output."""

    blue = "\x1b[38;5;39m"
    cyan = "\x1b[36m"
    green = "\x1b[32m"
    yellow = "\x1b[33m"
    red = "\x1b[31m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"

    format_str = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"

    FORMATS = {
        logging.DEBUG: cyan + format_str + reset,
        logging.INFO: green + format_str + reset,
        logging.WARNING: yellow + format_str + reset,
        logging.ERROR: red + format_str + reset,
        logging.CRITICAL: bold_red + format_str + reset
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        # Handle cases where level might be outside standard range
        if not log_fmt:
            log_fmt = self.format_str
        formatter = logging.Formatter(log_fmt, datefmt="%H:%M:%S")
        return formatter.format(record)


_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"


def _color_enabled(stream) -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def setup_logging(level=logging.INFO, use_color: Optional[bool] = None):
    """Setup centralized console logging on stderr."""
    root_logger = logging.getLogger()

    # Clear existing handlers to prevent duplicate logs
    if root_logger.handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    if use_color is None:
        use_color = _color_enabled(sys.stderr)
    if use_color:
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            ColoredFormatter.format_str, datefmt="%H:%M:%S"
        ))
    root_logger.addHandler(console_handler)

    # Force propagation for all relevant internal loggers
    for logger_name in ["checkfix", "uvicorn", "uvicorn.error", "uvicorn.access", "main"]:
        l = logging.getLogger(logger_name)
        l.setLevel(level)
        l.propagate = True


class _ThreadFilter(logging.Filter):
    """Pass only records emitted by one thread."""

    def __init__(self, thread_id: int):
        super().__init__()
        self.thread_id = thread_id

    def filter(self, record):
        return record.thread == self.thread_id


def attach_session_log(
    log_dir: str, filename: str = "session.log", thread_id: Optional[int] = None
) -> logging.Handler:
    """
    Mirror checkfix logging from one thread into the session log directory.

    Several sessions can run in one process (the HTTP API runs each in a
    worker thread), so the handler keeps only records from ``thread_id``,
    the calling thread by default. The handler is returned so the caller
    can detach it once the session ends (see ``detach_session_log``).
    """
    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(os.path.join(log_dir, filename), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    file_handler.addFilter(
        _ThreadFilter(threading.get_ident() if thread_id is None else thread_id)
    )
    logging.getLogger("checkfix").addHandler(file_handler)
    return file_handler


def detach_session_log(handler: logging.Handler) -> None:
    """Remove and close a handler created by ``attach_session_log``."""
    logging.getLogger("checkfix").removeHandler(handler)
    handler.close()
