"""
Centralized logging for ShrinkWrap
Writes to shrinkwrap.log (overwrites on each run)
"""

import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "shrinkwrap"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler: Optional[logging.FileHandler] = None


def _open_handler(log_path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
    return handler


def _write_header(handler: logging.FileHandler, log_path: Path):
    """Write log file header"""
    stream = handler.stream
    stream.write("=" * 70 + "\n")
    stream.write("SHRINKWRAP - LOG FILE\n")
    stream.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
    stream.write(f"Log file: {log_path}\n")
    stream.write("=" * 70 + "\n\n")
    stream.flush()


def setup_file_logging(
    log_file: str = "shrinkwrap.log",
    level: int = logging.INFO,
) -> Path:
    """
    Attach a file handler to the package logger.

    The log is overwritten on each run. If the working directory is not
    writable the log goes to the temp directory instead.

    Args:
        log_file: Log file name
        level: Minimum level written

    Returns:
        Path of the log file in use
    """
    global _handler
    close_logger()

    log_path = Path.cwd() / log_file
    try:
        handler = _open_handler(log_path)
    except OSError:
        log_path = Path(tempfile.gettempdir()) / log_file
        handler = _open_handler(log_path)

    _write_header(handler, log_path)

    logger = get_logger()
    logger.setLevel(level)
    logger.addHandler(handler)
    _handler = handler
    return log_path


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get the package logger, or a child of it"""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)


def log_separator():
    """Log a visual separator"""
    get_logger().info("=" * 70)


def close_logger():
    """Detach and close the file handler"""
    global _handler
    if _handler is not None:
        get_logger().removeHandler(_handler)
        _handler.close()
        _handler = None
