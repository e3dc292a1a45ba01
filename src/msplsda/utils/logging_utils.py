"""
Logging Utilities
=================

Consistent console/file logging for analysis runs.

Features:
- Colored level names on the console (colorama)
- Optional file handler next to the run outputs
- tqdm-compatible handler so log lines don't break progress bars
- Timing context manager and dictionary pretty-printing

Usage:
    from msplsda.utils.logging_utils import setup_logging, log_time

    logger = setup_logging("msplsda", level="INFO", log_file="results/run.log")

    with log_time(logger, "Leave-one-out cross-validation"):
        cv = cross_validate(matrix, annotation, 2)
"""

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from colorama import Fore, Style, just_fix_windows_console
from tqdm import tqdm

just_fix_windows_console()


class ColoredFormatter(logging.Formatter):
    """
    Log formatter that color-codes the level name.

    - DEBUG: Cyan
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Style.BRIGHT + Fore.RED,
    }
    RESET = Style.RESET_ALL

    def format(self, record):
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"

        formatted = super().format(record)

        # Other handlers see the plain level name
        record.levelname = levelname
        return formatted


class TqdmLoggingHandler(logging.Handler):
    """Handler writing through ``tqdm.write`` so progress bars stay intact."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record))
        except Exception:
            self.handleError(record)


def setup_logging(
    name: str = "msplsda",
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
    format_string: Optional[str] = None,
    date_format: Optional[str] = None,
    use_colors: bool = True,
    use_tqdm: bool = False,
) -> logging.Logger:
    """
    Setup logger with consistent formatting and handlers.

    Args:
        name: Logger name. "msplsda" configures every module of the package.
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging to file
        console: Whether to log to console (default: True)
        format_string: Custom format string for log messages
        date_format: Custom date format for timestamps
        use_colors: Whether to color level names on the console
        use_tqdm: Whether to route console output through tqdm.write

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logging("msplsda", level="DEBUG")
        >>> logger.info("Starting PLS-DA")
        2025-03-02 10:30:45 - msplsda - INFO - Starting PLS-DA
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    if date_format is None:
        date_format = "%Y-%m-%d %H:%M:%S"

    if console:
        if use_tqdm:
            console_handler = TqdmLoggingHandler()
        else:
            console_handler = logging.StreamHandler(sys.stdout)

        if use_colors:
            console_formatter = ColoredFormatter(format_string, datefmt=date_format)
        else:
            console_formatter = logging.Formatter(format_string, datefmt=date_format)

        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(format_string, datefmt=date_format))
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


@contextmanager
def log_time(logger: logging.Logger, message: str, level: str = "INFO"):
    """
    Context manager for logging execution time.

    Example:
        >>> with log_time(logger, "Permutation test"):
        ...     permutation_test(X, Y, 2)
        2025-03-02 10:30:45 - INFO - Permutation test...
        2025-03-02 10:31:02 - INFO - Permutation test completed in 17.2s
    """
    log_func = getattr(logger, level.lower())

    log_func(f"{message}...")
    start_time = time.time()

    try:
        yield
    finally:
        elapsed = time.time() - start_time

        if elapsed < 60:
            time_str = f"{elapsed:.1f}s"
        elif elapsed < 3600:
            time_str = f"{int(elapsed // 60)}m {int(elapsed % 60)}s"
        else:
            time_str = f"{int(elapsed // 3600)}h {int((elapsed % 3600) // 60)}m"

        log_func(f"{message} completed in {time_str}")


def log_dict(logger: logging.Logger, data: Dict[str, Any], title: Optional[str] = None, level: str = "INFO"):
    """
    Log dictionary with pretty formatting.

    Example:
        >>> log_dict(logger, {"accuracy": 0.9, "n_features": 500}, title="Summary")
        2025-03-02 10:30:45 - INFO - Summary:
        2025-03-02 10:30:45 - INFO -   accuracy: 0.900000
        2025-03-02 10:30:45 - INFO -   n_features: 500
    """
    log_func = getattr(logger, level.lower())

    if title:
        log_func(f"{title}:")

    for key, value in data.items():
        if isinstance(value, float):
            log_func(f"  {key}: {value:.6f}")
        else:
            log_func(f"  {key}: {value}")
