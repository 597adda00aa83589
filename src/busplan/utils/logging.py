"""Logging configuration for busplan: levels, colours, progress bars."""

import logging
import os
import sys
from enum import Enum

from tqdm import tqdm


class Colors:
    """ANSI colour codes for terminal output."""
    GRAY = "\033[90m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class Symbols:
    """Unicode symbols for log output."""
    CHECKMARK = "✓"
    CROSS = "✗"
    ROCKET = "🚀"
    BUS = "🚌"


class LogLevel(Enum):
    QUIET = 0    # errors only
    NORMAL = 1   # progress and results
    VERBOSE = 2  # per-cluster details
    DEBUG = 3    # everything


class SimpleFormatter(logging.Formatter):
    """Colour the whole message by record level."""

    LEVEL_COLORS = {
        "DEBUG": Colors.GRAY,
        "INFO": Colors.CYAN,
        "WARNING": Colors.YELLOW,
        "ERROR": Colors.RED,
        "CRITICAL": Colors.RED + Colors.BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, Colors.RESET)
        return f"{color}{record.getMessage()}{Colors.RESET}"


_LEVEL_TO_LOGGING = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.NORMAL: logging.WARNING,
    LogLevel.VERBOSE: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


class BusplanLogger:
    """Central access point for busplan loggers."""

    _current_level = LogLevel.NORMAL

    @classmethod
    def set_level(cls, level: LogLevel) -> None:
        cls._current_level = level
        os.environ["BUSPLAN_EFFECTIVE_LOG_LEVEL"] = level.name
        cls._configure_logger_level(logging.getLogger("busplan"), level)

    @classmethod
    def get_level(cls) -> LogLevel:
        return cls._current_level

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        return logging.getLogger(name)

    @staticmethod
    def _configure_logger_level(logger, level: LogLevel) -> None:
        """Apply ``level`` to a logger, letting BUSPLAN_EFFECTIVE_LOG_LEVEL override it."""
        env_level = os.getenv("BUSPLAN_EFFECTIVE_LOG_LEVEL")
        if env_level:
            try:
                level = LogLevel[env_level.upper()]
            except KeyError:
                pass
        logger.setLevel(_LEVEL_TO_LOGGING.get(level, logging.INFO))

    @classmethod
    def progress(cls, message: str, symbol: str = Symbols.ROCKET) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("busplan.progress").warning(f"{symbol} {message}")

    @classmethod
    def success(cls, message: str, symbol: str = Symbols.CHECKMARK) -> None:
        if cls._current_level.value >= LogLevel.NORMAL.value:
            cls.get_logger("busplan.success").warning(f"{symbol} {message}")

    @classmethod
    def detail(cls, message: str, prefix: str = "  ") -> None:
        if cls._current_level.value >= LogLevel.VERBOSE.value:
            cls.get_logger("busplan.detail").info(f"{prefix} {message}")

    @classmethod
    def debug(cls, message: str, logger_name: str = "busplan.debug") -> None:
        if cls._current_level.value >= LogLevel.DEBUG.value:
            cls.get_logger(logger_name).debug(message)


def setup_logging(level: LogLevel | None = None) -> None:
    """
    Configure the ``busplan`` logger hierarchy.

    Without an explicit level the BUSPLAN_LOG_LEVEL environment variable is
    consulted (quiet, normal, verbose, debug), defaulting to normal.
    """
    if level is None:
        env_value = os.getenv("BUSPLAN_LOG_LEVEL", "normal").strip().lower()
        level = {
            "quiet": LogLevel.QUIET,
            "verbose": LogLevel.VERBOSE,
            "debug": LogLevel.DEBUG,
        }.get(env_value, LogLevel.NORMAL)

    BusplanLogger.set_level(level)

    root = logging.getLogger("busplan")
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(SimpleFormatter())
    if level == LogLevel.QUIET:
        handler.setLevel(logging.ERROR)
    elif level == LogLevel.NORMAL:
        handler.setLevel(logging.WARNING)
    elif level == LogLevel.VERBOSE:
        handler.setLevel(logging.INFO)
    elif level == LogLevel.DEBUG:
        handler.setLevel(logging.DEBUG)
    else:
        handler.setLevel(logging.INFO)
    root.addHandler(handler)
    root.propagate = False


class ProgressTracker:
    """tqdm progress bar over named steps, hidden in quiet mode."""

    def __init__(self, steps: list[str]):
        self.steps = steps
        self.current = 0
        self.show_progress = BusplanLogger.get_level() != LogLevel.QUIET
        self.pbar = None
        if self.show_progress:
            self.pbar = tqdm(
                total=len(steps),
                desc=f"{Colors.CYAN}Planning{Colors.RESET}",
                bar_format="{desc}: {percentage:3.0f}%|{bar:30}| {n_fmt}/{total_fmt}",
            )

    def advance(self, message: str | None = None, status: str = "success") -> None:
        if self.pbar is not None:
            if message:
                color = Colors.GREEN if status == "success" else Colors.YELLOW
                self.pbar.write(f"{color}{Symbols.CHECKMARK} {message}{Colors.RESET}")
            self.pbar.update(1)
        self.current += 1

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.write(f"{Colors.GREEN}{Symbols.CHECKMARK} Planning completed{Colors.RESET}")
            self.pbar.close()


def log_progress(message: str, symbol: str = Symbols.ROCKET) -> None:
    BusplanLogger.progress(message, symbol)


def log_success(message: str, symbol: str = Symbols.CHECKMARK) -> None:
    BusplanLogger.success(message, symbol)


def log_detail(message: str, prefix: str = "  ") -> None:
    BusplanLogger.detail(message, prefix)


def log_debug(message: str, logger_name: str = "busplan.debug") -> None:
    BusplanLogger.debug(message, logger_name)


def log_info(message: str) -> None:
    BusplanLogger.get_logger("busplan.info").info(message)


def log_warning(message: str) -> None:
    BusplanLogger.get_logger("busplan.warning").warning(f"{Symbols.CROSS} {message}")


def log_error(message: str) -> None:
    BusplanLogger.get_logger("busplan.error").error(f"{Symbols.CROSS} {message}")
