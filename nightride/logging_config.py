"""
Logging configuration for nightride.
"""
import logging
import sys
from pathlib import Path
from typing import Optional


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        # Work on a copy so the file handler still sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, '')
        reset = self.COLORS['RESET']
        record.levelname = f"{color}{record.levelname}{reset}"
        return super().format(record)


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None,
                  console: bool = True) -> None:
    """Setup logging configuration for nightride.

    The status screen owns the terminal while the player runs, so the
    interactive entry point passes ``console=False`` and a log file.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        console: Whether to log to stderr
    """
    logger = logging.getLogger('nightride')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    # Clear existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
        console_formatter = ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module.

    Args:
        name: Module name

    Returns:
        Logger instance
    """
    return logging.getLogger(f'nightride.{name}')


# Custom exceptions for better error handling
class NightrideError(Exception):
    """Base exception for nightride."""
    pass


class ChannelUnavailable(NightrideError):
    """The player control channel cannot be reached or timed out."""
    pass


class ProcessSpawnFailed(NightrideError):
    """The external player could not be launched."""
    pass


class PlayerCommandError(NightrideError):
    """The player answered a command with an error status."""
    pass


class MetadataFetchFailed(NightrideError):
    """Now-playing metadata could not be fetched or parsed."""
    pass


class PersistenceUnavailable(NightrideError):
    """The session file could not be read or written."""
    pass


class NoTrackAvailable(NightrideError):
    """No track metadata is known for the current station."""
    pass


class ConfigurationError(NightrideError):
    """Configuration related errors."""
    pass
