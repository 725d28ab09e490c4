"""
Terminal and log output.

Every module logs through loguru. User-facing text and tables go through a
single shared Rich console so styles and terminal detection stay consistent.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console, RenderableType

from .config import LoggingConfig, get_data_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"

LEVEL_STYLES = {
    "debug": "cyan",
    "info": None,
    "warning": "yellow",
    "error": "red",
}

_console: Optional[Console] = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def safe_print(message: RenderableType, style: Optional[str] = None) -> None:
    """Print text or a Rich renderable (table, panel) to the terminal."""
    if style:
        get_console().print(message, style=style)
    else:
        get_console().print(message)


def get_log_file_path() -> Path:
    """Get the path to the default log file."""
    return get_data_dir() / "tunes.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console_output: bool = False,
) -> Path:
    """
    Configure loguru with a rotating file sink and an optional stderr sink.

    Args:
        log_file: Path to log file (default: ~/.local/share/tunes/tunes.log)
        level: Minimum level for logging (DEBUG, INFO, WARNING, ERROR)
        console_output: Whether to also log to stderr

    Returns:
        Path of the log file in use
    """
    log_file = log_file or get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,
        level=level,
        format=LOG_FORMAT,
        enqueue=False,  # Engine, watcher and audio threads all log here
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Logging to {log_file} (level={level})")
    return log_file


def setup_from_config(config: LoggingConfig, verbose: bool = False) -> Path:
    """Configure logging from the [logging] config section."""
    log_file = Path(config.log_file) if config.log_file else None
    level = "DEBUG" if verbose else config.level
    return setup_loguru(log_file, level=level, console_output=config.console_output)


def log(message: str, level: str = "info") -> None:
    """
    Write a message to the log and show it on the terminal.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    getattr(logger, level)(message)
    safe_print(message, style=LEVEL_STYLES.get(level))
