"""
Loguru setup for skvk-screens.
The Textual UI owns the terminal, so diagnostics go to a rotating file only.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from skvk_screens.config import get_data_dir


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "skvk-screens.log"


def setup_loguru(log_file: Optional[Path] = None, level: str = "INFO") -> Path:
    """
    Configure loguru for file-only logging.

    Args:
        log_file: Path to log file (default: ~/.local/share/skvk-screens/skvk-screens.log)
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The path logs are written to
    """
    log_file = log_file if log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    logger.info(f"Loguru initialized: {log_file} (level={level})")
    return log_file
