"""Loguru setup shared by the API server and the CLI.

Keyword arguments passed to log calls (``logger.info(msg, user_id=...)``)
land in ``record["extra"]`` and are printed after the message.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message} | {extra}\n{exception}"


def _console_format(record) -> str:
    if record["extra"]:
        return CONSOLE_FORMAT + " <dim>{extra}</dim>\n{exception}"
    return CONSOLE_FORMAT + "\n{exception}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    serialize: bool = False,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Send logs to stderr and, when ``log_file`` is set, to a rotating file.

    Args:
        level: Minimum level for every sink
        log_file: Optional file path; parent directories are created
        serialize: Write the file sink as JSON lines instead of text
    """
    logger.remove()
    logger.add(sys.stderr, format=_console_format, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            serialize=serialize,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f"Logger initialized with level={level}", log_file=log_file)
