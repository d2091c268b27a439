from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from dropbox_cache.config.models import FileLoggingSettings, LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries that only get to speak at WARNING or above.
QUIET_LOGGERS = ("aiohttp", "asyncio")


def resolve_level(level_name: str) -> int:
    """Map a level name such as ``"debug"`` to its numeric value, or raise ValueError."""
    level = logging.getLevelNamesMapping().get(level_name.strip().upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {level_name}")
    return level


def _open_file_handler(settings: FileLoggingSettings, formatter: logging.Formatter) -> logging.Handler:
    file_path = Path(settings.path.strip())
    file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(file_path),
        when="midnight",
        interval=1,
        backupCount=settings.rotation.backup_count,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.setFormatter(formatter)
    return handler


def init_logging(settings: LoggingSettings, *, level_override: Optional[str] = None) -> None:
    """
    Route all log records to stderr and, when ``settings.file.path`` is set,
    to a file rotated at midnight.

    Handlers already on the root logger are replaced. ``level_override`` wins
    over ``settings.level``; an unknown name raises ValueError before any
    handler is touched.
    """

    level = resolve_level(level_override or settings.level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.file.path.strip():
        try:
            handlers.append(_open_file_handler(settings.file, formatter))
        except OSError:
            logging.getLogger(__name__).error(
                "File logging handler failed to initialize. path=%s",
                settings.file.path,
                exc_info=True,
            )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["init_logging", "resolve_level"]
