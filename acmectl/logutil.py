"""
Logging setup for acmectl.

All modules log through children of the ``acmectl`` logger. The console
handler drops ERROR and above because errors reach the operator through the
console manager; the optional file handler keeps everything.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .store import ConfigStore

logger = logging.getLogger("acmectl")

LOG_FILE_NAME = "acmectl.log"
LOG_FILE_MAX_BYTES = 500_000
LOG_FILE_BACKUPS = 1

_CONSOLE_FORMAT = "%(levelname)s: %(message)s"
_FILE_FORMAT = "%(asctime)s|%(levelname)s|%(name)s|%(message)s"


class _BelowErrorFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def _resolve_level(config: ConfigStore | None, debug: bool) -> int:
    env_level = os.environ.get("ACMECTL_LOG_LEVEL")
    if env_level:
        level_name = env_level
    elif debug:
        level_name = "DEBUG"
    elif config is not None:
        level_name = config.get("system.log_level", "INFO") or "INFO"
    else:
        level_name = "INFO"
    return getattr(logging, str(level_name).upper(), logging.INFO)


def init_logging(
    config: ConfigStore | None = None,
    debug: bool = False,
    log_dir: str | Path | None = None,
) -> None:
    """Configure the acmectl logger.

    Safe to call more than once; existing handlers are replaced rather than
    duplicated.

    Args:
        config: Optional config store supplying ``system.log_level`` and
            ``system.log_dir``
        debug: Force DEBUG unless ACMECTL_LOG_LEVEL says otherwise
        log_dir: Directory for the rotating log file, overriding config
    """
    level = _resolve_level(config, debug)
    logger.setLevel(level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    stream_handler.addFilter(_BelowErrorFilter())
    logger.addHandler(stream_handler)

    if log_dir is None and config is not None:
        log_dir = config.get("system.log_dir")
    if log_dir:
        log_path = Path(log_dir)
        try:
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path / LOG_FILE_NAME,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning(f"Cannot write log file in {log_path}: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at level {logging.getLevelName(level)}")
