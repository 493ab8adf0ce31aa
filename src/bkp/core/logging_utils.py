import collections
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, OrderedDict, TextIO

from .config import LogConfig

_MAX_CACHED_LOGGERS = 16
_LOGGER_CACHE: "OrderedDict[str, logging.Logger]" = collections.OrderedDict()
_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _close_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        try:
            handler.close()
        except Exception:
            pass
    logger.handlers.clear()


def setup_logger(
    name: str,
    log_config: LogConfig,
    *,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure (or reconfigure) the named logger.

    Console output goes to ``stream`` (stderr by default); when
    ``log_config.path`` is set, a rotating file handler is attached as well.
    Child loggers such as ``bkp.core.filesystem`` propagate into it.
    """
    logger = logging.getLogger(name)
    _close_handlers(logger)

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    console.setLevel(log_config.level)
    logger.addHandler(console)

    if log_config.path is not None:
        log_path: Path = log_config.path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_path,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.setLevel(logging.DEBUG)
        logger.addHandler(handler)

    # The file handler records everything; the console filters on its own level.
    logger.setLevel(logging.DEBUG if log_config.path is not None else log_config.level)
    logger.propagate = False

    _LOGGER_CACHE[name] = logger
    _LOGGER_CACHE.move_to_end(name)
    while len(_LOGGER_CACHE) > _MAX_CACHED_LOGGERS:
        _, evicted = _LOGGER_CACHE.popitem(last=False)
        _close_handlers(evicted)
    return logger


def shutdown_logger(name: str) -> None:
    logger = _LOGGER_CACHE.pop(name, None)
    if logger is not None:
        _close_handlers(logger)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit one JSON object per log line, keyed by ``event``."""
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update(fields)
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    logger.log(level, json.dumps(payload, default=str, sort_keys=False))


__all__ = ["log_event", "setup_logger", "shutdown_logger"]
