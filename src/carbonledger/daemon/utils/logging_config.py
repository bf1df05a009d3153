import json
import logging
import os
import sys
from datetime import datetime, UTC
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

ROOT_LOGGER = "carbonledger"
LOG_FILE = "carbonledger.log"

# Attributes every LogRecord has; anything else was passed through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)))


class JSONFormatter(logging.Formatter):
    """One JSON object per line; structured fields are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "fields", {}))
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in ("fields", "message", "asctime"):
                entry.setdefault(key, value)
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", stream=None):
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    logger.propagate = False

    formatter = JSONFormatter()
    console = logging.StreamHandler(stream or sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    log_dir = os.getenv("CCL_LOG_DIR")
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, LOG_FILE),
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            sys.stderr.write(f"File logging disabled ({log_dir}): {e}\n")

    logger.handlers = handlers

    # Request lines come from our own handlers; uvicorn's plain-text access log is noise.
    logging.getLogger("uvicorn.access").disabled = True


def _qualified(name: str) -> str:
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return name
    return f"{ROOT_LOGGER}.{name}"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(_qualified(name))


class StructuredLogger:
    """Thin wrapper so call sites can write ``logger.info("msg", key=value)``."""

    def __init__(self, name: str):
        self.logger = get_logger(name)

    def _log(self, level: int, msg: str, fields: Dict[str, Any], exc_info: bool = False):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, msg, extra={"fields": fields}, exc_info=exc_info, stacklevel=3)

    def debug(self, msg: str, **kwargs):
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs):
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs):
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs):
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs):
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs):
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
