"""
Logging setup for the storefront.

Records go to stdout and, when ``logging.log_file`` is configured, to a
rotating file. ``format: json`` writes one JSON object per record to both.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from pythonjsonlogger import jsonlogger

from storefront.utils.config_loader import LoggingConfig

# HTTP client and server chatter that drowns out the app at INFO
NOISY_LOGGERS = ("urllib3", "httpx", "uvicorn.access")

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


class JSONFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding level, logger and call site to every record."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict):
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.module}.{record.funcName}:{record.lineno}"


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JSONFormatter("%(asctime)s %(message)s")
    return logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """
    Configure the root logger from the ``logging`` config section.

    Args:
        config: Level, format and optional log file.
        verbose: Force DEBUG regardless of the configured level.
    """
    level = "DEBUG" if verbose else config.level
    formatter = build_formatter(config.format)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Logging configured: level={level}, format={config.format}, file={config.log_file}")
