"""
Greeting Program - Structured Logging Configuration

Configures JSON logging for the client tools and the local runtime:
- JSON format for easy parsing and aggregation
- Console output plus an optional rotating log file

Usage:
    from greeter.core.logging_config import setup_logging

    logger = setup_logging(name="greeter", level="DEBUG")
    logger.info("Greeting created", extra={"event": "greeting.created"})
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from greeter.core.config import ProgramConfig


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with timestamp, environment, and source location fields.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        environment: Optional[str] = None,
        service_name: str = "greeter",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "development"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name
        log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "greeter",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "development",
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Setup structured JSON logging.

    Args:
        name: Logger name, usually the package root so every module inherits it
        log_file: Path to JSON log file (optional)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment identifier
        enable_console: Whether to log to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    formatter = CustomJsonFormatter(
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(config: ProgramConfig, name: str = "greeter") -> logging.Logger:
    """Setup logging using the level, file, and environment from ``config``."""
    return setup_logging(
        name=name,
        log_file=config.log_file,
        level=config.log_level,
        environment=config.environment,
    )
