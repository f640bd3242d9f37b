"""
proxy-vesting - Structured Logging Configuration

Configures logging for the migration workflows:
- JSON format (python-json-logger) so a run can be archived and audited
- Plain text format for interactive terminal sessions
- Optional rotating file handler

Usage:
    from proxy_vesting.core.logging_config import setup_logging

    logger = setup_logging(
        name="proxy_vesting",
        log_file="logs/distribution.json",
        level="INFO",
    )

    logger.info("proxies created", extra={"event": "distribution.proxies_created", "count": 17})
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from pythonjsonlogger.json import JsonFormatter

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CustomJsonFormatter(JsonFormatter):
    """
    JSON formatter with additional context fields.

    Adds timestamp, environment, service and source location to all records.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "proxy_vesting",
    ):
        """
        Initialize custom JSON formatter.

        Args:
            fmt: Log format string
            timestamp: Whether to add timestamps
            environment: Environment name (development, testnet, production)
            service_name: Service name for context
        """
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "proxy_vesting",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    json_format: bool = True,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Setup logging for a workflow run.

    Args:
        name: Logger name (the package logger configures every module logger)
        log_file: Path to log file (optional, always JSON)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment identifier
        json_format: JSON console output when True, plain text otherwise
        enable_console: Whether to log to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    json_formatter = CustomJsonFormatter(
        timestamp=True,
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        # stdout is reserved for command output (tables, --json-output)
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        if json_format:
            console_handler.setFormatter(json_formatter)
        else:
            console_handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        logger.addHandler(console_handler)

    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(json_formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning("Could not create file handler for %s: %s", log_file, e)

    return logger

