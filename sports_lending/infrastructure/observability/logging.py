"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from sports_lending.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_lifecycle_event(
    logger: logging.Logger,
    step: str,
    message: str,
    student_id: Optional[str] = None,
    loan_id: Optional[str] = None,
    equipment_id: Optional[str] = None,
    **fields: Any,
) -> None:
    """Log a loan or suspension state change with its identifiers"""
    extra = {"step": step, **fields}
    if student_id is not None:
        extra["student_id"] = student_id
    if loan_id is not None:
        extra["loan_id"] = loan_id
    if equipment_id is not None:
        extra["equipment_id"] = equipment_id
    logger.info(message, extra=extra)
