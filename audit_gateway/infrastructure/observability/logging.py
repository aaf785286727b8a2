"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from audit_gateway.config import settings


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


def log_analysis(
    request_id: str,
    caller_id: str,
    session_id: str | None,
    total: int,
    flagged: int,
    narrative_status: str,
    duration_ms: float,
) -> None:
    """Log structured analysis outcome"""
    logging.info(
        "Analysis completed",
        extra={
            "request_id": request_id,
            "caller_id": caller_id,
            "session_id": session_id,
            "step": "analysis_complete",
            "transaction_count": total,
            "flagged_count": flagged,
            "narrative_status": narrative_status,
            "duration_ms": duration_ms,
        },
    )


def log_report(
    request_id: str,
    caller_id: str,
    session_id: str,
    report_id: str,
    duration_ms: float,
) -> None:
    """Log structured report generation outcome"""
    logging.info(
        "Report generated",
        extra={
            "request_id": request_id,
            "caller_id": caller_id,
            "session_id": session_id,
            "report_id": report_id,
            "step": "report_complete",
            "duration_ms": duration_ms,
        },
    )
