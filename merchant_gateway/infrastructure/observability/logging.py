"""Structured JSON logging for production observability"""

import hashlib
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from merchant_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Route every logger (app, uvicorn, sqlalchemy) through one JSON stdout handler"""
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def hash_identifier(identifier: str) -> str:
    """Short stable digest so phone numbers and IPs never reach the logs"""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def log_rate_limit_decision(
    function_name: str,
    identifier: str,
    allowed: bool,
    remaining: int,
    reset_at: datetime,
) -> None:
    """Log structured rate limit outcome for a guarded call"""
    extra = {
        "function_name": function_name,
        "identifier_hash": hash_identifier(identifier),
        "step": "rate_limit",
        "remaining": remaining,
        "reset_at": reset_at.isoformat(),
    }
    if allowed:
        logging.info("Rate limit OK", extra=extra)
    else:
        logging.warning("Rate limit exceeded", extra=extra)


def log_risk_assessment(
    request_id: str,
    merchant_id: str,
    total_score: int,
    level: str,
    duration_ms: float,
) -> None:
    """Log structured risk assessment outcome for analysis"""
    logging.info(
        "Risk assessment completed",
        extra={
            "request_id": request_id,
            "merchant_id": merchant_id,
            "step": "risk_assessment",
            "total_score": total_score,
            "risk_level": level,
            "duration_ms": duration_ms,
        },
    )
