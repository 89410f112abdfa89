"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from carmarket_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Route every record, uvicorn's included, through one JSON stdout handler"""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    for name in ("uvicorn", "uvicorn.error"):
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True

    # MetricsMiddleware already emits one access record per request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def log_match(
    request_id: str,
    amount: float,
    term: int,
    vehicle_year: Optional[int],
    partner_ids: list,
    duration_ms: float,
) -> None:
    """Log structured financing match outcome"""
    logging.info(
        "Financing match completed",
        extra={
            "request_id": request_id,
            "step": "match_complete",
            "amount": amount,
            "term": term,
            "vehicle_year": vehicle_year,
            "outcome": "matched" if partner_ids else "no_offer",
            "partner_ids": partner_ids,
            "duration_ms": duration_ms,
        },
    )


def log_transition(
    request_id: str,
    entity: str,
    entity_id: str,
    from_status: str,
    to_status: str,
    override: bool = False,
) -> None:
    """Log a state change applied to a credit application or prospect"""
    logging.info(
        "Status override applied" if override else "Status transition applied",
        extra={
            "request_id": request_id,
            "step": "transition",
            "entity": entity,
            "entity_id": entity_id,
            "from_status": from_status,
            "to_status": to_status,
            "override": override,
        },
    )
