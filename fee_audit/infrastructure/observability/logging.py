"""Structured JSON logging for the audit service"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping timestamp, level and service name on every record"""

    def __init__(self, *args, service_name: str = "fee-audit", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "fee-audit") -> None:
    """Send JSON records to stdout from the root logger"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name)
    )
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_analysis(
    request_id: str,
    analysis_id: str,
    status: str,
    transaction_count: int,
    anomaly_count: int,
    duration_ms: float,
) -> None:
    """One record per finished analysis, whatever its status"""
    log = logging.info if status == "COMPLETED" else logging.warning
    log(
        "Analysis finished",
        extra={
            "request_id": request_id,
            "analysis_id": analysis_id,
            "step": "analysis_complete",
            "analysis_status": status,
            "transaction_count": transaction_count,
            "anomaly_count": anomaly_count,
            "duration_ms": round(duration_ms, 1),
        },
    )
