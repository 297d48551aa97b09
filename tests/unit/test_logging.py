"""Unit tests for structured logging"""

import json
import logging

from fee_audit.infrastructure.observability.logging import CustomJsonFormatter


def test_json_formatter_adds_service_metadata():
    """Test JSON records carry timestamp, level and service"""
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service_name="fee-audit-test")
    record = logging.LogRecord("fee_audit.domain", logging.WARNING, __file__, 1, "Analysis finished", None, None)
    record.analysis_id = "analysis-1"

    payload = json.loads(formatter.format(record))

    assert payload["service"] == "fee-audit-test"
    assert payload["level"] == "WARNING"
    assert payload["message"] == "Analysis finished"
    assert payload["analysis_id"] == "analysis-1"
    assert "timestamp" in payload


def test_timestamp_is_timezone_aware_utc():
    """Test log timestamps carry an explicit UTC offset"""
    formatter = CustomJsonFormatter("%(timestamp)s %(message)s")
    record = logging.LogRecord("fee_audit", logging.INFO, __file__, 1, "ready", None, None)

    payload = json.loads(formatter.format(record))

    assert payload["timestamp"].endswith("+00:00")
