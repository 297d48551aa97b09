"""Unit tests for statistics and summary generation"""

import pytest

from fee_audit.domain.models import Anomaly, AnomalyType, Severity
from fee_audit.domain.reporting import build_summary, calculate_statistics, failure_summary


def make_anomaly(anomaly_type, severity, amount):
    return Anomaly(
        id=f"{anomaly_type.value}-{amount}",
        type=anomaly_type,
        severity=severity,
        confidence=0.9,
        amount=amount,
        transactions=[],
        evidence=[],
        recommendation="",
    )


def test_statistics_count_every_type_and_severity(make_transaction):
    """Test statistics count every type and severity"""
    transactions = [make_transaction(-1000), make_transaction(-3000)]
    anomalies = [make_anomaly(AnomalyType.GHOST_FEE, Severity.LOW, 1000)]

    statistics = calculate_statistics(transactions, anomalies)

    assert statistics.total_amount == 4000
    assert statistics.anomaly_rate == pytest.approx(50.0)
    assert statistics.anomalies_by_type[AnomalyType.OVERCHARGE] == 0
    assert statistics.anomalies_by_severity[Severity.LOW] == 1


def test_critical_anomaly_leads_the_findings(make_transaction):
    """Test critical anomalies lead the key findings"""
    anomalies = [
        make_anomaly(AnomalyType.OVERCHARGE, Severity.CRITICAL, 150_000),
        make_anomaly(AnomalyType.GHOST_FEE, Severity.LOW, 2000),
    ]
    statistics = calculate_statistics([make_transaction()], anomalies)

    summary = build_summary(anomalies, statistics)

    assert summary.status == "CRITICAL"
    assert summary.key_findings[0] == "1 critical anomaly requiring immediate attention"
    assert "1 overcharges (150 000 FCFA)" in summary.key_findings
    assert summary.recommendations[-1] == "Start a formal claim procedure without delay"
    assert summary.estimated_recovery == 152_000


def test_many_anomalies_raise_a_warning(make_transaction):
    """Test many anomalies give a WARNING summary"""
    anomalies = [make_anomaly(AnomalyType.GHOST_FEE, Severity.LOW, 100 + i) for i in range(11)]
    statistics = calculate_statistics([make_transaction()], anomalies)

    summary = build_summary(anomalies, statistics)

    assert summary.status == "WARNING"
    assert "Consider changing bank or renegotiating all conditions" in summary.recommendations


def test_failure_summary():
    """Test failure summary"""
    summary = failure_summary("bad input")

    assert summary.status == "CRITICAL"
    assert summary.message == "Analysis failed: bad input"
    assert summary.estimated_recovery == 0.0
