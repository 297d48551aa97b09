"""Aggregate statistics and the human summary of an analysis"""

from typing import Dict, List

from fee_audit.domain.models import (
    AnalysisStatistics,
    AnalysisSummary,
    Anomaly,
    AnomalyType,
    Severity,
    Transaction,
)
from fee_audit.utils.formatting import format_amount, plural

STATUS_OK = "OK"
STATUS_WARNING = "WARNING"
STATUS_CRITICAL = "CRITICAL"

MAX_FINDINGS = 5
MAX_RECOMMENDATIONS = 5

TYPE_LABELS = {
    AnomalyType.DUPLICATE_FEE: "duplicate fees",
    AnomalyType.GHOST_FEE: "ghost fees",
    AnomalyType.OVERCHARGE: "overcharges",
    AnomalyType.INTEREST_ERROR: "interest errors",
    AnomalyType.RECONCILIATION_GAP: "reconciliation gaps",
    AnomalyType.SUSPICIOUS_TRANSACTION: "suspicious transactions",
    AnomalyType.VALUE_DATE_ERROR: "value date errors",
    AnomalyType.MULTI_BANK_ISSUE: "multi-bank issues",
}

TYPE_RECOMMENDATIONS = {
    AnomalyType.DUPLICATE_FEE: "Set up a monthly check for duplicated fees",
    AnomalyType.GHOST_FEE: "Request detailed invoices for every unidentified fee",
    AnomalyType.OVERCHARGE: "Renegotiate the fee conditions with the bank",
    AnomalyType.INTEREST_ERROR: "Ask the bank for the detail of its interest calculations",
    AnomalyType.RECONCILIATION_GAP: "Run a full reconciliation and identify the missing entries",
    AnomalyType.SUSPICIOUS_TRANSACTION: "Review the suspicious transactions in detail",
    AnomalyType.VALUE_DATE_ERROR: "Review the value date policy with the bank and claim the interest lost",
    AnomalyType.MULTI_BANK_ISSUE: "Compare positions and fees across banks and rebalance the flows",
}


def empty_statistics() -> AnalysisStatistics:
    return AnalysisStatistics(
        total_transactions=0,
        total_amount=0.0,
        total_anomalies=0,
        total_anomaly_amount=0.0,
        anomalies_by_type={t: 0 for t in AnomalyType},
        anomalies_by_severity={s: 0 for s in Severity},
        anomaly_rate=0.0,
        potential_savings=0.0,
    )


def failure_summary(message: str) -> AnalysisSummary:
    return AnalysisSummary(
        status=STATUS_CRITICAL,
        message=f"Analysis failed: {message}",
        key_findings=[],
        recommendations=[],
        estimated_recovery=0.0,
    )


def calculate_statistics(transactions: List[Transaction], anomalies: List[Anomaly]) -> AnalysisStatistics:
    by_type: Dict[AnomalyType, int] = {t: 0 for t in AnomalyType}
    by_severity: Dict[Severity, int] = {s: 0 for s in Severity}
    for anomaly in anomalies:
        by_type[anomaly.type] += 1
        by_severity[anomaly.severity] += 1

    total_anomaly_amount = sum(a.amount for a in anomalies)
    return AnalysisStatistics(
        total_transactions=len(transactions),
        total_amount=sum(t.abs_amount for t in transactions),
        total_anomalies=len(anomalies),
        total_anomaly_amount=total_anomaly_amount,
        anomalies_by_type=by_type,
        anomalies_by_severity=by_severity,
        anomaly_rate=len(anomalies) / len(transactions) * 100 if transactions else 0.0,
        potential_savings=total_anomaly_amount,
    )


def summary_status(statistics: AnalysisStatistics) -> str:
    if statistics.anomalies_by_severity[Severity.CRITICAL] > 0:
        return STATUS_CRITICAL
    if statistics.anomalies_by_severity[Severity.HIGH] > 0 or statistics.total_anomalies > 10:
        return STATUS_WARNING
    return STATUS_OK


def key_findings(anomalies: List[Anomaly], statistics: AnalysisStatistics) -> List[str]:
    findings = []
    for anomaly_type, count in statistics.anomalies_by_type.items():
        if not count:
            continue
        amount = sum(a.amount for a in anomalies if a.type is anomaly_type)
        findings.append(f"{count} {TYPE_LABELS[anomaly_type]} ({format_amount(amount)})")

    critical = statistics.anomalies_by_severity[Severity.CRITICAL]
    if critical:
        findings.insert(
            0,
            f"{plural(critical, 'critical anomaly', 'critical anomalies')} requiring immediate attention",
        )
    return findings[:MAX_FINDINGS]


def recommendations(statistics: AnalysisStatistics) -> List[str]:
    result = [
        text
        for anomaly_type, text in TYPE_RECOMMENDATIONS.items()
        if statistics.anomalies_by_type[anomaly_type] > 0
    ]
    if statistics.total_anomalies > 10:
        result.append("Consider changing bank or renegotiating all conditions")
    if statistics.potential_savings > 100_000:
        result.append("Start a formal claim procedure without delay")
    return result[:MAX_RECOMMENDATIONS]


def build_summary(anomalies: List[Anomaly], statistics: AnalysisStatistics) -> AnalysisSummary:
    if statistics.total_anomalies == 0:
        message = "No anomaly detected. Bank fees appear compliant."
    else:
        message = (
            f"{plural(statistics.total_anomalies, 'anomaly', 'anomalies')} detected for a total of "
            f"{format_amount(statistics.total_anomaly_amount)}. "
            f"Anomaly rate: {statistics.anomaly_rate:.1f}%."
        )

    return AnalysisSummary(
        status=summary_status(statistics),
        message=message,
        key_findings=key_findings(anomalies, statistics),
        recommendations=recommendations(statistics),
        estimated_recovery=statistics.potential_savings,
    )
