"""Prometheus metrics for analysis outcomes, detector timing and commentary delivery"""

from prometheus_client import Counter, Histogram

from fee_audit.domain.models import AnalysisResult

# Analysis metrics
analysis_counter = Counter(
    "fee_audit_analysis_total",
    "Total analyses run",
    ["status"],  # COMPLETED | CANCELLED | FAILED
)

anomaly_counter = Counter(
    "fee_audit_anomalies_total",
    "Anomalies reported",
    ["type", "severity"],
)

detector_duration_histogram = Histogram(
    "fee_audit_detector_duration_seconds",
    "Time spent in each detector",
    ["detector"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Commentary metrics
commentary_latency_histogram = Histogram(
    "commentary_latency_seconds",
    "AI commentary response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

commentary_failure_counter = Counter(
    "commentary_failures_total",
    "Failed AI commentary deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_analysis(result: AnalysisResult) -> None:
    """Record outcome, anomaly breakdown and per-detector timing of one analysis"""
    analysis_counter.labels(status=result.status.value).inc()

    for anomaly in result.anomalies:
        anomaly_counter.labels(type=anomaly.type.value, severity=anomaly.severity.value).inc()

    for run in result.detector_runs:
        detector_duration_histogram.labels(detector=run.detector.value).observe(run.duration_ms / 1000)
