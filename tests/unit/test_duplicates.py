"""Unit tests for duplicate fee detection"""

from datetime import date, timedelta

import pytest

from fee_audit.domain.duplicates import DuplicateDetector
from fee_audit.domain.models import AnomalyType, Severity
from fee_audit.domain.thresholds import DuplicateDetectionConfig, DuplicateEvidenceMode


@pytest.fixture
def detector() -> DuplicateDetector:
    return DuplicateDetector()


def test_identical_fees_one_day_apart_are_grouped(detector, make_transaction):
    """Test identical fees a day apart form one group"""
    first = make_transaction(-5000, "FRAIS TENUE DE COMPTE", day=date(2024, 5, 1))
    second = make_transaction(-5000, "FRAIS TENUE DE COMPTE", day=date(2024, 5, 2))

    anomalies = detector.detect_duplicates([first, second])

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.DUPLICATE_FEE
    assert anomaly.confidence >= 0.85
    assert anomaly.amount == 5000
    assert [t.id for t in anomaly.transactions] == [first.id, second.id]


def test_fees_forty_days_apart_are_never_grouped(detector, make_transaction):
    """Test fees outside the window are never grouped"""
    first = make_transaction(-5000, "FRAIS", day=date(2024, 5, 1))
    second = make_transaction(-5000, "FRAIS", day=date(2024, 6, 10))

    assert detector.detect_duplicates([first, second]) == []


def test_three_consecutive_fees_form_a_single_group(detector, make_transaction):
    """Test consecutive repeats join the first group"""
    start = date(2024, 5, 1)
    fees = [make_transaction(-5000, "FRAIS", day=start + timedelta(days=i)) for i in range(3)]

    anomalies = detector.detect_duplicates(list(reversed(fees)))

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.amount == 10000
    assert len(anomaly.transactions) == 3
    assert anomaly.transactions[0].id == fees[0].id  # earliest is the presumed legitimate charge
    assert anomaly.severity == Severity.MEDIUM
    # mean of 0.4 + 0.4 + 0.2 * exp(-0.6) and 0.4 + 0.4 + 0.2 * exp(-1.2)
    assert anomaly.confidence == pytest.approx(0.885, abs=1e-3)


def test_transaction_belongs_to_one_group_only(detector, make_transaction):
    """Test a transaction is never in two groups"""
    start = date(2024, 5, 1)
    fees = [make_transaction(-2000, "COMMISSION CARTE", day=start + timedelta(days=d)) for d in (0, 1, 2, 8)]

    anomalies = detector.detect_duplicates(fees)

    assert len(anomalies) == 1
    grouped = [t.id for a in anomalies for t in a.transactions]
    assert len(grouped) == len(set(grouped))
    assert fees[3].id not in grouped


def test_credits_and_malformed_records_are_ignored(detector, make_transaction):
    """Test credits and malformed records are skipped"""
    credits = [make_transaction(5000, "VIREMENT RECU") for _ in range(2)]
    malformed = make_transaction(float("nan"), "FRAIS")

    assert detector.detect_duplicates(credits + [malformed]) == []


def test_different_amounts_are_not_duplicates(detector, make_transaction):
    """Test different amounts stay below the threshold"""
    first = make_transaction(-5000, "FRAIS", day=date(2024, 5, 1))
    second = make_transaction(-500, "FRAIS", day=date(2024, 5, 1))

    assert detector.detect_duplicates([first, second]) == []


def test_large_group_is_critical(detector, make_transaction):
    """Test five repeats make a critical anomaly"""
    fees = [make_transaction(-30_000, "FRAIS DOSSIER", day=date(2024, 5, 1)) for _ in range(3)]

    anomaly = detector.detect_duplicates(fees)[0]

    assert anomaly.amount == 60_000
    assert anomaly.severity == Severity.CRITICAL


def test_basic_mode_has_no_schedule_evidence(detector, make_transaction, bank_conditions):
    """Test basic mode omits fee schedule evidence"""
    fees = [make_transaction(-500, "FRAIS ALERTE SMS") for _ in range(2)]

    anomaly = detector.detect_duplicates(fees, bank_conditions)[0]

    types = [e.type for e in anomaly.evidence]
    assert "GRID_CHECK" not in types
    assert {"DUPLICATE_COUNT", "SIMILARITY_SCORE", "DATE_RANGE", "EXACT_AMOUNT_MATCH"} <= set(types)
    assert "BICEC" not in anomaly.recommendation


def test_source_evidence_mode_cites_the_fee_schedule(make_transaction, bank_conditions):
    """Test source evidence mode cites the matching schedule entry"""
    detector = DuplicateDetector(DuplicateDetectionConfig(mode=DuplicateEvidenceMode.WITH_SOURCE_EVIDENCE))
    fees = [make_transaction(-500, "FRAIS ALERTE SMS") for _ in range(2)]

    anomaly = detector.detect_duplicates(fees, bank_conditions)[0]

    grid = next(e for e in anomaly.evidence if e.type == "GRID_CHECK")
    assert grid.reference == "SMS"
    assert grid.expected_value == 500
    assert grid.applied_value == 1000
    assert grid.source == "Fee schedule BICEC - January 2024"
    assert "BICEC" in anomaly.recommendation
