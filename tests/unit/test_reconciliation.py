"""Unit tests for bank/ledger reconciliation"""

from datetime import date, timedelta

import pytest

from fee_audit.domain.models import AccountingEntry, AnomalyType, Severity
from fee_audit.domain.reconciliation import MatchType, ReconciliationMatcher


@pytest.fixture
def matcher() -> ReconciliationMatcher:
    return ReconciliationMatcher()


def entry(entry_id, amount, description, day=date(2024, 5, 10), reference=None):
    return AccountingEntry(id=entry_id, date=day, amount=amount, description=description, reference=reference)


def test_identical_records_match_exactly(matcher, make_transaction):
    """Test identical bank and ledger records score exactly 1.0"""
    tx = make_transaction(-15_000, "ACHAT FOURNITURES BUREAU")
    ledger = [entry("E1", -15_000, "ACHAT FOURNITURES BUREAU")]

    assert matcher.match_score(tx, ledger[0]) == 1.0
    results = matcher.match_transactions([tx], ledger)
    assert results[0].match_type is MatchType.EXACT
    assert results[0].entry == ledger[0]
    assert matcher.reconcile([tx], ledger) == []


def test_close_record_is_partial_match(matcher, make_transaction):
    """Test partial match one day and 100 FCFA apart"""
    tx = make_transaction(-15_100, "ACHAT FOURNITURES BUREAU")
    ledger = [entry("E1", -15_000, "ACHAT FOURNITURES BUREAU", day=date(2024, 5, 11))]

    anomalies = matcher.reconcile([tx], ledger)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.RECONCILIATION_GAP
    assert anomaly.amount == pytest.approx(100)
    assert anomaly.severity == Severity.MEDIUM
    assert 0.8 < anomaly.confidence < 0.95
    assert anomaly.evidence[1].reference == "E1"


def test_unmatched_on_both_sides(matcher, make_transaction):
    """Test unmatched records reported once per side"""
    tx = make_transaction(-200_000, "LOYER BUREAUX")
    ledger = [entry("E1", 50_000, "REGLEMENT CLIENT", day=date(2024, 3, 1))]

    anomalies = matcher.reconcile([tx], ledger)

    assert len(anomalies) == 2
    bank_side, ledger_side = anomalies
    assert bank_side.transactions == [tx]
    assert bank_side.amount == 200_000
    assert ledger_side.transactions == []
    assert ledger_side.amount == 50_000
    assert ledger_side.recommendation.startswith("1 ledger entry without a bank counterpart")


def test_ledger_entry_is_used_once(matcher, make_transaction):
    """Test a ledger entry cannot be claimed twice"""
    first = make_transaction(-15_000, "ACHAT FOURNITURES BUREAU")
    second = make_transaction(-15_000, "ACHAT FOURNITURES BUREAU")
    ledger = [entry("E1", -15_000, "ACHAT FOURNITURES BUREAU")]

    results = matcher.match_transactions([first, second], ledger)

    assert [r.match_type for r in results] == [MatchType.EXACT, MatchType.UNMATCHED]


@pytest.mark.parametrize(
    "bank,ledger,expected",
    [
        (-1000, -1000, 1.0),
        (0, 0, 1.0),
        (-1000, 1000, 1.0),
        (-2000, -1000, 0.5),
    ],
)
def test_match_amount(matcher, bank, ledger, expected):
    """Test amount score on absolute values"""
    assert matcher.match_amount(bank, ledger) == pytest.approx(expected)


def test_match_date_decays_inside_window(matcher):
    """Test date score decay across the window"""
    day = date(2024, 5, 10)
    assert matcher.match_date(day, day) == 1.0
    assert matcher.match_date(day, day + timedelta(days=5)) == pytest.approx(0.5)
    assert matcher.match_date(day, day + timedelta(days=6)) == 0.0


def test_match_reference(matcher):
    """Test reference score with missing references"""
    assert matcher.match_reference(None, None) == 1.0
    assert matcher.match_reference("R1", "R1") == 1.0
    assert matcher.match_reference("R1", None) == 0.0


def test_without_ledger_balance_gaps_are_reported(matcher, make_transaction):
    """Test balance continuity gaps without a ledger"""
    transactions = [
        make_transaction(-1000, "ACHAT A", day=date(2024, 5, 1), balance=100_000),
        make_transaction(-1000, "ACHAT B", day=date(2024, 5, 2), balance=99_000),
        make_transaction(-2000, "ACHAT C", day=date(2024, 5, 3), balance=90_000),
    ]

    anomalies = matcher.reconcile(transactions, [])

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.amount == pytest.approx(7000)
    assert anomaly.severity == Severity.MEDIUM
    assert anomaly.transactions == [transactions[2]]


def test_isolated_transaction_is_reported(matcher, make_transaction):
    """Test isolated transaction detection"""
    transactions = [
        make_transaction(-1000, "ACHAT A", day=date(2024, 1, 1), balance=-1000),
        make_transaction(-1000, "ACHAT B", day=date(2024, 3, 1), balance=-2000),
        make_transaction(-1000, "ACHAT C", day=date(2024, 5, 1), balance=-3000),
    ]

    anomalies = matcher.reconcile(transactions)

    assert len(anomalies) == 1
    assert anomalies[0].transactions == [transactions[1]]
    assert anomalies[0].severity == Severity.LOW
