"""Unit tests for the value date audit"""

from datetime import date, timedelta

import pytest

from fee_audit.domain.models import AnomalyType, BankConditions, DayCountConvention, InterestRate, Severity
from fee_audit.domain.value_dates import ValueDateAuditor

FRIDAY = date(2024, 5, 10)
MONDAY = date(2024, 5, 13)


@pytest.fixture
def auditor() -> ValueDateAuditor:
    return ValueDateAuditor()


def test_delayed_credit_is_flagged(auditor, make_transaction, bank_conditions):
    """Test credit valued 5 business days late costs 3 days of interest"""
    credit = make_transaction(3_000_000, "VIREMENT RECU CLIENT", day=FRIDAY, value_date=date(2024, 5, 17))

    anomalies = auditor.audit_value_dates([credit], bank_conditions)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.VALUE_DATE_ERROR
    assert anomaly.amount == pytest.approx(3000)
    assert anomaly.severity == Severity.MEDIUM
    assert anomaly.confidence == 0.95
    assert anomaly.transactions == [credit]

    delay = anomaly.evidence[0]
    assert delay.type == "VALUE_DATE_DELAY"
    assert delay.value == "5 business days (max allowed: 2)"
    assert [e.type for e in anomaly.evidence][1:] == [
        "TRANSACTION_TYPE",
        "TRANSACTION_AMOUNT",
        "FINANCIAL_IMPACT",
        "OPERATION_DATE",
        "VALUE_DATE",
        "INTEREST_RATE",
    ]
    assert anomaly.recommendation.startswith("Value date delayed by 3 business days on a credit")


def test_value_dates_within_allowance_are_accepted(auditor, make_transaction):
    """Test nothing flagged when value dates respect the allowance"""
    credit = make_transaction(500_000, "VERSEMENT", day=FRIDAY, value_date=date(2024, 5, 14))
    debit = make_transaction(-500_000, "CHEQUE 1234", day=FRIDAY)

    assert auditor.audit_value_dates([credit, debit]) == []


def test_retroactive_debit_value_date(auditor, make_transaction):
    """Test debit valued before its operation date is flagged as retroactive"""
    debit = make_transaction(-720_000, "PRELEVEMENT FOURNISSEUR", day=MONDAY, value_date=FRIDAY)

    anomalies = auditor.audit_value_dates([debit])

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.severity == Severity.HIGH
    assert anomaly.confidence == 0.98
    assert anomaly.amount == pytest.approx(240)
    assert anomaly.evidence[0].type == "RETROACTIVE_VALUE_DATE"
    assert anomaly.evidence[0].value == "1 business day before the operation"


def test_bank_rate_and_convention_are_used(auditor, make_transaction):
    """Test impact uses the contractual overdraft rate and its day count"""
    conditions = BankConditions(
        bank_code="SGBC",
        bank_name="SGBC",
        interest_rates=[InterestRate("overdraft", 0.365, DayCountConvention.ACT_365)],
    )
    credit = make_transaction(100_000, "VIREMENT RECU", day=FRIDAY, value_date=date(2024, 5, 15))

    anomaly = auditor.audit_value_dates([credit], conditions)[0]

    assert anomaly.amount == pytest.approx(100)
    assert anomaly.evidence[-1].value == "36.50%"


def test_negligible_impact_is_ignored(auditor, make_transaction):
    """Test delay on a tiny amount rounds to no impact"""
    credit = make_transaction(1, "VERSEMENT", day=FRIDAY, value_date=date(2024, 5, 17))

    assert auditor.audit_value_dates([credit]) == []


def test_many_anomalies_are_consolidated(auditor, make_transaction):
    """Test summary plus four examples once more than five anomalies are found"""
    credits = [
        make_transaction(360_000, f"VIREMENT RECU {i}", day=FRIDAY, value_date=FRIDAY + timedelta(days=5))
        for i in range(6)
    ]

    anomalies = auditor.audit_value_dates(credits)

    assert len(anomalies) == 5
    summary, *examples = anomalies
    assert summary.evidence[0].type == "TOTAL_ANOMALIES"
    assert summary.evidence[0].value == 6
    assert summary.transactions == credits[4:]
    assert [a.transactions for a in examples] == [[c] for c in credits[:4]]
    assert sum(a.amount for a in anomalies) == pytest.approx(720)
    assert summary.severity == Severity.LOW
