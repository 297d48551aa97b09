"""Unit tests for debit interest verification"""

from datetime import date

import pytest

from fee_audit.domain.interest import (
    CALCULATION_ERROR,
    OVERCHARGED,
    RATE_MISMATCH,
    UNDERCHARGED,
    UNKNOWN_PERIOD,
    BalanceHistory,
    InterestPeriod,
    InterestVerifier,
)
from fee_audit.domain.models import (
    AnomalyType,
    BankConditions,
    DailyBalance,
    DayCountConvention,
    InterestRate,
    Severity,
    TransactionType,
)


@pytest.fixture
def verifier() -> InterestVerifier:
    return InterestVerifier()


@pytest.fixture
def april_overdraft():
    """Account ACC-001 at -100 000 for the whole of April 2024"""
    return [DailyBalance(date(2024, 4, 1), "ACC-001", -100_000)]


def interest_charge(make_transaction, amount, day=date(2024, 5, 1)):
    return make_transaction(-amount, "INTERETS DEBITEURS", day=day, type=TransactionType.INTEREST)


def test_correct_charge_is_not_flagged(verifier, make_transaction, bank_conditions, april_overdraft):
    """Test charge matching the recomputed interest is accepted"""
    charge = interest_charge(make_transaction, 1000)

    assert verifier.verify_interest_charges([charge], bank_conditions, april_overdraft) == []


def test_excessive_charge_is_rate_mismatch(verifier, make_transaction, bank_conditions, april_overdraft):
    """Test excessive charge is reported as a rate mismatch"""
    charge = interest_charge(make_transaction, 2500)

    anomalies = verifier.verify_interest_charges([charge], bank_conditions, april_overdraft)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.INTEREST_ERROR
    assert anomaly.amount == pytest.approx(1500)
    assert anomaly.severity == Severity.MEDIUM
    assert anomaly.confidence == pytest.approx(0.9)

    evidence = {e.type: e for e in anomaly.evidence}
    assert evidence["CALCULATION_PERIOD"].value == "01/04/2024 - 30/04/2024"
    assert evidence["DEBIT_DAYS"].value == "30 days"
    assert evidence["AMOUNT_COMPARISON"].expected_value == pytest.approx(1000)
    assert evidence["REASON"].value == RATE_MISMATCH


def test_calculation_covers_each_day_of_prior_month(verifier, april_overdraft):
    """Test accrual covers every day of the prior month"""
    history = BalanceHistory(april_overdraft)
    period = verifier.identify_period(date(2024, 5, 1), history)

    calculation = verifier.calculate_interest(period, history, 0.12, DayCountConvention.ACT_360)

    assert period == InterestPeriod(date(2024, 4, 1), date(2024, 4, 30))
    assert len(calculation.accruals) == 30
    assert calculation.theoretical_amount == pytest.approx(1000)
    assert calculation.average_debit_balance == pytest.approx(100_000)


def test_applied_rate_is_estimated(verifier, make_transaction, bank_conditions, april_overdraft):
    """Test applied rate estimated from the charge"""
    charge = interest_charge(make_transaction, 2000)
    history = BalanceHistory(april_overdraft)

    analysis = verifier.analyze_charge(charge, history, bank_conditions)

    assert analysis.calculation.applied_rate == pytest.approx(0.24)


def test_act_365_changes_the_theoretical_amount(verifier, make_transaction, april_overdraft):
    """Test ACT/365 convention lowers the theoretical amount"""
    conditions = BankConditions(
        bank_code="BICEC",
        bank_name="BICEC",
        interest_rates=[InterestRate("overdraft", 0.12, DayCountConvention.ACT_365)],
    )
    charge = interest_charge(make_transaction, 1000)

    anomalies = verifier.verify_interest_charges([charge], conditions, april_overdraft)

    assert len(anomalies) == 1
    assert anomalies[0].amount == pytest.approx(1000 - 100_000 * 0.12 * 30 / 365)


def test_default_rate_without_conditions(verifier, make_transaction, april_overdraft):
    """Test default rate used without bank conditions"""
    charge = interest_charge(make_transaction, 1500)

    assert verifier.verify_interest_charges([charge], None, april_overdraft) == []


def test_month_to_date_period_when_prior_month_is_empty(verifier):
    """Test month-to-date period fallback"""
    history = BalanceHistory([DailyBalance(date(2024, 5, 2), "ACC-001", -50_000)])

    period = verifier.identify_period(date(2024, 5, 20), history)

    assert period == InterestPeriod(date(2024, 5, 1), date(2024, 5, 20))


def test_missing_balances_give_low_confidence_anomaly(verifier, make_transaction, bank_conditions):
    """Test unknown period gives a low confidence anomaly"""
    charge = interest_charge(make_transaction, 1000)
    other_account = [DailyBalance(date(2024, 4, 1), "ACC-999", -100_000)]

    anomalies = verifier.verify_interest_charges([charge], bank_conditions, other_account)

    assert len(anomalies) == 1
    assert anomalies[0].confidence == pytest.approx(0.5)
    assert any(e.type == "REASON" and e.value == UNKNOWN_PERIOD for e in anomalies[0].evidence)


def test_balance_carries_forward_between_entries():
    """Test balance carry-forward between entries"""
    history = BalanceHistory([
        DailyBalance(date(2024, 4, 10), "ACC-001", -20_000),
        DailyBalance(date(2024, 4, 1), "ACC-001", -10_000),
    ])

    assert history.balance_on(date(2024, 3, 31)) == 0
    assert history.balance_on(date(2024, 4, 5)) == -10_000
    assert history.balance_on(date(2024, 4, 10)) == -20_000
    assert history.balance_on(date(2024, 4, 30)) == -20_000


def test_credit_interest_is_ignored(verifier, make_transaction):
    """Test credit interest is not verified"""
    assert not verifier.is_interest_charge(make_transaction(500, "INTERETS CREDITEURS"))
    assert verifier.is_interest_charge(make_transaction(-500, "AGIOS TRIMESTRE"))


@pytest.mark.parametrize(
    "charged,theoretical,cause",
    [
        (2000, 1000, RATE_MISMATCH),
        (1200, 1000, CALCULATION_ERROR),
        (1050, 1000, OVERCHARGED),
        (900, 1000, UNDERCHARGED),
    ],
)
def test_probable_cause(charged, theoretical, cause):
    """Test probable cause from the charged and theoretical amounts"""
    assert InterestVerifier.probable_cause(charged, theoretical) == cause
