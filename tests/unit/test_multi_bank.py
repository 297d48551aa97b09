"""Unit tests for the multi-bank audit"""

import pytest

from fee_audit.domain.models import AnomalyType, Severity
from fee_audit.domain.multi_bank import MultiBankAuditor
from fee_audit.domain.thresholds import MultiBankConfig


@pytest.fixture
def auditor() -> MultiBankAuditor:
    return MultiBankAuditor()


def test_single_bank_is_not_audited(auditor, make_transaction):
    """Test nothing reported with only one bank"""
    transactions = [make_transaction(900_000, "VIREMENT RECU"), make_transaction(-900_000, "VIREMENT EMIS")]

    assert auditor.audit_banks(transactions) == []


def test_concentration_is_a_portfolio_anomaly(auditor, make_transaction):
    """Test flows concentrated on one bank give an anomaly with no transactions"""
    transactions = [
        make_transaction(600_000, "VIREMENT RECU", bank_code="BICEC"),
        make_transaction(-300_000, "LOYER", bank_code="BICEC"),
        make_transaction(100_000, "VERSEMENT", bank_code="SGBC"),
    ]

    anomalies = auditor.audit_banks(transactions)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.MULTI_BANK_ISSUE
    assert anomaly.severity == Severity.MEDIUM
    assert anomaly.confidence == 0.8
    assert anomaly.amount == 900_000
    assert anomaly.transactions == []
    assert anomaly.evidence
    assert anomaly.evidence[0].value == "BICEC"
    assert anomaly.evidence[1].value == "90.0%"


def test_concentration_threshold_is_configurable(make_transaction):
    """Test a higher threshold accepts the same split"""
    auditor = MultiBankAuditor(MultiBankConfig(concentration_threshold=0.95))
    transactions = [
        make_transaction(900_000, "VIREMENT RECU", bank_code="BICEC"),
        make_transaction(100_000, "VERSEMENT", bank_code="SGBC"),
    ]

    assert auditor.audit_banks(transactions) == []


def test_same_payment_at_two_banks_is_flagged(auditor, make_transaction):
    """Test same-day same-amount debits at different banks look like a double payment"""
    first = make_transaction(-150_000, "PAIEMENT FOURNISSEUR", bank_code="SGBC")
    second = make_transaction(-150_000, "REGLEMENT FOURNISSEUR", bank_code="BICEC")

    anomalies = auditor.audit_banks([first, second])

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.confidence == 0.7
    assert anomaly.amount == 300_000
    assert anomaly.transactions == [first, second]
    evidence = {e.type: e.value for e in anomaly.evidence}
    assert evidence["BANKS"] == "BICEC, SGBC"
    assert evidence["COUNT"] == 2


def test_internal_transfer_is_not_a_duplicate(auditor, make_transaction):
    """Test a debit at one bank matched by a credit at another is ignored"""
    transactions = [
        make_transaction(-150_000, "VIREMENT VERS SGBC", bank_code="BICEC"),
        make_transaction(150_000, "VIREMENT DE BICEC", bank_code="SGBC"),
    ]

    assert auditor.audit_banks(transactions) == []


def test_repeats_at_one_bank_are_left_to_duplicate_detection(auditor, make_transaction):
    """Test same-bank repeats are not cross-bank duplicates"""
    transactions = [
        make_transaction(-150_000, "PAIEMENT FOURNISSEUR", bank_code="BICEC"),
        make_transaction(-150_000, "PAIEMENT FOURNISSEUR", bank_code="BICEC"),
        make_transaction(-200_000, "LOYER", bank_code="SGBC"),
    ]

    assert auditor.audit_banks(transactions) == []
