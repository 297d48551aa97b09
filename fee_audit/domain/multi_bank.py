"""Consolidated audit across the banks of one client"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
)
from fee_audit.domain.thresholds import MultiBankConfig
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_date, format_percent

logger = logging.getLogger(__name__)

UNKNOWN_BANK = "UNKNOWN"


@dataclass(frozen=True)
class BankFlows:
    bank_code: str
    transaction_count: int
    total_credits: float
    total_debits: float

    @property
    def volume(self) -> float:
        return self.total_credits + self.total_debits


def bank_key(transaction: Transaction) -> str:
    return transaction.bank_code or UNKNOWN_BANK


class MultiBankAuditor:
    """
    Portfolio-level checks that only make sense with several banks.

    Concentration anomalies describe the portfolio rather than a transaction
    and carry an empty transaction list. Cross-bank duplicates are same-day,
    same-amount movements booked at different banks all in the same
    direction; a debit/credit pair is an internal transfer, not a duplicate.
    """

    def __init__(self, config: Optional[MultiBankConfig] = None):
        self.config = config or MultiBankConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.audit_banks(context.transactions, context.bank_conditions)

    def audit_banks(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
    ) -> List[Anomaly]:
        usable = [t for t in transactions if t.is_well_formed()]
        if len(usable) != len(transactions):
            logger.debug("Multi-bank audit skipped %d malformed transactions", len(transactions) - len(usable))

        by_bank = self.group_by_bank(usable)
        if len(by_bank) < self.config.min_banks:
            return []

        currency = bank_conditions.currency if bank_conditions else DEFAULT_CURRENCY
        flows = [self.bank_flows(code, bank_transactions) for code, bank_transactions in by_bank.items()]

        anomalies = self.detect_concentration(flows, currency)
        anomalies.extend(self.detect_cross_bank_duplicates(usable, currency))
        return anomalies

    @staticmethod
    def group_by_bank(transactions: List[Transaction]) -> Dict[str, List[Transaction]]:
        grouped: Dict[str, List[Transaction]] = defaultdict(list)
        for transaction in transactions:
            grouped[bank_key(transaction)].append(transaction)
        return dict(grouped)

    @staticmethod
    def bank_flows(bank_code: str, transactions: List[Transaction]) -> BankFlows:
        return BankFlows(
            bank_code=bank_code,
            transaction_count=len(transactions),
            total_credits=sum(t.amount for t in transactions if t.amount > 0),
            total_debits=sum(t.abs_amount for t in transactions if t.amount < 0),
        )

    def detect_concentration(self, flows: List[BankFlows], currency: str = DEFAULT_CURRENCY) -> List[Anomaly]:
        total_volume = sum(f.volume for f in flows)
        if total_volume <= 0:
            return []

        anomalies = []
        for bank in flows:
            share = bank.volume / total_volume
            if share <= self.config.concentration_threshold:
                continue

            anomalies.append(
                Anomaly(
                    id=str(uuid.uuid4()),
                    type=AnomalyType.MULTI_BANK_ISSUE,
                    severity=Severity.MEDIUM,
                    confidence=0.8,
                    amount=bank.volume,
                    transactions=[],
                    evidence=[
                        Evidence("BANK", "Bank", bank.bank_code),
                        Evidence("CONCENTRATION", "Share of total flows", format_percent(share, 1)),
                        Evidence("VOLUME", "Bank volume", format_amount(bank.volume, currency)),
                        Evidence("BANK_COUNT", "Banks in the portfolio", len(flows)),
                    ],
                    recommendation=(
                        f"High concentration ({format_percent(share, 1)}) of banking flows on {bank.bank_code}. "
                        "Consider spreading activity to reduce risk and negotiate better conditions."
                    ),
                )
            )
        return anomalies

    def detect_cross_bank_duplicates(
        self,
        transactions: List[Transaction],
        currency: str = DEFAULT_CURRENCY,
    ) -> List[Anomaly]:
        grouped: Dict[Tuple[float, date], List[Transaction]] = defaultdict(list)
        for transaction in transactions:
            if transaction.amount == 0:
                continue
            grouped[(transaction.abs_amount, transaction.date)].append(transaction)

        anomalies = []
        for (amount, day), group in grouped.items():
            banks = sorted({bank_key(t) for t in group})
            if len(banks) < 2:
                continue
            has_debit = any(t.amount < 0 for t in group)
            has_credit = any(t.amount > 0 for t in group)
            if has_debit and has_credit:
                continue
            anomalies.append(self._duplicate_anomaly(group, amount, day, banks, currency))
        return anomalies

    @staticmethod
    def _duplicate_anomaly(
        group: List[Transaction],
        amount: float,
        day: date,
        banks: List[str],
        currency: str,
    ) -> Anomaly:
        total = amount * len(group)
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.MULTI_BANK_ISSUE,
            severity=Severity.MEDIUM,
            confidence=0.7,
            amount=total,
            transactions=group,
            evidence=[
                Evidence("AMOUNT", "Amount", format_amount(amount, currency)),
                Evidence("BANKS", "Banks concerned", ", ".join(banks)),
                Evidence("COUNT", "Occurrences", len(group)),
                Evidence("DATE", "Date", format_date(day)),
            ],
            recommendation=(
                f"{len(group)} identical transactions of {format_amount(amount, currency)} booked on "
                f"{format_date(day)} at different banks. Check that the payment was not made twice."
            ),
        )
