"""
Value date audit.

A credit should earn interest, and a debit start costing it, within a few
business days of the operation. Every business day beyond that allowance
is interest lost by the client:

    impact = |amount| * annual_rate * excess_days / days_in_year

Debits valued before their operation date are charged interest for days
the money was still on the account and are flagged as retroactive.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DayCountConvention,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
)
from fee_audit.domain.thresholds import ValueDateConfig
from fee_audit.utils.date_utils import business_days_between
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_date, format_percent, plural

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueDateCheck:
    transaction: Transaction
    business_days: int  # signed, operation date -> value date
    allowed_days: int
    impact: float

    @property
    def is_credit(self) -> bool:
        return self.transaction.amount > 0

    @property
    def excess_days(self) -> int:
        return self.business_days - self.allowed_days


class ValueDateAuditor:
    def __init__(self, config: Optional[ValueDateConfig] = None):
        self.config = config or ValueDateConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.audit_value_dates(context.transactions, context.bank_conditions)

    def audit_value_dates(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
    ) -> List[Anomaly]:
        annual_rate, convention = self.rate_terms(bank_conditions)
        currency = bank_conditions.currency if bank_conditions else DEFAULT_CURRENCY
        anomalies = []

        for transaction in transactions:
            if not transaction.is_well_formed() or transaction.value_date is None:
                logger.debug("Value date audit skipped malformed transaction %r", transaction.id)
                continue

            business_days = business_days_between(transaction.date, transaction.value_date)
            allowed = self.allowed_days(transaction)

            if business_days > allowed:
                impact = self.financial_impact(transaction, business_days - allowed, annual_rate, convention)
                if impact > 0:
                    check = ValueDateCheck(transaction, business_days, allowed, impact)
                    anomalies.append(self._delay_anomaly(check, annual_rate, currency))

            if transaction.is_debit and transaction.value_date < transaction.date:
                impact = self.financial_impact(transaction, abs(business_days), annual_rate, convention)
                if impact > 0:
                    check = ValueDateCheck(transaction, business_days, allowed, impact)
                    anomalies.append(self._retroactive_anomaly(check, currency))

        return self.consolidate(anomalies, currency)

    def allowed_days(self, transaction: Transaction) -> int:
        if transaction.amount > 0:
            return self.config.max_credit_value_days
        return self.config.max_debit_value_days

    def rate_terms(self, conditions: Optional[BankConditions]) -> Tuple[float, DayCountConvention]:
        """Contractual overdraft rate and convention, defaults when unspecified"""
        rate = conditions.rate_for("overdraft") if conditions else None
        if rate is None or not rate.rate:
            return self.config.default_annual_rate, self.config.default_day_count
        return rate.rate, rate.day_count_convention

    @staticmethod
    def financial_impact(
        transaction: Transaction,
        days: int,
        annual_rate: float,
        convention: DayCountConvention,
    ) -> float:
        return round(transaction.abs_amount * annual_rate * days / convention.days_in_year, 2)

    @staticmethod
    def _severity(impact: float, excess_days: int) -> Severity:
        if impact > 10_000 or excess_days > 10:
            return Severity.CRITICAL
        if impact > 5_000 or excess_days > 5:
            return Severity.HIGH
        if impact > 1_000 or excess_days > 3:
            return Severity.MEDIUM
        return Severity.LOW

    def _delay_anomaly(self, check: ValueDateCheck, annual_rate: float, currency: str) -> Anomaly:
        transaction = check.transaction
        kind = "credit" if check.is_credit else "debit"
        direction = "delayed" if check.is_credit else "brought forward"
        impact = format_amount(check.impact, currency)

        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.VALUE_DATE_ERROR,
            severity=self._severity(check.impact, check.excess_days),
            confidence=0.95,
            amount=check.impact,
            transactions=[transaction],
            evidence=[
                Evidence(
                    "VALUE_DATE_DELAY",
                    "Value date delay",
                    f"{plural(check.business_days, 'business day')} (max allowed: {check.allowed_days})",
                    expected_value=check.allowed_days,
                    applied_value=check.business_days,
                ),
                Evidence("TRANSACTION_TYPE", "Transaction type", kind.capitalize()),
                Evidence("TRANSACTION_AMOUNT", "Amount", format_amount(transaction.abs_amount, currency)),
                Evidence("FINANCIAL_IMPACT", "Estimated financial impact", impact),
                Evidence("OPERATION_DATE", "Operation date", format_date(transaction.date)),
                Evidence("VALUE_DATE", "Value date", format_date(transaction.value_date)),
                Evidence("INTEREST_RATE", "Reference interest rate", format_percent(annual_rate, 2)),
            ],
            recommendation=(
                f"Value date {direction} by {plural(check.excess_days, 'business day')} on a {kind} of "
                f"{format_amount(transaction.abs_amount, currency)}. Financial impact: {impact}. "
                "Ask for the value date to be corrected and the interest wrongly earned to be refunded."
            ),
        )

    @staticmethod
    def _retroactive_anomaly(check: ValueDateCheck, currency: str) -> Anomaly:
        transaction = check.transaction
        days = abs(check.business_days)
        impact = format_amount(check.impact, currency)

        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.VALUE_DATE_ERROR,
            severity=Severity.HIGH,
            confidence=0.98,
            amount=check.impact,
            transactions=[transaction],
            evidence=[
                Evidence(
                    "RETROACTIVE_VALUE_DATE",
                    "Value date before the operation",
                    f"{plural(days, 'business day')} before the operation",
                ),
                Evidence("FINANCIAL_IMPACT", "Estimated financial impact", impact),
                Evidence("OPERATION_DATE", "Operation date", format_date(transaction.date)),
                Evidence("VALUE_DATE", "Value date", format_date(transaction.value_date)),
            ],
            recommendation=(
                f"Retroactive value date of {plural(days, 'business day')} on a debit of "
                f"{format_amount(transaction.abs_amount, currency)}. "
                f"This practice generates extra interest estimated at {impact}. "
                "Dispute the value date with the bank."
            ),
        )

    def consolidate(self, anomalies: List[Anomaly], currency: str = DEFAULT_CURRENCY) -> List[Anomaly]:
        """
        Past the consolidation threshold, keep the first few anomalies as
        examples and fold the rest into one summary anomaly.

        The summary amount covers the folded anomalies only, so amounts
        still add up to the total impact.
        """
        if len(anomalies) <= self.config.consolidation_threshold:
            return anomalies

        examples = anomalies[: self.config.consolidation_examples]
        folded = anomalies[self.config.consolidation_examples :]
        total_impact = sum(a.amount for a in anomalies)
        folded_impact = sum(a.amount for a in folded)
        folded_transactions = [t for a in folded for t in a.transactions]

        if total_impact > 50_000:
            severity = Severity.CRITICAL
        elif total_impact > 20_000:
            severity = Severity.HIGH
        elif total_impact > 5_000:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        summary = Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.VALUE_DATE_ERROR,
            severity=severity,
            confidence=0.95,
            amount=folded_impact,
            transactions=folded_transactions[: self.config.max_summary_transactions],
            evidence=[
                Evidence("TOTAL_ANOMALIES", "Total number of value date anomalies", len(anomalies)),
                Evidence("TOTAL_IMPACT", "Total financial impact", format_amount(total_impact, currency)),
                Evidence("TRANSACTIONS_COUNT", "Transactions summarised here", len(folded_transactions)),
            ],
            recommendation=(
                f"{plural(len(anomalies), 'value date anomaly', 'value date anomalies')} detected for a total "
                f"impact of {format_amount(total_impact, currency)}. "
                "Review the value date policy with the bank and ask for a global refund."
            ),
        )
        return [summary, *examples]
