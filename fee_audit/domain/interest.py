"""
Debit interest verification.

The balance of every calendar day of the billing period is rebuilt from the
daily balance history (exact entry, else the latest earlier one, else 0)
and interest is re-accrued day by day on negative balances:

    interest(day) = |balance(day)| * annual_rate / days_in_year

The sum is compared to the charged amount with a tolerance of
max(tolerance_amount, theoretical * tolerance_percentage).
"""

import bisect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DailyBalance,
    DayCountConvention,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
    TransactionType,
)
from fee_audit.domain.patterns import INTEREST_PATTERNS, any_match
from fee_audit.domain.thresholds import InterestConfig
from fee_audit.utils.date_utils import generate_date_range, previous_month_bounds
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_percent, format_period, plural

logger = logging.getLogger(__name__)

RATE_MISMATCH = "Applied interest rate above the contractual rate"
CALCULATION_ERROR = "Calculation error or extra days charged"
OVERCHARGED = "Interest overcharged"
UNDERCHARGED = "Interest undercharged (in the client's favour)"
UNKNOWN_PERIOD = "Calculation period cannot be identified"


@dataclass(frozen=True)
class InterestPeriod:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class DailyAccrual:
    date: date
    balance: float
    interest: float


@dataclass
class InterestCalculation:
    """Day-by-day reconstruction backing a theoretical interest amount"""

    accruals: List[DailyAccrual] = field(default_factory=list)
    annual_rate: float = 0.0
    applied_rate: float = 0.0

    @property
    def theoretical_amount(self) -> float:
        return sum(a.interest for a in self.accruals)

    @property
    def debit_days(self) -> int:
        return sum(1 for a in self.accruals if a.balance < 0)

    @property
    def average_debit_balance(self) -> float:
        debits = [abs(a.balance) for a in self.accruals if a.balance < 0]
        return sum(debits) / len(debits) if debits else 0.0


@dataclass
class InterestAnalysis:
    transaction: Transaction
    charged_amount: float
    period: Optional[InterestPeriod]
    calculation: InterestCalculation
    has_error: bool
    reason: str = ""

    @property
    def theoretical_amount(self) -> float:
        return self.calculation.theoretical_amount

    @property
    def difference(self) -> float:
        return abs(self.charged_amount - self.theoretical_amount)


class BalanceHistory:
    """Date-indexed balances of one account"""

    def __init__(self, balances: List[DailyBalance]):
        ordered = sorted(balances, key=lambda b: b.date)
        self._dates = [b.date for b in ordered]
        self._balances = [b.balance for b in ordered]

    def has_entries_between(self, start: date, end: date) -> bool:
        index = bisect.bisect_left(self._dates, start)
        return index < len(self._dates) and self._dates[index] <= end

    def balance_on(self, day: date) -> float:
        """Exact entry for `day`, else the most recent earlier one, else 0"""
        index = bisect.bisect_right(self._dates, day)
        return self._balances[index - 1] if index else 0.0


class InterestVerifier:
    def __init__(self, config: Optional[InterestConfig] = None):
        self.config = config or InterestConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.verify_interest_charges(
            context.transactions,
            context.bank_conditions,
            context.daily_balances,
        )

    def verify_interest_charges(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions],
        daily_balances: List[DailyBalance],
    ) -> List[Anomaly]:
        anomalies = []
        histories = {}

        for charge in transactions:
            if not charge.is_well_formed():
                logger.debug("Interest verification skipped malformed transaction %r", charge.id)
                continue
            if not self.is_interest_charge(charge):
                continue

            history = histories.get(charge.account_number)
            if history is None:
                history = BalanceHistory([b for b in daily_balances if b.account_number == charge.account_number])
                histories[charge.account_number] = history

            analysis = self.analyze_charge(charge, history, bank_conditions)
            if analysis.has_error:
                anomalies.append(self._create_anomaly(analysis, bank_conditions))

        return anomalies

    @staticmethod
    def is_interest_charge(transaction: Transaction) -> bool:
        if not transaction.is_debit:
            return False
        return transaction.type is TransactionType.INTEREST or any_match(INTEREST_PATTERNS, transaction.description)

    def rate_terms(self, conditions: Optional[BankConditions]) -> Tuple[float, DayCountConvention]:
        """Contractual overdraft rate and convention, defaults when unspecified"""
        rate = conditions.rate_for("overdraft") if conditions else None
        if rate is None or not rate.rate:
            return self.config.default_annual_rate, self.config.default_day_count
        return rate.rate, rate.day_count_convention

    @staticmethod
    def identify_period(charge_date: date, history: BalanceHistory) -> Optional[InterestPeriod]:
        """Prior calendar month, else month-to-date, whichever has balance data"""
        start, end = previous_month_bounds(charge_date)
        if history.has_entries_between(start, end):
            return InterestPeriod(start, end)

        month_start = charge_date.replace(day=1)
        if history.has_entries_between(month_start, charge_date):
            return InterestPeriod(month_start, charge_date)

        return None

    @staticmethod
    def calculate_interest(
        period: InterestPeriod,
        history: BalanceHistory,
        annual_rate: float,
        convention: DayCountConvention,
    ) -> InterestCalculation:
        daily_rate = annual_rate / convention.days_in_year
        accruals = []
        for day in generate_date_range(period.start, period.end):
            balance = history.balance_on(day)
            interest = abs(balance) * daily_rate if balance < 0 else 0.0
            accruals.append(DailyAccrual(day, balance, interest))
        return InterestCalculation(accruals=accruals, annual_rate=annual_rate)

    def analyze_charge(
        self,
        charge: Transaction,
        history: BalanceHistory,
        conditions: Optional[BankConditions],
    ) -> InterestAnalysis:
        charged = charge.abs_amount
        period = self.identify_period(charge.date, history)

        if period is None:
            return InterestAnalysis(
                transaction=charge,
                charged_amount=charged,
                period=None,
                calculation=InterestCalculation(),
                has_error=True,
                reason=UNKNOWN_PERIOD,
            )

        annual_rate, convention = self.rate_terms(conditions)
        calculation = self.calculate_interest(period, history, annual_rate, convention)
        calculation.applied_rate = self.estimate_applied_rate(charged, calculation)

        theoretical = calculation.theoretical_amount
        tolerance = max(self.config.tolerance_amount, theoretical * self.config.tolerance_percentage)
        has_error = abs(charged - theoretical) > tolerance

        return InterestAnalysis(
            transaction=charge,
            charged_amount=charged,
            period=period,
            calculation=calculation,
            has_error=has_error,
            reason=self.probable_cause(charged, theoretical) if has_error else "",
        )

    @staticmethod
    def probable_cause(charged: float, theoretical: float) -> str:
        ratio = charged / theoretical if theoretical > 0 else charged
        if ratio > 1.5:
            return RATE_MISMATCH
        if ratio > 1.1:
            return CALCULATION_ERROR
        if charged > theoretical:
            return OVERCHARGED
        return UNDERCHARGED

    @staticmethod
    def estimate_applied_rate(charged: float, calculation: InterestCalculation) -> float:
        """Annual rate (on a 360-day year) that would produce the charged amount"""
        debit_days = calculation.debit_days
        average = calculation.average_debit_balance
        if not debit_days or not average:
            return 0.0
        return charged * 360 / (average * debit_days)

    @staticmethod
    def _severity(difference: float) -> Severity:
        if difference > 10_000:
            return Severity.CRITICAL
        if difference > 5_000:
            return Severity.HIGH
        if difference > 1_000:
            return Severity.MEDIUM
        return Severity.LOW

    def _create_anomaly(self, analysis: InterestAnalysis, conditions: Optional[BankConditions]) -> Anomaly:
        # without a period the charge cannot be recomputed, only queued for review
        confidence = 0.9 if analysis.period else 0.5
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.INTEREST_ERROR,
            severity=self._severity(analysis.difference),
            confidence=confidence,
            amount=analysis.difference,
            transactions=[analysis.transaction],
            evidence=self._evidence(analysis, conditions),
            recommendation=self._recommendation(analysis, conditions),
        )

    @staticmethod
    def _evidence(analysis: InterestAnalysis, conditions: Optional[BankConditions]) -> List[Evidence]:
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        calculation = analysis.calculation
        evidence = []

        if analysis.period:
            evidence.append(
                Evidence("CALCULATION_PERIOD", "Calculation period", format_period(analysis.period.start, analysis.period.end))
            )
            evidence.append(Evidence("DEBIT_DAYS", "Days in debit", plural(calculation.debit_days, "day")))

        evidence.append(
            Evidence(
                "AMOUNT_COMPARISON",
                "Amount comparison",
                f"Charged: {format_amount(analysis.charged_amount, currency)}, "
                f"Theoretical: {format_amount(analysis.theoretical_amount, currency)}",
                expected_value=round(analysis.theoretical_amount, 2),
                applied_value=analysis.charged_amount,
            )
        )
        evidence.append(Evidence("DIFFERENCE", "Observed gap", format_amount(analysis.difference, currency)))

        if calculation.annual_rate > 0:
            evidence.append(
                Evidence(
                    "RATE_COMPARISON",
                    "Applied vs contractual rate",
                    f"{format_percent(calculation.applied_rate, 2)} vs {format_percent(calculation.annual_rate, 2)}",
                )
            )

        if analysis.reason:
            evidence.append(Evidence("REASON", "Probable cause", analysis.reason))
        return evidence

    @staticmethod
    def _recommendation(analysis: InterestAnalysis, conditions: Optional[BankConditions]) -> str:
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        if analysis.period is None:
            return (
                f"Interest charge of {format_amount(analysis.charged_amount, currency)} cannot be verified "
                "without balance history. Ask the bank for the day-by-day calculation."
            )
        return (
            f"Interest calculation error detected. Charged: {format_amount(analysis.charged_amount, currency)}, "
            f"theoretical: {format_amount(analysis.theoretical_amount, currency)}. "
            f"Request a correction and a refund of {format_amount(analysis.difference, currency)}. "
            "Ask the bank for the day-by-day calculation."
        )
