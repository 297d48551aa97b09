"""Overcharge analysis against the fee schedule and the historical baseline"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from fee_audit.domain.fee_schedule import classify_service, expected_amount, find_matching_fee, source_name
from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DetectionContext,
    Evidence,
    FeeKind,
    FeeSchedule,
    HistoricalFee,
    ReviewCandidate,
    Severity,
    Transaction,
    TransactionType,
)
from fee_audit.domain.patterns import OTHER_SERVICE, SERVICE_TYPE_LABELS
from fee_audit.domain.statistics import mean
from fee_audit.domain.thresholds import OverchargeConfig
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_percent

logger = logging.getLogger(__name__)


@dataclass
class OverchargeAnalysis:
    transaction: Transaction
    service_type: str
    charged_amount: float
    expected_amount: float
    matched_fee: Optional[FeeSchedule]
    is_overcharge: bool
    reasons: List[str] = field(default_factory=list)

    @property
    def excess_amount(self) -> float:
        return max(0.0, self.charged_amount - self.expected_amount)

    @property
    def excess_percentage(self) -> float:
        if self.expected_amount > 0:
            return self.excess_amount / self.expected_amount
        return 1.0 if self.is_overcharge else 0.0


@dataclass
class OverchargeReport:
    anomalies: List[Anomaly] = field(default_factory=list)
    review_candidates: List[ReviewCandidate] = field(default_factory=list)


def service_label(service_type: str) -> str:
    return SERVICE_TYPE_LABELS.get(service_type, service_type)


class OverchargeAnalyzer:
    """
    Compares each charged fee to what the contract (or, failing that, the
    client's own history) says it should cost.

    Without bank conditions the analyzer falls back to the historical check
    alone; with neither input nothing is flagged. Large fees that match no
    schedule entry are surfaced as review candidates rather than anomalies.
    """

    def __init__(self, config: Optional[OverchargeConfig] = None):
        self.config = config or OverchargeConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.analyze_overcharges(context).anomalies

    def analyze_overcharges(self, context: DetectionContext) -> OverchargeReport:
        return self.detect_overcharges(
            context.transactions,
            context.bank_conditions,
            context.historical_fees,
        )

    def detect_overcharges(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
        historical_fees: Optional[Dict[str, List[HistoricalFee]]] = None,
    ) -> OverchargeReport:
        report = OverchargeReport()
        usable = [t for t in transactions if t.is_well_formed()]
        if len(usable) != len(transactions):
            logger.debug("Overcharge analysis skipped %d malformed transactions", len(transactions) - len(usable))

        fee_bases = self._percentage_fee_bases(usable, bank_conditions)

        for fee in usable:
            if fee.id in fee_bases or not self.is_chargeable(fee):
                continue

            analysis = self.analyze_fee(fee, usable, bank_conditions, historical_fees)
            if analysis.is_overcharge:
                report.anomalies.append(self._create_anomaly(analysis, bank_conditions))
            elif self._needs_review(analysis):
                report.review_candidates.append(
                    ReviewCandidate(
                        transaction=fee,
                        service_type=analysis.service_type,
                        reason="High fee with no matching schedule entry - manual check required",
                    )
                )

        return report

    @staticmethod
    def is_chargeable(transaction: Transaction) -> bool:
        """Every debit is checked against the schedule, whatever its type"""
        return transaction.is_debit

    def _percentage_fee_bases(
        self,
        transactions: List[Transaction],
        conditions: Optional[BankConditions],
    ) -> Set[str]:
        """Ids of the operations a percentage fee was computed on"""
        bases: Set[str] = set()
        for fee in transactions:
            if not self.is_chargeable(fee):
                continue
            service_type = classify_service(fee.description)
            matched = find_matching_fee(service_type, conditions)
            if matched is None or matched.type is not FeeKind.PERCENTAGE:
                continue
            base = self._base_operation(fee, transactions, service_type)
            if base is not None:
                bases.add(base.id)
        return bases

    def analyze_fee(
        self,
        fee: Transaction,
        transactions: List[Transaction],
        conditions: Optional[BankConditions],
        historical_fees: Optional[Dict[str, List[HistoricalFee]]],
    ) -> OverchargeAnalysis:
        service_type = classify_service(fee.description)
        charged = fee.abs_amount
        matched = find_matching_fee(service_type, conditions)
        reasons = []
        expected = 0.0
        flagged = False

        if matched is not None:
            base = self._base_operation(fee, transactions, service_type) if matched.type is FeeKind.PERCENTAGE else None
            expected = expected_amount(matched, base.abs_amount if base else None)
            if charged > expected * (1 + self.config.tolerance_percentage):
                flagged = True
                reasons.append("Exceeds the contractual rate")

        if self.config.use_historical_baseline and historical_fees:
            history = historical_fees.get(service_type) or []
            average = mean(h.amount for h in history) if history else 0.0
            if average > 0 and charged > average * self.config.historical_increase_factor:
                flagged = True
                increase = round((charged / average - 1) * 100)
                reasons.append(f"Increase of {increase}% over the historical average")
                if matched is None or average < expected:
                    expected = average

        return OverchargeAnalysis(
            transaction=fee,
            service_type=service_type,
            charged_amount=charged,
            expected_amount=expected,
            matched_fee=matched,
            is_overcharge=flagged,
            reasons=reasons,
        )

    def _needs_review(self, analysis: OverchargeAnalysis) -> bool:
        return (
            analysis.matched_fee is None
            and analysis.service_type == OTHER_SERVICE
            and analysis.charged_amount > self.config.review_threshold
        )

    @staticmethod
    def _base_operation(fee: Transaction, transactions: List[Transaction], service_type: str) -> Optional[Transaction]:
        """Largest same-day operation of the same service on the same account"""
        bases = [
            t
            for t in transactions
            if t.id != fee.id
            and t.account_number == fee.account_number
            and t.date == fee.date
            and t.type not in (TransactionType.FEE, TransactionType.INTEREST)
            and t.abs_amount > fee.abs_amount
            and classify_service(t.description) == service_type
        ]
        return max(bases, key=lambda t: t.abs_amount) if bases else None

    @staticmethod
    def _severity(excess_amount: float, excess_percentage: float) -> Severity:
        if excess_amount > 20_000 or excess_percentage > 0.5:
            return Severity.CRITICAL
        if excess_amount > 10_000 or excess_percentage > 0.3:
            return Severity.HIGH
        if excess_amount > 5_000 or excess_percentage > 0.2:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _confidence(analysis: OverchargeAnalysis) -> float:
        confidence = 0.6
        if analysis.matched_fee is not None:
            confidence += 0.25
        if analysis.excess_percentage > 0.3:
            confidence += 0.1
        if len(analysis.reasons) > 1:
            confidence += 0.05
        return min(confidence, 0.98)

    def _create_anomaly(self, analysis: OverchargeAnalysis, conditions: Optional[BankConditions]) -> Anomaly:
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.OVERCHARGE,
            severity=self._severity(analysis.excess_amount, analysis.excess_percentage),
            confidence=self._confidence(analysis),
            amount=analysis.excess_amount,
            transactions=[analysis.transaction],
            evidence=self._evidence(analysis, conditions),
            recommendation=self._recommendation(analysis, conditions),
        )

    @staticmethod
    def _evidence(analysis: OverchargeAnalysis, conditions: Optional[BankConditions]) -> List[Evidence]:
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        source = source_name(conditions) if conditions else None
        fee = analysis.matched_fee

        evidence = [
            Evidence(
                "COMPARISON",
                "Rate comparison",
                analysis.excess_amount,
                source=source,
                condition_ref=f"{fee.code} - {fee.name}" if fee else None,
                expected_value=analysis.expected_amount,
                applied_value=analysis.charged_amount,
            ),
            Evidence(
                "EXCESS_PERCENTAGE",
                "Observed gap",
                f"+{format_percent(analysis.excess_percentage)} ({format_amount(analysis.excess_amount, currency)})",
            ),
        ]

        if fee is not None:
            if fee.type is FeeKind.PERCENTAGE and fee.percentage:
                details = format_percent(fee.percentage, 2)
                if fee.min_amount:
                    details += f" (min: {format_amount(fee.min_amount, currency)})"
            else:
                details = format_amount(fee.amount, currency)
            evidence.append(
                Evidence(
                    "OFFICIAL_RATE",
                    "Contractual rate",
                    details,
                    reference=fee.code,
                    source=source,
                    condition_ref=f"Section: {service_label(analysis.service_type)}",
                )
            )

        evidence.append(Evidence("SERVICE_TYPE", "Service type", service_label(analysis.service_type)))
        evidence.extend(Evidence("REASON", "Detection reason", reason) for reason in analysis.reasons)
        return evidence

    @staticmethod
    def _recommendation(analysis: OverchargeAnalysis, conditions: Optional[BankConditions]) -> str:
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        excess = format_amount(analysis.excess_amount, currency)
        bank = conditions.bank_name if conditions else "the bank"

        text = (
            f"Overcharge of {excess} (+{format_percent(analysis.excess_percentage)}) detected for "
            f"{service_label(analysis.service_type)}. "
            f"Charged: {format_amount(analysis.charged_amount, currency)} vs expected: "
            f"{format_amount(analysis.expected_amount, currency)}. "
        )
        if analysis.matched_fee is not None:
            text += f"Reference: {analysis.matched_fee.code} - {analysis.matched_fee.name}. "
        return text + f"Ask {bank} to refund {excess} and apply the contractual rate."
