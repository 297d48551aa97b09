"""Ghost fee detection - charges with no identifiable underlying service"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from fee_audit.domain.fee_schedule import source_name
from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
    TransactionType,
)
from fee_audit.domain.patterns import FEE_PATTERNS, KEYWORD_STOPWORDS, SERVICE_PATTERNS, any_match
from fee_audit.domain.similarity import token_similarity
from fee_audit.domain.text_analysis import fee_description_suspicion, is_round_amount, shannon_entropy
from fee_audit.domain.thresholds import GhostFeeConfig
from fee_audit.utils.date_utils import add_months, days_between, is_month_end
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_percent

logger = logging.getLogger(__name__)


@dataclass
class GhostFeeAnalysis:
    """Suspicion breakdown of a single fee"""

    transaction: Transaction
    suspicion_score: float
    has_associated_service: bool
    is_recurring: bool
    reasons: List[str] = field(default_factory=list)

    @property
    def is_ghost(self) -> bool:
        return not self.has_associated_service


def extract_keywords(description: str) -> List[str]:
    """Words longer than three characters that are not generic fee wording"""
    return [
        word
        for word in description.lower().split()
        if len(word) > 3 and word not in KEYWORD_STOPWORDS
    ]


class GhostFeeDetector:
    """
    Additive suspicion rubric over fee-like debits.

    A fee is reported only when its score reaches `min_confidence` and no
    related service operation exists around its date; a matching service
    always clears the fee whatever the other signals say.
    """

    def __init__(self, config: Optional[GhostFeeConfig] = None):
        self.config = config or GhostFeeConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.detect_ghost_fees(context.transactions, context.bank_conditions)

    def detect_ghost_fees(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
    ) -> List[Anomaly]:
        usable = [t for t in transactions if t.is_well_formed()]
        if len(usable) != len(transactions):
            logger.debug("Ghost fee detection skipped %d malformed transactions", len(transactions) - len(usable))

        anomalies = []
        for fee in usable:
            if not self.is_potential_fee(fee):
                continue
            analysis = self.analyze_fee(fee, usable)
            if analysis.is_ghost and analysis.suspicion_score >= self.config.min_confidence:
                anomalies.append(self._create_anomaly(analysis, bank_conditions))
        return anomalies

    @staticmethod
    def is_potential_fee(transaction: Transaction) -> bool:
        if not transaction.is_debit:
            return False
        if transaction.type is TransactionType.FEE:
            return True
        return any_match(FEE_PATTERNS, transaction.description)

    def analyze_fee(self, fee: Transaction, transactions: List[Transaction]) -> GhostFeeAnalysis:
        reasons = []
        score = 0.0

        description_score = fee_description_suspicion(fee.description)
        if description_score > 0.3:
            score += description_score * 0.4
            reasons.append("Vague or generic description")

        has_service = self.find_associated_service(fee, transactions) is not None
        if not has_service:
            score += 0.3
            reasons.append("No associated service found")

        if is_round_amount(fee.amount):
            score += 0.1
            reasons.append("Suspiciously round amount")

        entropy = shannon_entropy(fee.description)
        if entropy < self.config.entropy_threshold:
            score += 0.15
            reasons.append("Description too simple")
        elif entropy > self.config.high_entropy_threshold:
            score += 0.1
            reasons.append("Description possibly auto-generated")

        is_recurring = self.is_recurring(fee, transactions)
        if is_recurring and not has_service:
            score += 0.15
            reasons.append("Recurring fee without identifiable service")

        if not fee.reference or not fee.reference.strip():
            score += 0.1
            reasons.append("Missing reference")

        if is_month_end(fee.date):
            score += 0.05
            reasons.append("Fee charged at month end")

        return GhostFeeAnalysis(
            transaction=fee,
            suspicion_score=min(max(score, 0.0), 1.0),
            has_associated_service=has_service,
            is_recurring=is_recurring,
            reasons=reasons,
        )

    def find_associated_service(self, fee: Transaction, transactions: List[Transaction]) -> Optional[Transaction]:
        """Nearby service operation related to the fee by wording, if any"""
        fee_keywords = set(extract_keywords(fee.description))

        for candidate in transactions:
            if candidate.id == fee.id:
                continue
            if days_between(candidate.date, fee.date) > self.config.orphan_window_days:
                continue
            if not any_match(SERVICE_PATTERNS, candidate.description):
                continue
            if token_similarity(fee.description, candidate.description) > 0.3:
                return candidate
            if fee_keywords.intersection(extract_keywords(candidate.description)):
                return candidate
        return None

    def is_recurring(self, fee: Transaction, transactions: List[Transaction]) -> bool:
        """Similar charges seen over the trailing lookback window, the fee's own date excluded"""
        window_start = add_months(fee.date, -self.config.recurrence_lookback_months)
        similar = 0

        for other in transactions:
            if other.id == fee.id or not (window_start <= other.date < fee.date):
                continue
            if abs(other.amount - fee.amount) / fee.abs_amount > self.config.recurrence_amount_tolerance:
                continue
            if token_similarity(other.description, fee.description) > self.config.recurrence_similarity:
                similar += 1

        return similar >= self.config.recurrence_min_occurrences

    @staticmethod
    def _severity(amount: float, is_recurring: bool) -> Severity:
        if is_recurring and amount > 5_000:
            return Severity.CRITICAL
        if amount > 20_000:
            return Severity.HIGH
        if amount > 5_000 or is_recurring:
            return Severity.MEDIUM
        return Severity.LOW

    def _create_anomaly(self, analysis: GhostFeeAnalysis, conditions: Optional[BankConditions]) -> Anomaly:
        fee = analysis.transaction
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.GHOST_FEE,
            severity=self._severity(fee.abs_amount, analysis.is_recurring),
            confidence=analysis.suspicion_score,
            amount=fee.abs_amount,
            transactions=[fee],
            evidence=self._evidence(analysis, conditions),
            recommendation=self._recommendation(analysis, conditions),
        )

    @staticmethod
    def _evidence(analysis: GhostFeeAnalysis, conditions: Optional[BankConditions]) -> List[Evidence]:
        fee = analysis.transaction
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        evidence = [
            Evidence(
                "GRID_CHECK",
                "Fee schedule check",
                format_amount(fee.abs_amount, currency),
                source=source_name(conditions) if conditions else "Conditions Bank",
                condition_ref="No matching entry in the fee schedule",
            ),
            Evidence("SUSPICION_SCORE", "Suspicion score", format_percent(analysis.suspicion_score)),
        ]

        if not analysis.has_associated_service:
            evidence.append(Evidence("NO_SERVICE", "Associated service", "No matching operation identified"))

        if analysis.is_recurring:
            evidence.append(Evidence("RECURRING", "Recurring pattern", "Similar fees found over the last 3 months"))

        evidence.append(Evidence("DESCRIPTION", "Bank description", fee.description))
        evidence.extend(Evidence("REASON", "Suspicion reason", reason) for reason in analysis.reasons)
        return evidence

    @staticmethod
    def _recommendation(analysis: GhostFeeAnalysis, conditions: Optional[BankConditions]) -> str:
        fee = analysis.transaction
        amount = format_amount(fee.abs_amount, conditions.currency if conditions else DEFAULT_CURRENCY)
        bank = conditions.bank_name if conditions else "the bank"

        if analysis.is_recurring:
            return (
                f'Recurring ghost fee of {amount} - description "{fee.description}" has no match in the fee schedule. '
                f"Ask {bank} for a detailed justification and a retroactive refund if it cannot be justified."
            )
        return (
            f'Ghost fee of {amount} - description "{fee.description}" is not identified in the fee schedule. '
            f"Ask {bank} for proof of the service rendered or a refund."
        )
