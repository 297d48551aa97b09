"""Duplicate fee detection - windowed grouping of near-identical debits"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Set

from fee_audit.domain.fee_schedule import classify_service, find_matching_fee, source_name
from fee_audit.domain.models import (
    Anomaly,
    AnomalyType,
    BankConditions,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
)
from fee_audit.domain.similarity import amount_similarity, token_similarity, transaction_similarity
from fee_audit.domain.thresholds import DuplicateDetectionConfig, DuplicateEvidenceMode
from fee_audit.utils.formatting import DEFAULT_CURRENCY, format_amount, format_percent, format_period, plural

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    original: Transaction
    duplicates: List[Transaction]
    similarity: float

    @property
    def members(self) -> List[Transaction]:
        return [self.original, *self.duplicates]

    @property
    def excess_amount(self) -> float:
        """Everything but the first occurrence, which is presumed legitimate"""
        return sum(t.abs_amount for t in self.duplicates)


class DuplicateDetector:
    """
    Groups debits that repeat within a short time window.

    Transactions are date-sorted; each unprocessed debit collects every later
    candidate within `time_window_days` whose composite similarity reaches
    `similarity_threshold`. Grouped transactions are marked processed so a
    transaction never belongs to two groups (first seen wins).
    """

    def __init__(self, config: Optional[DuplicateDetectionConfig] = None):
        self.config = config or DuplicateDetectionConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.detect_duplicates(context.transactions, context.bank_conditions)

    def detect_duplicates(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
    ) -> List[Anomaly]:
        debits = sorted(
            (t for t in transactions if t.is_well_formed() and t.is_debit),
            key=lambda t: t.date,
        )
        skipped = sum(1 for t in transactions if not t.is_well_formed())
        if skipped:
            logger.debug("Duplicate detection skipped %d malformed transactions", skipped)

        processed: Set[str] = set()
        anomalies: List[Anomaly] = []

        for index, transaction in enumerate(debits):
            if transaction.id in processed:
                continue

            duplicates = self._find_duplicates(transaction, debits, index + 1, processed)
            if not duplicates:
                continue

            group = DuplicateGroup(
                original=transaction,
                duplicates=duplicates,
                similarity=self._group_similarity(transaction, duplicates),
            )
            anomalies.append(self._create_anomaly(group, bank_conditions))

            processed.add(transaction.id)
            processed.update(d.id for d in duplicates)

        return anomalies

    def _similarity(self, first: Transaction, second: Transaction) -> float:
        return transaction_similarity(
            first,
            second,
            weights=self.config.weights,
            amount_tolerance=self.config.amount_tolerance,
            max_days=self.config.time_window_days,
        )

    def _find_duplicates(
        self,
        reference: Transaction,
        candidates: List[Transaction],
        start: int,
        processed: Set[str],
    ) -> List[Transaction]:
        duplicates = []
        for candidate in candidates[start:]:
            # candidates are date-sorted, nothing further can fall in the window
            if (candidate.date - reference.date).days > self.config.time_window_days:
                break
            if candidate.id in processed or candidate.id == reference.id:
                continue
            if self._similarity(reference, candidate) >= self.config.similarity_threshold:
                duplicates.append(candidate)
        return duplicates

    def _group_similarity(self, original: Transaction, duplicates: List[Transaction]) -> float:
        """Mean similarity between the first occurrence and each repeat"""
        scores = [self._similarity(original, dup) for dup in duplicates]
        return sum(scores) / len(scores) if scores else 0.0

    def _create_anomaly(self, group: DuplicateGroup, conditions: Optional[BankConditions]) -> Anomaly:
        with_source = self.config.mode is DuplicateEvidenceMode.WITH_SOURCE_EVIDENCE and conditions is not None
        evidence = self._evidence(group)
        if with_source:
            evidence.extend(self._source_evidence(group, conditions))

        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.DUPLICATE_FEE,
            severity=self._severity(group.excess_amount, len(group.duplicates)),
            confidence=group.similarity,
            amount=group.excess_amount,
            transactions=group.members,
            evidence=evidence,
            recommendation=self._recommendation(group, conditions if with_source else None),
        )

    @staticmethod
    def _severity(amount: float, count: int) -> Severity:
        if amount > 50_000 or count >= 5:
            return Severity.CRITICAL
        if amount > 20_000 or count >= 3:
            return Severity.HIGH
        if amount > 5_000 or count >= 2:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _evidence(group: DuplicateGroup) -> List[Evidence]:
        dates = [t.date for t in group.members]
        evidence = [
            Evidence("DUPLICATE_COUNT", "Number of duplicated transactions", len(group.duplicates)),
            Evidence("SIMILARITY_SCORE", "Mean similarity score", format_percent(group.similarity)),
            Evidence("DATE_RANGE", "Period concerned", format_period(min(dates), max(dates))),
        ]

        first_dup = group.duplicates[0]
        if amount_similarity(group.original.amount, first_dup.amount, 0.01) == 1:
            evidence.append(
                Evidence("EXACT_AMOUNT_MATCH", "Identical amounts", format_amount(group.original.abs_amount))
            )

        evidence.append(
            Evidence(
                "DESCRIPTION_SIMILARITY",
                "Description similarity",
                format_percent(token_similarity(group.original.description, first_dup.description)),
                reference=group.original.description,
            )
        )
        return evidence

    def _source_evidence(self, group: DuplicateGroup, conditions: BankConditions) -> List[Evidence]:
        source = source_name(conditions)
        fee = find_matching_fee(classify_service(group.original.description), conditions)
        if fee is None:
            return [
                Evidence(
                    "GRID_CHECK",
                    "Fee schedule check",
                    format_amount(group.original.abs_amount, conditions.currency),
                    source=source,
                    condition_ref="No single-charge rule found in the schedule",
                )
            ]
        return [
            Evidence(
                "GRID_CHECK",
                "Fee schedule check",
                format_amount(fee.amount, conditions.currency),
                source=source,
                condition_ref=f"{fee.code} - {fee.name}",
                expected_value=fee.amount,
                applied_value=group.original.abs_amount * len(group.members),
                reference=fee.code,
            )
        ]

    @staticmethod
    def _recommendation(group: DuplicateGroup, conditions: Optional[BankConditions]) -> str:
        count = len(group.duplicates)
        currency = conditions.currency if conditions else DEFAULT_CURRENCY
        total = format_amount(group.excess_amount, currency)
        text = (
            f"Dispute {plural(count, 'duplicated transaction')} totalling {total}. "
            f"These charges are {format_percent(group.similarity)} similar to the original transaction. "
        )
        if conditions is not None:
            return text + (
                f"Ask {conditions.bank_name} for a refund under {source_name(conditions)} "
                "and for a correction of its billing system to prevent further duplicates."
            )
        return text + "Request a refund and a correction of the billing system to prevent further duplicates."
