"""
Bank-vs-ledger reconciliation.

With ledger entries, every bank transaction is scored against the ledger
entries still available and greedily assigned its best match:

    score = 0.4 * amount + 0.3 * date + 0.2 * description + 0.1 * reference

Without a ledger the matcher falls back to self-reconciliation: balance
continuity gaps and transactions isolated from their neighbours.
"""

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from fee_audit.domain.models import (
    AccountingEntry,
    Anomaly,
    AnomalyType,
    DetectionContext,
    Evidence,
    Severity,
    Transaction,
)
from fee_audit.domain.thresholds import ReconciliationConfig
from fee_audit.utils.formatting import format_amount, format_date, format_percent, plural

logger = logging.getLogger(__name__)

AMOUNT_WEIGHT = 0.4
DATE_WEIGHT = 0.3
DESCRIPTION_WEIGHT = 0.2
REFERENCE_WEIGHT = 0.1


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class MatchResult:
    transaction: Transaction
    entry: Optional[AccountingEntry]
    score: float
    match_type: MatchType


@dataclass(frozen=True)
class BalanceGap:
    transaction: Transaction
    expected_balance: float

    @property
    def gap(self) -> float:
        return abs(self.transaction.balance - self.expected_balance)


def _words(text: str) -> Set[str]:
    return {word for word in text.lower().split() if len(word) > 2}


def _count_severity(count: int) -> Severity:
    if count > 10:
        return Severity.HIGH
    if count > 5:
        return Severity.MEDIUM
    return Severity.LOW


class ReconciliationMatcher:
    def __init__(self, config: Optional[ReconciliationConfig] = None):
        self.config = config or ReconciliationConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.reconcile(context.transactions, context.ledger_entries)

    def reconcile(
        self,
        transactions: List[Transaction],
        ledger_entries: Optional[List[AccountingEntry]] = None,
    ) -> List[Anomaly]:
        usable = [t for t in transactions if t.is_well_formed()]
        if len(usable) != len(transactions):
            logger.debug("Reconciliation skipped %d malformed transactions", len(transactions) - len(usable))

        if not ledger_entries:
            return self.self_reconcile(usable)

        matches = self.match_transactions(usable, ledger_entries)
        anomalies = []

        unmatched = [m.transaction for m in matches if m.match_type is MatchType.UNMATCHED]
        if unmatched:
            anomalies.append(self._unmatched_bank_anomaly(unmatched))

        used = {m.entry.id for m in matches if m.entry is not None}
        orphan_entries = [e for e in ledger_entries if e.id not in used]
        if orphan_entries:
            anomalies.append(self._unmatched_ledger_anomaly(orphan_entries))

        anomalies.extend(
            self._partial_match_anomaly(m) for m in matches if m.match_type is MatchType.PARTIAL
        )
        return anomalies

    # -- scoring ------------------------------------------------------------

    def match_amount(self, bank_amount: float, ledger_amount: float) -> float:
        diff = abs(abs(bank_amount) - abs(ledger_amount))
        largest = max(abs(bank_amount), abs(ledger_amount))

        if largest == 0:
            return 1.0 if bank_amount == ledger_amount else 0.0
        if diff == 0:
            return 1.0

        tolerance = largest * self.config.amount_tolerance
        if diff <= tolerance:
            return 1 - (diff / tolerance) * 0.1
        return max(0.0, 1 - diff / largest)

    def match_date(self, bank_date, ledger_date) -> float:
        days = abs((bank_date - ledger_date).days)
        if days == 0:
            return 1.0
        if days <= self.config.date_window_days:
            return 1 - (days / self.config.date_window_days) * 0.5
        return 0.0

    @staticmethod
    def match_description(bank_description: str, ledger_description: str) -> float:
        """Shared words (longer than two characters) over the larger word set"""
        if bank_description.lower() == ledger_description.lower():
            return 1.0
        bank_words = _words(bank_description)
        ledger_words = _words(ledger_description)
        total = max(len(bank_words), len(ledger_words))
        if not total:
            return 0.0
        return len(bank_words & ledger_words) / total

    @staticmethod
    def match_reference(bank_reference: Optional[str], ledger_reference: Optional[str]) -> float:
        if not bank_reference and not ledger_reference:
            return 1.0
        if bank_reference and ledger_reference and bank_reference == ledger_reference:
            return 1.0
        return 0.0

    def match_score(self, transaction: Transaction, entry: AccountingEntry) -> float:
        return math.fsum(
            [
                AMOUNT_WEIGHT * self.match_amount(transaction.amount, entry.amount),
                DATE_WEIGHT * self.match_date(transaction.date, entry.date),
                DESCRIPTION_WEIGHT * self.match_description(transaction.description, entry.description),
                REFERENCE_WEIGHT * self.match_reference(transaction.reference, entry.reference),
            ]
        )

    def match_transactions(
        self,
        transactions: List[Transaction],
        entries: List[AccountingEntry],
    ) -> List[MatchResult]:
        """Greedy assignment in bank order; each ledger entry is used at most once"""
        used: Set[str] = set()
        results = []

        for transaction in transactions:
            best: Optional[Tuple[AccountingEntry, float]] = None
            for entry in entries:
                if entry.id in used:
                    continue
                score = self.match_score(transaction, entry)
                if score > self.config.partial_threshold and (best is None or score > best[1]):
                    best = (entry, score)

            if best is None:
                results.append(MatchResult(transaction, None, 0.0, MatchType.UNMATCHED))
                continue

            entry, score = best
            match_type = MatchType.EXACT if score >= self.config.exact_threshold else MatchType.PARTIAL
            used.add(entry.id)
            results.append(MatchResult(transaction, entry, score, match_type))

        return results

    # -- self reconciliation ---------------------------------------------------

    def self_reconcile(self, transactions: List[Transaction]) -> List[Anomaly]:
        by_account: Dict[str, List[Transaction]] = defaultdict(list)
        for transaction in transactions:
            by_account[transaction.account_number].append(transaction)

        anomalies = []
        for account, account_transactions in by_account.items():
            ordered = sorted(account_transactions, key=lambda t: t.date)

            gaps = self.balance_gaps(ordered)
            if gaps:
                anomalies.append(self._balance_gap_anomaly(account, gaps))

            anomalies.extend(self._orphan_anomaly(t) for t in self.orphan_transactions(ordered))

        return anomalies

    def balance_gaps(self, ordered: List[Transaction]) -> List[BalanceGap]:
        gaps = []
        for previous, current in zip(ordered, ordered[1:]):
            expected = previous.balance + current.amount
            if abs(expected - current.balance) > self.config.balance_tolerance:
                gaps.append(BalanceGap(current, expected))
        return gaps

    def orphan_transactions(self, ordered: List[Transaction]) -> List[Transaction]:
        """Transactions more than `orphan_gap_days` away from both neighbours"""
        orphans = []
        limit = self.config.orphan_gap_days
        for index, current in enumerate(ordered):
            previous_gap = (current.date - ordered[index - 1].date).days if index > 0 else 0
            next_gap = (ordered[index + 1].date - current.date).days if index < len(ordered) - 1 else 0
            if previous_gap > limit and next_gap > limit:
                orphans.append(current)
        return orphans

    # -- anomalies ----------------------------------------------------------

    @staticmethod
    def _unmatched_bank_anomaly(transactions: List[Transaction]) -> Anomaly:
        total = sum(t.abs_amount for t in transactions)
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.RECONCILIATION_GAP,
            severity=_count_severity(len(transactions)),
            confidence=0.85,
            amount=total,
            transactions=transactions[:20],
            evidence=[
                Evidence("UNMATCHED_COUNT", "Unreconciled bank transactions", len(transactions)),
                Evidence("TOTAL_AMOUNT", "Total amount", format_amount(total)),
            ],
            recommendation=(
                f"{plural(len(transactions), 'bank transaction')} without a ledger counterpart "
                f"for a total of {format_amount(total)}. Check for missing accounting entries."
            ),
        )

    @staticmethod
    def _unmatched_ledger_anomaly(entries: List[AccountingEntry]) -> Anomaly:
        total = sum(abs(e.amount) for e in entries)
        evidence = [
            Evidence("UNMATCHED_COUNT", "Unreconciled ledger entries", len(entries)),
            Evidence("TOTAL_AMOUNT", "Total amount", format_amount(total)),
        ]
        evidence.extend(
            Evidence(
                f"ENTRY_{index}",
                entry.description,
                f"{format_amount(entry.amount)} ({format_date(entry.date)})",
                reference=entry.reference,
            )
            for index, entry in enumerate(entries[:5], start=1)
        )
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.RECONCILIATION_GAP,
            severity=_count_severity(len(entries)),
            confidence=0.85,
            amount=total,
            transactions=[],
            evidence=evidence,
            recommendation=(
                f"{plural(len(entries), 'ledger entry', 'ledger entries')} without a bank counterpart for a total of "
                f"{format_amount(total)}. Check that these operations were executed by the bank."
            ),
        )

    @staticmethod
    def _partial_match_anomaly(match: MatchResult) -> Anomaly:
        bank_amount = match.transaction.abs_amount
        ledger_amount = abs(match.entry.amount)
        diff = bank_amount - ledger_amount
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.RECONCILIATION_GAP,
            severity=Severity.HIGH if abs(diff) > 10_000 else Severity.MEDIUM,
            confidence=match.score,
            amount=abs(diff),
            transactions=[match.transaction],
            evidence=[
                Evidence("BANK_AMOUNT", "Bank amount", format_amount(bank_amount)),
                Evidence("ACCOUNTING_AMOUNT", "Ledger amount", format_amount(ledger_amount), reference=match.entry.id),
                Evidence("DIFFERENCE", "Difference", format_amount(diff)),
                Evidence("MATCH_SCORE", "Match score", format_percent(match.score, 1)),
            ],
            recommendation=(
                f"Gap of {format_amount(abs(diff))} between the bank transaction and the ledger entry. "
                "Check and regularise this difference."
            ),
        )

    @staticmethod
    def _balance_gap_anomaly(account: str, gaps: List[BalanceGap]) -> Anomaly:
        total = sum(g.gap for g in gaps)
        if total > 100_000:
            severity = Severity.CRITICAL
        elif total > 10_000:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.RECONCILIATION_GAP,
            severity=severity,
            confidence=0.9,
            amount=total,
            transactions=[g.transaction for g in gaps][:10],
            evidence=[
                Evidence("ACCOUNT", "Account", account),
                Evidence("GAP_COUNT", "Number of gaps", len(gaps)),
                Evidence("TOTAL_GAP", "Total gap", format_amount(total)),
            ],
            recommendation=(
                f"{plural(len(gaps), 'balance gap')} detected on account {account} for a total of "
                f"{format_amount(total)}. Operations may be missing from the statement."
            ),
        )

    def _orphan_anomaly(self, transaction: Transaction) -> Anomaly:
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.RECONCILIATION_GAP,
            severity=Severity.LOW,
            confidence=0.7,
            amount=transaction.abs_amount,
            transactions=[transaction],
            evidence=[
                Evidence("DATE", "Date", format_date(transaction.date)),
                Evidence("DESCRIPTION", "Description", transaction.description),
                Evidence("AMOUNT", "Amount", format_amount(transaction.abs_amount)),
            ],
            recommendation=(
                f"Isolated transaction on {format_date(transaction.date)} with no context "
                f"(more than {self.config.orphan_gap_days} days from neighbouring transactions). "
                "Check for missing statements."
            ),
        )
