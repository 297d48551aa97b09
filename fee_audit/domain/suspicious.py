"""Suspicious activity patterns over the whole transaction set"""

import logging
import uuid
from collections import defaultdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from fee_audit.domain.models import Anomaly, AnomalyType, DetectionContext, Evidence, Severity, Transaction
from fee_audit.domain.statistics import AmountBaseline, build_baseline, percentile
from fee_audit.domain.thresholds import SuspiciousActivityConfig
from fee_audit.utils.formatting import format_amount, format_date, format_period

logger = logging.getLogger(__name__)


class SuspiciousPattern(str, Enum):
    HIGH_AMOUNT = "HIGH_AMOUNT"
    STATISTICAL_OUTLIER = "STATISTICAL_OUTLIER"
    HIGH_FREQUENCY = "HIGH_FREQUENCY"
    STRUCTURING = "STRUCTURING"
    ROUND_AMOUNT = "ROUND_AMOUNT"
    SUSPICIOUS_DESCRIPTION = "SUSPICIOUS_DESCRIPTION"


PATTERN_LABELS = {
    SuspiciousPattern.HIGH_AMOUNT: "Abnormally high amount",
    SuspiciousPattern.STATISTICAL_OUTLIER: "Statistical outlier",
    SuspiciousPattern.HIGH_FREQUENCY: "Abnormal frequency",
    SuspiciousPattern.STRUCTURING: "Suspected structuring",
    SuspiciousPattern.ROUND_AMOUNT: "Suspicious round amount",
    SuspiciousPattern.SUSPICIOUS_DESCRIPTION: "Suspicious description",
}

DayKey = Tuple[str, date]


def group_by_account_day(transactions: List[Transaction]) -> Dict[DayKey, List[Transaction]]:
    groups: Dict[DayKey, List[Transaction]] = defaultdict(list)
    for transaction in transactions:
        groups[(transaction.account_number, transaction.date)].append(transaction)
    return groups


def is_large_round_amount(amount: float) -> bool:
    """Multiples of one million, or of 100 000 from 500 000 with at least four zeros"""
    absolute = abs(amount)
    if absolute >= 1_000_000 and absolute % 1_000_000 == 0:
        return True
    if absolute >= 500_000 and absolute % 100_000 == 0:
        return str(int(absolute)).count("0") >= 4
    return False


class SuspiciousActivityDetector:
    """
    Flags outliers, bursts, structuring, round amounts and keyword hits.

    Unlike the fee detectors this one looks at credits and debits alike;
    amounts are compared in absolute value.
    """

    def __init__(self, config: Optional[SuspiciousActivityConfig] = None):
        self.config = config or SuspiciousActivityConfig()

    def detect(self, context: DetectionContext) -> List[Anomaly]:
        return self.detect_suspicious_activity(context.transactions)

    def detect_suspicious_activity(self, transactions: List[Transaction]) -> List[Anomaly]:
        usable = [t for t in transactions if t.is_well_formed()]
        if len(usable) != len(transactions):
            logger.debug("Suspicious activity scan skipped %d malformed transactions", len(transactions) - len(usable))
        if not usable:
            return []

        baseline = build_baseline(t.amount for t in usable)
        day_groups = group_by_account_day(usable)

        anomalies = []
        anomalies.extend(self.high_amounts(usable, baseline))
        anomalies.extend(self.high_frequency(day_groups))
        anomalies.extend(self.structuring(day_groups))
        anomalies.extend(self.round_amounts(usable))
        anomalies.extend(self.suspicious_descriptions(usable))
        return anomalies

    def high_amounts(self, transactions: List[Transaction], baseline: AmountBaseline) -> List[Anomaly]:
        """Spikes above a multiple of the percentile, then mean + k std outliers"""
        reference = percentile((t.abs_amount for t in transactions), self.config.high_amount_percentile)
        spike_threshold = reference * self.config.spike_multiplier
        outlier_threshold = baseline.outlier_threshold(self.config.outlier_std_multiplier)
        anomalies = []

        for transaction in transactions:
            amount = transaction.abs_amount
            ratio = f"{amount / baseline.mean:.1f}x" if baseline.mean else "n/a"

            if amount > spike_threshold:
                anomalies.append(
                    self._create_anomaly(
                        [transaction],
                        SuspiciousPattern.HIGH_AMOUNT,
                        Severity.HIGH,
                        0.85,
                        f"Exceptionally high amount: {format_amount(amount)} ({ratio} the average). "
                        "Check the origin and justification of this operation.",
                    )
                )
            elif baseline.is_outlier(amount, self.config.outlier_std_multiplier):
                severity = Severity.HIGH if amount > 2 * outlier_threshold else Severity.MEDIUM
                anomalies.append(
                    self._create_anomaly(
                        [transaction],
                        SuspiciousPattern.STATISTICAL_OUTLIER,
                        severity,
                        0.85,
                        f"Amount of {format_amount(amount)} is more than "
                        f"{self.config.outlier_std_multiplier:g} standard deviations above the average "
                        f"({format_amount(baseline.mean)}). Verify this operation.",
                    )
                )
        return anomalies

    def high_frequency(self, day_groups: Dict[DayKey, List[Transaction]]) -> List[Anomaly]:
        limit = self.config.max_daily_frequency
        anomalies = []
        for (account, day), group in day_groups.items():
            if len(group) <= limit:
                continue
            total = sum(t.abs_amount for t in group)
            anomalies.append(
                self._create_anomaly(
                    group[:10],
                    SuspiciousPattern.HIGH_FREQUENCY,
                    Severity.HIGH if len(group) > limit * 2 else Severity.MEDIUM,
                    0.8,
                    f"{len(group)} transactions on {format_date(day)} on account {account} for a total of "
                    f"{format_amount(total)}. Abnormally high frequency.",
                    total=total,
                )
            )
        return anomalies

    def structuring(self, day_groups: Dict[DayKey, List[Transaction]]) -> List[Anomaly]:
        """Same-day amounts kept just under the reporting threshold but adding up past it"""
        threshold = self.config.structuring_threshold
        anomalies = []
        for group in day_groups.values():
            near = [t for t in group if threshold * 0.5 <= t.abs_amount < threshold]
            if len(near) < 2:
                continue
            total = sum(t.abs_amount for t in near)
            if total < threshold:
                continue
            anomalies.append(
                self._create_anomaly(
                    near,
                    SuspiciousPattern.STRUCTURING,
                    Severity.CRITICAL,
                    0.9,
                    f"Possible structuring: {len(near)} large transactions ({format_amount(total)} in total) "
                    "just below the reporting threshold. Report to the compliance officer.",
                )
            )
        return anomalies

    def round_amounts(self, transactions: List[Transaction]) -> List[Anomaly]:
        rounded = [t for t in transactions if is_large_round_amount(t.amount)]
        if len(rounded) < self.config.round_amount_min_count:
            return []
        total = sum(t.abs_amount for t in rounded)
        return [
            self._create_anomaly(
                rounded[:10],
                SuspiciousPattern.ROUND_AMOUNT,
                Severity.MEDIUM,
                0.6,
                f"{len(rounded)} round-amount transactions detected (total: {format_amount(total)}). "
                "Check the justification of these unusually precise amounts.",
                total=total,
            )
        ]

    def suspicious_descriptions(self, transactions: List[Transaction]) -> List[Anomaly]:
        keywords = [k.lower() for k in self.config.suspicious_keywords]
        anomalies = []
        for transaction in transactions:
            description = transaction.description.lower()
            if not any(keyword in description for keyword in keywords):
                continue
            anomalies.append(
                self._create_anomaly(
                    [transaction],
                    SuspiciousPattern.SUSPICIOUS_DESCRIPTION,
                    Severity.MEDIUM,
                    0.7,
                    f'Suspicious description: "{transaction.description}". '
                    f"Amount: {format_amount(transaction.abs_amount)}. "
                    "Check the nature and justification of this operation.",
                )
            )
        return anomalies

    @staticmethod
    def _create_anomaly(
        transactions: List[Transaction],
        pattern: SuspiciousPattern,
        severity: Severity,
        confidence: float,
        recommendation: str,
        total: Optional[float] = None,
    ) -> Anomaly:
        # `total` covers the whole group when only a sample is attached
        amount = total if total is not None else sum(t.abs_amount for t in transactions)
        dates = [t.date for t in transactions]
        return Anomaly(
            id=str(uuid.uuid4()),
            type=AnomalyType.SUSPICIOUS_TRANSACTION,
            severity=severity,
            confidence=confidence,
            amount=amount,
            transactions=transactions,
            evidence=[
                Evidence("PATTERN_TYPE", "Suspicious pattern", PATTERN_LABELS[pattern], reference=pattern.value),
                Evidence("TRANSACTION_COUNT", "Transactions concerned", len(transactions)),
                Evidence("TOTAL_AMOUNT", "Total amount", format_amount(amount)),
                Evidence("PERIOD", "Period concerned", format_period(min(dates), max(dates))),
            ],
            recommendation=recommendation,
        )
