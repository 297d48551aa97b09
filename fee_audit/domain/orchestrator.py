"""Analysis orchestration - runs the enabled detectors and aggregates their output"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fee_audit.domain.duplicates import DuplicateDetector
from fee_audit.domain.exceptions import AnalysisError, InvalidTransactionDataError
from fee_audit.domain.ghost_fees import GhostFeeDetector
from fee_audit.domain.interest import InterestVerifier
from fee_audit.domain.models import (
    AccountingEntry,
    AnalysisConfig,
    AnalysisResult,
    AnalysisStatus,
    Anomaly,
    AnomalyType,
    BankConditions,
    DailyBalance,
    DetectionContext,
    DetectorRun,
    HistoricalFee,
    ReviewCandidate,
    Transaction,
)
from fee_audit.domain.multi_bank import MultiBankAuditor
from fee_audit.domain.overcharges import OverchargeAnalyzer
from fee_audit.domain.reconciliation import ReconciliationMatcher
from fee_audit.domain.reporting import build_summary, calculate_statistics, empty_statistics, failure_summary
from fee_audit.domain.suspicious import SuspiciousActivityDetector
from fee_audit.domain.thresholds import DetectionThresholds
from fee_audit.domain.value_dates import ValueDateAuditor

logger = logging.getLogger(__name__)

# Returning False from the callback cancels the run before the next detector
ProgressCallback = Callable[[int, str], Optional[bool]]

DETECTOR_ORDER = [
    AnomalyType.DUPLICATE_FEE,
    AnomalyType.GHOST_FEE,
    AnomalyType.OVERCHARGE,
    AnomalyType.INTEREST_ERROR,
    AnomalyType.SUSPICIOUS_TRANSACTION,
    AnomalyType.VALUE_DATE_ERROR,
    AnomalyType.MULTI_BANK_ISSUE,
    AnomalyType.RECONCILIATION_GAP,
]

STEP_LABELS = {
    AnomalyType.DUPLICATE_FEE: "Detecting duplicate fees",
    AnomalyType.GHOST_FEE: "Detecting ghost fees",
    AnomalyType.OVERCHARGE: "Analysing overcharges",
    AnomalyType.INTEREST_ERROR: "Verifying interest calculations",
    AnomalyType.SUSPICIOUS_TRANSACTION: "Detecting suspicious transactions",
    AnomalyType.VALUE_DATE_ERROR: "Auditing value dates",
    AnomalyType.MULTI_BANK_ISSUE: "Auditing multi-bank positions",
    AnomalyType.RECONCILIATION_GAP: "Reconciling transactions",
}


@dataclass
class AnalysisOptions:
    """Optional inputs; each missing one degrades its detector rather than failing"""

    daily_balances: Optional[List[DailyBalance]] = None
    ledger_entries: Optional[List[AccountingEntry]] = None
    historical_fees: Dict[str, List[HistoricalFee]] = field(default_factory=dict)
    on_progress: Optional[ProgressCallback] = None


def filter_transactions(transactions: List[Transaction], config: AnalysisConfig) -> List[Transaction]:
    """Apply the client, date range, account and bank filters of the config"""
    selected = []
    for transaction in transactions:
        if config.client_id and transaction.client_id != config.client_id:
            continue
        if not config.date_range.contains(transaction.date):
            continue
        if config.account_numbers and transaction.account_number not in config.account_numbers:
            continue
        if config.bank_codes and transaction.bank_code not in config.bank_codes:
            continue
        selected.append(transaction)
    return selected


def rank_anomalies(anomalies: List[Anomaly]) -> List[Anomaly]:
    """Most severe first, then largest amount"""
    return sorted(anomalies, key=lambda a: (-a.severity.rank, -a.amount))


class AnalysisService:
    """
    Runs configured, stateless detectors over a filtered transaction set.

    Detectors are injected; `from_thresholds` builds the default set. They
    run sequentially in a fixed order and never see each other's output.
    """

    def __init__(
        self,
        duplicates: Optional[DuplicateDetector] = None,
        ghost_fees: Optional[GhostFeeDetector] = None,
        overcharges: Optional[OverchargeAnalyzer] = None,
        interest: Optional[InterestVerifier] = None,
        suspicious: Optional[SuspiciousActivityDetector] = None,
        reconciliation: Optional[ReconciliationMatcher] = None,
        value_dates: Optional[ValueDateAuditor] = None,
        multi_bank: Optional[MultiBankAuditor] = None,
    ):
        self.overcharges = overcharges or OverchargeAnalyzer()
        self.detectors = {
            AnomalyType.DUPLICATE_FEE: duplicates or DuplicateDetector(),
            AnomalyType.GHOST_FEE: ghost_fees or GhostFeeDetector(),
            AnomalyType.OVERCHARGE: self.overcharges,
            AnomalyType.INTEREST_ERROR: interest or InterestVerifier(),
            AnomalyType.SUSPICIOUS_TRANSACTION: suspicious or SuspiciousActivityDetector(),
            AnomalyType.RECONCILIATION_GAP: reconciliation or ReconciliationMatcher(),
            AnomalyType.VALUE_DATE_ERROR: value_dates or ValueDateAuditor(),
            AnomalyType.MULTI_BANK_ISSUE: multi_bank or MultiBankAuditor(),
        }

    @classmethod
    def from_thresholds(cls, thresholds: Optional[DetectionThresholds] = None) -> "AnalysisService":
        thresholds = thresholds or DetectionThresholds()
        return cls(
            duplicates=DuplicateDetector(thresholds.duplicate),
            ghost_fees=GhostFeeDetector(thresholds.ghost_fee),
            overcharges=OverchargeAnalyzer(thresholds.overcharge),
            interest=InterestVerifier(thresholds.interest),
            suspicious=SuspiciousActivityDetector(thresholds.suspicious),
            reconciliation=ReconciliationMatcher(thresholds.reconciliation),
            value_dates=ValueDateAuditor(thresholds.value_date),
            multi_bank=MultiBankAuditor(thresholds.multi_bank),
        )

    def analyze(
        self,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions] = None,
        config: Optional[AnalysisConfig] = None,
        options: Optional[AnalysisOptions] = None,
    ) -> AnalysisResult:
        config = config or AnalysisConfig()
        options = options or AnalysisOptions()
        started_at = datetime.now(timezone.utc)
        analysis_id = str(uuid.uuid4())

        try:
            return self._run(analysis_id, transactions, bank_conditions, config, options, started_at)
        except Exception as e:
            logger.error("Analysis %s failed: %s", analysis_id, e, exc_info=True)
            return AnalysisResult(
                id=analysis_id,
                config=config,
                status=AnalysisStatus.FAILED,
                progress=0,
                anomalies=[],
                statistics=empty_statistics(),
                summary=failure_summary(str(e) or type(e).__name__),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                error=str(e) or type(e).__name__,
            )

    def _run(
        self,
        analysis_id: str,
        transactions: List[Transaction],
        bank_conditions: Optional[BankConditions],
        config: AnalysisConfig,
        options: AnalysisOptions,
        started_at: datetime,
    ) -> AnalysisResult:
        self._validate_input(transactions)
        progress = _ProgressTracker(options.on_progress)

        progress.report(5, "Initialising analysis")
        selected = filter_transactions(transactions, config)
        progress.report(10, f"Analysing {len(selected)} transactions")

        context = DetectionContext(
            transactions=selected,
            bank_conditions=bank_conditions,
            daily_balances=options.daily_balances or [],
            ledger_entries=options.ledger_entries,
            historical_fees=options.historical_fees or {},
        )

        enabled = [t for t in DETECTOR_ORDER if t in config.enabled_detectors]
        step = 80 // len(enabled) if enabled else 0
        anomalies: List[Anomaly] = []
        review_candidates: List[ReviewCandidate] = []
        runs: List[DetectorRun] = []
        cancelled = False

        for index, detector_type in enumerate(enabled):
            if detector_type is AnomalyType.INTEREST_ERROR and not context.daily_balances:
                logger.info("Interest verification skipped: no daily balances supplied")
                continue

            if not progress.report(10 + index * step, STEP_LABELS[detector_type]):
                logger.info("Analysis %s cancelled before %s", analysis_id, detector_type.value)
                cancelled = True
                break

            found, candidates, duration_ms = self._run_detector(detector_type, context)
            anomalies.extend(found)
            review_candidates.extend(candidates)
            runs.append(DetectorRun(detector_type, len(found), duration_ms))

        ranked = rank_anomalies(anomalies)
        statistics = calculate_statistics(selected, ranked)
        summary = build_summary(ranked, statistics)

        if not cancelled:
            progress.report(100, "Analysis complete")

        return AnalysisResult(
            id=analysis_id,
            config=config,
            status=AnalysisStatus.CANCELLED if cancelled else AnalysisStatus.COMPLETED,
            progress=progress.current,
            anomalies=ranked,
            statistics=statistics,
            summary=summary,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            review_candidates=review_candidates,
            detector_runs=runs,
        )

    def _run_detector(self, detector_type: AnomalyType, context: DetectionContext):
        logger.info("Running detector %s on %d transactions", detector_type.value, len(context.transactions))
        start = time.perf_counter()

        candidates: List[ReviewCandidate] = []
        if detector_type is AnomalyType.OVERCHARGE:
            report = self.overcharges.analyze_overcharges(context)
            found, candidates = report.anomalies, report.review_candidates
        else:
            found = self.detectors[detector_type].detect(context)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Detector %s finished with %d anomalies in %.1f ms",
            detector_type.value,
            len(found),
            duration_ms,
        )
        return found, candidates, duration_ms

    @staticmethod
    def _validate_input(transactions: List[Transaction]) -> None:
        if not isinstance(transactions, (list, tuple)):
            raise AnalysisError(f"Expected a list of transactions, got {type(transactions).__name__}")
        for position, transaction in enumerate(transactions):
            if not isinstance(transaction, Transaction):
                raise InvalidTransactionDataError(
                    f"Item {position} is a {type(transaction).__name__}, not a Transaction"
                )


class _ProgressTracker:
    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.current = 0

    def report(self, percent: int, step: str) -> bool:
        """Forward to the callback; False means the caller asked to stop"""
        self.current = percent
        if self.callback is None:
            return True
        return self.callback(percent, step) is not False
