"""Domain models - pure Python dataclasses representing audit entities"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TransactionType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    FEE = "FEE"
    INTEREST = "INTEREST"
    TRANSFER = "TRANSFER"
    CARD = "CARD"
    ATM = "ATM"
    CHECK = "CHECK"
    OTHER = "OTHER"


class AnomalyType(str, Enum):
    DUPLICATE_FEE = "DUPLICATE_FEE"
    GHOST_FEE = "GHOST_FEE"
    OVERCHARGE = "OVERCHARGE"
    INTEREST_ERROR = "INTEREST_ERROR"
    RECONCILIATION_GAP = "RECONCILIATION_GAP"
    SUSPICIOUS_TRANSACTION = "SUSPICIOUS_TRANSACTION"
    VALUE_DATE_ERROR = "VALUE_DATE_ERROR"
    MULTI_BANK_ISSUE = "MULTI_BANK_ISSUE"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AnomalyStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"
    CONTESTED = "contested"


class AnalysisStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class FeeKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    TIERED = "tiered"


class DayCountConvention(str, Enum):
    ACT_360 = "ACT/360"
    ACT_365 = "ACT/365"
    THIRTY_360 = "30/360"

    @property
    def days_in_year(self) -> int:
        return 365 if self is DayCountConvention.ACT_365 else 360


@dataclass(frozen=True)
class Transaction:
    """Bank transaction produced by the import step; never mutated"""

    id: str
    account_number: str
    bank_code: str
    date: date
    value_date: date
    amount: float  # negative = debit, positive = credit
    balance: float  # balance after the transaction
    description: str
    type: TransactionType = TransactionType.OTHER
    reference: Optional[str] = None
    client_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    @property
    def abs_amount(self) -> float:
        return abs(self.amount)

    def is_well_formed(self) -> bool:
        """Cheap structural check used by detectors to skip bad records"""
        if not self.id or not isinstance(self.date, date):
            return False
        if not isinstance(self.amount, (int, float)) or not math.isfinite(self.amount):
            return False
        return isinstance(self.description, str)


@dataclass(frozen=True)
class FeeSchedule:
    """One line of the bank's contractual price list"""

    code: str
    name: str
    amount: float
    type: FeeKind = FeeKind.FIXED
    percentage: Optional[float] = None  # decimal rate, 0.01 = 1%
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None


@dataclass(frozen=True)
class InterestRate:
    type: str  # overdraft | authorized | unauthorized | savings
    rate: float  # annual rate as decimal (0.18 = 18%)
    day_count_convention: DayCountConvention = DayCountConvention.ACT_360


@dataclass(frozen=True)
class BankConditions:
    """Parsed contractual conditions of one bank"""

    bank_code: str
    bank_name: str
    fees: List[FeeSchedule] = field(default_factory=list)
    interest_rates: List[InterestRate] = field(default_factory=list)
    currency: str = "FCFA"
    effective_date: Optional[date] = None

    def rate_for(self, rate_type: str) -> Optional[InterestRate]:
        return next((r for r in self.interest_rates if r.type == rate_type), None)


@dataclass(frozen=True)
class DailyBalance:
    date: date
    account_number: str
    balance: float


@dataclass(frozen=True)
class AccountingEntry:
    """Ledger-side record matched against bank transactions"""

    id: str
    date: date
    amount: float
    description: str
    reference: Optional[str] = None
    account_code: Optional[str] = None


@dataclass(frozen=True)
class HistoricalFee:
    date: date
    amount: float


@dataclass(frozen=True)
class Evidence:
    """One typed line of the evidence trail attached to an anomaly"""

    type: str
    description: str
    value: Any
    reference: Optional[str] = None
    source: Optional[str] = None
    condition_ref: Optional[str] = None
    expected_value: Any = None
    applied_value: Any = None


@dataclass
class Anomaly:
    """Engine output unit; only `status` changes after creation"""

    id: str
    type: AnomalyType
    severity: Severity
    confidence: float
    amount: float
    transactions: List[Transaction]
    evidence: List[Evidence]
    recommendation: str
    status: AnomalyStatus = AnomalyStatus.PENDING
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ReviewCandidate:
    """Fee worth a manual look that is not an automatic overcharge"""

    transaction: Transaction
    service_type: str
    reason: str


@dataclass(frozen=True)
class DateRange:
    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


@dataclass
class AnalysisConfig:
    enabled_detectors: List[AnomalyType] = field(default_factory=lambda: list(AnomalyType))
    date_range: DateRange = field(default_factory=DateRange)
    client_id: Optional[str] = None
    account_numbers: Optional[List[str]] = None
    bank_codes: Optional[List[str]] = None


@dataclass
class AnalysisStatistics:
    total_transactions: int
    total_amount: float
    total_anomalies: int
    total_anomaly_amount: float
    anomalies_by_type: Dict[AnomalyType, int]
    anomalies_by_severity: Dict[Severity, int]
    anomaly_rate: float  # percentage of analysed transactions
    potential_savings: float


@dataclass
class AnalysisSummary:
    status: str  # OK | WARNING | CRITICAL
    message: str
    key_findings: List[str]
    recommendations: List[str]
    estimated_recovery: float


@dataclass(frozen=True)
class DetectorRun:
    """Timing record of one detector inside an analysis"""

    detector: AnomalyType
    anomaly_count: int
    duration_ms: float


@dataclass
class AnalysisResult:
    id: str
    config: AnalysisConfig
    status: AnalysisStatus
    progress: int
    anomalies: List[Anomaly]
    statistics: AnalysisStatistics
    summary: AnalysisSummary
    started_at: datetime
    completed_at: Optional[datetime] = None
    review_candidates: List[ReviewCandidate] = field(default_factory=list)
    detector_runs: List[DetectorRun] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class DetectionContext:
    """Read-only inputs shared by every detector of one analysis run"""

    transactions: List[Transaction]
    bank_conditions: Optional[BankConditions] = None
    daily_balances: List[DailyBalance] = field(default_factory=list)
    ledger_entries: Optional[List[AccountingEntry]] = None
    historical_fees: Dict[str, List[HistoricalFee]] = field(default_factory=dict)
