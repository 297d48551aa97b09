"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fee_audit.config import settings
from fee_audit.domain.models import (
    AccountingEntry,
    AnalysisConfig,
    AnalysisResult,
    AnalysisStatus,
    Anomaly,
    AnomalyType,
    BankConditions,
    DailyBalance,
    DateRange,
    DayCountConvention,
    Evidence,
    FeeKind,
    FeeSchedule,
    HistoricalFee,
    InterestRate,
    Severity,
    Transaction,
    TransactionType,
)


class TransactionSchema(BaseModel):
    """Bank transaction; negative amount = debit"""

    id: str = Field(..., min_length=1)
    account_number: str
    bank_code: str
    date: date
    value_date: Optional[date] = None
    amount: float
    balance: float = 0.0
    description: str
    type: TransactionType = TransactionType.OTHER
    reference: Optional[str] = None
    client_id: Optional[str] = None

    def to_domain(self) -> Transaction:
        return Transaction(
            id=self.id,
            account_number=self.account_number,
            bank_code=self.bank_code,
            date=self.date,
            value_date=self.value_date or self.date,
            amount=self.amount,
            balance=self.balance,
            description=self.description,
            type=self.type,
            reference=self.reference,
            client_id=self.client_id,
        )

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionSchema":
        return cls(
            id=transaction.id,
            account_number=transaction.account_number,
            bank_code=transaction.bank_code,
            date=transaction.date,
            value_date=transaction.value_date,
            amount=transaction.amount,
            balance=transaction.balance,
            description=transaction.description,
            type=transaction.type,
            reference=transaction.reference,
            client_id=transaction.client_id,
        )


class FeeScheduleSchema(BaseModel):
    code: str
    name: str
    amount: float = Field(0.0, ge=0)
    type: FeeKind = FeeKind.FIXED
    percentage: Optional[float] = Field(None, ge=0, description="Decimal rate, 0.01 = 1%")
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None

    def to_domain(self) -> FeeSchedule:
        return FeeSchedule(**self.model_dump())


class InterestRateSchema(BaseModel):
    type: str = Field(..., description="overdraft | authorized | unauthorized | savings")
    rate: float = Field(..., ge=0, description="Annual rate as decimal")
    day_count_convention: DayCountConvention = DayCountConvention.ACT_360

    def to_domain(self) -> InterestRate:
        return InterestRate(**self.model_dump())


class BankConditionsSchema(BaseModel):
    bank_code: str
    bank_name: str
    fees: List[FeeScheduleSchema] = []
    interest_rates: List[InterestRateSchema] = []
    currency: str = Field(default_factory=lambda: settings.currency)
    effective_date: Optional[date] = None

    def to_domain(self) -> BankConditions:
        return BankConditions(
            bank_code=self.bank_code,
            bank_name=self.bank_name,
            fees=[f.to_domain() for f in self.fees],
            interest_rates=[r.to_domain() for r in self.interest_rates],
            currency=self.currency,
            effective_date=self.effective_date,
        )


class DailyBalanceSchema(BaseModel):
    date: date
    account_number: str
    balance: float

    def to_domain(self) -> DailyBalance:
        return DailyBalance(**self.model_dump())


class AccountingEntrySchema(BaseModel):
    id: str = Field(..., min_length=1)
    date: date
    amount: float
    description: str
    reference: Optional[str] = None
    account_code: Optional[str] = None

    def to_domain(self) -> AccountingEntry:
        return AccountingEntry(**self.model_dump())


class HistoricalFeeSchema(BaseModel):
    date: date
    amount: float

    def to_domain(self) -> HistoricalFee:
        return HistoricalFee(**self.model_dump())


class AnalysisConfigSchema(BaseModel):
    enabled_detectors: List[AnomalyType] = Field(default_factory=lambda: list(AnomalyType))
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    client_id: Optional[str] = None
    account_numbers: Optional[List[str]] = None
    bank_codes: Optional[List[str]] = None

    def to_domain(self) -> AnalysisConfig:
        return AnalysisConfig(
            enabled_detectors=list(self.enabled_detectors),
            date_range=DateRange(self.start_date, self.end_date),
            client_id=self.client_id,
            account_numbers=self.account_numbers,
            bank_codes=self.bank_codes,
        )


class AnalysisRequest(BaseModel):
    """Request body for POST /v1/analysis"""

    transactions: List[TransactionSchema]
    bank_conditions: Optional[BankConditionsSchema] = None
    daily_balances: List[DailyBalanceSchema] = []
    ledger_entries: Optional[List[AccountingEntrySchema]] = None
    historical_fees: Dict[str, List[HistoricalFeeSchema]] = Field(
        default_factory=dict, description="Service type -> past fee amounts"
    )
    config: AnalysisConfigSchema = Field(default_factory=AnalysisConfigSchema)


class EvidenceSchema(BaseModel):
    type: str
    description: str
    value: Any = None
    reference: Optional[str] = None
    source: Optional[str] = None
    condition_ref: Optional[str] = None
    expected_value: Any = None
    applied_value: Any = None

    @classmethod
    def from_domain(cls, evidence: Evidence) -> "EvidenceSchema":
        return cls(
            type=evidence.type,
            description=evidence.description,
            value=evidence.value,
            reference=evidence.reference,
            source=evidence.source,
            condition_ref=evidence.condition_ref,
            expected_value=evidence.expected_value,
            applied_value=evidence.applied_value,
        )


class AnomalySchema(BaseModel):
    id: str
    type: AnomalyType
    severity: Severity
    confidence: float
    amount: float
    transactions: List[TransactionSchema]
    evidence: List[EvidenceSchema]
    recommendation: str
    status: str
    detected_at: datetime

    @classmethod
    def from_domain(cls, anomaly: Anomaly) -> "AnomalySchema":
        return cls(
            id=anomaly.id,
            type=anomaly.type,
            severity=anomaly.severity,
            confidence=anomaly.confidence,
            amount=anomaly.amount,
            transactions=[TransactionSchema.from_domain(t) for t in anomaly.transactions],
            evidence=[EvidenceSchema.from_domain(e) for e in anomaly.evidence],
            recommendation=anomaly.recommendation,
            status=anomaly.status.value,
            detected_at=anomaly.detected_at,
        )


class StatisticsSchema(BaseModel):
    total_transactions: int
    total_amount: float
    total_anomalies: int
    total_anomaly_amount: float
    anomalies_by_type: Dict[str, int]
    anomalies_by_severity: Dict[str, int]
    anomaly_rate: float
    potential_savings: float


class SummarySchema(BaseModel):
    status: str
    message: str
    key_findings: List[str]
    recommendations: List[str]
    estimated_recovery: float


class ReviewCandidateSchema(BaseModel):
    transaction_id: str
    service_type: str
    amount: float
    reason: str


class DetectorRunSchema(BaseModel):
    detector: AnomalyType
    anomaly_count: int
    duration_ms: float


class AnalysisResponse(BaseModel):
    """Response for POST /v1/analysis"""

    id: str
    status: AnalysisStatus
    progress: int
    anomalies: List[AnomalySchema]
    statistics: StatisticsSchema
    summary: SummarySchema
    review_candidates: List[ReviewCandidateSchema]
    detector_runs: List[DetectorRunSchema]
    started_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, result: AnalysisResult) -> "AnalysisResponse":
        statistics = result.statistics
        summary = result.summary
        return cls(
            id=result.id,
            status=result.status,
            progress=result.progress,
            anomalies=[AnomalySchema.from_domain(a) for a in result.anomalies],
            statistics=StatisticsSchema(
                total_transactions=statistics.total_transactions,
                total_amount=statistics.total_amount,
                total_anomalies=statistics.total_anomalies,
                total_anomaly_amount=statistics.total_anomaly_amount,
                anomalies_by_type={k.value: v for k, v in statistics.anomalies_by_type.items()},
                anomalies_by_severity={k.value: v for k, v in statistics.anomalies_by_severity.items()},
                anomaly_rate=statistics.anomaly_rate,
                potential_savings=statistics.potential_savings,
            ),
            summary=SummarySchema(
                status=summary.status,
                message=summary.message,
                key_findings=summary.key_findings,
                recommendations=summary.recommendations,
                estimated_recovery=summary.estimated_recovery,
            ),
            review_candidates=[
                ReviewCandidateSchema(
                    transaction_id=c.transaction.id,
                    service_type=c.service_type,
                    amount=c.transaction.abs_amount,
                    reason=c.reason,
                )
                for c in result.review_candidates
            ],
            detector_runs=[
                DetectorRunSchema(detector=r.detector, anomaly_count=r.anomaly_count, duration_ms=r.duration_ms)
                for r in result.detector_runs
            ],
            started_at=result.started_at,
            completed_at=result.completed_at,
            error=result.error,
        )
