"""Detector configuration - one explicit, immutable struct per detector"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

from fee_audit.domain.models import DayCountConvention


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the composite transaction similarity (should sum to 1)"""

    amount: float = 0.4
    description: float = 0.4
    time: float = 0.2


class DuplicateEvidenceMode(str, Enum):
    BASIC = "basic"
    WITH_SOURCE_EVIDENCE = "with_source_evidence"


@dataclass(frozen=True)
class DuplicateDetectionConfig:
    similarity_threshold: float = 0.85
    time_window_days: int = 5
    amount_tolerance: float = 0.01
    weights: SimilarityWeights = field(default_factory=SimilarityWeights)
    mode: DuplicateEvidenceMode = DuplicateEvidenceMode.BASIC


@dataclass(frozen=True)
class GhostFeeConfig:
    entropy_threshold: float = 2.5  # below: description too generic
    high_entropy_threshold: float = 4.0  # above: looks auto-generated
    orphan_window_days: int = 1
    min_confidence: float = 0.7
    recurrence_lookback_months: int = 3
    recurrence_min_occurrences: int = 2
    recurrence_amount_tolerance: float = 0.05
    recurrence_similarity: float = 0.7


@dataclass(frozen=True)
class OverchargeConfig:
    tolerance_percentage: float = 0.02
    use_historical_baseline: bool = True
    historical_increase_factor: float = 1.2
    review_threshold: float = 50_000


@dataclass(frozen=True)
class InterestConfig:
    tolerance_amount: float = 1.0
    tolerance_percentage: float = 0.01
    default_annual_rate: float = 0.18
    default_day_count: DayCountConvention = DayCountConvention.ACT_360


@dataclass(frozen=True)
class ReconciliationConfig:
    amount_tolerance: float = 0.01
    date_window_days: int = 5
    exact_threshold: float = 0.95
    partial_threshold: float = 0.8
    balance_tolerance: float = 1.0
    orphan_gap_days: int = 30


@dataclass(frozen=True)
class SuspiciousActivityConfig:
    high_amount_percentile: float = 95
    spike_multiplier: float = 3.0
    outlier_std_multiplier: float = 3.0
    max_daily_frequency: int = 10
    structuring_threshold: float = 5_000_000
    round_amount_min_count: int = 3
    suspicious_keywords: Tuple[str, ...] = (
        "retrait urgent",
        "virement personnel",
        "cash",
        "especes",
        "pret",
        "avance",
        "remboursement",
        "compensation",
    )


@dataclass(frozen=True)
class ValueDateConfig:
    max_credit_value_days: int = 2  # business days
    max_debit_value_days: int = 1
    default_annual_rate: float = 0.12
    default_day_count: DayCountConvention = DayCountConvention.ACT_360
    consolidation_threshold: int = 5
    consolidation_examples: int = 4
    max_summary_transactions: int = 10


@dataclass(frozen=True)
class MultiBankConfig:
    concentration_threshold: float = 0.8  # share of total flows on one bank
    min_banks: int = 2


@dataclass(frozen=True)
class DetectionThresholds:
    duplicate: DuplicateDetectionConfig = field(default_factory=DuplicateDetectionConfig)
    ghost_fee: GhostFeeConfig = field(default_factory=GhostFeeConfig)
    overcharge: OverchargeConfig = field(default_factory=OverchargeConfig)
    interest: InterestConfig = field(default_factory=InterestConfig)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    suspicious: SuspiciousActivityConfig = field(default_factory=SuspiciousActivityConfig)
    value_date: ValueDateConfig = field(default_factory=ValueDateConfig)
    multi_bank: MultiBankConfig = field(default_factory=MultiBankConfig)
