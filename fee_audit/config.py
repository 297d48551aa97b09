"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from fee_audit.domain.thresholds import (
    DetectionThresholds,
    DuplicateDetectionConfig,
    GhostFeeConfig,
    InterestConfig,
    MultiBankConfig,
    OverchargeConfig,
    ValueDateConfig,
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    service_name: str = "fee-audit"
    log_level: str = "INFO"
    currency: str = "FCFA"

    # External Services
    commentary_api_base: str | None = None  # AI commentary is skipped when unset

    # HTTP Client
    http_timeout_seconds: float = 10.0
    commentary_max_retries: int = 3
    commentary_backoff_base: float = 1.0  # Exponential backoff base in seconds

    # Detector overrides
    duplicate_window_days: int = 5
    duplicate_similarity_threshold: float = 0.85
    ghost_fee_min_confidence: float = 0.7
    overcharge_tolerance_percentage: float = 0.02
    interest_tolerance_amount: float = 1.0
    interest_tolerance_percentage: float = 0.01
    value_date_max_credit_days: int = 2
    value_date_max_debit_days: int = 1
    multi_bank_concentration_threshold: float = 0.8

    def detection_thresholds(self) -> DetectionThresholds:
        """Detector configuration with the environment overrides applied"""
        return DetectionThresholds(
            duplicate=DuplicateDetectionConfig(
                similarity_threshold=self.duplicate_similarity_threshold,
                time_window_days=self.duplicate_window_days,
            ),
            ghost_fee=GhostFeeConfig(min_confidence=self.ghost_fee_min_confidence),
            overcharge=OverchargeConfig(tolerance_percentage=self.overcharge_tolerance_percentage),
            interest=InterestConfig(
                tolerance_amount=self.interest_tolerance_amount,
                tolerance_percentage=self.interest_tolerance_percentage,
            ),
            value_date=ValueDateConfig(
                max_credit_value_days=self.value_date_max_credit_days,
                max_debit_value_days=self.value_date_max_debit_days,
            ),
            multi_bank=MultiBankConfig(concentration_threshold=self.multi_bank_concentration_threshold),
        )


settings = Settings()
