"""Pytest fixtures for testing"""

import itertools
from datetime import date
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from fee_audit.api.dependencies import get_analysis_service, get_commentary_client
from fee_audit.api.main import create_app
from fee_audit.domain.models import BankConditions, FeeSchedule, InterestRate, Transaction, TransactionType
from fee_audit.domain.orchestrator import AnalysisService
from fee_audit.infrastructure.clients.commentary import CommentaryClient


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    """Factory for transactions with sensible defaults and unique ids"""
    counter = itertools.count(1)

    def _make(
        amount: float = -1000,
        description: str = "FRAIS DIVERS",
        day: date = date(2024, 5, 10),
        **overrides,
    ) -> Transaction:
        fields = {
            "id": f"tx_{next(counter)}",
            "account_number": "ACC-001",
            "bank_code": "BICEC",
            "date": day,
            "value_date": day,
            "amount": amount,
            "balance": 0.0,
            "description": description,
            "type": TransactionType.OTHER,
            "reference": None,
        }
        fields.update(overrides)
        return Transaction(**fields)

    return _make


@pytest.fixture
def bank_conditions() -> BankConditions:
    """Fee grid with fixed maintenance, transfer and SMS fees and a 12% overdraft rate"""
    return BankConditions(
        bank_code="BICEC",
        bank_name="BICEC",
        fees=[
            FeeSchedule(code="TDC", name="Tenue de compte", amount=5000),
            FeeSchedule(code="VIRN", name="Virement national", amount=1000),
            FeeSchedule(code="SMS", name="Alerte SMS", amount=500),
        ],
        interest_rates=[InterestRate(type="overdraft", rate=0.12)],
        effective_date=date(2024, 1, 1),
    )


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client with default detectors and commentary disabled"""
    app = create_app()
    app.dependency_overrides[get_analysis_service] = lambda: AnalysisService.from_thresholds()
    app.dependency_overrides[get_commentary_client] = lambda: CommentaryClient(base_url=None)
    return TestClient(app)
