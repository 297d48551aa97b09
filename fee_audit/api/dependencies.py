"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Request

from fee_audit.config import settings
from fee_audit.domain.orchestrator import AnalysisService
from fee_audit.infrastructure.clients.commentary import CommentaryClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_analysis_service() -> AnalysisService:
    """Provide the analysis service, detectors configured once from settings"""
    return AnalysisService.from_thresholds(settings.detection_thresholds())


def get_commentary_client() -> CommentaryClient:
    """Provide AI commentary client instance"""
    return CommentaryClient()
