"""AI commentary client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict

import httpx

from fee_audit.config import settings
from fee_audit.domain.exceptions import CommentaryServiceError
from fee_audit.domain.models import AnalysisResult
from fee_audit.infrastructure.observability.metrics import commentary_failure_counter, commentary_latency_histogram

logger = logging.getLogger(__name__)

MAX_DIGEST_ANOMALIES = 20


def build_commentary_payload(result: AnalysisResult) -> Dict[str, Any]:
    """Compact digest of an analysis; transactions are not sent"""
    return {
        "analysis_id": result.id,
        "status": result.status.value,
        "summary": {
            "status": result.summary.status,
            "message": result.summary.message,
            "estimated_recovery": result.summary.estimated_recovery,
        },
        "anomalies": [
            {
                "type": a.type.value,
                "severity": a.severity.value,
                "confidence": round(a.confidence, 3),
                "amount": a.amount,
                "recommendation": a.recommendation,
            }
            for a in result.anomalies[:MAX_DIGEST_ANOMALIES]
        ],
    }


class CommentaryClient:
    """Client for the external AI commentary service"""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.commentary_api_base
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.commentary_max_retries
        self.backoff_base = settings.commentary_backoff_base
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def request_commentary(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Post an analysis digest and return the commentary document.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt - 1)
        - Retries on 5xx errors and network failures, 4xx fails at once
        - Malformed URLs and other client-side errors fail at once
        - Tracks latency histogram and failure counter

        Raises:
            CommentaryServiceError: service unavailable after all retries
        """
        url = f"{self.base_url.rstrip('/')}/commentary"
        attempt = 0

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            while True:
                try:
                    with commentary_latency_histogram.time():
                        response = await client.post(url, json=payload)
                        response.raise_for_status()
                    return self._parse(response)

                except httpx.HTTPStatusError as e:
                    commentary_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise CommentaryServiceError(
                            f"Commentary service rejected the request: {e.response.status_code}"
                        ) from e
                    attempt += 1
                    error = e

                except httpx.RequestError as e:
                    commentary_failure_counter.inc()
                    attempt += 1
                    error = e

                except (httpx.InvalidURL, httpx.HTTPError) as e:
                    commentary_failure_counter.inc()
                    raise CommentaryServiceError(f"Commentary request could not be sent: {e}") from e

                if attempt >= self.max_retries:
                    raise CommentaryServiceError(
                        f"Commentary service unavailable after {attempt} attempts: {error}"
                    ) from error

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise CommentaryServiceError("Commentary service returned invalid JSON") from e


async def deliver_commentary(client: CommentaryClient, result: AnalysisResult) -> Dict[str, Any] | None:
    """
    Fire-and-forget enrichment step.

    Never raises: failures are logged and the analysis result stands as is.
    """
    if not client.enabled:
        return None

    try:
        commentary = await client.request_commentary(build_commentary_payload(result))
    except CommentaryServiceError as e:
        logger.warning("AI commentary failed for analysis %s: %s", result.id, e)
        return None

    logger.info("AI commentary delivered for analysis %s", result.id)
    return commentary
