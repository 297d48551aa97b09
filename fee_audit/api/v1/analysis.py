"""POST /v1/analysis - run the anomaly detection engine over a statement"""

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from fee_audit.api.dependencies import get_analysis_service, get_commentary_client, get_request_id
from fee_audit.api.v1.schemas import AnalysisRequest, AnalysisResponse
from fee_audit.domain.orchestrator import AnalysisOptions, AnalysisService
from fee_audit.infrastructure.clients.commentary import CommentaryClient, deliver_commentary
from fee_audit.infrastructure.observability.logging import log_analysis
from fee_audit.infrastructure.observability.metrics import record_analysis

router = APIRouter()


@router.post("/analysis", response_model=AnalysisResponse)
def create_analysis(
    request_body: AnalysisRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
    commentary_client: CommentaryClient = Depends(get_commentary_client),
):
    """
    Audit a set of bank transactions against the bank's conditions.

    Flow:
    1. Convert the payload to domain objects
    2. Run the enabled detectors and aggregate their anomalies
    3. Record metrics and logs
    4. Schedule the optional AI commentary in the background
    5. Return the ranked anomalies with statistics and summary

    An engine failure is reported in the body (status FAILED), not as an
    HTTP error.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        transactions = [t.to_domain() for t in request_body.transactions]
        conditions = request_body.bank_conditions.to_domain() if request_body.bank_conditions else None
        options = AnalysisOptions(
            daily_balances=[b.to_domain() for b in request_body.daily_balances],
            ledger_entries=(
                [e.to_domain() for e in request_body.ledger_entries]
                if request_body.ledger_entries is not None
                else None
            ),
            historical_fees={
                service_type: [h.to_domain() for h in history]
                for service_type, history in request_body.historical_fees.items()
            },
        )

        result = service.analyze(transactions, conditions, request_body.config.to_domain(), options)

        duration_ms = (time.time() - start_time) * 1000
        record_analysis(result)
        log_analysis(
            request_id,
            result.id,
            result.status.value,
            result.statistics.total_transactions,
            len(result.anomalies),
            duration_ms,
        )

        if result.anomalies and commentary_client.enabled:
            background_tasks.add_task(deliver_commentary, commentary_client, result)

        return AnalysisResponse.from_domain(result)

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
