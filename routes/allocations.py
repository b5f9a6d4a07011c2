"""
Allocation API routes: recommendation, finalization and the ledger.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.allocation import (
    AllocationHistoryResponse,
    EffectiveAllocationResponse,
    FinalizeRequest,
    FinalizeResult,
)
from models.recommendation import Recommendation
from services.allocation_ledger_service import get_allocation_ledger_service
from services.finalization_service import get_finalization_service
from services.recommendation_service import get_recommendation_service
from services.rfq_service import get_rfq_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/rfqs", tags=["Allocations"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/{rfq_id}/recommendation", response_model=Recommendation)
async def get_recommendation(rfq_id: str):
    """
    Cheapest split of the remaining requirement across current quotes.

    Containers already committed are included as-is. A shortfall is
    reported in the body, not as an error.

    Raises:
        404: RFQ not found
    """
    try:
        service = get_recommendation_service()
        return service.recommend(rfq_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{rfq_id}/finalize", response_model=FinalizeResult)
def finalize_rfq(rfq_id: str, data: FinalizeRequest):
    """
    Commit an allocation snapshot.

    Values are cumulative per quote. The RFQ closes when the ledger
    covers the required containers.

    Raises:
        404: RFQ not found
        409: RFQ closed, capacity exceeded, or RFQ busy
        422: Unknown quote, reduced allocation, missing reason, nothing to commit
    """
    try:
        service = get_finalization_service()
        return service.finalize(rfq_id, data)

    except Exception as e:
        return handle_error(e)


@router.get("/{rfq_id}/allocations", response_model=EffectiveAllocationResponse)
async def get_effective_allocation(rfq_id: str):
    """
    Effective allocation per quote.

    Raises:
        404: RFQ not found
    """
    try:
        service = get_allocation_ledger_service()
        return service.get_effective_allocation(rfq_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{rfq_id}/allocations/history", response_model=AllocationHistoryResponse)
async def get_allocation_history(rfq_id: str):
    """
    Every ledger record for an RFQ, oldest first.

    Raises:
        404: RFQ not found
    """
    try:
        get_rfq_service().get_by_id(rfq_id)
        records = get_allocation_ledger_service().get_history(rfq_id)
        return AllocationHistoryResponse(data=records, total=len(records))

    except Exception as e:
        return handle_error(e)
