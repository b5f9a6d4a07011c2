"""
RFQ API routes.

Creation, listing and lookup. Status changes are never exposed directly:
they follow from quote submission and finalization.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.rfq import (
    RFQCreate,
    RFQResponse,
    RFQListResponse,
    RFQStatus,
    NextRFQNumberResponse,
)
from services.rfq_service import get_rfq_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/rfqs", tags=["RFQs"])


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

@router.get("", response_model=RFQListResponse)
async def list_rfqs(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[RFQStatus] = Query(None, description="Filter by status"),
    vendor: Optional[str] = Query(None, description="Only RFQs this vendor was invited to"),
):
    """
    List RFQs, newest first.

    Vendors pass their own name to see the RFQs they were invited to.
    """
    try:
        service = get_rfq_service()

        rfqs, total = service.get_all(
            page=page,
            page_size=page_size,
            status=status,
            vendor_name=vendor,
        )

        total_pages = (total + page_size - 1) // page_size

        return RFQListResponse(
            data=rfqs,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    except Exception as e:
        return handle_error(e)


@router.get("/next-number", response_model=NextRFQNumberResponse)
async def get_next_rfq_number():
    """Number the next RFQ will be created with."""
    try:
        service = get_rfq_service()
        return NextRFQNumberResponse(next_rfq_number=service.next_rfq_number())

    except Exception as e:
        return handle_error(e)


@router.get("/{rfq_id}", response_model=RFQResponse)
async def get_rfq(rfq_id: str):
    """
    Get a single RFQ.

    Raises:
        404: RFQ not found
    """
    try:
        service = get_rfq_service()
        return service.get_by_id(rfq_id)

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=RFQResponse, status_code=201)
def create_rfq(data: RFQCreate):
    """
    Create a new RFQ in the initial state.

    Raises:
        422: Validation error
    """
    try:
        service = get_rfq_service()
        return service.create(data)

    except Exception as e:
        return handle_error(e)
