"""
Quote API routes.

Mutating handlers are plain functions so FastAPI runs them in its
threadpool; they may wait on the per-RFQ lock.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuoteListResponse,
)
from services.quote_service import get_quote_service
from services.rfq_service import get_rfq_service
from exceptions import AppError, QuoteNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Quotes"])


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
# RFQ QUOTES
# ===================

@router.get("/rfqs/{rfq_id}/quotes", response_model=QuoteListResponse)
async def list_quotes(rfq_id: str):
    """
    All quotes for an RFQ, in submission order.

    Raises:
        404: RFQ not found
    """
    try:
        get_rfq_service().get_by_id(rfq_id)
        quotes = get_quote_service().get_quotes_for_rfq(rfq_id)
        return QuoteListResponse(data=quotes, total=len(quotes))

    except Exception as e:
        return handle_error(e)


@router.get("/rfqs/{rfq_id}/quotes/vendor/{vendor_name}", response_model=QuoteResponse)
async def get_vendor_quote(rfq_id: str, vendor_name: str):
    """
    A vendor's live quote for an RFQ.

    Raises:
        404: RFQ or quote not found
    """
    try:
        get_rfq_service().get_by_id(rfq_id)
        quote = get_quote_service().get_vendor_quote(rfq_id, vendor_name)

        if not quote:
            raise QuoteNotFoundError(f"{rfq_id}/{vendor_name}")

        return quote

    except Exception as e:
        return handle_error(e)


@router.post("/rfqs/{rfq_id}/quotes", response_model=QuoteResponse, status_code=201)
def submit_quote(rfq_id: str, data: QuoteCreate):
    """
    Submit a quote, replacing the vendor's previous one if any.

    Raises:
        403: Vendor not invited
        404: RFQ not found
        409: RFQ closed, or offer below committed containers
        503: Exchange rate unavailable
    """
    try:
        service = get_quote_service()
        return service.submit_quote(rfq_id, data)

    except Exception as e:
        return handle_error(e)


# ===================
# SINGLE QUOTE
# ===================

@router.get("/quotes/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: str):
    """
    Get a single quote.

    Raises:
        404: Quote not found
    """
    try:
        service = get_quote_service()
        return service.get_quote(quote_id)

    except Exception as e:
        return handle_error(e)


@router.put("/quotes/{quote_id}", response_model=QuoteResponse)
def update_quote(quote_id: str, data: QuoteUpdate):
    """
    Update a quote. Only provided fields change.

    Raises:
        404: Quote not found
        409: RFQ closed, or offer below committed containers
        503: Exchange rate unavailable
    """
    try:
        service = get_quote_service()
        return service.update_quote(quote_id, data)

    except Exception as e:
        return handle_error(e)
