"""
Exchange rate routes.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from integrations.exchange_rate import get_usd_inr_rate
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/rates", tags=["Rates"])


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
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


@router.get("/usd-inr")
def get_usd_inr():
    """
    Live USD->INR rate, as used to price new quotes.

    Raises:
        503: Exchange rate unavailable
    """
    try:
        rate = get_usd_inr_rate()
        return {"base": "USD", "target": "INR", "conversion_rate": str(rate)}

    except Exception as e:
        return handle_error(e)
