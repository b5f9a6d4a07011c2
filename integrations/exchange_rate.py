"""
USD->INR exchange rate lookup.

Failures surface as UpstreamUnavailableError; nothing here retries.
Substituting the last known good rate is an opt-in caller policy
(settings.fx_allow_last_known_good), applied in resolve_fx_rate().
"""

import threading
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
import structlog

from config import settings
from exceptions import FxRateUnavailableError

logger = structlog.get_logger(__name__)

_last_known_good: Optional[Decimal] = None
_last_known_lock = threading.Lock()


def get_last_known_rate() -> Optional[Decimal]:
    """Most recent rate successfully fetched by this process."""
    with _last_known_lock:
        return _last_known_good


def _remember(rate: Decimal) -> None:
    global _last_known_good
    with _last_known_lock:
        _last_known_good = rate


def reset_last_known_rate() -> None:
    """Forget the cached rate."""
    global _last_known_good
    with _last_known_lock:
        _last_known_good = None


def get_usd_inr_rate(timeout: Optional[float] = None) -> Decimal:
    """
    Fetch the live USD->INR conversion rate.

    Args:
        timeout: HTTP timeout in seconds (defaults to settings)

    Returns:
        Positive Decimal rate

    Raises:
        FxRateUnavailableError: On network, HTTP or payload errors
    """
    wait = timeout if timeout is not None else settings.exchange_rate_timeout_seconds
    url = settings.exchange_rate_url

    if url is None:
        logger.error("fx_rate_not_configured")
        raise FxRateUnavailableError("Exchange rate API key is not configured")

    try:
        logger.debug("fetching_fx_rate", base_url=settings.exchange_rate_base_url)
        response = requests.get(url, timeout=wait)
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.RequestException as e:
        logger.error("fx_rate_request_failed", error=str(e))
        raise FxRateUnavailableError(
            f"Failed to fetch exchange rate: {e}",
            details={"error_type": type(e).__name__}
        )
    except ValueError as e:
        logger.error("fx_rate_invalid_json", error=str(e))
        raise FxRateUnavailableError("Exchange rate response was not JSON")

    raw = payload.get("conversion_rate") if isinstance(payload, dict) else None
    try:
        rate = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        rate = None

    if rate is None or not rate.is_finite() or rate <= 0:
        logger.error("fx_rate_missing", payload_keys=list(payload) if isinstance(payload, dict) else None)
        raise FxRateUnavailableError(
            "Exchange rate response had no usable conversion_rate",
            details={"conversion_rate": str(raw)}
        )

    _remember(rate)
    logger.info("fx_rate_fetched", rate=str(rate))
    return rate


def resolve_fx_rate(timeout: Optional[float] = None) -> Decimal:
    """
    Live rate, or the last known good one when policy allows it.

    Raises:
        FxRateUnavailableError: If the live fetch fails and no fallback applies
    """
    try:
        return get_usd_inr_rate(timeout=timeout)
    except FxRateUnavailableError:
        fallback = get_last_known_rate()
        if settings.fx_allow_last_known_good and fallback is not None:
            logger.warning("fx_rate_using_last_known_good", rate=str(fallback))
            return fallback
        raise
