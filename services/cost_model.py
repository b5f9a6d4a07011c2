"""
Cost Model - per-container landed cost of a quote under each scheme.

Formulas (INR per container):
    base        = fx * sea_freight + hdo + cfs + transportation + edi
    total_home  = base + cha_charges_home
    total_moowr = base + moowr_warehousing_charges + cha_charges_moowr

No rounding is applied; display rounding belongs to the caller.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from models.quote import QuotePriceComponents, QuoteTotals
from exceptions import FxRateUnavailableError, ValidationError


def _as_rate(fx_rate: Union[Decimal, float, str]) -> Decimal:
    try:
        rate = Decimal(str(fx_rate))
    except (InvalidOperation, ValueError):
        raise ValidationError(
            code="INVALID_FX_RATE",
            message="Foreign exchange rate must be a number",
            details={"fx_rate": str(fx_rate)}
        )
    if not rate.is_finite() or rate <= 0:
        raise ValidationError(
            code="INVALID_FX_RATE",
            message="Foreign exchange rate must be positive",
            details={"fx_rate": str(fx_rate)}
        )
    return rate


def shared_cost(prices: QuotePriceComponents, fx_rate: Decimal) -> Decimal:
    """Components common to both schemes."""
    return (
        fx_rate * prices.sea_freight_per_container
        + prices.house_delivery_order_per_bol
        + prices.cfs_per_container
        + prices.transportation_per_container
        + prices.edi_charges_per_boe
    )


def compute_totals(
    prices: QuotePriceComponents,
    fx_rate: Optional[Union[Decimal, float, str]],
) -> QuoteTotals:
    """
    Compute HOME and MOOWR per-container totals.

    Args:
        prices: Vendor price components
        fx_rate: USD->INR rate; None means the rate could not be obtained

    Returns:
        QuoteTotals with the rate used and both totals

    Raises:
        FxRateUnavailableError: If fx_rate is None
        ValidationError: If fx_rate is not a positive finite number
    """
    if fx_rate is None:
        raise FxRateUnavailableError()

    rate = _as_rate(fx_rate)
    base = shared_cost(prices, rate)

    return QuoteTotals(
        fx_rate=rate,
        total_home=base + prices.cha_charges_home,
        total_moowr=base + prices.moowr_warehousing_charges + prices.cha_charges_moowr,
    )
