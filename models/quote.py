"""
Vendor quote schemas.

A quote prices containers under two customs schemes:
- HOME:  standard CHA clearance (scheme A)
- MOOWR: bonded-warehouse clearance (scheme B)

Price components are a fixed, named set. Anything new must become a new
named field here, never a free-form adjustment.
"""

from pydantic import Field
from typing import Optional, Literal
from enum import Enum
from datetime import datetime
from decimal import Decimal

from models.base import BaseSchema, TimestampMixin


class Scheme(str, Enum):
    """Customs/logistics scheme a container is cleared under."""
    HOME = "HOME"
    MOOWR = "MOOWR"


# Tie-break order when two slots cost the same
SCHEME_ORDER = (Scheme.HOME, Scheme.MOOWR)


# Column names, shared by the DB row and QuotePriceComponents
PRICE_FIELDS = (
    "sea_freight_per_container",
    "house_delivery_order_per_bol",
    "cfs_per_container",
    "transportation_per_container",
    "edi_charges_per_boe",
    "cha_charges_home",
    "cha_charges_moowr",
    "moowr_warehousing_charges",
)


class QuotePriceComponents(BaseSchema):
    """Per-container price components as submitted by the vendor."""

    sea_freight_per_container: Decimal = Field(..., ge=0, description="Sea freight (USD)")
    house_delivery_order_per_bol: Decimal = Field(default=Decimal("0"), ge=0, description="HDO per BOL (INR)")
    cfs_per_container: Decimal = Field(default=Decimal("0"), ge=0, description="CFS (INR)")
    transportation_per_container: Decimal = Field(default=Decimal("0"), ge=0, description="Transport (INR)")
    edi_charges_per_boe: Decimal = Field(default=Decimal("0"), ge=0, description="EDI per BOE (INR)")
    cha_charges_home: Decimal = Field(default=Decimal("0"), ge=0, description="CHA, HOME scheme only (INR)")
    cha_charges_moowr: Decimal = Field(default=Decimal("0"), ge=0, description="CHA, MOOWR scheme only (INR)")
    moowr_warehousing_charges: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Re-warehousing, MOOWR scheme only (INR)"
    )

    def to_row(self) -> dict:
        """Serialize for a Supabase insert/update."""
        return {name: str(getattr(self, name)) for name in PRICE_FIELDS}

    @classmethod
    def from_row(cls, row: dict) -> "QuotePriceComponents":
        return cls(**{
            name: Decimal(str(row.get(name) or 0))
            for name in PRICE_FIELDS
        })


class QuoteTotals(BaseSchema):
    """Per-container landed cost under each scheme (INR)."""

    fx_rate: Decimal = Field(..., gt=0, description="USD->INR rate used")
    total_home: Decimal = Field(..., ge=0)
    total_moowr: Decimal = Field(..., ge=0)

    def cost_for(self, scheme: Scheme) -> Decimal:
        return self.total_home if scheme == Scheme.HOME else self.total_moowr


# ===================
# QUOTE SCHEMAS
# ===================

class QuoteCreate(BaseSchema):
    """
    Submit a quote for an RFQ.

    A second submission by the same vendor replaces the first.
    """

    vendor_name: str = Field(..., min_length=1, max_length=100, description="Vendor code")
    number_of_containers: int = Field(..., gt=0, description="Max containers offered")
    prices: QuotePriceComponents
    shipping_line_name: Optional[str] = Field(None, max_length=100)
    container_type: Optional[str] = Field(None, max_length=20)
    vessel_name: Optional[str] = Field(None, max_length=100)
    vessel_etd: Optional[datetime] = None
    vessel_eta: Optional[datetime] = None
    transship_or_direct: Optional[Literal["transship", "direct"]] = None
    quote_validity_date: Optional[datetime] = None
    message: Optional[str] = Field(None, max_length=1000)


class QuoteUpdate(BaseSchema):
    """
    Update an existing quote.

    All fields optional. A provided prices block replaces all components.
    """

    number_of_containers: Optional[int] = Field(None, gt=0)
    prices: Optional[QuotePriceComponents] = None
    shipping_line_name: Optional[str] = Field(None, max_length=100)
    container_type: Optional[str] = Field(None, max_length=20)
    vessel_name: Optional[str] = Field(None, max_length=100)
    vessel_etd: Optional[datetime] = None
    vessel_eta: Optional[datetime] = None
    transship_or_direct: Optional[Literal["transship", "direct"]] = None
    quote_validity_date: Optional[datetime] = None
    message: Optional[str] = Field(None, max_length=1000)


class QuoteResponse(BaseSchema, TimestampMixin):
    """Quote with cached cost totals."""

    id: str = Field(..., description="Quote UUID")
    rfq_id: str = Field(..., description="Owning RFQ UUID")
    vendor_name: str
    number_of_containers: int
    prices: QuotePriceComponents
    fx_rate: Decimal
    total_home: Decimal
    total_moowr: Decimal
    shipping_line_name: Optional[str] = None
    container_type: Optional[str] = None
    vessel_name: Optional[str] = None
    vessel_etd: Optional[datetime] = None
    vessel_eta: Optional[datetime] = None
    transship_or_direct: Optional[str] = None
    quote_validity_date: Optional[datetime] = None
    message: Optional[str] = None

    @property
    def totals(self) -> QuoteTotals:
        return QuoteTotals(
            fx_rate=self.fx_rate,
            total_home=self.total_home,
            total_moowr=self.total_moowr,
        )


class QuoteListResponse(BaseSchema):
    """List of quotes for an RFQ."""

    data: list[QuoteResponse]
    total: int
