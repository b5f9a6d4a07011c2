"""
Allocation ledger and finalization schemas.

The ledger is append-only. The effective allocation for a quote and
scheme is the sum of all its records; nothing is ever updated in place.
"""

from pydantic import Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from models.base import BaseSchema
from models.quote import QuotePriceComponents, Scheme
from models.rfq import RFQStatus


class AllocationSplit(BaseSchema):
    """Containers per scheme for one quote."""

    home: int = Field(default=0, ge=0)
    moowr: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.home + self.moowr

    def for_scheme(self, scheme: Scheme) -> int:
        return self.home if scheme == Scheme.HOME else self.moowr


# ===================
# LEDGER SCHEMAS
# ===================

class LedgerEntry(BaseSchema):
    """One positive increment to append for a quote."""

    quote_id: str
    delta_home: int = 0
    delta_moowr: int = 0
    unit_cost_home: Optional[Decimal] = None
    unit_cost_moowr: Optional[Decimal] = None
    price_edited: bool = False


class AllocationRecordResponse(BaseSchema):
    """A committed ledger record. Never mutated once written."""

    id: str = Field(..., description="Record UUID")
    rfq_id: str
    quote_id: str
    vendor_name: str = Field(..., description="Denormalized for audit")
    containers_home: int = Field(..., ge=0)
    containers_moowr: int = Field(..., ge=0)
    unit_cost_home: Optional[Decimal] = None
    unit_cost_moowr: Optional[Decimal] = None
    price_edited: bool = False
    reason: Optional[str] = None
    batch_id: Optional[str] = Field(None, description="Groups records of one finalization")
    created_at: datetime


class AllocationHistoryResponse(BaseSchema):
    """All ledger records for an RFQ, oldest first."""

    data: list[AllocationRecordResponse]
    total: int


class EffectiveAllocationLine(BaseSchema):
    """Summed allocation for one quote."""

    quote_id: str
    vendor_name: str
    containers_home: int
    containers_moowr: int


class EffectiveAllocationResponse(BaseSchema):
    """Current effective allocation across all quotes of an RFQ."""

    rfq_id: str
    status: RFQStatus
    required_containers: int
    total_allocated: int
    remaining: int
    allocations: list[EffectiveAllocationLine]


# ===================
# FINALIZATION SCHEMAS
# ===================

class SnapshotLine(BaseSchema):
    """
    Desired cumulative allocation for one quote.

    Values are totals, not increments. price_overrides carries an
    operator's edited prices; any difference from the vendor's submitted
    components counts as a deviation.
    """

    quote_id: str = Field(..., min_length=1)
    containers_home: int = Field(default=0, ge=0)
    containers_moowr: int = Field(default=0, ge=0)
    price_overrides: Optional[QuotePriceComponents] = None

    @property
    def split(self) -> AllocationSplit:
        return AllocationSplit(home=self.containers_home, moowr=self.containers_moowr)


class FinalizeRequest(BaseSchema):
    """Proposed full-allocation snapshot plus optional deviation reason."""

    allocations: list[SnapshotLine] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason")
    @classmethod
    def blank_reason_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Whitespace-only reasons count as missing."""
        if v is None or not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def unique_quotes(self) -> "FinalizeRequest":
        """Each quote may appear once per snapshot."""
        ids = [line.quote_id for line in self.allocations]
        if len(ids) != len(set(ids)):
            raise ValueError("Each quote_id may appear only once in allocations")
        return self


class FinalizeResult(BaseSchema):
    """Outcome of a finalization call."""

    rfq_id: str
    closed: bool
    total_allocated: int
    required_containers: int
    remaining: int
    deviation: bool = Field(..., description="Snapshot differs from recommendation")
    price_edited: bool = Field(..., description="Operator edited vendor prices")
    batch_id: str
    records: list[AllocationRecordResponse]
