"""
RFQ schemas and the RFQ lifecycle state machine.

Lifecycle:
    initial     no quote accepted yet
    evaluation  at least one quote, allocation incomplete
    closed      cumulative allocation equals the required count (terminal)
"""

from pydantic import Field, field_validator, model_validator
from typing import Optional
from enum import Enum
from datetime import date

from models.base import BaseSchema, TimestampMixin


class RFQStatus(str, Enum):
    """RFQ status values."""
    INITIAL = "initial"
    EVALUATION = "evaluation"
    CLOSED = "closed"


# Only single forward steps are legal
ALLOWED_TRANSITIONS = {
    RFQStatus.INITIAL: {RFQStatus.EVALUATION},
    RFQStatus.EVALUATION: {RFQStatus.CLOSED},
    RFQStatus.CLOSED: set(),
}


def is_valid_status_transition(current: RFQStatus, new: RFQStatus) -> bool:
    """
    Check if status transition is valid.

    Rules:
    - initial -> evaluation on first accepted quote
    - evaluation -> closed only on full allocation
    - closed is terminal
    """
    return new in ALLOWED_TRANSITIONS[current]


class ContainerType(str, Enum):
    """Container types offered on RFQs and quotes."""
    LCL = "LCL"
    OT_20 = "20' OT"
    OT_40 = "40'OT"


# ===================
# RFQ SCHEMAS
# ===================

class RFQCreate(BaseSchema):
    """
    Create a new RFQ.

    number_of_containers is the required count and can never be changed
    after creation.
    """

    number_of_containers: int = Field(
        ...,
        gt=0,
        description="Required container count"
    )
    item_description: str = Field(..., min_length=1, max_length=200)
    company_name: str = Field(..., min_length=1, max_length=100)
    material_po_number: str = Field(..., min_length=1, max_length=100)
    supplier_name: str = Field(..., min_length=1, max_length=200)
    port_of_loading: str = Field(..., min_length=1, max_length=100)
    port_of_destination: str = Field(..., min_length=1, max_length=100)
    container_type: ContainerType = Field(..., description="Container type")
    incoterms: Optional[str] = Field(None, max_length=20)
    cargo_weight_tons: Optional[float] = Field(None, gt=0, description="Cargo weight in tons")
    cargo_readiness_from: Optional[date] = Field(None, description="Cargo ready window start")
    cargo_readiness_to: Optional[date] = Field(None, description="Cargo ready window end")
    description: Optional[str] = Field(None, max_length=1000)
    vendors: list[str] = Field(
        default_factory=list,
        description="Invited vendor codes (empty = open to any vendor)"
    )
    created_by: Optional[str] = Field(None, max_length=100)

    @field_validator("vendors")
    @classmethod
    def normalize_vendors(cls, v: list[str]) -> list[str]:
        """Trim, drop blanks and de-duplicate while keeping order."""
        seen: list[str] = []
        for vendor in v:
            name = vendor.strip()
            if name and name not in seen:
                seen.append(name)
        return seen

    @model_validator(mode="after")
    def readiness_window_ordered(self) -> "RFQCreate":
        """Readiness window end cannot precede its start."""
        if (
            self.cargo_readiness_from
            and self.cargo_readiness_to
            and self.cargo_readiness_to < self.cargo_readiness_from
        ):
            raise ValueError("cargo_readiness_to cannot be before cargo_readiness_from")
        return self


class RFQResponse(BaseSchema, TimestampMixin):
    """RFQ response with all fields."""

    id: str = Field(..., description="RFQ UUID")
    rfq_number: int = Field(..., description="Sequential RFQ number")
    number_of_containers: int = Field(..., description="Required container count")
    status: RFQStatus = Field(..., description="Lifecycle status")
    item_description: str
    company_name: str
    material_po_number: str
    supplier_name: str
    port_of_loading: str
    port_of_destination: str
    container_type: str
    incoterms: Optional[str] = None
    cargo_weight_tons: Optional[float] = None
    cargo_readiness_from: Optional[date] = None
    cargo_readiness_to: Optional[date] = None
    description: Optional[str] = None
    vendors: list[str] = Field(default_factory=list)
    created_by: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.status == RFQStatus.CLOSED

    def invites(self, vendor_name: str) -> bool:
        """An empty vendor list means the RFQ is open to any vendor."""
        return not self.vendors or vendor_name in self.vendors


class RFQListResponse(BaseSchema):
    """Paginated list of RFQs."""

    data: list[RFQResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class NextRFQNumberResponse(BaseSchema):
    """Next RFQ number that will be assigned."""

    next_rfq_number: int
