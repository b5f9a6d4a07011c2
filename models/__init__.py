"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.rfq import (
    RFQStatus,
    ContainerType,
    ALLOWED_TRANSITIONS,
    is_valid_status_transition,
    RFQCreate,
    RFQResponse,
    RFQListResponse,
    NextRFQNumberResponse,
)
from models.quote import (
    Scheme,
    SCHEME_ORDER,
    PRICE_FIELDS,
    QuotePriceComponents,
    QuoteTotals,
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuoteListResponse,
)
from models.allocation import (
    AllocationSplit,
    LedgerEntry,
    AllocationRecordResponse,
    AllocationHistoryResponse,
    EffectiveAllocationLine,
    EffectiveAllocationResponse,
    SnapshotLine,
    FinalizeRequest,
    FinalizeResult,
)
from models.recommendation import (
    RecommendationLine,
    Recommendation,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    # RFQ
    "RFQStatus",
    "ContainerType",
    "ALLOWED_TRANSITIONS",
    "is_valid_status_transition",
    "RFQCreate",
    "RFQResponse",
    "RFQListResponse",
    "NextRFQNumberResponse",
    # Quote
    "Scheme",
    "SCHEME_ORDER",
    "PRICE_FIELDS",
    "QuotePriceComponents",
    "QuoteTotals",
    "QuoteCreate",
    "QuoteUpdate",
    "QuoteResponse",
    "QuoteListResponse",
    # Allocation
    "AllocationSplit",
    "LedgerEntry",
    "AllocationRecordResponse",
    "AllocationHistoryResponse",
    "EffectiveAllocationLine",
    "EffectiveAllocationResponse",
    "SnapshotLine",
    "FinalizeRequest",
    "FinalizeResult",
    # Recommendation
    "RecommendationLine",
    "Recommendation",
]
