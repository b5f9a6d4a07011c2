"""
Business logic services.

Each service handles one domain area.
"""

from services.rfq_service import RFQService, get_rfq_service
from services.quote_service import QuoteService, get_quote_service
from services.allocation_ledger_service import (
    AllocationLedgerService,
    get_allocation_ledger_service,
)
from services.recommendation_service import (
    RecommendationService,
    get_recommendation_service,
    build_recommendation,
)
from services.finalization_service import FinalizationService, get_finalization_service
from services.cost_model import compute_totals
from services.rfq_locks import rfq_lock

__all__ = [
    "RFQService",
    "get_rfq_service",
    "QuoteService",
    "get_quote_service",
    "AllocationLedgerService",
    "get_allocation_ledger_service",
    "RecommendationService",
    "get_recommendation_service",
    "build_recommendation",
    "FinalizationService",
    "get_finalization_service",
    "compute_totals",
    "rfq_lock",
]
