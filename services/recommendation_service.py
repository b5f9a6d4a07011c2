"""
Recommendation service - cheapest split of an RFQ across vendor quotes.

Every quote contributes two slots, one per scheme, priced at the quote's
cached per-container total. Slots are filled greedily, cheapest first,
until the requirement is met or capacity runs out. A quote's offered
containers are shared by its HOME and MOOWR slots.

Already committed ledger amounts are taken as given: they seed the
result, and only the remaining requirement is allocated.
"""

from decimal import Decimal
from typing import Optional
import structlog

from models.allocation import AllocationSplit
from models.quote import QuoteResponse, Scheme, SCHEME_ORDER
from models.recommendation import Recommendation, RecommendationLine
from services.allocation_ledger_service import (
    AllocationLedgerService,
    get_allocation_ledger_service,
)
from services.quote_service import QuoteService, get_quote_service
from services.rfq_service import RFQService, get_rfq_service

logger = structlog.get_logger(__name__)


def _rank_labels(quotes: list[QuoteResponse], scheme: Scheme) -> dict[str, str]:
    """L1 = cheapest for the scheme; ties keep submission order."""
    ordered = sorted(
        enumerate(quotes),
        key=lambda pair: (pair[1].totals.cost_for(scheme), pair[0]),
    )
    return {quote.id: f"L{position}" for position, (_, quote) in enumerate(ordered, start=1)}


def build_recommendation(
    rfq_id: str,
    required: int,
    quotes: list[QuoteResponse],
    committed: Optional[dict[str, AllocationSplit]] = None,
) -> Recommendation:
    """
    Build the cost-minimizing allocation.

    Args:
        rfq_id: RFQ UUID
        required: Containers the RFQ needs
        quotes: Quotes in submission order (created_at, id)
        committed: Ledger totals per quote, kept as-is

    Returns:
        Recommendation with one line per quote, in input order
    """
    committed = committed or {}

    allocated: dict[str, AllocationSplit] = {}
    capacity: dict[str, int] = {}
    for quote in quotes:
        seed = committed.get(quote.id, AllocationSplit())
        allocated[quote.id] = AllocationSplit(home=seed.home, moowr=seed.moowr)
        capacity[quote.id] = max(quote.number_of_containers - seed.total, 0)

    remaining = max(required - sum(split.total for split in allocated.values()), 0)

    # Stable ordering: cost, then quote position, then HOME before MOOWR
    slots = sorted(
        (
            (quote.totals.cost_for(scheme), quote_index, scheme_index, quote, scheme)
            for quote_index, quote in enumerate(quotes)
            for scheme_index, scheme in enumerate(SCHEME_ORDER)
        ),
        key=lambda slot: slot[:3],
    )

    for _, _, _, quote, scheme in slots:
        if remaining == 0:
            break
        take = min(remaining, capacity[quote.id])
        if take == 0:
            continue
        split = allocated[quote.id]
        if scheme == Scheme.HOME:
            split.home += take
        else:
            split.moowr += take
        capacity[quote.id] -= take
        remaining -= take

    ranks_home = _rank_labels(quotes, Scheme.HOME)
    ranks_moowr = _rank_labels(quotes, Scheme.MOOWR)

    lines = []
    for quote in quotes:
        split = allocated[quote.id]
        seed = committed.get(quote.id, AllocationSplit())
        lines.append(
            RecommendationLine(
                quote_id=quote.id,
                vendor_name=quote.vendor_name,
                offered_containers=quote.number_of_containers,
                containers_home=split.home,
                containers_moowr=split.moowr,
                committed_home=seed.home,
                committed_moowr=seed.moowr,
                unit_cost_home=quote.total_home,
                unit_cost_moowr=quote.total_moowr,
                line_cost=split.home * quote.total_home + split.moowr * quote.total_moowr,
                rank_home=ranks_home[quote.id],
                rank_moowr=ranks_moowr[quote.id],
            )
        )

    total_containers = sum(line.containers_home + line.containers_moowr for line in lines)
    shortfall = max(required - total_containers, 0)

    return Recommendation(
        rfq_id=rfq_id,
        required_containers=required,
        total_containers=total_containers,
        total_cost=sum((line.line_cost for line in lines), Decimal("0")),
        shortfall=shortfall,
        is_short=shortfall > 0,
        lines=lines,
    )


class RecommendationService:
    """
    Loads RFQ, quote and ledger state and builds a fresh recommendation.

    Nothing is persisted; the result is a baseline for the operator.
    """

    def __init__(
        self,
        rfq_service: Optional[RFQService] = None,
        quote_service: Optional[QuoteService] = None,
        ledger_service: Optional[AllocationLedgerService] = None,
    ):
        self.rfq_service = rfq_service or get_rfq_service()
        self.quote_service = quote_service or get_quote_service()
        self.ledger_service = ledger_service or get_allocation_ledger_service()

    def recommend(self, rfq_id: str) -> Recommendation:
        """
        Recommendation for an RFQ in any status.

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
        """
        rfq = self.rfq_service.get_by_id(rfq_id)
        quotes = self.quote_service.get_quotes_for_rfq(rfq_id)
        committed = self.ledger_service.recorded_totals(rfq_id)

        recommendation = build_recommendation(
            rfq_id,
            rfq.number_of_containers,
            quotes,
            committed,
        )

        logger.info(
            "recommendation_built",
            rfq_id=rfq_id,
            quotes=len(quotes),
            required=recommendation.required_containers,
            recommended=recommendation.total_containers,
            total_cost=str(recommendation.total_cost),
            shortfall=recommendation.shortfall,
        )
        if recommendation.is_short:
            logger.warning(
                "recommendation_shortfall",
                rfq_id=rfq_id,
                shortfall=recommendation.shortfall,
            )
        return recommendation


# Singleton instance
_recommendation_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create RecommendationService instance."""
    global _recommendation_service
    if _recommendation_service is None:
        _recommendation_service = RecommendationService()
    return _recommendation_service
