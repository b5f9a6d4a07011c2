"""
Recommendation schemas.

A recommendation is a read-only baseline. It is never persisted and is
recomputed from current quotes and ledger state on every request.
"""

from decimal import Decimal

from pydantic import Field

from models.base import BaseSchema


class RecommendationLine(BaseSchema):
    """Recommended cumulative containers for one quote."""

    quote_id: str
    vendor_name: str
    offered_containers: int
    containers_home: int = Field(..., ge=0, description="Includes already committed")
    containers_moowr: int = Field(..., ge=0, description="Includes already committed")
    committed_home: int = Field(default=0, ge=0)
    committed_moowr: int = Field(default=0, ge=0)
    unit_cost_home: Decimal
    unit_cost_moowr: Decimal
    line_cost: Decimal
    rank_home: str = Field(..., description="L1 = cheapest HOME price")
    rank_moowr: str = Field(..., description="L1 = cheapest MOOWR price")


class Recommendation(BaseSchema):
    """Cost-minimizing split across (quote, scheme) slots."""

    rfq_id: str
    required_containers: int
    total_containers: int
    total_cost: Decimal
    shortfall: int = Field(..., ge=0, description="Containers no quote can cover")
    is_short: bool
    lines: list[RecommendationLine]

    def containers_for(self, quote_id: str) -> tuple[int, int]:
        """(home, moowr) recommended for a quote, (0, 0) if absent."""
        for line in self.lines:
            if line.quote_id == quote_id:
                return line.containers_home, line.containers_moowr
        return 0, 0
