"""
Finalization coordinator.

Turns an operator's allocation snapshot into ledger increments and
closes the RFQ once its requirement is fully covered.

Snapshot values are cumulative: for each quote the operator states the
total HOME/MOOWR containers it should hold. The difference from what is
already recorded is appended. Quotes left out of the snapshot keep what
they have.

Read, validate, append and close all run under the per-RFQ lock.
Notifications go out after the lock is released, and their failures
never fail the call.
"""

from typing import Optional
from uuid import uuid4
import structlog

from models.allocation import (
    AllocationSplit,
    FinalizeRequest,
    FinalizeResult,
    LedgerEntry,
    SnapshotLine,
)
from models.quote import QuoteResponse
from models.recommendation import Recommendation
from models.rfq import RFQResponse, RFQStatus
from services.allocation_ledger_service import (
    AllocationLedgerService,
    get_allocation_ledger_service,
)
from services.cost_model import compute_totals
from services.quote_service import QuoteService, get_quote_service
from services.recommendation_service import build_recommendation
from services.rfq_locks import rfq_lock
from services.rfq_service import RFQService, get_rfq_service
from integrations.telegram import notify_allocation_deviation, notify_rfq_closed
from exceptions import (
    AppError,
    AlreadyFinalizedError,
    CapacityExceededError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class FinalizationService:
    """
    Finalization business logic.

    A call either appends all of its increments or none of them.
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

    def finalize(self, rfq_id: str, request: FinalizeRequest) -> FinalizeResult:
        """
        Commit an allocation snapshot.

        Args:
            rfq_id: RFQ UUID
            request: Cumulative snapshot plus optional reason

        Returns:
            FinalizeResult with the records written and the new RFQ state

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
            AlreadyFinalizedError: If the RFQ was already closed
            ValidationError: Unknown quote, negative delta, missing reason,
                or nothing to commit
            CapacityExceededError: If the snapshot over-allocates, or another
                finalization closed the RFQ while this one waited
            RFQBusyError: If the RFQ lock cannot be acquired in time
        """
        rfq = self.rfq_service.get_by_id(rfq_id)
        self.rfq_service.ensure_open(rfq, "finalize")

        logger.info(
            "finalizing_rfq",
            rfq_id=rfq_id,
            lines=len(request.allocations),
            has_reason=request.reason is not None,
        )

        with rfq_lock(rfq_id):
            rfq = self.rfq_service.get_by_id(rfq_id)
            required = rfq.number_of_containers
            recorded = self.ledger_service.recorded_totals(rfq_id)
            recorded_sum = sum(split.total for split in recorded.values())

            if rfq.is_closed:
                # Closed by a concurrent call while this one waited
                proposed = sum(line.split.total for line in request.allocations)
                logger.warning("finalize_lost_race", rfq_id=rfq_id, recorded=recorded_sum)
                raise CapacityExceededError(
                    message=f"RFQ was fully allocated ({recorded_sum}/{required}) by a concurrent finalization",
                    scope="rfq",
                    limit=required,
                    attempted=max(recorded_sum, proposed),
                    details={"rfq_id": rfq_id, "already_allocated": recorded_sum},
                )

            if recorded_sum >= required:
                self._heal_unclosed(rfq, recorded_sum)

            quotes = self.quote_service.get_quotes_for_rfq(rfq_id)
            by_id = {quote.id: quote for quote in quotes}

            deltas = self._compute_deltas(rfq_id, request, by_id, recorded)

            recommendation = build_recommendation(rfq_id, required, quotes, recorded)
            deviation = self._deviates(request, quotes, recorded, recommendation)
            price_edited = any(
                line.price_overrides is not None
                and line.price_overrides != by_id[line.quote_id].prices
                for line in request.allocations
            )

            if (deviation or price_edited) and request.reason is None:
                logger.warning(
                    "finalize_reason_missing",
                    rfq_id=rfq_id,
                    deviation=deviation,
                    price_edited=price_edited,
                )
                raise ValidationError(
                    code="REASON_REQUIRED",
                    message="A reason is required when the allocation deviates from the recommendation or prices are edited",
                    details={"deviation": deviation, "price_edited": price_edited},
                )

            entries = [
                self._build_entry(line, by_id[line.quote_id], deltas[line.quote_id])
                for line in request.allocations
                if deltas[line.quote_id].total > 0
            ]
            if not entries:
                raise ValidationError(
                    code="NOTHING_TO_COMMIT",
                    message="Snapshot adds no containers beyond what is already allocated",
                    details={"already_allocated": recorded_sum},
                )

            batch_id = str(uuid4())
            records = self.ledger_service.append_batch(
                rfq_id,
                entries,
                reason=request.reason,
                batch_id=batch_id,
            )

            total = recorded_sum + sum(entry.delta_home + entry.delta_moowr for entry in entries)
            closed = total == required
            if closed:
                rfq = self.rfq_service.close(rfq_id)

        result = FinalizeResult(
            rfq_id=rfq_id,
            closed=closed,
            total_allocated=total,
            required_containers=required,
            remaining=required - total,
            deviation=deviation,
            price_edited=price_edited,
            batch_id=batch_id,
            records=records,
        )

        logger.info(
            "rfq_finalized" if closed else "rfq_partially_allocated",
            rfq_id=rfq_id,
            batch_id=batch_id,
            total_allocated=total,
            required=required,
            deviation=deviation,
            price_edited=price_edited,
        )

        self._notify(rfq, result, recommendation, request.reason, quotes)
        return result

    # ===================
    # HELPERS
    # ===================

    def _heal_unclosed(self, rfq: RFQResponse, recorded_sum: int) -> None:
        """Ledger is full but the status update never landed: close now."""
        logger.warning(
            "rfq_closing_fully_allocated",
            rfq_id=rfq.id,
            recorded=recorded_sum,
            required=rfq.number_of_containers,
        )
        if rfq.status == RFQStatus.EVALUATION:
            self.rfq_service.close(rfq.id)
        raise AlreadyFinalizedError(rfq.id, "finalize")

    def _compute_deltas(
        self,
        rfq_id: str,
        request: FinalizeRequest,
        quotes: dict[str, QuoteResponse],
        recorded: dict[str, AllocationSplit],
    ) -> dict[str, AllocationSplit]:
        deltas = {}
        for line in request.allocations:
            if line.quote_id not in quotes:
                raise ValidationError(
                    code="UNKNOWN_QUOTE",
                    message="Quote does not belong to this RFQ",
                    details={"rfq_id": rfq_id, "quote_id": line.quote_id},
                )

            current = recorded.get(line.quote_id, AllocationSplit())
            delta_home = line.containers_home - current.home
            delta_moowr = line.containers_moowr - current.moowr
            if delta_home < 0 or delta_moowr < 0:
                raise ValidationError(
                    code="NEGATIVE_ALLOCATION",
                    message="Snapshot cannot reduce an existing allocation",
                    details={
                        "quote_id": line.quote_id,
                        "recorded_home": current.home,
                        "recorded_moowr": current.moowr,
                        "proposed_home": line.containers_home,
                        "proposed_moowr": line.containers_moowr,
                    },
                )
            deltas[line.quote_id] = AllocationSplit(home=delta_home, moowr=delta_moowr)
        return deltas

    def _deviates(
        self,
        request: FinalizeRequest,
        quotes: list[QuoteResponse],
        recorded: dict[str, AllocationSplit],
        recommendation: Recommendation,
    ) -> bool:
        proposed = {line.quote_id: line.split for line in request.allocations}
        for quote in quotes:
            split = proposed[quote.id] if quote.id in proposed else recorded.get(quote.id, AllocationSplit())
            if (split.home, split.moowr) != recommendation.containers_for(quote.id):
                return True
        return False

    def _build_entry(self, line: SnapshotLine, quote: QuoteResponse, delta: AllocationSplit) -> LedgerEntry:
        edited = line.price_overrides is not None and line.price_overrides != quote.prices
        # Edited prices are costed at the rate the quote was priced with
        totals = compute_totals(line.price_overrides, quote.fx_rate) if edited else quote.totals
        return LedgerEntry(
            quote_id=quote.id,
            delta_home=delta.home,
            delta_moowr=delta.moowr,
            unit_cost_home=totals.total_home,
            unit_cost_moowr=totals.total_moowr,
            price_edited=edited,
        )

    def _notify(
        self,
        rfq: RFQResponse,
        result: FinalizeResult,
        recommendation: Recommendation,
        reason: Optional[str],
        quotes: list[QuoteResponse],
    ) -> None:
        """Best effort; failures are logged only."""
        if result.deviation or result.price_edited:
            try:
                notify_allocation_deviation(rfq, result, recommendation, reason)
            except AppError as e:
                logger.error("deviation_notification_failed", rfq_id=rfq.id, error=str(e))

        if result.closed:
            try:
                allocation = self.ledger_service.get_effective_allocation(rfq.id)
                notify_rfq_closed(rfq, allocation, quotes)
            except AppError as e:
                logger.error("closure_notification_failed", rfq_id=rfq.id, error=str(e))


# Singleton instance
_finalization_service: Optional[FinalizationService] = None


def get_finalization_service() -> FinalizationService:
    """Get or create FinalizationService instance."""
    global _finalization_service
    if _finalization_service is None:
        _finalization_service = FinalizationService()
    return _finalization_service
