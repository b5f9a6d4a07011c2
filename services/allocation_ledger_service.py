"""
Allocation Ledger Service - append-only record of committed allocations.

Each record is an increment for one quote under both schemes. The
effective allocation is the sum of all records; nothing is updated or
deleted, so retraction cannot be expressed and zero/negative increments
are rejected outright.

Appends hold the per-RFQ lock across read-validate-insert, and every
batch is written with a single insert statement (all rows or none).
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Optional
from uuid import uuid4

import structlog

from config import get_supabase_client
from models.allocation import (
    AllocationRecordResponse,
    AllocationSplit,
    EffectiveAllocationLine,
    EffectiveAllocationResponse,
    LedgerEntry,
)
from services.quote_service import QuoteService, get_quote_service
from services.rfq_locks import rfq_lock
from services.rfq_service import RFQService, get_rfq_service
from exceptions import (
    AppError,
    CapacityExceededError,
    ValidationError,
    DatabaseError,
)

logger = structlog.get_logger(__name__)


class AllocationLedgerService:
    """
    Allocation ledger business logic.

    Core methods:
    - append / append_batch: validated increments
    - recorded_totals / recorded_total: running sums
    - get_history / get_effective_allocation: query methods for UI
    """

    def __init__(
        self,
        rfq_service: Optional[RFQService] = None,
        quote_service: Optional[QuoteService] = None,
    ):
        self.db = get_supabase_client()
        self.table = "allocations"
        self.rfq_service = rfq_service or get_rfq_service()
        self.quote_service = quote_service or get_quote_service()

    # ===================
    # QUERY METHODS
    # ===================

    def get_history(self, rfq_id: str) -> list[AllocationRecordResponse]:
        """All records for an RFQ, oldest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("rfq_id", rfq_id)
                .order("created_at")
                .order("id")
                .execute()
            )
        except Exception as e:
            logger.error("get_allocation_history_failed", rfq_id=rfq_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [self._row_to_response(row) for row in result.data]

    def recorded_totals(self, rfq_id: str) -> dict[str, AllocationSplit]:
        """Sum of all records per quote, in first-commit order."""
        totals: dict[str, AllocationSplit] = OrderedDict()
        for record in self.get_history(rfq_id):
            split = totals.setdefault(record.quote_id, AllocationSplit())
            split.home += record.containers_home
            split.moowr += record.containers_moowr
        return totals

    def recorded_total(self, rfq_id: str) -> int:
        """Containers allocated to an RFQ across all quotes and schemes."""
        return sum(split.total for split in self.recorded_totals(rfq_id).values())

    def get_effective_allocation(self, rfq_id: str) -> EffectiveAllocationResponse:
        """
        Effective allocation per quote plus RFQ coverage.

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
        """
        rfq = self.rfq_service.get_by_id(rfq_id)
        vendors = {q.id: q.vendor_name for q in self.quote_service.get_quotes_for_rfq(rfq_id)}
        totals = self.recorded_totals(rfq_id)
        allocated = sum(split.total for split in totals.values())

        return EffectiveAllocationResponse(
            rfq_id=rfq_id,
            status=rfq.status,
            required_containers=rfq.number_of_containers,
            total_allocated=allocated,
            remaining=rfq.number_of_containers - allocated,
            allocations=[
                EffectiveAllocationLine(
                    quote_id=quote_id,
                    vendor_name=vendors.get(quote_id, ""),
                    containers_home=split.home,
                    containers_moowr=split.moowr,
                )
                for quote_id, split in totals.items()
            ],
        )

    # ===================
    # APPEND METHODS
    # ===================

    def append(
        self,
        rfq_id: str,
        quote_id: str,
        delta_home: int,
        delta_moowr: int,
        reason: Optional[str] = None,
    ) -> AllocationRecordResponse:
        """Append a single increment. See append_batch for validation rules."""
        records = self.append_batch(
            rfq_id,
            [LedgerEntry(quote_id=quote_id, delta_home=delta_home, delta_moowr=delta_moowr)],
            reason=reason,
        )
        return records[0]

    def append_batch(
        self,
        rfq_id: str,
        entries: list[LedgerEntry],
        reason: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> list[AllocationRecordResponse]:
        """
        Validate and append increments as one atomic write.

        Args:
            rfq_id: RFQ UUID
            entries: One increment per quote
            reason: Deviation reason stored on every record
            batch_id: Groups the records (generated if omitted)

        Returns:
            Created records, in entry order

        Raises:
            ValidationError: Negative or zero increment, unknown or repeated quote
            AlreadyFinalizedError: If the RFQ is closed
            CapacityExceededError: If the RFQ or a quote would be over-allocated
        """
        if not entries:
            raise ValidationError(
                code="NOTHING_TO_COMMIT",
                message="At least one allocation increment is required",
            )

        batch_id = batch_id or str(uuid4())

        with rfq_lock(rfq_id):
            rfq = self.rfq_service.get_by_id(rfq_id)
            self.rfq_service.ensure_open(rfq, "append_allocation")

            quotes = {q.id: q for q in self.quote_service.get_quotes_for_rfq(rfq_id)}
            recorded = self.recorded_totals(rfq_id)

            seen: set[str] = set()
            batch_total = 0
            for entry in entries:
                self._validate_entry(rfq_id, entry, quotes, seen)
                seen.add(entry.quote_id)

                delta = entry.delta_home + entry.delta_moowr
                quote = quotes[entry.quote_id]
                committed = recorded.get(entry.quote_id, AllocationSplit()).total
                if committed + delta > quote.number_of_containers:
                    logger.warning(
                        "allocation_exceeds_quote_offer",
                        rfq_id=rfq_id,
                        quote_id=quote.id,
                        offered=quote.number_of_containers,
                        attempted=committed + delta,
                    )
                    raise CapacityExceededError(
                        message=f"Allocation for {quote.vendor_name} would exceed the {quote.number_of_containers} containers offered",
                        scope="quote",
                        limit=quote.number_of_containers,
                        attempted=committed + delta,
                        details={"quote_id": quote.id, "vendor_name": quote.vendor_name},
                    )
                batch_total += delta

            rfq_total = sum(split.total for split in recorded.values())
            if rfq_total + batch_total > rfq.number_of_containers:
                logger.warning(
                    "allocation_exceeds_requirement",
                    rfq_id=rfq_id,
                    required=rfq.number_of_containers,
                    attempted=rfq_total + batch_total,
                )
                raise CapacityExceededError(
                    message=f"Allocation would exceed the {rfq.number_of_containers} containers required",
                    scope="rfq",
                    limit=rfq.number_of_containers,
                    attempted=rfq_total + batch_total,
                    details={"rfq_id": rfq_id, "already_allocated": rfq_total},
                )

            rows = [
                {
                    "rfq_id": rfq_id,
                    "quote_id": entry.quote_id,
                    "vendor_name": quotes[entry.quote_id].vendor_name,
                    "containers_home": entry.delta_home,
                    "containers_moowr": entry.delta_moowr,
                    "unit_cost_home": self._decimal_str(entry.unit_cost_home),
                    "unit_cost_moowr": self._decimal_str(entry.unit_cost_moowr),
                    "price_edited": entry.price_edited,
                    "reason": reason,
                    "batch_id": batch_id,
                }
                for entry in entries
            ]

            try:
                result = self.db.table(self.table).insert(rows).execute()
            except AppError:
                raise
            except Exception as e:
                logger.error("append_allocation_failed", rfq_id=rfq_id, batch_id=batch_id, error=str(e))
                raise DatabaseError("insert", str(e))

        records = [self._row_to_response(row) for row in result.data]

        logger.info(
            "allocation_appended",
            rfq_id=rfq_id,
            batch_id=batch_id,
            records=len(records),
            containers=batch_total,
            running_total=rfq_total + batch_total,
            required=rfq.number_of_containers,
        )
        return records

    # ===================
    # HELPERS
    # ===================

    def _validate_entry(self, rfq_id: str, entry: LedgerEntry, quotes: dict, seen: set) -> None:
        if entry.delta_home < 0 or entry.delta_moowr < 0:
            raise ValidationError(
                code="NEGATIVE_ALLOCATION",
                message="Allocation increments cannot be negative; the ledger cannot retract",
                details={
                    "quote_id": entry.quote_id,
                    "delta_home": entry.delta_home,
                    "delta_moowr": entry.delta_moowr,
                },
            )
        if entry.delta_home + entry.delta_moowr == 0:
            raise ValidationError(
                code="ZERO_ALLOCATION",
                message="Allocation increment must add at least one container",
                details={"quote_id": entry.quote_id},
            )
        if entry.quote_id not in quotes:
            raise ValidationError(
                code="UNKNOWN_QUOTE",
                message="Quote does not belong to this RFQ",
                details={"rfq_id": rfq_id, "quote_id": entry.quote_id},
            )
        if entry.quote_id in seen:
            raise ValidationError(
                code="DUPLICATE_QUOTE",
                message="A quote may appear only once per allocation batch",
                details={"quote_id": entry.quote_id},
            )

    @staticmethod
    def _decimal_str(value: Optional[Decimal]) -> Optional[str]:
        return str(value) if value is not None else None

    def _row_to_response(self, row: dict) -> AllocationRecordResponse:
        """Convert database row to AllocationRecordResponse."""
        return AllocationRecordResponse(
            id=row["id"],
            rfq_id=row["rfq_id"],
            quote_id=row["quote_id"],
            vendor_name=row["vendor_name"],
            containers_home=row.get("containers_home") or 0,
            containers_moowr=row.get("containers_moowr") or 0,
            unit_cost_home=row.get("unit_cost_home"),
            unit_cost_moowr=row.get("unit_cost_moowr"),
            price_edited=bool(row.get("price_edited")),
            reason=row.get("reason"),
            batch_id=row.get("batch_id"),
            created_at=row["created_at"],
        )


# ===================
# SINGLETON
# ===================

_ledger_service: Optional[AllocationLedgerService] = None


def get_allocation_ledger_service() -> AllocationLedgerService:
    """Get or create AllocationLedgerService instance."""
    global _ledger_service
    if _ledger_service is None:
        _ledger_service = AllocationLedgerService()
    return _ledger_service
