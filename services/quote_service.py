"""
Quote service: vendor quote intake and lookup.

Each quote caches the FX rate and both scheme totals it was priced with.
The FX fetch happens before the per-RFQ lock is taken; the closed check
and the write happen under it, so a quote can never land on an RFQ that
closed while the request was in flight.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import structlog

from config import get_supabase_client
from integrations.exchange_rate import resolve_fx_rate
from models.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuotePriceComponents,
    QuoteTotals,
)
from services.cost_model import compute_totals
from services.rfq_locks import rfq_lock
from services.rfq_service import RFQService, get_rfq_service
from exceptions import (
    AppError,
    CapacityExceededError,
    QuoteNotFoundError,
    VendorNotInvitedError,
    DatabaseError,
)

logger = structlog.get_logger(__name__)


# Descriptive fields copied straight through to the row
DETAIL_FIELDS = (
    "shipping_line_name",
    "container_type",
    "vessel_name",
    "vessel_etd",
    "vessel_eta",
    "transship_or_direct",
    "quote_validity_date",
    "message",
)


class QuoteService:
    """
    Quote business logic.

    One live quote per (RFQ, vendor). Resubmission replaces the previous
    quote in place, keeping its id so ledger records stay attached.
    """

    def __init__(self, rfq_service: Optional[RFQService] = None):
        self.db = get_supabase_client()
        self.table = "quotes"
        self.allocations_table = "allocations"
        self.rfq_service = rfq_service or get_rfq_service()

    # ===================
    # READ OPERATIONS
    # ===================

    def get_quotes_for_rfq(self, rfq_id: str) -> list[QuoteResponse]:
        """
        All quotes for an RFQ in stable submission order.

        Order is (created_at, id); the recommendation tie-break relies on it.
        """
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
            logger.error("get_quotes_failed", rfq_id=rfq_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [self._row_to_response(row) for row in result.data]

    def get_quote(self, quote_id: str) -> QuoteResponse:
        """
        Get a single quote.

        Raises:
            QuoteNotFoundError: If quote doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", quote_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_quote_failed", quote_id=quote_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise QuoteNotFoundError(quote_id)
        return self._row_to_response(result.data[0])

    def get_vendor_quote(self, rfq_id: str, vendor_name: str) -> Optional[QuoteResponse]:
        """The vendor's live quote for an RFQ, if any."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("rfq_id", rfq_id)
                .eq("vendor_name", vendor_name)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_vendor_quote_failed",
                rfq_id=rfq_id,
                vendor_name=vendor_name,
                error=str(e),
            )
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return self._row_to_response(result.data[0])

    # ===================
    # WRITE OPERATIONS
    # ===================

    def submit_quote(self, rfq_id: str, data: QuoteCreate) -> QuoteResponse:
        """
        Submit or replace a vendor's quote.

        Args:
            rfq_id: RFQ UUID
            data: Quote payload

        Returns:
            Stored QuoteResponse

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
            AlreadyFinalizedError: If the RFQ is closed
            VendorNotInvitedError: If the vendor isn't on the RFQ's list
            CapacityExceededError: If a replacement offers fewer containers
                than are already committed against the quote
            FxRateUnavailableError: If no FX rate can be obtained
        """
        rfq = self.rfq_service.get_by_id(rfq_id)
        self.rfq_service.ensure_open(rfq, "submit_quote")

        if not rfq.invites(data.vendor_name):
            logger.warning("vendor_not_invited", rfq_id=rfq_id, vendor_name=data.vendor_name)
            raise VendorNotInvitedError(rfq_id, data.vendor_name)

        # External I/O stays outside the lock
        totals = compute_totals(data.prices, resolve_fx_rate())

        logger.info(
            "submitting_quote",
            rfq_id=rfq_id,
            vendor_name=data.vendor_name,
            containers=data.number_of_containers,
        )

        with rfq_lock(rfq_id):
            rfq = self.rfq_service.get_by_id(rfq_id)
            self.rfq_service.ensure_open(rfq, "submit_quote")

            row = {
                "rfq_id": rfq_id,
                "vendor_name": data.vendor_name,
                "number_of_containers": data.number_of_containers,
                **data.prices.to_row(),
                **self._totals_row(totals),
                **data.model_dump(mode="json", include=set(DETAIL_FIELDS)),
            }

            existing = self.get_vendor_quote(rfq_id, data.vendor_name)
            try:
                if existing:
                    self._ensure_offer_covers_commitments(existing.id, data.number_of_containers)
                    row["updated_at"] = datetime.now(timezone.utc).isoformat()
                    result = (
                        self.db.table(self.table)
                        .update(row)
                        .eq("id", existing.id)
                        .execute()
                    )
                else:
                    result = self.db.table(self.table).insert(row).execute()
            except AppError:
                raise
            except Exception as e:
                logger.error("submit_quote_failed", rfq_id=rfq_id, error=str(e))
                raise DatabaseError("update" if existing else "insert", str(e))

            quote = self._row_to_response(result.data[0])
            self.rfq_service.mark_quote_received(rfq)

        logger.info(
            "quote_submitted",
            rfq_id=rfq_id,
            quote_id=quote.id,
            vendor_name=quote.vendor_name,
            replaced=existing is not None,
            total_home=str(quote.total_home),
            total_moowr=str(quote.total_moowr),
        )
        return quote

    def update_quote(self, quote_id: str, data: QuoteUpdate) -> QuoteResponse:
        """
        Partially update a quote.

        A new prices block re-prices the quote at a fresh FX rate; otherwise
        the cached rate and totals are kept.

        Raises:
            QuoteNotFoundError: If quote doesn't exist
            AlreadyFinalizedError: If the RFQ is closed
            CapacityExceededError: If the new offer is below committed containers
        """
        quote = self.get_quote(quote_id)
        rfq = self.rfq_service.get_by_id(quote.rfq_id)
        self.rfq_service.ensure_open(rfq, "update_quote")

        update = data.model_dump(mode="json", exclude_unset=True, exclude={"prices"})
        if data.prices is not None:
            totals = compute_totals(data.prices, resolve_fx_rate())
            update.update(data.prices.to_row())
            update.update(self._totals_row(totals))

        if not update:
            return quote

        logger.info("updating_quote", quote_id=quote_id, fields=sorted(update))

        with rfq_lock(quote.rfq_id):
            rfq = self.rfq_service.get_by_id(quote.rfq_id)
            self.rfq_service.ensure_open(rfq, "update_quote")

            if data.number_of_containers is not None:
                self._ensure_offer_covers_commitments(quote_id, data.number_of_containers)

            update["updated_at"] = datetime.now(timezone.utc).isoformat()
            try:
                result = (
                    self.db.table(self.table)
                    .update(update)
                    .eq("id", quote_id)
                    .execute()
                )
            except Exception as e:
                logger.error("update_quote_failed", quote_id=quote_id, error=str(e))
                raise DatabaseError("update", str(e))

        logger.info("quote_updated", quote_id=quote_id)
        return self._row_to_response(result.data[0])

    # ===================
    # HELPERS
    # ===================

    def _committed_containers(self, quote_id: str) -> int:
        """Containers already in the ledger for a quote, both schemes."""
        try:
            result = (
                self.db.table(self.allocations_table)
                .select("containers_home, containers_moowr")
                .eq("quote_id", quote_id)
                .execute()
            )
        except Exception as e:
            logger.error("committed_containers_failed", quote_id=quote_id, error=str(e))
            raise DatabaseError("select", str(e))

        return sum(
            int(row.get("containers_home") or 0) + int(row.get("containers_moowr") or 0)
            for row in result.data
        )

    def _ensure_offer_covers_commitments(self, quote_id: str, offered: int) -> None:
        committed = self._committed_containers(quote_id)
        if offered < committed:
            raise CapacityExceededError(
                message="Offered containers cannot drop below containers already allocated",
                scope="quote",
                limit=offered,
                attempted=committed,
                details={"quote_id": quote_id},
            )

    def _totals_row(self, totals: QuoteTotals) -> dict:
        return {
            "fx_rate": str(totals.fx_rate),
            "total_home": str(totals.total_home),
            "total_moowr": str(totals.total_moowr),
        }

    def _row_to_response(self, row: dict) -> QuoteResponse:
        """Convert database row to QuoteResponse."""
        return QuoteResponse(
            id=row["id"],
            rfq_id=row["rfq_id"],
            vendor_name=row["vendor_name"],
            number_of_containers=row["number_of_containers"],
            prices=QuotePriceComponents.from_row(row),
            fx_rate=Decimal(str(row["fx_rate"])),
            total_home=Decimal(str(row["total_home"])),
            total_moowr=Decimal(str(row["total_moowr"])),
            shipping_line_name=row.get("shipping_line_name"),
            container_type=row.get("container_type"),
            vessel_name=row.get("vessel_name"),
            vessel_etd=row.get("vessel_etd"),
            vessel_eta=row.get("vessel_eta"),
            transship_or_direct=row.get("transship_or_direct"),
            quote_validity_date=row.get("quote_validity_date"),
            message=row.get("message"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )


# Singleton instance
_quote_service: Optional[QuoteService] = None


def get_quote_service() -> QuoteService:
    """Get or create QuoteService instance."""
    global _quote_service
    if _quote_service is None:
        _quote_service = QuoteService()
    return _quote_service
