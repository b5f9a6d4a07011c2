"""
RFQ service: creation, lookup and the lifecycle state machine.

Status is only ever changed through transition_status(), which enforces
initial -> evaluation -> closed and treats closed as terminal.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.rfq import (
    RFQCreate,
    RFQResponse,
    RFQStatus,
    is_valid_status_transition,
)
from exceptions import (
    AlreadyFinalizedError,
    RFQNotFoundError,
    InvalidStatusTransitionError,
    DatabaseError,
)

logger = structlog.get_logger(__name__)


class RFQService:
    """
    RFQ business logic.

    Handles creation, reads and status transitions. RFQs are never
    deleted and their required container count is never updated.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "rfqs"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[RFQStatus] = None,
        vendor_name: Optional[str] = None,
    ) -> tuple[list[RFQResponse], int]:
        """
        Get RFQs, newest first.

        Args:
            page: Page number (1-indexed)
            page_size: Items per page
            status: Filter by lifecycle status
            vendor_name: Only RFQs this vendor was invited to

        Returns:
            Tuple of (rfqs, total_count)
        """
        logger.info(
            "getting_rfqs",
            page=page,
            page_size=page_size,
            status=status,
            vendor_name=vendor_name,
        )

        try:
            query = self.db.table(self.table).select("*", count="exact")

            if status:
                query = query.eq("status", status.value)
            if vendor_name:
                query = query.contains("vendors", [vendor_name])

            offset = (page - 1) * page_size
            query = query.order("rfq_number", desc=True).range(offset, offset + page_size - 1)

            result = query.execute()
            rfqs = [self._row_to_response(row) for row in result.data]
            total = result.count or 0

            logger.info("rfqs_retrieved", count=len(rfqs), total=total)
            return rfqs, total

        except Exception as e:
            logger.error("get_rfqs_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, rfq_id: str) -> RFQResponse:
        """
        Get a single RFQ.

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
        """
        logger.debug("getting_rfq", rfq_id=rfq_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", rfq_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_rfq_failed", rfq_id=rfq_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise RFQNotFoundError(rfq_id)

        return self._row_to_response(result.data[0])

    def next_rfq_number(self) -> int:
        """Next sequential RFQ number (max + 1, starting at 1)."""
        try:
            result = (
                self.db.table(self.table)
                .select("rfq_number")
                .order("rfq_number", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("next_rfq_number_failed", error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return 1
        return int(result.data[0]["rfq_number"]) + 1

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: RFQCreate) -> RFQResponse:
        """
        Create a new RFQ in the initial state.

        Args:
            data: RFQ creation data

        Returns:
            Created RFQResponse
        """
        rfq_number = self.next_rfq_number()

        logger.info(
            "creating_rfq",
            rfq_number=rfq_number,
            number_of_containers=data.number_of_containers,
            vendors=len(data.vendors),
        )

        row = data.model_dump(mode="json")
        row["rfq_number"] = rfq_number
        row["status"] = RFQStatus.INITIAL.value

        try:
            result = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("create_rfq_failed", rfq_number=rfq_number, error=str(e))
            raise DatabaseError("insert", str(e))

        rfq = self._row_to_response(result.data[0])
        logger.info("rfq_created", rfq_id=rfq.id, rfq_number=rfq.rfq_number)
        return rfq

    # ===================
    # LIFECYCLE
    # ===================

    def ensure_open(self, rfq: RFQResponse, operation: str) -> None:
        """
        Reject mutations against a closed RFQ.

        Raises:
            AlreadyFinalizedError: If the RFQ is closed
        """
        if rfq.is_closed:
            logger.warning("rfq_already_finalized", rfq_id=rfq.id, operation=operation)
            raise AlreadyFinalizedError(rfq.id, operation)

    def transition_status(self, rfq_id: str, new_status: RFQStatus) -> RFQResponse:
        """
        Move an RFQ to a new status.

        The update is conditional on the status read here, so a concurrent
        transition cannot be overwritten.

        Raises:
            RFQNotFoundError: If RFQ doesn't exist
            InvalidStatusTransitionError: If transition is not allowed
        """
        existing = self.get_by_id(rfq_id)
        current_status = existing.status

        if not is_valid_status_transition(current_status, new_status):
            raise InvalidStatusTransitionError(
                current_status=current_status.value,
                new_status=new_status.value
            )

        try:
            result = (
                self.db.table(self.table)
                .update({"status": new_status.value})
                .eq("id", rfq_id)
                .eq("status", current_status.value)
                .execute()
            )
        except Exception as e:
            logger.error("rfq_status_update_failed", rfq_id=rfq_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            # Status moved underneath us
            raise InvalidStatusTransitionError(
                current_status=current_status.value,
                new_status=new_status.value
            )

        logger.info(
            "rfq_status_updated",
            rfq_id=rfq_id,
            from_status=current_status.value,
            to_status=new_status.value,
        )
        return self._row_to_response(result.data[0])

    def mark_quote_received(self, rfq: RFQResponse) -> RFQResponse:
        """initial -> evaluation on the first accepted quote; no-op otherwise."""
        if rfq.status == RFQStatus.INITIAL:
            return self.transition_status(rfq.id, RFQStatus.EVALUATION)
        return rfq

    def close(self, rfq_id: str) -> RFQResponse:
        """evaluation -> closed. Only the finalization coordinator calls this."""
        return self.transition_status(rfq_id, RFQStatus.CLOSED)

    def _row_to_response(self, row: dict) -> RFQResponse:
        """Convert database row to RFQResponse."""
        return RFQResponse(
            id=row["id"],
            rfq_number=row["rfq_number"],
            number_of_containers=row["number_of_containers"],
            status=row["status"],
            item_description=row["item_description"],
            company_name=row["company_name"],
            material_po_number=row["material_po_number"],
            supplier_name=row["supplier_name"],
            port_of_loading=row["port_of_loading"],
            port_of_destination=row["port_of_destination"],
            container_type=row["container_type"],
            incoterms=row.get("incoterms"),
            cargo_weight_tons=row.get("cargo_weight_tons"),
            cargo_readiness_from=row.get("cargo_readiness_from"),
            cargo_readiness_to=row.get("cargo_readiness_to"),
            description=row.get("description"),
            vendors=row.get("vendors") or [],
            created_by=row.get("created_by"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )


# Singleton instance
_rfq_service: Optional[RFQService] = None


def get_rfq_service() -> RFQService:
    """Get or create RFQService instance."""
    global _rfq_service
    if _rfq_service is None:
        _rfq_service = RFQService()
    return _rfq_service
