"""
Unit tests for AllocationLedgerService.

Run: pytest tests/unit/test_allocation_ledger_service.py -v
"""

import pytest
from decimal import Decimal

from models.allocation import LedgerEntry
from services.allocation_ledger_service import AllocationLedgerService
from exceptions import (
    AlreadyFinalizedError,
    CapacityExceededError,
    DatabaseError,
    UpstreamUnavailableError,
    ValidationError,
)
from tests.factories import AllocationFactory, QuoteFactory, RFQFactory


@pytest.fixture
def seeded(mock_db):
    """RFQ needing 10, V1 offering 6, V2 offering 8."""
    rfq = RFQFactory.create(number_of_containers=10)
    q1 = QuoteFactory.create(rfq["id"], vendor_name="V1", number_of_containers=6, total_home=100, total_moowr=120)
    q2 = QuoteFactory.create(rfq["id"], vendor_name="V2", number_of_containers=8, total_home=110, total_moowr=90)
    mock_db.set_table_data("rfqs", [rfq])
    mock_db.set_table_data("quotes", [q1, q2])
    return rfq, q1, q2


class TestLedgerQueries:
    """Tests for recorded totals and history"""

    def test_recorded_totals_sum_records(self, mock_db, seeded):
        """Should sum every record per quote and scheme."""
        # Arrange
        rfq, q1, q2 = seeded
        mock_db.set_table_data("allocations", [
            AllocationFactory.create(rfq["id"], q1["id"], containers_home=2),
            AllocationFactory.create(rfq["id"], q1["id"], containers_home=1, containers_moowr=1),
            AllocationFactory.create(rfq["id"], q2["id"], vendor_name="V2", containers_moowr=3),
        ])
        service = AllocationLedgerService()

        # Act
        totals = service.recorded_totals(rfq["id"])

        # Assert
        assert (totals[q1["id"]].home, totals[q1["id"]].moowr) == (3, 1)
        assert (totals[q2["id"]].home, totals[q2["id"]].moowr) == (0, 3)
        assert service.recorded_total(rfq["id"]) == 7

    def test_recorded_totals_empty(self, mock_db, seeded):
        """Should return no totals before anything is committed."""
        rfq, _, _ = seeded

        assert AllocationLedgerService().recorded_totals(rfq["id"]) == {}

    def test_history_is_oldest_first(self, mock_db, seeded):
        """Should list records in commit order."""
        rfq, q1, q2 = seeded
        first = AllocationFactory.create(rfq["id"], q1["id"], containers_home=1)
        second = AllocationFactory.create(rfq["id"], q2["id"], containers_moowr=1)
        mock_db.set_table_data("allocations", [second, first])

        history = AllocationLedgerService().get_history(rfq["id"])

        assert [r.id for r in history] == [first["id"], second["id"]]

    def test_effective_allocation_reports_remaining(self, mock_db, seeded):
        """Should report effective totals with vendor names and remaining count."""
        rfq, q1, _ = seeded
        mock_db.set_table_data("allocations", [
            AllocationFactory.create(rfq["id"], q1["id"], containers_home=4),
        ])

        result = AllocationLedgerService().get_effective_allocation(rfq["id"])

        assert result.total_allocated == 4
        assert result.remaining == 6
        assert result.allocations[0].vendor_name == "V1"

    def test_history_database_failure(self, mock_db, seeded):
        """Should surface a failed read as a retryable upstream error."""
        rfq, _, _ = seeded
        mock_db.fail_on("allocations", "select")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            AllocationLedgerService().get_history(rfq["id"])

        assert isinstance(exc_info.value, DatabaseError)
        assert exc_info.value.status_code == 503
        assert exc_info.value.details["retryable"] is True
        assert exc_info.value.details["operation"] == "select"


class TestLedgerAppend:
    """Tests for append() and append_batch()"""

    def test_append_writes_record(self, mock_db, seeded):
        """Should store one record with the increment."""
        rfq, q1, _ = seeded
        service = AllocationLedgerService()

        record = service.append(rfq["id"], q1["id"], 2, 1, reason="split")

        assert (record.containers_home, record.containers_moowr) == (2, 1)
        assert record.vendor_name == "V1"
        assert record.reason == "split"
        assert service.recorded_total(rfq["id"]) == 3

    def test_batch_shares_batch_id(self, mock_db, seeded):
        """Should tag every record of a batch with the same batch id."""
        rfq, q1, q2 = seeded

        records = AllocationLedgerService().append_batch(
            rfq["id"],
            [
                LedgerEntry(quote_id=q1["id"], delta_home=2, unit_cost_home=Decimal("100")),
                LedgerEntry(quote_id=q2["id"], delta_moowr=8, unit_cost_moowr=Decimal("90")),
            ],
            batch_id="batch-1",
        )

        assert [r.batch_id for r in records] == ["batch-1", "batch-1"]
        assert records[0].unit_cost_home == Decimal("100")

    def test_negative_increment_rejected(self, mock_db, seeded):
        """Should refuse to retract containers."""
        rfq, q1, _ = seeded

        with pytest.raises(ValidationError) as exc_info:
            AllocationLedgerService().append(rfq["id"], q1["id"], -1, 0)

        assert exc_info.value.code == "NEGATIVE_ALLOCATION"

    def test_zero_increment_rejected(self, mock_db, seeded):
        """Should refuse an increment that adds nothing."""
        rfq, q1, _ = seeded

        with pytest.raises(ValidationError) as exc_info:
            AllocationLedgerService().append(rfq["id"], q1["id"], 0, 0)

        assert exc_info.value.code == "ZERO_ALLOCATION"

    def test_foreign_quote_rejected(self, mock_db, seeded):
        """Should refuse a quote that belongs to another RFQ."""
        rfq, _, _ = seeded
        other = QuoteFactory.create("other-rfq")
        mock_db.rows("quotes").append(other)

        with pytest.raises(ValidationError) as exc_info:
            AllocationLedgerService().append(rfq["id"], other["id"], 1, 0)

        assert exc_info.value.code == "UNKNOWN_QUOTE"

    def test_duplicate_quote_in_batch_rejected(self, mock_db, seeded):
        """Should refuse two entries for the same quote."""
        rfq, q1, _ = seeded

        with pytest.raises(ValidationError):
            AllocationLedgerService().append_batch(rfq["id"], [
                LedgerEntry(quote_id=q1["id"], delta_home=1),
                LedgerEntry(quote_id=q1["id"], delta_moowr=1),
            ])

        assert mock_db.rows("allocations") == []

    def test_quote_offer_exceeded(self, mock_db, seeded):
        """Should refuse more containers than the quote offers, across schemes."""
        rfq, q1, _ = seeded
        service = AllocationLedgerService()
        service.append(rfq["id"], q1["id"], 4, 0)

        with pytest.raises(CapacityExceededError) as exc_info:
            service.append(rfq["id"], q1["id"], 0, 3)

        assert exc_info.value.details["scope"] == "quote"
        assert service.recorded_total(rfq["id"]) == 4

    def test_rfq_requirement_exceeded_writes_nothing(self, mock_db, seeded):
        """Should reject the whole batch when it pushes the RFQ past its requirement."""
        rfq, q1, q2 = seeded

        with pytest.raises(CapacityExceededError) as exc_info:
            AllocationLedgerService().append_batch(rfq["id"], [
                LedgerEntry(quote_id=q1["id"], delta_home=6),
                LedgerEntry(quote_id=q2["id"], delta_moowr=5),
            ])

        assert exc_info.value.details["scope"] == "rfq"
        assert exc_info.value.details["attempted"] == 11
        assert mock_db.rows("allocations") == []

    def test_closed_rfq_rejected(self, mock_db):
        """Should refuse appends on a closed RFQ."""
        rfq = RFQFactory.create(status="closed")
        quote = QuoteFactory.create(rfq["id"])
        mock_db.set_table_data("rfqs", [rfq])
        mock_db.set_table_data("quotes", [quote])

        with pytest.raises(AlreadyFinalizedError):
            AllocationLedgerService().append(rfq["id"], quote["id"], 1, 0)

    def test_insert_failure_is_database_error(self, mock_db, seeded):
        """Should surface a failed insert as a retryable upstream error with nothing stored."""
        rfq, q1, _ = seeded
        mock_db.fail_on("allocations", "insert")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            AllocationLedgerService().append(rfq["id"], q1["id"], 1, 0)

        assert exc_info.value.code == "DATABASE_ERROR"
        assert exc_info.value.details["retryable"] is True

        assert mock_db.rows("allocations") == []

    def test_empty_batch_rejected(self, mock_db, seeded):
        """Should refuse a batch with no entries."""
        rfq, _, _ = seeded

        with pytest.raises(ValidationError) as exc_info:
            AllocationLedgerService().append_batch(rfq["id"], [])

        assert exc_info.value.code == "NOTHING_TO_COMMIT"
