"""
Test data factories.

Produce rows shaped like the database tables, plus model helpers for
the pure recommendation tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from models.quote import PRICE_FIELDS, QuotePriceComponents, QuoteResponse
from services.cost_model import compute_totals


_BASE_TIME = datetime(2025, 12, 1, tzinfo=timezone.utc)


class RFQFactory:
    """
    Factory for creating test RFQ rows.

    Usage:
        rfq = RFQFactory.create(number_of_containers=10)
        rfq = RFQFactory.create(status="closed", vendors=["V1", "V2"])
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        id: Optional[str] = None,
        rfq_number: Optional[int] = None,
        number_of_containers: int = 10,
        status: str = "evaluation",
        vendors: Optional[list] = None,
        created_at: Optional[str] = None,
    ) -> dict:
        """
        Create a single RFQ dict.

        Args:
            id: RFQ UUID (auto-generated if not provided)
            rfq_number: Sequential number (auto-generated if not provided)
            number_of_containers: Required containers
            status: initial, evaluation or closed
            vendors: Invited vendor codes (empty = open)
            created_at: Timestamp (auto-generated if not provided)

        Returns:
            RFQ dict matching database schema
        """
        counter = cls._next_counter()

        return {
            "id": id or str(uuid4()),
            "rfq_number": rfq_number or counter,
            "number_of_containers": number_of_containers,
            "status": status,
            "item_description": f"Porcelain tiles lot {counter}",
            "company_name": "Acme Ceramics",
            "material_po_number": f"PO-{1000 + counter}",
            "supplier_name": "Foshan Tiles Co",
            "port_of_loading": "Shanghai",
            "port_of_destination": "Nhava Sheva",
            "container_type": "20' OT",
            "incoterms": "FOB",
            "cargo_weight_tons": None,
            "cargo_readiness_from": None,
            "cargo_readiness_to": None,
            "description": None,
            "vendors": vendors or [],
            "created_by": "ops",
            "created_at": created_at or (_BASE_TIME + timedelta(minutes=counter)).isoformat(),
            "updated_at": None,
        }

    @classmethod
    def create_payload(cls, **overrides) -> dict:
        """Request body for POST /api/rfqs."""
        payload = {
            "number_of_containers": 10,
            "item_description": "Porcelain tiles",
            "company_name": "Acme Ceramics",
            "material_po_number": "PO-2001",
            "supplier_name": "Foshan Tiles Co",
            "port_of_loading": "Shanghai",
            "port_of_destination": "Nhava Sheva",
            "container_type": "20' OT",
        }
        payload.update(overrides)
        return payload


class QuoteFactory:
    """
    Factory for creating test quote rows.

    Totals are given directly, or computed from sea freight at the rate:
        quote = QuoteFactory.create(rfq_id, vendor_name="V1", total_home=100, total_moowr=120)
        quote = QuoteFactory.create(rfq_id, sea_freight=1000, fx_rate=83)
    """

    _counter = 0

    @classmethod
    def _next_counter(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def create(
        cls,
        rfq_id: str,
        id: Optional[str] = None,
        vendor_name: Optional[str] = None,
        number_of_containers: int = 10,
        total_home=None,
        total_moowr=None,
        sea_freight=0,
        fx_rate=1,
        created_at: Optional[str] = None,
        **prices,
    ) -> dict:
        """
        Create a single quote dict.

        Without explicit totals, they come from the cost model.
        """
        counter = cls._next_counter()

        components = QuotePriceComponents(sea_freight_per_container=Decimal(str(sea_freight)), **prices)
        totals = compute_totals(components, fx_rate)

        row = {
            "id": id or str(uuid4()),
            "rfq_id": rfq_id,
            "vendor_name": vendor_name or f"VENDOR{counter}",
            "number_of_containers": number_of_containers,
            **components.to_row(),
            "fx_rate": str(totals.fx_rate),
            "total_home": str(totals.total_home if total_home is None else total_home),
            "total_moowr": str(totals.total_moowr if total_moowr is None else total_moowr),
            "shipping_line_name": "MSC",
            "container_type": "20' OT",
            "vessel_name": None,
            "vessel_etd": None,
            "vessel_eta": None,
            "transship_or_direct": "direct",
            "quote_validity_date": None,
            "message": None,
            "created_at": created_at or (_BASE_TIME + timedelta(hours=counter)).isoformat(),
            "updated_at": None,
        }
        return row

    @classmethod
    def build(cls, rfq_id: str = "rfq-1", **kwargs) -> QuoteResponse:
        """Same as create(), as a QuoteResponse."""
        row = cls.create(rfq_id, **kwargs)
        return QuoteResponse(
            id=row["id"],
            rfq_id=row["rfq_id"],
            vendor_name=row["vendor_name"],
            number_of_containers=row["number_of_containers"],
            prices=QuotePriceComponents.from_row(row),
            fx_rate=Decimal(row["fx_rate"]),
            total_home=Decimal(row["total_home"]),
            total_moowr=Decimal(row["total_moowr"]),
            created_at=row["created_at"],
        )

    @classmethod
    def create_payload(cls, vendor_name: str = "V1", number_of_containers: int = 5, **prices) -> dict:
        """Request body for POST /api/rfqs/{id}/quotes."""
        price_block = {"sea_freight_per_container": "1000"}
        price_block.update({k: str(v) for k, v in prices.items() if k in PRICE_FIELDS})
        return {
            "vendor_name": vendor_name,
            "number_of_containers": number_of_containers,
            "prices": price_block,
            "shipping_line_name": "MSC",
            "transship_or_direct": "direct",
        }


class AllocationFactory:
    """Factory for ledger rows."""

    _counter = 0

    @classmethod
    def create(
        cls,
        rfq_id: str,
        quote_id: str,
        vendor_name: str = "V1",
        containers_home: int = 0,
        containers_moowr: int = 0,
        batch_id: Optional[str] = None,
    ) -> dict:
        cls._counter += 1
        return {
            "id": str(uuid4()),
            "rfq_id": rfq_id,
            "quote_id": quote_id,
            "vendor_name": vendor_name,
            "containers_home": containers_home,
            "containers_moowr": containers_moowr,
            "unit_cost_home": None,
            "unit_cost_moowr": None,
            "price_edited": False,
            "reason": None,
            "batch_id": batch_id or str(uuid4()),
            "created_at": (_BASE_TIME + timedelta(days=1, minutes=cls._counter)).isoformat(),
        }
