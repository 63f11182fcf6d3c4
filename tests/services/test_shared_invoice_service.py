"""
Tests for shared vendor invoices.

Covers:
- Validation order and nothing written on rejection
- {TYPE}-YYYY-NNN numbering and type normalization
- Equal split rows and vendor metadata
- Edits: re-split, vehicles dropped from the split, metadata merge
- Delete and the in-use guard
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from autoexport_kernel.domain.dtos import ContainerVehicleInput, CostItemInput
from autoexport_kernel.domain.patch import SharedInvoicePatch
from autoexport_kernel.exceptions import (
    DuplicateVehicleError,
    EmptyVehicleListError,
    InvalidAmountError,
    MissingFieldError,
    MissingVendorError,
    SharedInvoiceInUseError,
    SharedInvoiceNotFoundError,
    UnknownVehicleError,
)
from autoexport_kernel.models import SharedInvoice, SharedInvoiceVehicle


@pytest.fixture
def create_shared(shared_invoice_service, vehicles, vendor):
    def _create(**overrides):
        kwargs = dict(
            type="CONTAINER",
            total_amount=Decimal("300000"),
            date=date(2024, 1, 10),
            payment_deadline=date(2024, 2, 10),
            vehicle_ids=[v.id for v in vehicles],
            vendor_id=vendor.id,
        )
        kwargs.update(overrides)
        return shared_invoice_service.create(**kwargs)

    return _create


def _shared_count(session) -> int:
    return session.execute(select(func.count()).select_from(SharedInvoice)).scalar_one()


class TestCreate:
    def test_rows_and_number(self, create_shared, vehicles, vendor):
        shared = create_shared().shared_invoice

        assert shared.invoice_number == "CONTAINER-2024-001"
        assert [row.vehicle_id for row in shared.vehicles] == [v.id for v in vehicles]
        assert {row.allocated_amount for row in shared.vehicles} == {Decimal("100000.00")}
        assert shared.vendor_id == vendor.id

    def test_type_is_normalized(self, create_shared):
        shared = create_shared(type="  forwarder ").shared_invoice

        assert shared.type == "FORWARDER"
        assert shared.invoice_number == "FORWARDER-2024-001"

    def test_numbers_increase_within_type(self, create_shared):
        create_shared()
        second = create_shared().shared_invoice

        assert second.invoice_number == "CONTAINER-2024-002"

    def test_cost_items_kept_in_metadata(self, create_shared):
        shared = create_shared(
            cost_items=[CostItemInput("Ocean freight", Decimal("250000"))]
        ).shared_invoice

        assert shared.cost_items == [{"description": "Ocean freight", "amount": "250000"}]

    @pytest.mark.parametrize(
        "overrides, error",
        [
            ({"type": "  "}, MissingFieldError),
            ({"total_amount": Decimal("0")}, InvalidAmountError),
            ({"total_amount": Decimal("-5")}, InvalidAmountError),
            ({"date": None}, MissingFieldError),
            ({"payment_deadline": None}, MissingFieldError),
            ({"vehicle_ids": []}, EmptyVehicleListError),
            ({"vehicle_ids": [uuid4()]}, UnknownVehicleError),
            ({"vendor_id": None}, MissingVendorError),
        ],
    )
    def test_rejected_requests_write_nothing(self, create_shared, session, overrides, error):
        with pytest.raises(error):
            create_shared(**overrides)

        assert _shared_count(session) == 0

    def test_duplicate_vehicle(self, create_shared, vehicles):
        with pytest.raises(DuplicateVehicleError):
            create_shared(vehicle_ids=[vehicles[0].id, vehicles[0].id])

    def test_vehicle_list_checked_before_vendor(self, create_shared):
        with pytest.raises(EmptyVehicleListError):
            create_shared(vehicle_ids=[], vendor_id=None)

    def test_uneven_split_records_rounded_shares(self, create_shared):
        shared = create_shared(total_amount=Decimal("100")).shared_invoice

        assert sum(row.allocated_amount for row in shared.vehicles) == Decimal("99.99")


class TestUpdate:
    def test_total_change_resplits(
        self, create_shared, shared_invoice_service, cost_service, make_invoice, vehicles
    ):
        invoice = make_invoice(vehicles[0])
        shared = create_shared().shared_invoice

        shared_invoice_service.update(
            shared.id, SharedInvoicePatch(total_amount=Decimal("600000"))
        )

        assert {row.allocated_amount for row in shared.vehicles} == {Decimal("200000.00")}
        assert cost_service.find(invoice.id).total_cost == Decimal("200000")

    def test_dropped_vehicle_is_recomputed(
        self, create_shared, shared_invoice_service, cost_service, make_invoice, vehicles, session
    ):
        dropped = make_invoice(vehicles[0])
        kept = make_invoice(vehicles[1])
        shared = create_shared().shared_invoice

        shared_invoice_service.update(
            shared.id,
            SharedInvoicePatch(vehicle_ids=(vehicles[1].id, vehicles[2].id)),
        )

        rows = session.execute(
            select(SharedInvoiceVehicle).where(SharedInvoiceVehicle.shared_invoice_id == shared.id)
        ).scalars().all()
        assert {row.vehicle_id for row in rows} == {vehicles[1].id, vehicles[2].id}
        assert {row.allocated_amount for row in rows} == {Decimal("150000.00")}
        assert cost_service.find(dropped.id).total_cost == Decimal("0")
        assert cost_service.find(kept.id).total_cost == Decimal("150000")

    def test_metadata_merge_keeps_vendor(self, create_shared, shared_invoice_service, vendor):
        shared = create_shared().shared_invoice

        shared_invoice_service.update(
            shared.id,
            SharedInvoicePatch(cost_items=(CostItemInput("THC", Decimal("30000")),)),
        )

        assert shared.vendor_id == vendor.id
        assert shared.cost_items == [{"description": "THC", "amount": "30000"}]

    def test_clearing_vendor_rejected(self, create_shared, shared_invoice_service):
        shared = create_shared().shared_invoice

        with pytest.raises(MissingVendorError):
            shared_invoice_service.update(shared.id, SharedInvoicePatch(vendor_id=None))

    def test_invalid_edit_changes_nothing(self, create_shared, shared_invoice_service):
        shared = create_shared().shared_invoice

        with pytest.raises(InvalidAmountError):
            shared_invoice_service.update(
                shared.id,
                SharedInvoicePatch(type="FORWARDER", total_amount=Decimal("0")),
            )

        assert shared.type == "CONTAINER"
        assert shared.total_amount == Decimal("300000")

    def test_dates_only_keeps_rows(self, create_shared, shared_invoice_service):
        shared = create_shared().shared_invoice
        row_ids = [row.id for row in shared.vehicles]

        result = shared_invoice_service.update(
            shared.id, SharedInvoicePatch(payment_deadline=date(2024, 3, 1))
        )

        assert shared.payment_deadline == date(2024, 3, 1)
        assert [row.id for row in shared.vehicles] == row_ids
        assert result.report.shared_invoice_number == "CONTAINER-2024-001"

    def test_unknown_id(self, shared_invoice_service):
        with pytest.raises(SharedInvoiceNotFoundError):
            shared_invoice_service.update(uuid4(), SharedInvoicePatch(type="X"))


class TestDelete:
    def test_delete_recomputes_vehicles(
        self, create_shared, shared_invoice_service, cost_service, make_invoice, vehicles, session
    ):
        invoice = make_invoice(vehicles[0])
        shared = create_shared().shared_invoice

        touched = shared_invoice_service.delete(shared.id)

        assert touched == [v.id for v in vehicles]
        assert _shared_count(session) == 0
        assert cost_service.find(invoice.id).total_cost == Decimal("0")

    def test_in_use_by_container_invoice(
        self, create_shared, shared_invoice_service, container_invoice_service, customer, vehicles
    ):
        shared = create_shared().shared_invoice
        container_invoice_service.create(
            customer_id=customer.id,
            shared_invoice_id=shared.id,
            vehicles=[ContainerVehicleInput(vehicles[0].id, Decimal("100000"))],
        )

        with pytest.raises(SharedInvoiceInUseError) as exc_info:
            shared_invoice_service.delete(shared.id)

        assert exc_info.value.code == "SHARED_INVOICE_IN_USE"


class TestContainerBacking:
    @pytest.fixture
    def backed_shared(self, create_shared, container_invoice_service, customer, vehicles):
        shared = create_shared().shared_invoice
        container = container_invoice_service.create(
            customer_id=customer.id,
            shared_invoice_id=shared.id,
            vehicles=[ContainerVehicleInput(vehicles[0].id, Decimal("100000"))],
        ).container_invoice
        return shared, container

    def test_retype_rejected_while_container_invoice_exists(
        self, backed_shared, shared_invoice_service
    ):
        shared, container = backed_shared

        with pytest.raises(SharedInvoiceInUseError) as exc_info:
            shared_invoice_service.update(shared.id, SharedInvoicePatch(type="forwarder"))

        assert exc_info.value.container_invoice_numbers == [container.invoice_number]
        assert shared.type == "CONTAINER"
        assert container.shared_invoice.type == "CONTAINER"

    def test_same_type_edit_allowed(self, backed_shared, shared_invoice_service):
        shared, _ = backed_shared

        shared_invoice_service.update(
            shared.id,
            SharedInvoicePatch(type="container", payment_deadline=date(2024, 3, 1)),
        )

        assert shared.type == "CONTAINER"
        assert shared.payment_deadline == date(2024, 3, 1)

    def test_retype_allowed_without_container_invoice(self, create_shared, shared_invoice_service):
        shared = create_shared().shared_invoice

        shared_invoice_service.update(shared.id, SharedInvoicePatch(type="FORWARDER"))

        assert shared.type == "FORWARDER"
