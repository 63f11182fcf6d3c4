"""
End-to-end ledger scenario: invoice, shared freight, container invoice, payment.

One vehicle export run through every service, committed and re-read from
a fresh session at the end.
"""

from datetime import date
from decimal import Decimal

from autoexport_kernel.domain.dtos import ContainerVehicleInput
from autoexport_kernel.domain.statuses import PaymentStatus, TransactionDirection, TransactionType
from autoexport_kernel.models import CostInvoice, Invoice, VehicleShippingStage


class TestVehicleExportScenario:
    def test_full_cycle(
        self,
        session,
        session_factory,
        make_invoice,
        vehicles,
        vendor,
        customer,
        shared_invoice_service,
        container_invoice_service,
        transaction_service,
        cost_service,
        invoice_service,
    ):
        lead = vehicles[0]

        # Customer invoice: vehicle 1,000,000 + export fees 150,000
        invoice = make_invoice(lead)
        assert invoice_service.totals(invoice.id).total == Decimal("1150000")

        # Container shipping split over three vehicles
        shared = shared_invoice_service.create(
            type="CONTAINER",
            total_amount=Decimal("300000"),
            date=date(2024, 1, 10),
            payment_deadline=date(2024, 2, 10),
            vehicle_ids=[v.id for v in vehicles],
            vendor_id=vendor.id,
        ).shared_invoice
        assert {row.allocated_amount for row in shared.vehicles} == {Decimal("100000.00")}
        assert cost_service.find(invoice.id).total_cost == Decimal("100000")

        # Customer-facing container invoice adds the freight line
        container_invoice_service.create(
            customer_id=customer.id,
            shared_invoice_id=shared.id,
            vehicles=[ContainerVehicleInput(lead.id, Decimal("110000"))],
        )
        cost_invoice = cost_service.find(invoice.id)
        assert cost_invoice.total_cost == Decimal("200000")
        assert cost_invoice.profit == Decimal("950000")

        # Customer pays in full
        payment = transaction_service.record(
            direction=TransactionDirection.INCOMING,
            type=TransactionType.BANK_TRANSFER,
            amount=Decimal("1150000"),
            date=date(2024, 1, 20),
            invoice_id=invoice.id,
            vehicle_id=lead.id,
            customer_id=customer.id,
        )
        assert invoice.payment_status == PaymentStatus.PAID
        assert invoice.paid_at is not None

        # Payment recorded against the wrong invoice and removed
        transaction_service.delete(payment.id)
        assert invoice.payment_status == PaymentStatus.PENDING
        assert invoice.paid_at is None

        session.commit()

        with session_factory() as fresh:
            stored = fresh.get(Invoice, invoice.id)
            assert stored.payment_status == "PENDING"
            assert stored.paid_at is None

            stored_cost = fresh.query(CostInvoice).filter_by(invoice_id=invoice.id).one()
            assert stored_cost.total_revenue == Decimal("1150000")
            assert stored_cost.total_cost == Decimal("200000")
            assert len(stored_cost.items) == 1

            stage = fresh.query(VehicleShippingStage).filter_by(vehicle_id=lead.id).one()
            assert stage.total_charges == Decimal("1150000")
            assert stage.total_received == Decimal("0")
            assert stage.purchase_paid is False
