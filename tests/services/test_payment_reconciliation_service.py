"""Tests for payment status repair and the reconciliation entry points."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from autoexport_kernel.domain.statuses import (
    PaymentStatus,
    TransactionDirection,
    TransactionType,
)
from autoexport_kernel.exceptions import InvoiceNotFoundError


class TestReconcileInvoice:
    def test_accepts_id(self, reconciliation_service, make_invoice):
        invoice = make_invoice()

        decision = reconciliation_service.reconcile_invoice(invoice.id)

        assert decision.status is PaymentStatus.PENDING
        assert decision.changed is False
        assert decision.outstanding == Decimal("1150000")

    def test_unknown_id(self, reconciliation_service):
        with pytest.raises(InvoiceNotFoundError):
            reconciliation_service.reconcile_invoice(uuid4())


class TestRecalculateAll:
    def test_repairs_drifted_status(
        self, reconciliation_service, transaction_service, make_invoice, session
    ):
        drifted = make_invoice()
        paid = make_invoice()
        transaction_service.record(
            direction=TransactionDirection.INCOMING,
            type=TransactionType.WISE,
            amount=Decimal("1150000"),
            date=date(2024, 1, 2),
            invoice_id=paid.id,
        )
        drifted.payment_status = PaymentStatus.PAID
        session.flush()

        summary = reconciliation_service.recalculate_all()

        assert summary.invoices_checked == 2
        assert summary.invoices_changed == 1
        assert drifted.payment_status == PaymentStatus.PENDING
        assert paid.payment_status == PaymentStatus.PAID

    def test_never_writes_overdue(self, reconciliation_service, make_invoice):
        invoice = make_invoice(due_date=date(2023, 1, 1))

        reconciliation_service.recalculate_all()

        assert invoice.payment_status == PaymentStatus.PENDING
