"""
PaymentReconciliationService -- keep invoice payment status and vehicle receipts in step with transactions.

Responsibility:
    - ``reconcile_invoice``: received = sum of INCOMING transactions linked
      to the invoice, total = invoice total; store the status and paid_at
      decided by autoexport_engines.payment_status.
    - ``sync_vehicle``: upsert the vehicle's shipping-stage aggregate
      (total_received, total_charges, purchase_paid).  A new row starts at
      the configured default stage (PURCHASE).
    - ``stamp_payment_date``: an OUTGOING transaction linked to a cost line
      or a vehicle stage cost sets that line's payment_date (one-way).
    - ``wallet_balance``: a customer's JPY deposit balance.

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Invariants enforced:
    - CANCELLED invoices are never touched by reconciliation.
    - OVERDUE is never written here.
    - paid_at is non-null iff the stored status is PAID.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.schema import LedgerSettings
from autoexport_engines.payment_status import (
    PaymentDecision,
    is_paid_in_full,
    reconcile_payment,
)
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.statuses import (
    PaymentStatus,
    ShippingStage,
    TransactionDirection,
)
from autoexport_kernel.exceptions import InvoiceNotFoundError
from autoexport_kernel.logging_config import get_logger
from autoexport_kernel.models import (
    CostItem,
    Invoice,
    Transaction,
    VehicleShippingStage,
    VehicleStageCost,
)
from autoexport_kernel.services.base import BaseService
from autoexport_services.invoice_totals import totals_for_invoice

logger = get_logger("services.payment_reconciliation")


@dataclass(frozen=True)
class RecalculationSummary:
    """Counts from a full payment-status recalculation run."""

    invoices_checked: int
    invoices_changed: int


class PaymentReconciliationService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()

    # =========================================================================
    # Invoices
    # =========================================================================

    def received_for_invoice(self, invoice_id: UUID) -> Decimal:
        amounts = self.session.execute(
            select(Transaction.amount).where(
                Transaction.invoice_id == invoice_id,
                Transaction.direction == TransactionDirection.INCOMING.value,
            )
        ).scalars()
        return sum(amounts, ZERO)

    def reconcile_invoice(self, invoice: Invoice | UUID) -> PaymentDecision:
        """
        Recompute and store the invoice's payment status.

        Raises:
            InvoiceNotFoundError: when given an unknown id.
        """
        if not isinstance(invoice, Invoice):
            loaded = self.session.get(Invoice, invoice)
            if loaded is None:
                raise InvoiceNotFoundError(str(invoice))
            invoice = loaded

        received = self.received_for_invoice(invoice.id)
        total = totals_for_invoice(invoice, self.settings.charges).total

        decision = reconcile_payment(
            current_status=invoice.payment_status,
            current_paid_at=invoice.paid_at,
            received=received,
            total=total,
            now=self.clock.now(),
            tolerance=self.settings.reconciliation.tolerance,
        )

        if decision.changed:
            previous = PaymentStatus(invoice.payment_status)
            invoice.payment_status = decision.status
            invoice.paid_at = decision.paid_at
            self.session.flush()
            logger.info(
                "invoice_payment_status_changed",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "from_status": previous.value,
                    "to_status": decision.status.value,
                    "received": str(received),
                    "total": str(total),
                },
            )
        else:
            logger.debug(
                "invoice_payment_status_unchanged",
                extra={"invoice_id": str(invoice.id), "status": decision.status.value},
            )
        return decision

    def recalculate_all(self) -> RecalculationSummary:
        """Reconcile every invoice.  Operator tooling for repairing drift."""
        invoices = self.session.execute(
            select(Invoice).order_by(Invoice.invoice_number)
        ).scalars().all()
        changed = sum(1 for invoice in invoices if self.reconcile_invoice(invoice).changed)
        summary = RecalculationSummary(invoices_checked=len(invoices), invoices_changed=changed)
        logger.info(
            "payment_status_recalculated",
            extra={"invoices_checked": summary.invoices_checked, "invoices_changed": changed},
        )
        return summary

    # =========================================================================
    # Vehicles
    # =========================================================================

    def received_for_vehicle(self, vehicle_id: UUID) -> Decimal:
        amounts = self.session.execute(
            select(Transaction.amount).where(
                Transaction.vehicle_id == vehicle_id,
                Transaction.direction == TransactionDirection.INCOMING.value,
            )
        ).scalars()
        return sum(amounts, ZERO)

    def charges_for_vehicle(self, vehicle_id: UUID) -> Decimal:
        invoices = self.session.execute(
            select(Invoice).where(Invoice.vehicle_id == vehicle_id)
        ).scalars()
        return sum(
            (totals_for_invoice(inv, self.settings.charges).total for inv in invoices),
            ZERO,
        )

    def sync_vehicle(self, vehicle_id: UUID) -> VehicleShippingStage:
        received = self.received_for_vehicle(vehicle_id)
        charges = self.charges_for_vehicle(vehicle_id)
        purchase_paid = charges > ZERO and is_paid_in_full(
            received, charges, self.settings.reconciliation.tolerance
        )

        stage = self.session.execute(
            select(VehicleShippingStage).where(VehicleShippingStage.vehicle_id == vehicle_id)
        ).scalar_one_or_none()
        created = stage is None
        if created:
            stage = VehicleShippingStage(
                vehicle_id=vehicle_id,
                stage=ShippingStage(self.settings.reconciliation.default_stage),
            )
            self.session.add(stage)

        stage.total_received = received
        stage.total_charges = charges
        stage.purchase_paid = purchase_paid
        self.session.flush()

        logger.info(
            "vehicle_receipts_synced",
            extra={
                "vehicle_id": str(vehicle_id),
                "total_received": str(received),
                "total_charges": str(charges),
                "purchase_paid": purchase_paid,
                "stage_created": created,
            },
        )
        return stage

    # =========================================================================
    # Outgoing payments
    # =========================================================================

    def stamp_payment_date(self, txn: Transaction) -> list[str]:
        """
        Copy the transaction date onto linked cost lines.

        Returns:
            Names of the stamped targets ("cost_item", "vehicle_stage_cost").
        """
        if txn.direction != TransactionDirection.OUTGOING:
            return []

        stamped: list[str] = []
        if txn.cost_item_id is not None:
            item = self.session.get(CostItem, txn.cost_item_id)
            if item is not None:
                item.payment_date = txn.date
                stamped.append("cost_item")
        if txn.vehicle_stage_cost_id is not None:
            stage_cost = self.session.get(VehicleStageCost, txn.vehicle_stage_cost_id)
            if stage_cost is not None:
                stage_cost.payment_date = txn.date
                stamped.append("vehicle_stage_cost")

        if stamped:
            self.session.flush()
            logger.info(
                "payment_date_stamped",
                extra={
                    "transaction_id": str(txn.id),
                    "targets": stamped,
                    "payment_date": txn.date,
                },
            )
        return stamped

    # =========================================================================
    # Customers
    # =========================================================================

    def wallet_balance(self, customer_id: UUID) -> Decimal:
        """
        Deposits minus money applied or refunded, in the wallet currency.

        INCOMING transactions count only when their description is the
        deposit marker ("Deposit"); a payment for an invoice does not add
        to the wallet.  Every OUTGOING transaction subtracts.  Other
        currencies are ignored.
        """
        cfg = self.settings.reconciliation
        rows = self.session.execute(
            select(Transaction.direction, Transaction.amount, Transaction.currency, Transaction.description)
            .where(Transaction.customer_id == customer_id)
        ).all()

        balance = ZERO
        for direction, amount, currency, description in rows:
            if (currency or cfg.wallet_currency).upper() != cfg.wallet_currency:
                continue
            if direction == TransactionDirection.INCOMING:
                if description == cfg.wallet_deposit_description:
                    balance += amount
            else:
                balance -= amount
        return round_money(balance)
