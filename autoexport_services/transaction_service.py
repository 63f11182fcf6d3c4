"""
TransactionService -- record, edit and delete payment transactions with synchronous reconciliation.

Responsibility:
    Every write fans out, in the same transaction, to:
        - payment status of each invoice the transaction was or is linked to
          (when the old or new direction is INCOMING);
        - the receipts aggregate of each vehicle it was or is linked to;
        - the payment date of the linked cost line (OUTGOING only).

    A transaction moved from invoice A to invoice B, or switched from
    INCOMING to OUTGOING, therefore re-reconciles A as well as B.

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Failure modes:
    - InvalidAmountError for a non-positive amount.
    - InvoiceNotFoundError for a link to an unknown invoice.
    - TransactionNotFoundError for an unknown transaction id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.schema import LedgerSettings
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.patch import TransactionPatch
from autoexport_kernel.domain.statuses import TransactionDirection, TransactionType
from autoexport_kernel.exceptions import (
    InvalidAmountError,
    InvoiceNotFoundError,
    MissingFieldError,
    TransactionNotFoundError,
)
from autoexport_kernel.logging_config import get_logger
from autoexport_kernel.models import Invoice, Transaction
from autoexport_kernel.services.base import BaseService
from autoexport_services.payment_reconciliation_service import (
    PaymentReconciliationService,
)

logger = get_logger("services.transaction")


@dataclass(frozen=True)
class _Links:
    direction: TransactionDirection
    invoice_id: UUID | None
    vehicle_id: UUID | None

    @classmethod
    def of(cls, txn: Transaction) -> _Links:
        return cls(TransactionDirection(txn.direction), txn.invoice_id, txn.vehicle_id)

    @property
    def incoming(self) -> bool:
        return self.direction is TransactionDirection.INCOMING


class TransactionService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()
        self._reconciliation = PaymentReconciliationService(session, self.clock, self.settings)

    # =========================================================================
    # Validation
    # =========================================================================

    def _check_amount(self, amount: Decimal | None) -> Decimal:
        if amount is None:
            raise MissingFieldError("amount", "Transaction")
        if amount <= ZERO:
            raise InvalidAmountError("amount", amount, "must be positive")
        return round_money(amount)

    def _check_invoice(self, invoice_id: UUID | None) -> None:
        if invoice_id is not None and self.session.get(Invoice, invoice_id) is None:
            raise InvoiceNotFoundError(str(invoice_id))

    def _load(self, transaction_id: UUID) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _fan_out(self, before: _Links | None, after: _Links | None) -> None:
        invoice_ids: list[UUID] = []
        vehicle_ids: list[UUID] = []
        for links in (before, after):
            if links is None or not links.incoming:
                continue
            if links.invoice_id is not None and links.invoice_id not in invoice_ids:
                invoice_ids.append(links.invoice_id)
            if links.vehicle_id is not None and links.vehicle_id not in vehicle_ids:
                vehicle_ids.append(links.vehicle_id)

        for invoice_id in invoice_ids:
            invoice = self.session.get(Invoice, invoice_id)
            if invoice is not None:
                self._reconciliation.reconcile_invoice(invoice)
        for vehicle_id in vehicle_ids:
            self._reconciliation.sync_vehicle(vehicle_id)

    # =========================================================================
    # Commands
    # =========================================================================

    def record(
        self,
        *,
        direction: TransactionDirection,
        type: TransactionType,
        amount: Decimal,
        date: date,
        currency: str = "JPY",
        description: str | None = None,
        invoice_id: UUID | None = None,
        vehicle_id: UUID | None = None,
        customer_id: UUID | None = None,
        vendor_id: UUID | None = None,
        cost_item_id: UUID | None = None,
        vehicle_stage_cost_id: UUID | None = None,
    ) -> Transaction:
        if date is None:
            raise MissingFieldError("date", "Transaction")
        amount = self._check_amount(amount)
        self._check_invoice(invoice_id)

        txn = Transaction(
            direction=TransactionDirection(direction),
            type=TransactionType(type),
            amount=amount,
            currency=(currency or "JPY").upper(),
            date=date,
            description=description,
            invoice_id=invoice_id,
            vehicle_id=vehicle_id,
            customer_id=customer_id,
            vendor_id=vendor_id,
            cost_item_id=cost_item_id,
            vehicle_stage_cost_id=vehicle_stage_cost_id,
        )
        self.session.add(txn)
        self.session.flush()
        logger.info(
            "transaction_recorded",
            extra={
                "transaction_id": str(txn.id),
                "direction": TransactionDirection(txn.direction).value,
                "amount": str(amount),
                "currency": txn.currency,
                "invoice_id": str(invoice_id) if invoice_id else None,
                "vehicle_id": str(vehicle_id) if vehicle_id else None,
            },
        )

        self._fan_out(None, _Links.of(txn))
        self._reconciliation.stamp_payment_date(txn)
        return txn

    def update(self, transaction_id: UUID, patch: TransactionPatch) -> Transaction:
        txn = self._load(transaction_id)
        before = _Links.of(txn)
        changes = patch.provided()

        if "amount" in changes:
            changes["amount"] = self._check_amount(changes["amount"])
        if "direction" in changes:
            changes["direction"] = TransactionDirection(changes["direction"])
        if "type" in changes:
            changes["type"] = TransactionType(changes["type"])
        if "currency" in changes:
            changes["currency"] = (changes["currency"] or "JPY").upper()
        if "date" in changes and changes["date"] is None:
            raise MissingFieldError("date", "Transaction")
        if "invoice_id" in changes:
            self._check_invoice(changes["invoice_id"])

        for name, value in changes.items():
            setattr(txn, name, value)
        self.session.flush()

        after = _Links.of(txn)
        logger.info(
            "transaction_updated",
            extra={
                "transaction_id": str(txn.id),
                "fields": sorted(changes),
                "invoice_moved": before.invoice_id != after.invoice_id,
                "direction_changed": before.direction is not after.direction,
            },
        )

        self._fan_out(before, after)
        self._reconciliation.stamp_payment_date(txn)
        return txn

    def delete(self, transaction_id: UUID) -> None:
        txn = self._load(transaction_id)
        before = _Links.of(txn)

        self.session.delete(txn)
        self.session.flush()
        logger.info(
            "transaction_deleted",
            extra={"transaction_id": str(transaction_id), "direction": before.direction.value},
        )

        self._fan_out(before, None)

    # =========================================================================
    # Reads
    # =========================================================================

    def list_for_invoice(self, invoice_id: UUID) -> list[Transaction]:
        return list(
            self.session.execute(
                select(Transaction)
                .where(Transaction.invoice_id == invoice_id)
                .order_by(Transaction.date, Transaction.created_at)
            ).scalars()
        )

    def list_for_vehicle(self, vehicle_id: UUID) -> list[Transaction]:
        return list(
            self.session.execute(
                select(Transaction)
                .where(Transaction.vehicle_id == vehicle_id)
                .order_by(Transaction.date, Transaction.created_at)
            ).scalars()
        )
