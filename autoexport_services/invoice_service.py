"""
InvoiceService -- issue, edit and move customer invoices through the approval workflow.

Responsibility:
    - ``create`` / ``create_batch``: number (INV-, floor 80001) and persist
      invoices with their ordered charge lines.  Charge-type labels are
      resolved once per batch.
    - ``update``: partial edit.  Supplying ``charges`` replaces the full
      charge list.  When charges or tax settings change, the invoice's
      cost record is brought up to date (created when absent), payment
      status is re-reconciled and the vehicle's charge aggregate is synced.
    - ``submit`` / ``approve`` / ``reject`` / ``finalize`` / ``unlock`` /
      ``cancel``: approval workflow over ALLOWED_STATUS_TRANSITIONS.
      Finalizing locks the invoice; only ``unlock`` re-opens it.

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Failure modes:
    - InvoiceNotFoundError for an unknown id.
    - InvoiceLockedError / InvoiceCancelledError when editing a finalized,
      locked or cancelled invoice.
    - InvalidStatusTransitionError for a workflow move the table forbids.
    - InvalidAmountError / MissingFieldError for bad drafts or edits.
    - InvoiceNumberCollisionError when a concurrent create took a number.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.bridges import numbering_policy
from autoexport_config.schema import LedgerSettings
from autoexport_engines.overdue import presented_payment_status
from autoexport_engines.charges import InvoiceTotals
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.dtos import ChargeInput, InvoiceDraft
from autoexport_kernel.domain.patch import InvoicePatch
from autoexport_kernel.domain.statuses import (
    ALLOWED_STATUS_TRANSITIONS,
    InvoiceStatus,
    PaymentStatus,
)
from autoexport_kernel.exceptions import (
    InvalidAmountError,
    InvalidStatusTransitionError,
    InvoiceNotFoundError,
    MissingFieldError,
)
from autoexport_kernel.logging_config import LogContext, get_logger
from autoexport_kernel.models import Invoice, InvoiceCharge
from autoexport_kernel.services.base import BaseService
from autoexport_services.charge_type_service import ChargeTypeResolver
from autoexport_services.cost_invoice_service import CostInvoiceService
from autoexport_services.guards import assert_invoice_editable
from autoexport_services.invoice_totals import totals_for_invoice
from autoexport_services.payment_reconciliation_service import (
    PaymentReconciliationService,
)
from autoexport_services.sequence_service import SequenceService

logger = get_logger("services.invoice")


def _check_tax_rate(tax_rate: Decimal | None) -> Decimal | None:
    if tax_rate is not None and tax_rate < ZERO:
        raise InvalidAmountError("tax_rate", tax_rate, "must not be negative")
    return tax_rate


class InvoiceService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()
        self._sequences = SequenceService(session)
        self._costs = CostInvoiceService(session, self.clock, self.settings)
        self._reconciliation = PaymentReconciliationService(session, self.clock, self.settings)

    # =========================================================================
    # Helpers
    # =========================================================================

    def get(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _build_charges(
        self, charges: Sequence[ChargeInput], resolver: ChargeTypeResolver
    ) -> list[InvoiceCharge]:
        lines: list[InvoiceCharge] = []
        for position, charge in enumerate(charges):
            if not (charge.description or "").strip():
                raise MissingFieldError("description", "InvoiceCharge")
            if charge.amount is None:
                raise MissingFieldError("amount", "InvoiceCharge")
            if charge.amount < ZERO:
                raise InvalidAmountError("amount", charge.amount, "must not be negative")
            lines.append(
                InvoiceCharge(
                    description=charge.description.strip(),
                    amount=round_money(charge.amount),
                    position=position,
                    charge_type=resolver.resolve(charge.charge_type),
                )
            )
        return lines

    def _resolver(self) -> ChargeTypeResolver:
        return ChargeTypeResolver(self.session, self.settings.charges.default_charge_type)

    # =========================================================================
    # Create
    # =========================================================================

    def create(self, draft: InvoiceDraft) -> Invoice:
        return self.create_batch([draft])[0]

    def create_batch(self, drafts: Sequence[InvoiceDraft]) -> list[Invoice]:
        """
        Issue several invoices with consecutive numbers from one lookup.

        All drafts are validated before the first insert.
        """
        if not drafts:
            return []

        resolver = self._resolver()
        prepared: list[tuple[InvoiceDraft, list[InvoiceCharge]]] = []
        for draft in drafts:
            if draft.customer_id is None:
                raise MissingFieldError("customer_id", "Invoice")
            _check_tax_rate(draft.tax_rate)
            prepared.append((draft, self._build_charges(draft.charges, resolver)))

        numbers = self._sequences.next_numbers(
            Invoice.invoice_number,
            numbering_policy(self.settings.numbering.invoice),
            len(drafts),
            year=self.clock.today().year,
        )

        invoices: list[Invoice] = []
        for number, (draft, charges) in zip(numbers, prepared):
            invoice = Invoice(
                invoice_number=number,
                customer_id=draft.customer_id,
                vehicle_id=draft.vehicle_id,
                status=InvoiceStatus.DRAFT,
                payment_status=PaymentStatus.PENDING,
                tax_enabled=draft.tax_enabled,
                tax_rate=draft.tax_rate,
                issue_date=draft.issue_date or self.clock.today(),
                due_date=draft.due_date,
                notes=draft.notes,
                is_locked=False,
                charges=charges,
            )
            self._sequences.guarded_insert(invoice, number, "Invoice")
            invoices.append(invoice)

        logger.info(
            "invoices_created",
            extra={
                "invoice_numbers": numbers,
                "charge_type_lookups": resolver.cache_size,
            },
        )

        synced: set[UUID] = set()
        for invoice in invoices:
            if invoice.vehicle_id is not None and invoice.vehicle_id not in synced:
                self._reconciliation.sync_vehicle(invoice.vehicle_id)
                synced.add(invoice.vehicle_id)
        return invoices

    # =========================================================================
    # Edit
    # =========================================================================

    def update(self, invoice_id: UUID, patch: InvoicePatch) -> Invoice:
        invoice = self.get(invoice_id)
        assert_invoice_editable(invoice)
        changes = patch.provided()

        new_charges: list[InvoiceCharge] | None = None
        if "charges" in changes:
            new_charges = self._build_charges(changes["charges"] or (), self._resolver())
        if "tax_rate" in changes:
            _check_tax_rate(changes["tax_rate"])

        old_vehicle_id = invoice.vehicle_id
        with LogContext.bind(invoice_id=str(invoice.id)):
            if new_charges is not None:
                invoice.charges.clear()
                self.session.flush()
                invoice.charges.extend(new_charges)
            for name in ("tax_enabled", "tax_rate", "due_date", "vehicle_id", "notes"):
                if name in changes:
                    setattr(invoice, name, changes[name])
            self.session.flush()

            vehicle_moved = invoice.vehicle_id != old_vehicle_id
            logger.info(
                "invoice_updated",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "fields": sorted(changes),
                    "touches_totals": patch.touches_totals,
                    "vehicle_moved": vehicle_moved,
                },
            )

            if patch.touches_totals or vehicle_moved:
                self._costs.recompute_for_invoice(invoice.id, create=patch.touches_totals)
            if patch.touches_totals:
                self._reconciliation.reconcile_invoice(invoice)

            affected = [old_vehicle_id, invoice.vehicle_id] if vehicle_moved else [invoice.vehicle_id]
            if patch.touches_totals or vehicle_moved:
                for vehicle_id in affected:
                    if vehicle_id is not None:
                        self._reconciliation.sync_vehicle(vehicle_id)
        return invoice

    # =========================================================================
    # Workflow
    # =========================================================================

    def _transition(self, invoice: Invoice, target: InvoiceStatus) -> Invoice:
        current = InvoiceStatus(invoice.status)
        if target not in ALLOWED_STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(str(invoice.id), current.value, target.value)
        invoice.status = target
        self.session.flush()
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return invoice

    def transition(self, invoice_id: UUID, target: InvoiceStatus | str) -> Invoice:
        """Move an invoice to ``target`` through the matching workflow command."""
        target = InvoiceStatus(target)
        invoice = self.get(invoice_id)
        match target:
            case InvoiceStatus.PENDING_APPROVAL:
                return self.submit(invoice_id)
            case InvoiceStatus.APPROVED if InvoiceStatus(invoice.status) is InvoiceStatus.FINALIZED:
                return self.unlock(invoice_id)
            case InvoiceStatus.APPROVED:
                return self.approve(invoice_id)
            case InvoiceStatus.DRAFT:
                return self.reject(invoice_id)
            case InvoiceStatus.FINALIZED:
                return self.finalize(invoice_id)
            case InvoiceStatus.CANCELLED:
                return self.cancel(invoice_id)

    def submit(self, invoice_id: UUID) -> Invoice:
        return self._transition(self.get(invoice_id), InvoiceStatus.PENDING_APPROVAL)

    def approve(self, invoice_id: UUID) -> Invoice:
        invoice = self.get(invoice_id)
        if InvoiceStatus(invoice.status) is not InvoiceStatus.PENDING_APPROVAL:
            raise InvalidStatusTransitionError(
                str(invoice.id), InvoiceStatus(invoice.status).value, InvoiceStatus.APPROVED.value
            )
        return self._transition(invoice, InvoiceStatus.APPROVED)

    def reject(self, invoice_id: UUID) -> Invoice:
        return self._transition(self.get(invoice_id), InvoiceStatus.DRAFT)

    def finalize(self, invoice_id: UUID) -> Invoice:
        invoice = self._transition(self.get(invoice_id), InvoiceStatus.FINALIZED)
        invoice.is_locked = True
        invoice.finalized_at = self.clock.now()
        self.session.flush()
        return invoice

    def unlock(self, invoice_id: UUID) -> Invoice:
        invoice = self.get(invoice_id)
        if not invoice.is_locked:
            raise InvalidStatusTransitionError(
                str(invoice.id), InvoiceStatus(invoice.status).value, InvoiceStatus.APPROVED.value
            )
        invoice = self._transition(invoice, InvoiceStatus.APPROVED)
        invoice.is_locked = False
        self.session.flush()
        return invoice

    def cancel(self, invoice_id: UUID) -> Invoice:
        """Cancel the invoice.  Payment reconciliation leaves it alone from now on."""
        invoice = self._transition(self.get(invoice_id), InvoiceStatus.CANCELLED)
        invoice.payment_status = PaymentStatus.CANCELLED
        invoice.paid_at = None
        self.session.flush()
        return invoice

    # =========================================================================
    # Reads
    # =========================================================================

    def totals(self, invoice_id: UUID) -> InvoiceTotals:
        return totals_for_invoice(self.get(invoice_id), self.settings.charges)

    def presented_payment_status(
        self, invoice_id: UUID, as_of: date | None = None
    ) -> PaymentStatus:
        """Stored payment status with OVERDUE layered on at read time."""
        invoice = self.get(invoice_id)
        return presented_payment_status(
            invoice.payment_status, invoice.due_date, as_of or self.clock.today()
        )

    def list_for_vehicle(self, vehicle_id: UUID) -> list[Invoice]:
        return list(
            self.session.execute(
                select(Invoice)
                .where(Invoice.vehicle_id == vehicle_id)
                .order_by(Invoice.invoice_number)
            ).scalars()
        )

    def overdue(self, as_of: date | None = None) -> list[Invoice]:
        """Open invoices past their due date, oldest due date first."""
        as_of = as_of or self.clock.today()
        return list(
            self.session.execute(
                select(Invoice)
                .where(
                    Invoice.payment_status.in_(
                        [PaymentStatus.PENDING.value, PaymentStatus.PARTIALLY_PAID.value]
                    ),
                    Invoice.due_date.is_not(None),
                    Invoice.due_date < as_of,
                )
                .order_by(Invoice.due_date, Invoice.invoice_number)
            ).scalars()
        )
