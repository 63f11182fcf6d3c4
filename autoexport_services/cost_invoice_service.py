"""
CostInvoiceService -- materialize and recompute the derived cost record of invoices.

Responsibility:
    Owns the single recompute formula of a CostInvoice:

        total_revenue = invoice total (autoexport_engines.charges)
        total_cost    = sum(cost items) + sum(allocated_amount of EVERY
                        shared-invoice row for the invoice's vehicle)
        profit / margin / roi from autoexport_engines.profitability

    Every mutation path (charge or tax edit, shared invoice create, edit
    or delete, container invoice creation, cost item add/edit/delete) ends
    with a call into this service.

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Invariants enforced:
    - Shared allocations are read live on every recompute, never cached.
    - Derived fields are overwritten as a whole and the row version bumps.

Failure modes:
    - OptimisticLockError when another transaction updated the same
      CostInvoice after it was read (version mismatch at flush).
    - InvoiceNotFoundError / CostItemNotFoundError for unknown ids.
    - InvoiceLockedError / InvoiceCancelledError for manual cost item edits
      on a locked or cancelled invoice.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from autoexport_config import get_active_settings
from autoexport_config.schema import LedgerSettings
from autoexport_engines.profitability import (
    ProfitMetrics,
    compute_profit_metrics,
    seed_metrics,
)
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.patch import CostItemPatch, is_set
from autoexport_kernel.exceptions import (
    CostItemNotFoundError,
    InvalidAmountError,
    InvoiceNotFoundError,
    MissingFieldError,
    OptimisticLockError,
)
from autoexport_kernel.logging_config import get_logger
from autoexport_kernel.models import (
    CostInvoice,
    CostItem,
    Invoice,
    SharedInvoiceVehicle,
)
from autoexport_kernel.services.base import BaseService
from autoexport_services.guards import assert_invoice_editable
from autoexport_services.invoice_totals import totals_for_invoice

logger = get_logger("services.cost_invoice")


class CostInvoiceService(BaseService):
    """
    Contract:
        ``get_or_create`` materializes lazily; ``recompute`` is the only
        writer of derived fields.

    Non-goals:
        - Does not decide which vehicles a shared invoice touches; see
          CostAllocationService.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()

    # =========================================================================
    # Lookups
    # =========================================================================

    def _load_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def find(self, invoice_id: UUID) -> CostInvoice | None:
        return self.session.execute(
            select(CostInvoice).where(CostInvoice.invoice_id == invoice_id)
        ).scalar_one_or_none()

    def shared_cost_for_vehicle(self, vehicle_id: UUID | None) -> Decimal:
        """Live sum of every shared-invoice allocation of the vehicle."""
        if vehicle_id is None:
            return ZERO
        amounts = self.session.execute(
            select(SharedInvoiceVehicle.allocated_amount).where(
                SharedInvoiceVehicle.vehicle_id == vehicle_id
            )
        ).scalars()
        return sum(amounts, ZERO)

    def item_cost(self, cost_invoice: CostInvoice) -> Decimal:
        amounts = self.session.execute(
            select(CostItem.amount).where(CostItem.cost_invoice_id == cost_invoice.id)
        ).scalars()
        return sum(amounts, ZERO)

    # =========================================================================
    # Materialize / recompute
    # =========================================================================

    def get_or_create(self, invoice: Invoice) -> tuple[CostInvoice, bool]:
        """
        Return the invoice's CostInvoice, creating it when absent.

        A new row is seeded with revenue = invoice total, cost 0,
        profit = revenue, margin 100, roi 0.
        """
        existing = self.find(invoice.id)
        if existing is not None:
            return existing, False

        totals = totals_for_invoice(invoice, self.settings.charges)
        seed = seed_metrics(totals.total)
        cost_invoice = CostInvoice(
            invoice_id=invoice.id,
            total_revenue=seed.total_revenue,
            total_cost=seed.total_cost,
            profit=seed.profit,
            margin=seed.margin,
            roi=seed.roi,
        )
        self.session.add(cost_invoice)
        self.session.flush()
        logger.info(
            "cost_invoice_materialized",
            extra={
                "invoice_id": str(invoice.id),
                "cost_invoice_id": str(cost_invoice.id),
                "total_revenue": str(seed.total_revenue),
            },
        )
        return cost_invoice, True

    def recompute(self, cost_invoice: CostInvoice, invoice: Invoice) -> ProfitMetrics:
        # A failed flush expires both rows; read the keys first.
        cost_invoice_id = str(cost_invoice.id)
        invoice_id = str(invoice.id)
        totals = totals_for_invoice(invoice, self.settings.charges)
        items = self.item_cost(cost_invoice)
        shared = self.shared_cost_for_vehicle(invoice.vehicle_id)

        metrics = compute_profit_metrics(
            total_revenue=totals.total,
            total_cost=items + shared,
        )

        cost_invoice.total_revenue = metrics.total_revenue
        cost_invoice.total_cost = metrics.total_cost
        cost_invoice.profit = metrics.profit
        cost_invoice.margin = metrics.margin
        cost_invoice.roi = metrics.roi
        cost_invoice.recomputed_at = self.clock.now()

        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "cost_invoice_version_conflict",
                extra={"cost_invoice_id": cost_invoice_id, "invoice_id": invoice_id},
            )
            raise OptimisticLockError("CostInvoice", cost_invoice_id) from exc

        logger.info(
            "cost_invoice_recomputed",
            extra={
                "invoice_id": invoice_id,
                "item_cost": str(items),
                "shared_cost": str(shared),
                "total_revenue": str(metrics.total_revenue),
                "total_cost": str(metrics.total_cost),
                "profit": str(metrics.profit),
                "margin": str(metrics.margin),
                "roi": str(metrics.roi),
            },
        )
        return metrics

    def recompute_for_invoice(
        self, invoice_id: UUID, create: bool = True
    ) -> CostInvoice | None:
        """
        Recompute one invoice's cost record.

        Args:
            create: Materialize the CostInvoice when it does not exist yet.
                When False and none exists, nothing happens and None is
                returned.
        """
        invoice = self._load_invoice(invoice_id)
        if create:
            cost_invoice, _ = self.get_or_create(invoice)
        else:
            cost_invoice = self.find(invoice.id)
            if cost_invoice is None:
                return None
        self.recompute(cost_invoice, invoice)
        return cost_invoice

    def recompute_for_vehicle(
        self, vehicle_id: UUID, create: bool = False
    ) -> list[CostInvoice]:
        """Recompute the cost record of every invoice of the vehicle."""
        invoices = self.session.execute(
            select(Invoice)
            .where(Invoice.vehicle_id == vehicle_id)
            .order_by(Invoice.invoice_number)
        ).scalars().all()

        recomputed: list[CostInvoice] = []
        for invoice in invoices:
            cost_invoice = self.recompute_for_invoice(invoice.id, create=create)
            if cost_invoice is not None:
                recomputed.append(cost_invoice)

        logger.info(
            "vehicle_costs_recomputed",
            extra={"vehicle_id": str(vehicle_id), "cost_invoice_count": len(recomputed)},
        )
        return recomputed

    def recompute_all(self) -> int:
        """Recompute every existing cost invoice.  Operator tooling."""
        invoice_ids = self.session.execute(select(CostInvoice.invoice_id)).scalars().all()
        for invoice_id in invoice_ids:
            self.recompute_for_invoice(invoice_id, create=False)
        return len(invoice_ids)

    # =========================================================================
    # Cost items
    # =========================================================================

    def _check_amount(self, amount: Decimal) -> Decimal:
        if amount is None:
            raise MissingFieldError("amount", "CostItem")
        if amount < ZERO:
            raise InvalidAmountError("amount", amount, "must not be negative")
        return round_money(amount)

    def _load_item(self, cost_invoice: CostInvoice | None, item_id: UUID) -> CostItem:
        item = self.session.get(CostItem, item_id)
        if item is None or cost_invoice is None or item.cost_invoice_id != cost_invoice.id:
            raise CostItemNotFoundError(str(item_id))
        return item

    def add_cost_item(
        self,
        invoice_id: UUID,
        *,
        description: str,
        amount: Decimal,
        category: str | None = None,
        vendor_id: UUID | None = None,
        payment_date: date | None = None,
        payment_deadline: date | None = None,
    ) -> CostItem:
        invoice = self._load_invoice(invoice_id)
        assert_invoice_editable(invoice)
        if not (description or "").strip():
            raise MissingFieldError("description", "CostItem")

        cost_invoice, _ = self.get_or_create(invoice)
        item = CostItem(
            description=description.strip(),
            amount=self._check_amount(amount),
            category=category,
            vendor_id=vendor_id,
            payment_date=payment_date,
            payment_deadline=payment_deadline,
        )
        cost_invoice.items.append(item)
        self.session.flush()
        logger.info(
            "cost_item_added",
            extra={
                "invoice_id": str(invoice.id),
                "cost_item_id": str(item.id),
                "amount": str(item.amount),
                "category": category,
            },
        )
        self.recompute(cost_invoice, invoice)
        return item

    def update_cost_item(
        self, invoice_id: UUID, item_id: UUID, patch: CostItemPatch
    ) -> CostItem:
        invoice = self._load_invoice(invoice_id)
        assert_invoice_editable(invoice)
        cost_invoice = self.find(invoice.id)
        item = self._load_item(cost_invoice, item_id)

        changes = patch.provided()
        if "description" in changes:
            if not (changes["description"] or "").strip():
                raise MissingFieldError("description", "CostItem")
            item.description = changes["description"].strip()
        if "amount" in changes:
            item.amount = self._check_amount(changes["amount"])
        for name in ("category", "vendor_id", "payment_date", "payment_deadline"):
            if is_set(getattr(patch, name)):
                setattr(item, name, getattr(patch, name))

        self.session.flush()
        logger.info(
            "cost_item_updated",
            extra={
                "invoice_id": str(invoice.id),
                "cost_item_id": str(item.id),
                "fields": sorted(changes),
            },
        )
        self.recompute(cost_invoice, invoice)
        return item

    def delete_cost_item(self, invoice_id: UUID, item_id: UUID) -> None:
        invoice = self._load_invoice(invoice_id)
        assert_invoice_editable(invoice)
        cost_invoice = self.find(invoice.id)
        item = self._load_item(cost_invoice, item_id)

        cost_invoice.items.remove(item)
        self.session.flush()
        logger.info(
            "cost_item_deleted",
            extra={"invoice_id": str(invoice.id), "cost_item_id": str(item_id)},
        )
        self.recompute(cost_invoice, invoice)
