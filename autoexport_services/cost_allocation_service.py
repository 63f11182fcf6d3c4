"""
CostAllocationService -- fold shared and container invoice costs into vehicle cost records.

Responsibility:
    ``apply_to_vehicle_cost_invoices(source_id)`` walks every vehicle of a
    shared invoice or a container invoice, and every customer invoice of
    each vehicle, and brings that invoice's CostInvoice up to date.

    Shared invoice source:
        materialize the CostInvoice, then recompute.  No cost line is
        written; the allocation row itself is counted by the recompute.

    Container invoice source, per (vehicle, invoice):
        1. materialize the CostInvoice;
        2. a "Freight" cost line whose description contains the shared
           invoice number means the pair was already applied: recompute
           only;
        3. no vendor in the shared invoice metadata: skip the pair;
        4. write the freight cost line (amount = the vehicle's shared
           allocation, dates from the shared invoice) and recompute.

Architecture position:
    Services -- imperative shell.  Flush only; each pair runs in its own
    savepoint so a failing pair is rolled back alone.

Invariants enforced:
    - At most one freight line per (shared invoice, cost invoice) however
      often a container invoice is applied.
    - One pair failing never aborts the batch.  Every pair's outcome is
      returned in an AllocationReport.

Failure modes:
    - AllocationSourceNotFoundError when the id matches neither a shared
      nor a container invoice.
    - Store and domain errors inside a pair are logged and reported as
      FAILED; they do not propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.schema import LedgerSettings
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.exceptions import AllocationSourceNotFoundError, AutoExportError
from autoexport_kernel.logging_config import LogContext, get_logger
from autoexport_kernel.models import (
    ContainerInvoice,
    CostInvoice,
    CostItem,
    Invoice,
    SharedInvoice,
)
from autoexport_kernel.services.base import BaseService
from autoexport_services.cost_invoice_service import CostInvoiceService

logger = get_logger("services.cost_allocation")


class AllocationOutcome(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_APPLIED = "ALREADY_APPLIED"
    SKIPPED_NO_INVOICES = "SKIPPED_NO_INVOICES"
    SKIPPED_MISSING_VENDOR = "SKIPPED_MISSING_VENDOR"
    SKIPPED_NOT_ALLOCATED = "SKIPPED_NOT_ALLOCATED"
    FAILED = "FAILED"


class AllocationSourceType(str, Enum):
    SHARED_INVOICE = "shared_invoice"
    CONTAINER_INVOICE = "container_invoice"


@dataclass(frozen=True)
class PairOutcome:
    """Outcome for one (vehicle, invoice) pair; invoice_id is None for vehicle-level skips."""

    vehicle_id: UUID
    invoice_id: UUID | None
    outcome: AllocationOutcome
    cost_invoice_id: UUID | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class AllocationReport:
    """
    Result of one application run.

    Guarantees:
        - One PairOutcome per processed (vehicle, invoice) pair, plus one
          per skipped vehicle, in processing order.
    """

    source_id: UUID
    source_type: AllocationSourceType
    shared_invoice_number: str
    outcomes: tuple[PairOutcome, ...]

    def _with(self, outcome: AllocationOutcome) -> tuple[PairOutcome, ...]:
        return tuple(o for o in self.outcomes if o.outcome is outcome)

    @property
    def applied(self) -> tuple[PairOutcome, ...]:
        return self._with(AllocationOutcome.APPLIED)

    @property
    def already_applied(self) -> tuple[PairOutcome, ...]:
        return self._with(AllocationOutcome.ALREADY_APPLIED)

    @property
    def failed(self) -> tuple[PairOutcome, ...]:
        return self._with(AllocationOutcome.FAILED)

    @property
    def skipped(self) -> tuple[PairOutcome, ...]:
        return tuple(o for o in self.outcomes if o.outcome.value.startswith("SKIPPED"))

    @property
    def is_complete(self) -> bool:
        """True when no pair failed or was skipped."""
        return not self.failed and not self.skipped

    def counts(self) -> dict[str, int]:
        result: dict[str, int] = {}
        for o in self.outcomes:
            result[o.outcome.value] = result.get(o.outcome.value, 0) + 1
        return result


class CostAllocationService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()
        self._costs = CostInvoiceService(session, self.clock, self.settings)

    # =========================================================================
    # Entry point
    # =========================================================================

    def apply_to_vehicle_cost_invoices(self, source_id: UUID) -> AllocationReport:
        """
        Apply a shared invoice or a container invoice to vehicle cost records.

        Raises:
            AllocationSourceNotFoundError: unknown source id.
        """
        shared = self.session.get(SharedInvoice, source_id)
        if shared is not None:
            return self._apply_shared(shared)

        container = self.session.get(ContainerInvoice, source_id)
        if container is not None:
            return self._apply_container(container)

        raise AllocationSourceNotFoundError(str(source_id))

    # =========================================================================
    # Internals
    # =========================================================================

    def _invoices_for_vehicle(self, vehicle_id: UUID) -> list[Invoice]:
        return list(
            self.session.execute(
                select(Invoice)
                .where(Invoice.vehicle_id == vehicle_id)
                .order_by(Invoice.invoice_number)
            ).scalars()
        )

    def _already_applied(self, cost_invoice: CostInvoice, shared_number: str) -> bool:
        found = self.session.execute(
            select(CostItem.id)
            .where(
                CostItem.cost_invoice_id == cost_invoice.id,
                CostItem.category == self.settings.costs.freight_category,
                CostItem.description.contains(shared_number, autoescape=True),
            )
            .limit(1)
        ).scalar_one_or_none()
        return found is not None

    def _vendor_of(self, shared: SharedInvoice) -> UUID | None:
        try:
            return shared.vendor_id
        except ValueError:
            logger.error(
                "shared_invoice_vendor_malformed",
                extra={
                    "shared_invoice_id": str(shared.id),
                    "vendor_ref": str((shared.meta or {}).get("vendorId")),
                },
            )
            return None

    def _run_pair(
        self,
        vehicle_id: UUID,
        invoice: Invoice,
        step,
    ) -> PairOutcome:
        """
        Run ``step(invoice) -> (outcome, cost_invoice)`` inside a savepoint.

        The savepoint is released on success and rolled back on any error.
        Domain and database errors become a FAILED outcome; anything else
        propagates.
        """
        invoice_id = invoice.id
        try:
            with self.session.begin_nested():
                with LogContext.bind(vehicle_id=str(vehicle_id), invoice_id=str(invoice_id)):
                    outcome, cost_invoice = step(invoice)
                    cost_invoice_id = cost_invoice.id if cost_invoice is not None else None
        except (AutoExportError, SQLAlchemyError) as exc:
            logger.error(
                "cost_allocation_pair_failed",
                exc_info=True,
                extra={"vehicle_id": str(vehicle_id), "invoice_id": str(invoice_id)},
            )
            return PairOutcome(
                vehicle_id=vehicle_id,
                invoice_id=invoice_id,
                outcome=AllocationOutcome.FAILED,
                error_code=exc.code if isinstance(exc, AutoExportError) else type(exc).__name__,
                error_message=str(exc),
            )
        return PairOutcome(
            vehicle_id=vehicle_id,
            invoice_id=invoice_id,
            outcome=outcome,
            cost_invoice_id=cost_invoice_id,
        )

    def _finish(
        self,
        source_id: UUID,
        source_type: AllocationSourceType,
        shared_number: str,
        outcomes: list[PairOutcome],
    ) -> AllocationReport:
        report = AllocationReport(
            source_id=source_id,
            source_type=source_type,
            shared_invoice_number=shared_number,
            outcomes=tuple(outcomes),
        )
        log = logger.info if report.is_complete else logger.warning
        log(
            "cost_allocation_completed",
            extra={
                "source_id": str(source_id),
                "source_type": source_type.value,
                "shared_invoice_number": shared_number,
                "outcome_counts": report.counts(),
            },
        )
        return report

    def _apply_shared(self, shared: SharedInvoice) -> AllocationReport:
        logger.info(
            "cost_allocation_started",
            extra={
                "source_id": str(shared.id),
                "source_type": AllocationSourceType.SHARED_INVOICE.value,
                "shared_invoice_number": shared.invoice_number,
                "vehicle_count": len(shared.vehicles),
            },
        )

        def step(invoice: Invoice):
            cost_invoice, _ = self._costs.get_or_create(invoice)
            self._costs.recompute(cost_invoice, invoice)
            return AllocationOutcome.APPLIED, cost_invoice

        outcomes: list[PairOutcome] = []
        for row in list(shared.vehicles):
            invoices = self._invoices_for_vehicle(row.vehicle_id)
            if not invoices:
                outcomes.append(
                    PairOutcome(row.vehicle_id, None, AllocationOutcome.SKIPPED_NO_INVOICES)
                )
                continue
            for invoice in invoices:
                outcomes.append(self._run_pair(row.vehicle_id, invoice, step))

        return self._finish(
            shared.id, AllocationSourceType.SHARED_INVOICE, shared.invoice_number, outcomes
        )

    def _apply_container(self, container: ContainerInvoice) -> AllocationReport:
        shared = container.shared_invoice
        shared_number = shared.invoice_number
        shares = {row.vehicle_id: row.allocated_amount for row in shared.vehicles}
        vendor_id = self._vendor_of(shared)
        costs_cfg = self.settings.costs

        logger.info(
            "cost_allocation_started",
            extra={
                "source_id": str(container.id),
                "source_type": AllocationSourceType.CONTAINER_INVOICE.value,
                "shared_invoice_number": shared_number,
                "vehicle_count": len(container.vehicles),
            },
        )

        outcomes: list[PairOutcome] = []
        for row in list(container.vehicles):
            vehicle_id = row.vehicle_id
            if vehicle_id not in shares:
                logger.warning(
                    "container_vehicle_not_in_shared_invoice",
                    extra={"vehicle_id": str(vehicle_id), "shared_invoice_number": shared_number},
                )
                outcomes.append(
                    PairOutcome(vehicle_id, None, AllocationOutcome.SKIPPED_NOT_ALLOCATED)
                )
                continue

            invoices = self._invoices_for_vehicle(vehicle_id)
            if not invoices:
                outcomes.append(
                    PairOutcome(vehicle_id, None, AllocationOutcome.SKIPPED_NO_INVOICES)
                )
                continue

            def step(invoice: Invoice, amount=shares[vehicle_id]):
                cost_invoice, _ = self._costs.get_or_create(invoice)

                if self._already_applied(cost_invoice, shared_number):
                    logger.info(
                        "container_freight_already_applied",
                        extra={"shared_invoice_number": shared_number},
                    )
                    self._costs.recompute(cost_invoice, invoice)
                    return AllocationOutcome.ALREADY_APPLIED, cost_invoice

                if vendor_id is None:
                    logger.error(
                        "container_freight_missing_vendor",
                        extra={
                            "shared_invoice_id": str(shared.id),
                            "shared_invoice_number": shared_number,
                        },
                    )
                    return AllocationOutcome.SKIPPED_MISSING_VENDOR, cost_invoice

                cost_invoice.items.append(
                    CostItem(
                        description=costs_cfg.freight_description(shared_number),
                        amount=amount,
                        category=costs_cfg.freight_category,
                        vendor_id=vendor_id,
                        payment_date=shared.invoice_date,
                        payment_deadline=shared.payment_deadline,
                    )
                )
                self.session.flush()
                self._costs.recompute(cost_invoice, invoice)
                return AllocationOutcome.APPLIED, cost_invoice

            for invoice in invoices:
                outcomes.append(self._run_pair(vehicle_id, invoice, step))

        return self._finish(
            container.id, AllocationSourceType.CONTAINER_INVOICE, shared_number, outcomes
        )
