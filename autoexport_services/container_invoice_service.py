"""
ContainerInvoiceService -- issue customer container invoices from a CONTAINER shared invoice.

Responsibility:
    Persists the ``CONTAINER-YYYY-NNN`` invoice with its per-vehicle
    allocation mirror, then applies the shared invoice's freight to the
    cost record of every invoice of those vehicles (one "Freight" cost
    line per cost invoice, written once).

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Failure modes:
    - MissingFieldError for a missing customer or shared invoice id.
    - SharedInvoiceNotFoundError, SharedInvoiceTypeError (not CONTAINER).
    - EmptyVehicleListError, DuplicateVehicleError, UnknownVehicleError,
      InvalidAmountError.
    - InvoiceNumberCollisionError when a concurrent create took the number.
    - A shared invoice without a vendor is NOT rejected here; the freight
      step skips each pair and the report says SKIPPED_MISSING_VENDOR.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.bridges import numbering_policy
from autoexport_config.schema import LedgerSettings
from autoexport_engines.allocation import explicit_allocation
from autoexport_kernel.db.types import ZERO
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.dtos import ContainerVehicleInput
from autoexport_kernel.domain.statuses import SharedInvoiceType
from autoexport_kernel.exceptions import (
    ContainerInvoiceNotFoundError,
    EmptyVehicleListError,
    InvalidAmountError,
    MissingFieldError,
    SharedInvoiceNotFoundError,
    SharedInvoiceTypeError,
    UnknownVehicleError,
)
from autoexport_kernel.logging_config import LogContext, get_logger
from autoexport_kernel.models import (
    ContainerInvoice,
    ContainerInvoiceVehicle,
    SharedInvoice,
    Vehicle,
)
from autoexport_kernel.services.base import BaseService
from autoexport_services.cost_allocation_service import (
    AllocationReport,
    CostAllocationService,
)
from autoexport_services.sequence_service import SequenceService

logger = get_logger("services.container_invoice")


@dataclass(frozen=True)
class ContainerInvoiceResult:
    container_invoice: ContainerInvoice
    report: AllocationReport


class ContainerInvoiceService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or get_active_settings()
        self._sequences = SequenceService(session)
        self._allocation = CostAllocationService(session, self.clock, self.settings)

    def get(self, container_invoice_id: UUID) -> ContainerInvoice:
        container = self.session.get(ContainerInvoice, container_invoice_id)
        if container is None:
            raise ContainerInvoiceNotFoundError(str(container_invoice_id))
        return container

    def _load_container_source(self, shared_invoice_id: UUID) -> SharedInvoice:
        shared = self.session.get(SharedInvoice, shared_invoice_id)
        if shared is None:
            raise SharedInvoiceNotFoundError(str(shared_invoice_id))
        actual = (shared.type or "").strip().upper()
        if actual != SharedInvoiceType.CONTAINER.value:
            raise SharedInvoiceTypeError(
                str(shared.id), SharedInvoiceType.CONTAINER.value, shared.type
            )
        return shared

    def create(
        self,
        *,
        customer_id: UUID,
        shared_invoice_id: UUID,
        vehicles: Sequence[ContainerVehicleInput],
        issue_date: date | None = None,
        due_date: date | None = None,
        tax_enabled: bool | None = None,
        tax_rate: Decimal | None = None,
        notes: str | None = None,
    ) -> ContainerInvoiceResult:
        if customer_id is None:
            raise MissingFieldError("customer_id", "ContainerInvoice")
        if shared_invoice_id is None:
            raise MissingFieldError("shared_invoice_id", "ContainerInvoice")
        if not vehicles:
            raise EmptyVehicleListError("ContainerInvoice")

        shared = self._load_container_source(shared_invoice_id)
        allocation = explicit_allocation(
            [(v.vehicle_id, v.allocated_amount) for v in vehicles],
            entity_type="ContainerInvoice",
        )

        found = set(
            self.session.execute(
                select(Vehicle.id).where(Vehicle.id.in_(list(allocation.vehicle_ids)))
            ).scalars()
        )
        missing = [str(vid) for vid in allocation.vehicle_ids if vid not in found]
        if missing:
            raise UnknownVehicleError(missing)

        defaults = self.settings.container_invoices
        if tax_enabled is None:
            tax_enabled = defaults.default_tax_enabled
        if tax_rate is None:
            tax_rate = defaults.default_tax_rate
        if tax_rate < ZERO:
            raise InvalidAmountError("tax_rate", tax_rate, "must not be negative")

        issued_on = issue_date or self.clock.today()
        number = self._sequences.next_number(
            ContainerInvoice.invoice_number,
            numbering_policy(self.settings.numbering.container_invoice),
            year=self.clock.today().year,
        )
        container = ContainerInvoice(
            invoice_number=number,
            customer_id=customer_id,
            shared_invoice_id=shared.id,
            total_amount=allocation.allocated_total,
            issue_date=issued_on,
            due_date=due_date,
            tax_enabled=tax_enabled,
            tax_rate=tax_rate,
            notes=notes,
            vehicles=[
                ContainerInvoiceVehicle(vehicle_id=share.vehicle_id, allocated_amount=share.amount)
                for share in allocation.shares
            ],
        )
        self._sequences.guarded_insert(container, number, "ContainerInvoice")

        logger.info(
            "container_invoice_created",
            extra={
                "container_invoice_id": str(container.id),
                "invoice_number": number,
                "shared_invoice_number": shared.invoice_number,
                "total_amount": str(container.total_amount),
                "vehicle_count": len(allocation.shares),
            },
        )

        with LogContext.bind(source_id=str(container.id)):
            report = self._allocation.apply_to_vehicle_cost_invoices(container.id)
        return ContainerInvoiceResult(container_invoice=container, report=report)
