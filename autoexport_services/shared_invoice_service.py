"""
SharedInvoiceService -- create, edit and delete vendor invoices split across vehicles.

Responsibility:
    Validates the request, issues the ``{TYPE}-{YYYY}-{NNN}`` number, writes
    the equal-split allocation rows and runs cost allocation for every
    affected vehicle.  Edits that change the vehicle set or the total
    replace the allocation rows wholesale and recompute the vehicles that
    dropped out of the split.

Architecture position:
    Services -- imperative shell.  Flush only; the caller commits.

Invariants enforced:
    - Validation happens before any row is written.
    - sum(allocated_amount) is within n x 0.005 of total_amount after
      every create and every edit.
    - A shared invoice referenced by a container invoice cannot be deleted
      and keeps its CONTAINER type.

Failure modes:
    - MissingFieldError, InvalidAmountError, EmptyVehicleListError,
      DuplicateVehicleError, UnknownVehicleError, MissingVendorError.
    - SharedInvoiceNotFoundError for an unknown id.
    - SharedInvoiceInUseError when deleting or retyping a shared invoice
      that a container invoice was issued from.
    - InvoiceNumberCollisionError when a concurrent create took the number.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from autoexport_config import get_active_settings
from autoexport_config.bridges import numbering_policy
from autoexport_config.schema import LedgerSettings
from autoexport_engines.allocation import AllocationResult, allocate_equally
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.domain.clock import Clock
from autoexport_kernel.domain.dtos import CostItemInput
from autoexport_kernel.domain.patch import SharedInvoicePatch
from autoexport_kernel.exceptions import (
    InvalidAmountError,
    MissingFieldError,
    MissingVendorError,
    SharedInvoiceInUseError,
    SharedInvoiceNotFoundError,
    UnknownVehicleError,
)
from autoexport_kernel.logging_config import LogContext, get_logger
from autoexport_kernel.models import (
    ContainerInvoice,
    SharedInvoice,
    SharedInvoiceVehicle,
    Vehicle,
)
from autoexport_kernel.services.base import BaseService
from autoexport_services.cost_allocation_service import (
    AllocationReport,
    CostAllocationService,
)
from autoexport_services.cost_invoice_service import CostInvoiceService
from autoexport_services.sequence_service import SequenceService

logger = get_logger("services.shared_invoice")


@dataclass(frozen=True)
class SharedInvoiceResult:
    shared_invoice: SharedInvoice
    report: AllocationReport


def _normalize_type(raw: str | None) -> str:
    value = (raw or "").strip().upper()
    if not value:
        raise MissingFieldError("type", "SharedInvoice")
    return value


def _cost_items_metadata(items: Sequence[CostItemInput]) -> list[dict[str, str]]:
    return [item.to_metadata() for item in items]


class SharedInvoiceService(BaseService):
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
        self._costs = CostInvoiceService(session, self.clock, self.settings)

    # =========================================================================
    # Validation
    # =========================================================================

    def _check_total(self, total_amount: Decimal | None) -> Decimal:
        if total_amount is None:
            raise MissingFieldError("total_amount", "SharedInvoice")
        if total_amount <= ZERO:
            raise InvalidAmountError("total_amount", total_amount, "must be positive")
        return round_money(total_amount)

    def _check_vehicles_exist(self, vehicle_ids: Sequence[UUID]) -> None:
        found = set(
            self.session.execute(
                select(Vehicle.id).where(Vehicle.id.in_(list(vehicle_ids)))
            ).scalars()
        )
        missing = [str(vid) for vid in vehicle_ids if vid not in found]
        if missing:
            raise UnknownVehicleError(missing)

    def _split(self, total_amount: Decimal, vehicle_ids: Sequence[UUID]) -> AllocationResult:
        # Empty and duplicate vehicle lists are rejected by the allocator
        # before the existence query runs.
        result = allocate_equally(total_amount=total_amount, vehicle_ids=list(vehicle_ids))
        self._check_vehicles_exist(result.vehicle_ids)
        return result

    def _container_numbers(self, shared: SharedInvoice) -> list[str]:
        """Numbers of the container invoices issued from ``shared``."""
        return list(
            self.session.execute(
                select(ContainerInvoice.invoice_number)
                .where(ContainerInvoice.shared_invoice_id == shared.id)
                .order_by(ContainerInvoice.invoice_number)
            ).scalars()
        )

    def get(self, shared_invoice_id: UUID) -> SharedInvoice:
        shared = self.session.get(SharedInvoice, shared_invoice_id)
        if shared is None:
            raise SharedInvoiceNotFoundError(str(shared_invoice_id))
        return shared

    # =========================================================================
    # Commands
    # =========================================================================

    def create(
        self,
        *,
        type: str,
        total_amount: Decimal,
        date: date,
        payment_deadline: date,
        vehicle_ids: Sequence[UUID],
        vendor_id: UUID | None,
        cost_items: Sequence[CostItemInput] = (),
    ) -> SharedInvoiceResult:
        """
        Persist a shared invoice, split it equally and apply it to the
        vehicles' cost records.
        """
        doc_type = _normalize_type(type)
        total_amount = self._check_total(total_amount)
        if date is None:
            raise MissingFieldError("date", "SharedInvoice")
        if payment_deadline is None:
            raise MissingFieldError("payment_deadline", "SharedInvoice")
        allocation = self._split(total_amount, vehicle_ids)
        if vendor_id is None:
            raise MissingVendorError()

        number = self._sequences.next_number(
            SharedInvoice.invoice_number,
            numbering_policy(self.settings.numbering.shared_invoice),
            year=self.clock.today().year,
            doc_type=doc_type,
        )
        shared = SharedInvoice(
            type=doc_type,
            invoice_number=number,
            total_amount=total_amount,
            invoice_date=date,
            payment_deadline=payment_deadline,
            meta={
                "vendorId": str(vendor_id),
                "costItems": _cost_items_metadata(cost_items),
            },
            vehicles=[
                SharedInvoiceVehicle(vehicle_id=share.vehicle_id, allocated_amount=share.amount)
                for share in allocation.shares
            ],
        )
        self._sequences.guarded_insert(shared, number, "SharedInvoice")

        logger.info(
            "shared_invoice_created",
            extra={
                "shared_invoice_id": str(shared.id),
                "invoice_number": number,
                "type": doc_type,
                "total_amount": str(total_amount),
                "vehicle_count": len(allocation.shares),
                "allocation_drift": str(allocation.drift),
            },
        )

        with LogContext.bind(source_id=str(shared.id)):
            report = self._allocation.apply_to_vehicle_cost_invoices(shared.id)
        return SharedInvoiceResult(shared_invoice=shared, report=report)

    def update(self, shared_invoice_id: UUID, patch: SharedInvoicePatch) -> SharedInvoiceResult:
        """
        Apply a partial edit.

        Supplying ``vehicle_ids`` or ``total_amount`` re-splits the invoice:
        every allocation row is deleted and re-created.
        """
        shared = self.get(shared_invoice_id)
        changes = patch.provided()

        # Validate everything before touching the row.
        new_type = _normalize_type(changes["type"]) if "type" in changes else None
        new_total = (
            self._check_total(changes["total_amount"]) if "total_amount" in changes else None
        )
        if "date" in changes and changes["date"] is None:
            raise MissingFieldError("date", "SharedInvoice")
        if "payment_deadline" in changes and changes["payment_deadline"] is None:
            raise MissingFieldError("payment_deadline", "SharedInvoice")
        if "vendor_id" in changes and changes["vendor_id"] is None:
            raise MissingVendorError(str(shared.id))
        if new_type is not None and new_type != shared.type:
            container_numbers = self._container_numbers(shared)
            if container_numbers:
                raise SharedInvoiceInUseError(str(shared.id), container_numbers)

        old_vehicle_ids = [row.vehicle_id for row in shared.vehicles]
        resplit = "vehicle_ids" in changes or new_total is not None
        allocation: AllocationResult | None = None
        if resplit:
            allocation = self._split(
                new_total if new_total is not None else shared.total_amount,
                changes.get("vehicle_ids", old_vehicle_ids),
            )

        if new_type is not None:
            shared.type = new_type
        if new_total is not None:
            shared.total_amount = new_total
        if "date" in changes:
            shared.invoice_date = changes["date"]
        if "payment_deadline" in changes:
            shared.payment_deadline = changes["payment_deadline"]

        meta: dict[str, Any] = dict(shared.meta or {})
        if "vendor_id" in changes:
            meta["vendorId"] = str(changes["vendor_id"])
        if "cost_items" in changes:
            meta["costItems"] = _cost_items_metadata(changes["cost_items"])
        shared.meta = meta

        removed: list[UUID] = []
        if allocation is not None:
            shared.vehicles.clear()
            self.session.flush()
            shared.vehicles.extend(
                SharedInvoiceVehicle(vehicle_id=share.vehicle_id, allocated_amount=share.amount)
                for share in allocation.shares
            )
            removed = [vid for vid in old_vehicle_ids if vid not in allocation.vehicle_ids]
        self.session.flush()

        logger.info(
            "shared_invoice_updated",
            extra={
                "shared_invoice_id": str(shared.id),
                "invoice_number": shared.invoice_number,
                "fields": sorted(changes),
                "resplit": resplit,
                "removed_vehicle_count": len(removed),
            },
        )

        with LogContext.bind(source_id=str(shared.id)):
            report = self._allocation.apply_to_vehicle_cost_invoices(shared.id)
            for vehicle_id in removed:
                self._costs.recompute_for_vehicle(vehicle_id)
        return SharedInvoiceResult(shared_invoice=shared, report=report)

    def delete(self, shared_invoice_id: UUID) -> list[UUID]:
        """
        Delete a shared invoice and recompute the vehicles it was split over.

        Returns:
            The vehicle ids whose cost records were recomputed.
        """
        shared = self.get(shared_invoice_id)

        container_numbers = self._container_numbers(shared)
        if container_numbers:
            raise SharedInvoiceInUseError(str(shared.id), container_numbers)

        vehicle_ids = [row.vehicle_id for row in shared.vehicles]
        number = shared.invoice_number
        self.session.delete(shared)
        self.session.flush()
        logger.info(
            "shared_invoice_deleted",
            extra={
                "shared_invoice_id": str(shared_invoice_id),
                "invoice_number": number,
                "vehicle_count": len(vehicle_ids),
            },
        )

        for vehicle_id in vehicle_ids:
            self._costs.recompute_for_vehicle(vehicle_id)
        return vehicle_ids
