"""
Module: autoexport_engines.allocation
Responsibility:
    Split a shared vendor invoice total across vehicles.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Equal split: each share is total / n rounded to the cent on its own.
      The rounding drift is REPORTED, not corrected, so no vehicle carries
      a penny adjustment.  |sum(shares) - total| <= n x 0.005.
    - At least one vehicle and no vehicle listed twice.
    - Amounts are never negative.

Failure modes:
    - EmptyVehicleListError when no vehicles are given.
    - DuplicateVehicleError when a vehicle appears twice.
    - InvalidAmountError for a negative total or share.

Usage:
    result = allocate_equally(total_amount=Decimal("100"), vehicle_ids=[a, b, c])
    result.as_mapping()  # {a: Decimal("33.33"), b: Decimal("33.33"), c: Decimal("33.33")}
    result.drift         # Decimal("-0.01")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from autoexport_engines.tracer import traced_engine
from autoexport_kernel.db.types import ZERO, round_money
from autoexport_kernel.exceptions import (
    DuplicateVehicleError,
    EmptyVehicleListError,
    InvalidAmountError,
)
from autoexport_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

_HALF_CENT = Decimal("0.005")


@dataclass(frozen=True)
class VehicleShare:
    vehicle_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class AllocationResult:
    """
    Per-vehicle split of one amount.

    Guarantees:
        - shares preserve the caller's vehicle order.
        - drift == allocated_total - total_amount.
    """

    total_amount: Decimal
    shares: tuple[VehicleShare, ...]

    @property
    def allocated_total(self) -> Decimal:
        return sum((s.amount for s in self.shares), ZERO)

    @property
    def drift(self) -> Decimal:
        return self.allocated_total - self.total_amount

    @property
    def max_drift(self) -> Decimal:
        """Largest drift independent per-share rounding can produce."""
        return _HALF_CENT * len(self.shares)

    @property
    def vehicle_ids(self) -> tuple[UUID, ...]:
        return tuple(s.vehicle_id for s in self.shares)

    def as_mapping(self) -> dict[UUID, Decimal]:
        return {s.vehicle_id: s.amount for s in self.shares}


def _check_vehicle_ids(vehicle_ids: Sequence[UUID], entity_type: str) -> None:
    if not vehicle_ids:
        raise EmptyVehicleListError(entity_type)
    seen: set[UUID] = set()
    for vid in vehicle_ids:
        if vid in seen:
            raise DuplicateVehicleError(str(vid))
        seen.add(vid)


@traced_engine("allocation.equal", "1.0", fingerprint_fields=("total_amount", "vehicle_ids"))
def allocate_equally(
    *,
    total_amount: Decimal,
    vehicle_ids: Sequence[UUID],
) -> AllocationResult:
    """Split ``total_amount`` evenly; every share rounded independently."""
    _check_vehicle_ids(vehicle_ids, "SharedInvoice")
    if total_amount < ZERO:
        raise InvalidAmountError("total_amount", total_amount, "must not be negative")

    share = round_money(total_amount / len(vehicle_ids))
    result = AllocationResult(
        total_amount=total_amount,
        shares=tuple(VehicleShare(vehicle_id=vid, amount=share) for vid in vehicle_ids),
    )

    if result.drift != ZERO:
        logger.info(
            "allocation_rounding_drift",
            extra={
                "total_amount": str(total_amount),
                "vehicle_count": len(vehicle_ids),
                "drift": str(result.drift),
            },
        )
    return result


@traced_engine("allocation.explicit", "1.0")
def explicit_allocation(
    shares: Sequence[tuple[UUID, Decimal]],
    entity_type: str = "ContainerInvoice",
) -> AllocationResult:
    """
    Validate caller-chosen per-vehicle amounts.

    The total is the sum of the shares, so drift is always zero.
    """
    _check_vehicle_ids([vid for vid, _ in shares], entity_type)
    normalized: list[VehicleShare] = []
    for vid, amount in shares:
        if amount < ZERO:
            raise InvalidAmountError("allocated_amount", amount, "must not be negative")
        normalized.append(VehicleShare(vehicle_id=vid, amount=round_money(amount)))
    total = sum((s.amount for s in normalized), ZERO)
    return AllocationResult(total_amount=total, shares=tuple(normalized))
