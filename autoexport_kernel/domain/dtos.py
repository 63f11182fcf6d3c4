"""
Input value objects passed from the route layer into services.

All are frozen dataclasses; amounts are Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ChargeInput:
    """One invoice charge line as submitted.

    ``charge_type`` is the free-text label ("Vehicle price", "Deposit", ...);
    it is resolved to a ChargeType row case-insensitively.
    """

    description: str
    amount: Decimal
    charge_type: str | None = None


@dataclass(frozen=True)
class CostItemInput:
    """Line of a shared invoice's vendor breakdown (stored in metadata)."""

    description: str
    amount: Decimal

    def to_metadata(self) -> dict[str, str]:
        return {"description": self.description, "amount": str(self.amount)}


@dataclass(frozen=True)
class ContainerVehicleInput:
    """Per-vehicle amount billed on a container invoice."""

    vehicle_id: UUID
    allocated_amount: Decimal


@dataclass(frozen=True)
class InvoiceDraft:
    """Everything needed to issue one customer invoice."""

    customer_id: UUID
    charges: tuple[ChargeInput, ...] = ()
    vehicle_id: UUID | None = None
    tax_enabled: bool = False
    tax_rate: Decimal | None = None
    issue_date: date | None = None
    due_date: date | None = None
    notes: str | None = None
