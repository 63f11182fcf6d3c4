"""
Partial-update commands with explicit presence.

Responsibility:
    Edit operations distinguish "field not supplied" from "field supplied
    as None".  Every patch field defaults to the ``UNSET`` sentinel;
    services apply only fields for which ``is_set`` is true.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Usage:
    patch = InvoicePatch(tax_enabled=True, tax_rate=Decimal("10"))
    patch.provided()  # {"tax_enabled": True, "tax_rate": Decimal("10")}
    InvoicePatch(due_date=None).provided()  # {"due_date": None}  (clears it)
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, Final
from uuid import UUID

from autoexport_kernel.domain.dtos import ChargeInput, CostItemInput
from autoexport_kernel.domain.statuses import TransactionDirection, TransactionType


class _Unset:
    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset()


def is_set(value: Any) -> bool:
    """True when a patch field was supplied (even if supplied as None)."""
    return value is not UNSET


class _Patch:
    def provided(self) -> dict[str, Any]:
        """Return only the supplied fields."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)  # type: ignore[arg-type]
            if is_set(getattr(self, f.name))
        }

    @property
    def is_empty(self) -> bool:
        return not self.provided()


@dataclass(frozen=True)
class InvoicePatch(_Patch):
    """Edit of a customer invoice.

    ``charges`` replaces the full charge list when supplied.
    """

    charges: tuple[ChargeInput, ...] | Any = UNSET
    tax_enabled: bool | Any = UNSET
    tax_rate: Decimal | None | Any = UNSET
    due_date: date | None | Any = UNSET
    vehicle_id: UUID | None | Any = UNSET
    notes: str | None | Any = UNSET

    @property
    def touches_totals(self) -> bool:
        """True when the edit can change the invoice total."""
        return any(
            is_set(v) for v in (self.charges, self.tax_enabled, self.tax_rate)
        )


@dataclass(frozen=True)
class SharedInvoicePatch(_Patch):
    """Edit of a shared vendor invoice.

    ``vehicle_ids`` replaces the allocation rows wholesale when supplied.
    ``vendor_id`` and ``cost_items`` are merged into the stored metadata.
    """

    type: str | Any = UNSET
    total_amount: Decimal | Any = UNSET
    date: date | Any = UNSET
    payment_deadline: date | Any = UNSET
    vendor_id: UUID | None | Any = UNSET
    cost_items: tuple[CostItemInput, ...] | Any = UNSET
    vehicle_ids: tuple[UUID, ...] | Any = UNSET


@dataclass(frozen=True)
class TransactionPatch(_Patch):
    """Edit of a payment transaction.  Links may be moved or cleared."""

    direction: TransactionDirection | Any = UNSET
    type: TransactionType | Any = UNSET
    amount: Decimal | Any = UNSET
    currency: str | Any = UNSET
    date: date | Any = UNSET
    description: str | None | Any = UNSET
    invoice_id: UUID | None | Any = UNSET
    vehicle_id: UUID | None | Any = UNSET
    customer_id: UUID | None | Any = UNSET
    vendor_id: UUID | None | Any = UNSET
    cost_item_id: UUID | None | Any = UNSET
    vehicle_stage_cost_id: UUID | None | Any = UNSET


@dataclass(frozen=True)
class CostItemPatch(_Patch):
    description: str | Any = UNSET
    amount: Decimal | Any = UNSET
    category: str | None | Any = UNSET
    vendor_id: UUID | None | Any = UNSET
    payment_date: date | None | Any = UNSET
    payment_deadline: date | None | Any = UNSET
