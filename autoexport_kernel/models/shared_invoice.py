"""
Shared vendor invoices and container invoices with their per-vehicle
allocation rows.

A SharedInvoice is one vendor bill (container freight, forwarder fees)
split across several vehicles.  A ContainerInvoice is the customer-facing
bill derived from a CONTAINER shared invoice.  Allocation rows on both are
replaced wholesale on edit, never patched in place.

The vendor and the vendor's line breakdown live in the shared invoice's
``metadata`` JSON column:

    {"vendorId": "<uuid>", "costItems": [{"description": "...", "amount": "123.45"}]}
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoexport_kernel.db.base import Base, TimestampedBase


class SharedInvoice(TimestampedBase):
    """
    Vendor invoice split across vehicles.

    Guarantees:
        - invoice_number is unique (uq_shared_invoices_number).
        - sum(vehicles.allocated_amount) is within n x 0.005 of total_amount
          (kept by the allocation algorithm, not by a constraint).
    """

    __tablename__ = "shared_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_shared_invoices_number"),
        Index("idx_shared_invoices_type", "type"),
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    invoice_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    payment_deadline: Mapped[date] = mapped_column(Date, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    vehicles: Mapped[list["SharedInvoiceVehicle"]] = relationship(
        back_populates="shared_invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def vendor_id(self) -> UUID | None:
        raw = (self.meta or {}).get("vendorId")
        return UUID(str(raw)) if raw else None

    @property
    def cost_items(self) -> list[dict[str, str]]:
        return list((self.meta or {}).get("costItems") or [])

    def __repr__(self) -> str:
        return f"<SharedInvoice {self.invoice_number} {self.total_amount}>"


class SharedInvoiceVehicle(Base):
    """One vehicle's share of a shared invoice."""

    __tablename__ = "shared_invoice_vehicles"

    __table_args__ = (
        UniqueConstraint(
            "shared_invoice_id", "vehicle_id", name="uq_shared_invoice_vehicle"
        ),
        Index("idx_shared_invoice_vehicles_vehicle_id", "vehicle_id"),
    )

    shared_invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("shared_invoices.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[UUID] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)

    shared_invoice: Mapped[SharedInvoice] = relationship(back_populates="vehicles")


class ContainerInvoice(TimestampedBase):
    """
    Customer-facing container freight invoice.

    Guarantees:
        - shared_invoice_id references a shared invoice of type CONTAINER
          (checked by ContainerInvoiceService).
        - total_amount equals the sum of its allocation rows at creation.
    """

    __tablename__ = "container_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_container_invoices_number"),
        Index("idx_container_invoices_customer_id", "customer_id"),
        Index("idx_container_invoices_shared_invoice_id", "shared_invoice_id"),
    )

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    shared_invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("shared_invoices.id"), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    tax_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    shared_invoice: Mapped[SharedInvoice] = relationship(lazy="joined")
    vehicles: Mapped[list["ContainerInvoiceVehicle"]] = relationship(
        back_populates="container_invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ContainerInvoice {self.invoice_number} {self.total_amount}>"


class ContainerInvoiceVehicle(Base):
    __tablename__ = "container_invoice_vehicles"

    __table_args__ = (
        UniqueConstraint(
            "container_invoice_id", "vehicle_id", name="uq_container_invoice_vehicle"
        ),
    )

    container_invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("container_invoices.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id: Mapped[UUID] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)

    container_invoice: Mapped[ContainerInvoice] = relationship(back_populates="vehicles")
