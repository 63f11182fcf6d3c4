"""
Customer invoices, their ordered charge lines, and charge types.

Invoice totals are never stored; they are derived on demand by
``autoexport_engines.charges.compute_invoice_totals`` from the charge lines
and the tax settings.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoexport_kernel.db.base import Base, TimestampedBase
from autoexport_kernel.domain.statuses import InvoiceStatus, PaymentStatus


class ChargeType(Base):
    """Named charge category.  Labels are unique case-insensitively."""

    __tablename__ = "charge_types"

    __table_args__ = (UniqueConstraint("name", name="uq_charge_types_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<ChargeType {self.name}>"


class Invoice(TimestampedBase):
    """
    Customer-facing invoice.

    Guarantees:
        - invoice_number is unique (uq_invoices_number).
        - charges are kept in ``position`` order and replaced wholesale
          on edit (delete-orphan cascade).
        - payment_status is written only by payment reconciliation or an
          explicit cancel.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_number"),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_vehicle_id", "vehicle_id"),
        Index("idx_invoices_payment_status", "payment_status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    vehicle_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vehicles.id"), nullable=True
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        String(20), default=InvoiceStatus.DRAFT, nullable=False
    )
    tax_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20), default=PaymentStatus.PENDING, nullable=False
    )
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    finalized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    share_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    charges: Mapped[list["InvoiceCharge"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceCharge.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} {self.payment_status}>"


class InvoiceCharge(Base):
    """One line of an invoice.  ``amount`` is non-negative; the label decides its sign."""

    __tablename__ = "invoice_charges"

    __table_args__ = (Index("idx_invoice_charges_invoice_id", "invoice_id"),)

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    charge_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("charge_types.id"), nullable=True
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invoice: Mapped[Invoice] = relationship(back_populates="charges")
    charge_type: Mapped[ChargeType | None] = relationship(lazy="joined")

    @property
    def label(self) -> str | None:
        """Charge-type name used for add/subtract classification."""
        return self.charge_type.name if self.charge_type is not None else None
