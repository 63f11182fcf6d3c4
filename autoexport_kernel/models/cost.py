"""
Derived cost/profit record of a customer invoice and its cost lines.

CostInvoice rows are recomputed, never patched field by field.  The
``version`` column is the SQLAlchemy version counter: an UPDATE that races
with another writer matches zero rows and raises StaleDataError, which the
service layer turns into OptimisticLockError.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoexport_kernel.db.base import TimestampedBase


class CostInvoice(TimestampedBase):
    """
    Cost, revenue, profit, margin and ROI of one invoice.

    Guarantees:
        - At most one per invoice (uq_cost_invoices_invoice).
        - profit == total_revenue - total_cost after every recompute.
        - version increases by one on every UPDATE.
    """

    __tablename__ = "cost_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_cost_invoices_invoice"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    total_revenue: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    profit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    margin: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    roi: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    recomputed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["CostItem"]] = relationship(
        back_populates="cost_invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<CostInvoice {self.invoice_id} profit={self.profit} v{self.version}>"


class CostItem(TimestampedBase):
    """
    One cost line of a cost invoice.

    A line with category "Freight" whose description contains a shared
    invoice number marks that shared invoice as already applied.
    """

    __tablename__ = "cost_items"

    __table_args__ = (
        Index("idx_cost_items_cost_invoice_id", "cost_invoice_id"),
        Index("idx_cost_items_category", "category"),
    )

    cost_invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("cost_invoices.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vendors.id"), nullable=True
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    cost_invoice: Mapped[CostInvoice] = relationship(back_populates="items")
