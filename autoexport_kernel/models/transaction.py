"""
Payment transactions.

INCOMING transactions linked to an invoice drive its payment status;
linked to a vehicle they drive the vehicle's received total.  OUTGOING
transactions linked to a cost line stamp that line's payment date.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autoexport_kernel.db.base import TimestampedBase
from autoexport_kernel.domain.statuses import TransactionDirection, TransactionType


class Transaction(TimestampedBase):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transactions_invoice_id", "invoice_id"),
        Index("idx_transactions_vehicle_id", "vehicle_id"),
        Index("idx_transactions_customer_id", "customer_id"),
        Index("idx_transactions_direction", "direction"),
    )

    direction: Mapped[TransactionDirection] = mapped_column(String(10), nullable=False)
    type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="JPY", nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True
    )
    vehicle_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True
    )
    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    cost_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cost_items.id", ondelete="SET NULL"), nullable=True
    )
    vehicle_stage_cost_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vehicle_stage_costs.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.direction} {self.amount} {self.currency}>"
