"""
Customer and Vendor identity rows.

Only the fields the ledger core reads are modelled; addresses, phone
numbers and portal accounts live outside the core.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from autoexport_kernel.db.base import TimestampedBase


class Customer(TimestampedBase):
    """Buyer of vehicles; owner of invoices and container invoices."""

    __tablename__ = "customers"

    __table_args__ = (Index("idx_customers_name", "name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"


class Vendor(TimestampedBase):
    """Supplier (forwarder, shipping line, auction house, workshop)."""

    __tablename__ = "vendors"

    __table_args__ = (Index("idx_vendors_name", "name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Vendor {self.name}>"
