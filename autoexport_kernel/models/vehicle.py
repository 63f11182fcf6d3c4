"""
Vehicle, its shipping-stage aggregate, and per-stage costs.

VehicleShippingStage is 1:1 with Vehicle and is upserted by payment
reconciliation: ``total_received`` is the sum of INCOMING transactions
linked to the vehicle and ``total_charges`` the sum of the vehicle's
invoice totals.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoexport_kernel.db.base import TimestampedBase
from autoexport_kernel.domain.statuses import ShippingStage


class Vehicle(TimestampedBase):
    __tablename__ = "vehicles"

    __table_args__ = (
        UniqueConstraint("vin", name="uq_vehicles_vin"),
        Index("idx_vehicles_customer_id", "customer_id"),
    )

    vin: Mapped[str] = mapped_column(String(32), nullable=False)
    make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    year: Mapped[int | None] = mapped_column(nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )

    shipping_stage: Mapped["VehicleShippingStage"] = relationship(
        back_populates="vehicle",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.vin}>"


class VehicleShippingStage(TimestampedBase):
    """
    Per-vehicle logistics and payment aggregate.

    Guarantees:
        - At most one row per vehicle (uq_vehicle_shipping_stages_vehicle).
        - total_received / total_charges / purchase_paid are overwritten
          by reconciliation, never incremented.
    """

    __tablename__ = "vehicle_shipping_stages"

    __table_args__ = (
        UniqueConstraint("vehicle_id", name="uq_vehicle_shipping_stages_vehicle"),
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    stage: Mapped[ShippingStage] = mapped_column(
        String(20), default=ShippingStage.PURCHASE, nullable=False
    )
    total_received: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_charges: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    purchase_paid: Mapped[bool] = mapped_column(Boolean, default=False)

    vehicle: Mapped[Vehicle] = relationship(back_populates="shipping_stage")

    def __repr__(self) -> str:
        return f"<VehicleShippingStage {self.vehicle_id} {self.stage}>"


class VehicleStageCost(TimestampedBase):
    """A cost booked against one logistics stage of a vehicle."""

    __tablename__ = "vehicle_stage_costs"

    __table_args__ = (Index("idx_vehicle_stage_costs_vehicle_id", "vehicle_id"),)

    vehicle_id: Mapped[UUID] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
    stage: Mapped[ShippingStage] = mapped_column(String(20), nullable=False)
    cost_type: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    vendor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vendors.id"), nullable=True
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
