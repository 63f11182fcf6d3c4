"""ORM models of the ledger store.  Importing this package registers every table."""

from autoexport_kernel.models.cost import CostInvoice, CostItem
from autoexport_kernel.models.invoice import ChargeType, Invoice, InvoiceCharge
from autoexport_kernel.models.party import Customer, Vendor
from autoexport_kernel.models.shared_invoice import (
    ContainerInvoice,
    ContainerInvoiceVehicle,
    SharedInvoice,
    SharedInvoiceVehicle,
)
from autoexport_kernel.models.transaction import Transaction
from autoexport_kernel.models.vehicle import (
    Vehicle,
    VehicleShippingStage,
    VehicleStageCost,
)

__all__ = [
    "ChargeType",
    "ContainerInvoice",
    "ContainerInvoiceVehicle",
    "CostInvoice",
    "CostItem",
    "Customer",
    "Invoice",
    "InvoiceCharge",
    "SharedInvoice",
    "SharedInvoiceVehicle",
    "Transaction",
    "Vehicle",
    "VehicleShippingStage",
    "VehicleStageCost",
    "Vendor",
]
