"""
LedgerSettings schema.

The human-authored YAML in ``sets/`` is parsed by the loader into these
frozen dataclasses.  Services receive a LedgerSettings instance; they
never read YAML or environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class NumberingDef:
    """One document family's numbering (see autoexport_engines.numbering)."""

    prefix: str
    floor: int = 1
    width: int = 0
    yearly: bool = False


@dataclass(frozen=True)
class NumberingSettings:
    invoice: NumberingDef
    container_invoice: NumberingDef
    shared_invoice: NumberingDef


@dataclass(frozen=True)
class ChargeSettings:
    subtracting_labels: frozenset[str]
    default_charge_type: str = "CUSTOM"


@dataclass(frozen=True)
class CostSettings:
    freight_category: str = "Freight"
    freight_description_template: str = "Container Freight ({number})"

    def freight_description(self, shared_invoice_number: str) -> str:
        return self.freight_description_template.format(number=shared_invoice_number)


@dataclass(frozen=True)
class ContainerInvoiceSettings:
    default_tax_enabled: bool = False
    default_tax_rate: Decimal = Decimal("10")


@dataclass(frozen=True)
class ReconciliationSettings:
    tolerance: Decimal = Decimal("0.01")
    default_stage: str = "PURCHASE"
    wallet_currency: str = "JPY"
    wallet_deposit_description: str = "Deposit"


@dataclass(frozen=True)
class LedgerSettings:
    """Complete, validated settings of one deployment."""

    name: str
    version: int
    database: DatabaseSettings
    numbering: NumberingSettings
    charges: ChargeSettings
    costs: CostSettings
    container_invoices: ContainerInvoiceSettings
    reconciliation: ReconciliationSettings
    checksum: str = ""
