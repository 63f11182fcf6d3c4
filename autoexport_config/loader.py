"""
Settings loader (``autoexport_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``autoexport_config.schema``.  Runtime code obtains settings through
``autoexport_config.get_active_settings()``; calling the loader directly is
build/test tooling.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (negative tolerance, unknown stage, ...)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from autoexport_config.schema import (
    ChargeSettings,
    ContainerInvoiceSettings,
    CostSettings,
    DatabaseSettings,
    LedgerSettings,
    NumberingDef,
    NumberingSettings,
    ReconciliationSettings,
)
from autoexport_kernel.domain.statuses import ShippingStage


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, float):
        # YAML floats are quoted in shipped sets; accept unquoted via str()
        value = str(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field}: not a decimal: {value!r}") from exc


def parse_numbering_def(data: dict[str, Any], field: str) -> NumberingDef:
    floor = int(data.get("floor", 1))
    width = int(data.get("width", 0))
    if floor < 1:
        raise ValueError(f"{field}.floor must be at least 1")
    if width < 0:
        raise ValueError(f"{field}.width cannot be negative")
    return NumberingDef(
        prefix=str(data["prefix"]),
        floor=floor,
        width=width,
        yearly=bool(data.get("yearly", False)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingSettings:
    return NumberingSettings(
        invoice=parse_numbering_def(data["invoice"], "numbering.invoice"),
        container_invoice=parse_numbering_def(
            data["container_invoice"], "numbering.container_invoice"
        ),
        shared_invoice=parse_numbering_def(
            data["shared_invoice"], "numbering.shared_invoice"
        ),
    )


def parse_charges(data: dict[str, Any]) -> ChargeSettings:
    labels = data.get("subtracting_labels") or []
    return ChargeSettings(
        subtracting_labels=frozenset(str(label).strip().lower() for label in labels),
        default_charge_type=str(data.get("default_charge_type", "CUSTOM")),
    )


def parse_costs(data: dict[str, Any]) -> CostSettings:
    template = str(data.get("freight_description_template", "Container Freight ({number})"))
    if "{number}" not in template:
        raise ValueError("costs.freight_description_template must contain {number}")
    return CostSettings(
        freight_category=str(data.get("freight_category", "Freight")),
        freight_description_template=template,
    )


def parse_container_invoices(data: dict[str, Any]) -> ContainerInvoiceSettings:
    return ContainerInvoiceSettings(
        default_tax_enabled=bool(data.get("default_tax_enabled", False)),
        default_tax_rate=_decimal(
            data.get("default_tax_rate", "10"), "container_invoices.default_tax_rate"
        ),
    )


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationSettings:
    tolerance = _decimal(data.get("tolerance", "0.01"), "reconciliation.tolerance")
    if tolerance < 0:
        raise ValueError("reconciliation.tolerance cannot be negative")
    stage = str(data.get("default_stage", ShippingStage.PURCHASE.value))
    ShippingStage(stage)  # ValueError on an unknown stage
    return ReconciliationSettings(
        tolerance=tolerance,
        default_stage=stage,
        wallet_currency=str(data.get("wallet_currency", "JPY")).upper(),
        wallet_deposit_description=str(data.get("wallet_deposit_description", "Deposit")),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    db = data.get("database") or {}
    return LedgerSettings(
        name=str(data["name"]),
        version=int(data.get("version", 1)),
        database=DatabaseSettings(url=str(db["url"]), echo=bool(db.get("echo", False))),
        numbering=parse_numbering(data["numbering"]),
        charges=parse_charges(data.get("charges") or {}),
        costs=parse_costs(data.get("costs") or {}),
        container_invoices=parse_container_invoices(data.get("container_invoices") or {}),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> LedgerSettings:
    return parse_settings(load_yaml_file(path))
