#!/usr/bin/env python3
"""
Recalculate derived ledger state from the stored source rows.

Subcommands:
  payments   Re-derive the payment status of every invoice from its
             INCOMING transactions (PENDING / PARTIALLY_PAID / PAID).
  costs      Recompute every existing cost invoice (revenue, cost,
             profit, margin, roi) from live charges, cost lines and
             shared-invoice allocations.

Usage:
    python3 scripts/recalc_ledger.py payments
    python3 scripts/recalc_ledger.py costs --database-url postgresql://...
    python3 scripts/recalc_ledger.py payments --config path/to/settings.yaml

The database URL defaults to the settings file (or AUTOEXPORT_DATABASE_URL).
Everything runs in one transaction: a failure rolls the whole run back.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recalculate payment statuses or cost invoices.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "command",
        choices=("payments", "costs"),
        help="What to recalculate.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: from settings).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: the packaged default set).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level for the structured log stream (default: INFO).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from sqlalchemy.exc import SQLAlchemyError

    from autoexport_config import get_active_settings
    from autoexport_kernel.db.engine import init_engine_from_url, session_scope
    from autoexport_kernel.domain.clock import SystemClock
    from autoexport_kernel.exceptions import AutoExportError
    from autoexport_kernel.logging_config import configure_logging
    from autoexport_services.cost_invoice_service import CostInvoiceService
    from autoexport_services.payment_reconciliation_service import (
        PaymentReconciliationService,
    )

    configure_logging(level=args.log_level.upper())

    try:
        settings = get_active_settings(args.config)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: Failed to load settings: {e}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(
            args.database_url or settings.database.url,
            echo=settings.database.echo,
        )
    except SQLAlchemyError as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    clock = SystemClock()
    try:
        with session_scope() as session:
            if args.command == "payments":
                summary = PaymentReconciliationService(session, clock, settings).recalculate_all()
                print(
                    f"Checked {summary.invoices_checked} invoices, "
                    f"{summary.invoices_changed} changed."
                )
            else:
                count = CostInvoiceService(session, clock, settings).recompute_all()
                print(f"Recomputed {count} cost invoices.")
    except (AutoExportError, SQLAlchemyError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
