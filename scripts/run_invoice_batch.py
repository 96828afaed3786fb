#!/usr/bin/env python3
"""
Run the monthly school invoice batch once, or keep the scheduler running.

Uses the active configuration (``BILLING_CONFIG`` / ``BILLING_DATABASE_URL``
or ``billing_config/sets/default.yaml``).

Usage:
    python3 scripts/run_invoice_batch.py [options]

Examples:
    # Bill the period derived from today (scheduler.billing_period mode)
    python3 scripts/run_invoice_batch.py

    # Bill an explicit month
    python3 scripts/run_invoice_batch.py --month 6 --year 2024

    # Run the cron scheduler in the foreground until interrupted
    python3 scripts/run_invoice_batch.py --schedule
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from uuid import UUID, uuid4

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate monthly school invoices for all active schools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a configuration YAML (default: BILLING_CONFIG env or default set).",
    )
    parser.add_argument("--month", type=int, default=None, help="Billing month (1-12).")
    parser.add_argument("--year", type=int, default=None, help="Billing year.")
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Start the cron scheduler and run until interrupted.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running.",
    )
    parser.add_argument(
        "--actor-id",
        default=None,
        help="Actor UUID for audit columns (default: BILLING_ACTOR_ID env or new UUID).",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    if (args.month is None) != (args.year is None):
        print("ERROR: --month and --year must be given together", file=sys.stderr)
        return 2

    from billing_batch.orchestrator import BatchOrchestrator
    from billing_batch.tasks.invoice_tasks import MONTHLY_INVOICE_TASK
    from billing_config import get_active_config
    from billing_kernel.db.engine import (
        create_tables,
        get_session,
        get_session_factory,
        init_engine_from_url,
    )
    from billing_kernel.logging_config import configure_logging

    try:
        config = get_active_config(args.config)
    except Exception as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=config.logging.level)
    init_engine_from_url(config.database.url, echo=config.database.echo)
    if args.create_tables:
        create_tables()

    actor_id = UUID(args.actor_id or os.environ.get("BILLING_ACTOR_ID", str(uuid4())))
    orchestrator = BatchOrchestrator(config, actor_id=actor_id)

    if args.schedule:
        scheduler = orchestrator.create_scheduler(get_session_factory())
        scheduler.start()
        print(f"Scheduler running (cron '{config.scheduler.invoice_cron}'). Ctrl-C to stop.")
        try:
            while scheduler.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop()
        return 0

    parameters = {}
    if args.month is not None:
        parameters = {"month": args.month, "year": args.year}

    session = get_session()
    try:
        result = orchestrator.create_executor(session).run(MONTHLY_INVOICE_TASK, parameters)
        session.commit()
    except Exception as e:
        session.rollback()
        print(f"ERROR: {e}", file=sys.stderr)
        raise
    finally:
        session.close()

    print(
        f"{result.status.value}: {result.succeeded} generated, "
        f"{result.skipped} skipped, {result.failed} failed "
        f"({result.total_items} schools, {result.duration_ms} ms)"
    )
    for item in result.item_results:
        if item.error_code:
            print(f"  {item.item_key}: {item.status.value} {item.error_code} {item.error_message}")
    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
