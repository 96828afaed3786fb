#!/usr/bin/env python3
"""
Rebuild school trainer rosters from posting history.

Every school's roster is recomputed from its active continue/change_school
postings.  Differences are printed and, unless --dry-run is given,
committed.

Usage:
    python3 scripts/reconcile_rosters.py [--school-id UUID] [--dry-run]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile school rosters with postings.")
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML.")
    parser.add_argument("--school-id", type=UUID, default=None, help="Only this school.")
    parser.add_argument("--dry-run", action="store_true", help="Report without committing.")
    args = parser.parse_args()

    from billing_config import get_active_config
    from billing_kernel.db.engine import get_session, init_engine_from_url
    from billing_kernel.logging_config import configure_logging
    from billing_modules._orm_registry import import_all_orm_models
    from billing_modules.posting.roster import RosterSynchronizer

    config = get_active_config(args.config)
    configure_logging(level=config.logging.level)
    init_engine_from_url(config.database.url, echo=config.database.echo)
    import_all_orm_models()

    session = get_session()
    try:
        changes = RosterSynchronizer(session).reconcile(school_id=args.school_id)
        if args.dry_run:
            session.rollback()
        else:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if not changes:
        print("All rosters consistent.")
        return 0

    for school_id, (added, removed) in changes.items():
        print(f"{school_id}: +{len(added)} -{len(removed)}")
        for employee_id in sorted(map(str, added)):
            print(f"  added   {employee_id}")
        for employee_id in sorted(map(str, removed)):
            print(f"  removed {employee_id}")
    print("Dry run, nothing committed." if args.dry_run else f"{len(changes)} school(s) repaired.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
