#!/usr/bin/env python3
"""
Seed the default activity types (Chill, Food, Active, Study) for users that have none.

Usage:
  python scripts/seed_activity_types.py            # every user
  python scripts/seed_activity_types.py --user-id <id> [--user-id <id> ...]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from activity_types.core.logging_setup import configure_logging  # noqa: E402
from activity_types.db.create_tables import create_all  # noqa: E402
from activity_types.services.activity_type_service import ActivityTypeService  # noqa: E402


def main() -> None:
    ap = argparse.ArgumentParser(description="Seed default activity types")
    ap.add_argument("--user-id", action="append", default=[], help="only seed this user (repeatable)")
    ap.add_argument("--create-tables", action="store_true", help="create the schema before seeding")
    args = ap.parse_args()

    configure_logging()
    if args.create_tables:
        create_all()

    svc = ActivityTypeService()
    if not args.user_id:
        stats = svc.initialize_all_users()
        print(f"OK: {stats['initialized']} initialized, {stats['skipped']} skipped, {stats['failed']} failed")
        return

    for user_id in args.user_id:
        created = svc.initialize_default_activity_types(user_id.strip())
        if created:
            print(f"  {user_id}: {', '.join(item.title for item in created)}")
        else:
            print(f"  {user_id}: already has activity types, skipped")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
