#!/usr/bin/env python3
"""
Create the billing schema.

Uses the database URL from the active configuration (``billing_config``),
or ``--database-url`` when given.  ``--drop`` drops every billing table
first, which destroys all data.

Usage:
  python3 scripts/create_schema.py [--database-url URL] [--drop]
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the billing database schema")
    p.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: database_url from the active config)",
    )
    p.add_argument(
        "--drop",
        action="store_true",
        help="Drop all billing tables before creating them",
    )
    return p.parse_args()


def main() -> int:
    args = _parse_args()

    from sqlalchemy.engine import make_url

    from billing_config import get_active_config
    from billing_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        reset_engine,
    )

    config = get_active_config()
    url = args.database_url or config.database_url
    shown = make_url(url).render_as_string(hide_password=True)

    init_engine_from_url(url, echo=config.sql_echo)
    try:
        if args.drop:
            print(f"Dropping billing tables on {shown} ...")
            drop_tables()
        create_tables()
    finally:
        reset_engine()

    print(f"Schema ready on {shown}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
