#!/usr/bin/env python3
"""
Archived Table Removal Script

Permanently drops the tables archived under one phase, after their
monitoring period is over. Only names of the form `_archived_{phase}_*` are
ever dropped.

Usage:
    # List what would be dropped
    python scripts/database/remove_archived_tables.py --phase phase2

    # Drop them
    python scripts/database/remove_archived_tables.py --phase phase2 --confirm

Without --confirm the script only lists the tables. All drops for a phase run
in one transaction.
"""

import argparse
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import Engine, inspect, text

from scripts.database.supabase_client import get_postgres_engine
from scripts.database.table_archive import parse_archived_name, quote_identifier
from utils.logging import setup_archive_logging


def find_archived_tables(engine: Engine, phase: str) -> list[str]:
    """Return archived table names belonging to exactly this phase."""
    return sorted(
        t
        for t in inspect(engine).get_table_names(schema="public")
        if parse_archived_name(t, phase) is not None
    )


def drop_tables(engine: Engine, tables: list[str], logger) -> None:
    """
    Drop tables in a single transaction.

    Raises:
        Exception: If any drop fails; no table is dropped in that case
    """
    with engine.begin() as conn:
        for table_name in tables:
            conn.execute(text(f"DROP TABLE IF EXISTS {quote_identifier(table_name)} CASCADE"))
            logger.info(f"Dropped table: {table_name}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Drop the tables archived under a phase")
    parser.add_argument("--phase", required=True, help="Phase label to remove")
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually drop the tables (otherwise only list them)",
    )
    args = parser.parse_args(argv)

    logger = setup_archive_logging()

    try:
        engine = get_postgres_engine()
        tables = find_archived_tables(engine, args.phase)

        if not tables:
            logger.info(f"No archived tables found for phase '{args.phase}'")
            return 0

        logger.info(f"📦 {len(tables)} archived tables in phase '{args.phase}':")
        for table_name in tables:
            logger.info(f"   - {table_name}")

        if not args.confirm:
            logger.warning("Nothing dropped. Re-run with --confirm to drop these tables.")
            return 0

        drop_tables(engine, tables, logger)
        logger.info(f"✅ Removed {len(tables)} archived tables")
        return 0

    except Exception as e:
        logger.error(f"❌ Table removal failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
