#!/usr/bin/env python3
"""
Schema Verification Script

This script verifies that the database still carries what the application and
the maintenance scripts rely on, and lists every table currently archived.

Usage:
    python scripts/database/verify_schema.py

This will:
1. Connect to the database
2. Verify the core rental tables exist
3. Verify the exec_sql helper and the schema_migrations table exist
4. Report archived tables grouped by phase
"""

import os
import sys
from collections import defaultdict

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from scripts.database.supabase_client import get_postgres_engine
from scripts.database.table_analysis import CORE_RENTAL_TABLES
from scripts.database.table_archive import ARCHIVE_PREFIX, parse_archived_name
from utils.logging import setup_logging


def setup_verification_logging():
    """Set up logging for the verification process."""
    return setup_logging(
        log_level="INFO",
        log_file="logs/schema_verification.log",
        logger_name="schema_verification",
    )


def verify_table_structure(engine, logger) -> bool:
    """
    Verify that all core rental relations exist and none of them is archived.

    Views count as present, since some core relations (active_leases) are views.
    """
    logger.info("🔍 Verifying table structure...")

    all_correct = True

    try:
        inspector = inspect(engine)
        existing_tables = set(inspector.get_table_names(schema="public"))
        existing_views = set(inspector.get_view_names(schema="public"))

        for table_name in sorted(CORE_RENTAL_TABLES):
            if table_name in existing_tables:
                logger.info(f"✅ Table {table_name} - Found")
            elif table_name in existing_views:
                logger.info(f"✅ View {table_name} - Found")
            elif any(
                t.startswith(ARCHIVE_PREFIX) and t.endswith(f"_{table_name}")
                for t in existing_tables
            ):
                logger.error(f"❌ Table {table_name} - Archived")
                all_correct = False
            else:
                logger.error(f"❌ Table {table_name} - Missing")
                all_correct = False

    except Exception as e:
        logger.error(f"❌ Error checking tables: {e}")
        all_correct = False

    return all_correct


def verify_exec_sql_function(engine, logger) -> bool:
    """Verify that the exec_sql helper used by the REST scripts is installed."""
    logger.info("🔍 Verifying exec_sql function...")

    try:
        with engine.connect() as conn:
            result = conn.execute(
                text(
                    """
                SELECT p.proname
                FROM pg_proc p
                JOIN pg_namespace n ON n.oid = p.pronamespace
                WHERE n.nspname = 'public'
                    AND p.proname = 'exec_sql'
            """
                )
            )

            if result.fetchone():
                logger.info("✅ public.exec_sql - Found")
                return True

            logger.error("❌ public.exec_sql - Missing (run run_migrations.py)")
            return False

    except Exception as e:
        logger.error(f"❌ Error checking exec_sql: {e}")
        return False


def verify_migrations_table(engine, logger) -> bool:
    """Verify that migration tracking exists and has no failed runs."""
    logger.info("🔍 Verifying schema_migrations...")

    try:
        if not inspect(engine).has_table("schema_migrations", schema="public"):
            logger.error("❌ schema_migrations - Missing")
            return False

        with engine.connect() as conn:
            failed = [
                row[0]
                for row in conn.execute(
                    text(
                        "SELECT migration_name FROM schema_migrations "
                        "WHERE success = false ORDER BY migration_name"
                    )
                )
            ]

        if failed:
            logger.error(f"❌ Failed migrations recorded: {', '.join(failed)}")
            return False

        logger.info("✅ schema_migrations - No failed runs")
        return True

    except Exception as e:
        logger.error(f"❌ Error checking schema_migrations: {e}")
        return False


def report_archived_tables(engine, logger) -> dict[str, list[str]]:
    """
    Group archived tables by phase.

    Returns:
        dict[str, list[str]]: phase -> original table names
    """
    archived: dict[str, list[str]] = defaultdict(list)

    for table_name in sorted(inspect(engine).get_table_names(schema="public")):
        parsed = parse_archived_name(table_name)
        if parsed:
            phase, original = parsed
            archived[phase].append(original)

    if not archived:
        logger.info("📦 No archived tables")
    for phase, tables in archived.items():
        logger.info(f"📦 Phase {phase}: {len(tables)} archived ({', '.join(tables)})")

    return dict(archived)


def main():
    """Main function to verify the schema."""
    logger = setup_verification_logging()

    try:
        logger.info("🚀 Starting schema verification...")

        engine = get_postgres_engine()

        checks = [
            ("Table Structure", verify_table_structure),
            ("exec_sql Function", verify_exec_sql_function),
            ("Migration Tracking", verify_migrations_table),
        ]

        all_passed = True

        for check_name, check_func in checks:
            logger.info(f"📋 Running {check_name} check...")
            if not check_func(engine, logger):
                all_passed = False
                logger.error(f"❌ {check_name} check failed")
            else:
                logger.info(f"✅ {check_name} check passed")

        report_archived_tables(engine, logger)

        logger.info("=" * 60)
        if all_passed:
            logger.info("🎉 ALL CHECKS PASSED! Schema verification successful!")
        else:
            logger.error("❌ SOME CHECKS FAILED! Please review the errors above")
            sys.exit(1)

    except Exception as e:
        logger.error(f"❌ Schema verification failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
