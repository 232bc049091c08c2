#!/usr/bin/env python3
"""
Migration Runner Script

Runs the SQL files in sql/migrations/ against the project database in
filename order, recording each run in a schema_migrations table so files
that already succeeded are skipped.

Usage:
    python scripts/database/run_migrations.py
    python scripts/database/run_migrations.py --dry-run
    python scripts/database/run_migrations.py --migrations-dir path/to/sql

Each file runs in its own transaction. The runner stops at the first failed
file and exits with code 1.
"""

from __future__ import annotations

import argparse
import glob
import logging
import os
import sys
import time
from dataclasses import dataclass

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import config
from scripts.database.supabase_client import get_postgres_engine
from utils.logging import setup_migration_logging

MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id SERIAL PRIMARY KEY,
    migration_name VARCHAR(255) UNIQUE NOT NULL,
    executed_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
    success BOOLEAN DEFAULT true,
    error_message TEXT,
    execution_time_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_schema_migrations_name
ON schema_migrations(migration_name);
"""

RECORD_MIGRATION_SQL = """
INSERT INTO schema_migrations (migration_name, success, error_message, execution_time_ms)
VALUES (:name, :success, :error_message, :execution_time_ms)
ON CONFLICT (migration_name) DO UPDATE SET
    executed_at = NOW(),
    success = EXCLUDED.success,
    error_message = EXCLUDED.error_message,
    execution_time_ms = EXCLUDED.execution_time_ms
"""


@dataclass
class Migration:
    name: str
    path: str


@dataclass
class MigrationSummary:
    success: int = 0
    skipped: int = 0
    failed: int = 0


class MigrationRunner:
    """Apply SQL migration files in order with run tracking."""

    def __init__(
        self,
        engine: Engine,
        migrations_dir: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self.engine = engine
        self.migrations_dir = migrations_dir or config.MIGRATIONS_DIR
        self.logger = logger or logging.getLogger(__name__)

    def get_migration_files(self) -> list[Migration]:
        """
        List migration files sorted by filename.

        Raises:
            FileNotFoundError: If the migrations directory does not exist
        """
        if not os.path.isdir(self.migrations_dir):
            raise FileNotFoundError(
                f"Migrations directory not found: {self.migrations_dir}"
            )

        paths = sorted(glob.glob(os.path.join(self.migrations_dir, "*.sql")))
        return [
            Migration(name=os.path.splitext(os.path.basename(p))[0], path=p)
            for p in paths
        ]

    def ensure_migrations_table(self) -> None:
        self.logger.info("Ensuring migrations tracking table exists...")
        with self.engine.begin() as conn:
            conn.execute(text(MIGRATIONS_TABLE_SQL))

    def is_migration_executed(self, name: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                text(
                    "SELECT 1 FROM schema_migrations "
                    "WHERE migration_name = :name AND success = true"
                ),
                {"name": name},
            )
            return result.fetchone() is not None

    def _record(
        self,
        name: str,
        success: bool,
        execution_time_ms: int,
        error_message: str | None = None,
    ) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(RECORD_MIGRATION_SQL),
                    {
                        "name": name,
                        "success": success,
                        "error_message": error_message,
                        "execution_time_ms": execution_time_ms,
                    },
                )
        except SQLAlchemyError as e:
            self.logger.warning(f"Could not record migration {name}: {e}")

    def execute_migration(self, migration: Migration) -> bool:
        """
        Run one migration file in a single transaction and record the outcome.

        Returns:
            bool: True if the file applied cleanly
        """
        self.logger.info(f"Executing migration: {migration.name}")
        start = time.monotonic()

        try:
            with open(migration.path, "r") as f:
                sql = f.read().strip()

            if not sql:
                raise ValueError(f"Migration file is empty: {migration.path}")

            with self.engine.begin() as conn:
                conn.execute(text(sql))

        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            self._record(migration.name, False, elapsed_ms, str(e))
            self.logger.error(f"❌ Migration {migration.name} failed: {e}")
            return False

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self._record(migration.name, True, elapsed_ms)
        self.logger.info(f"✅ Migration {migration.name} completed in {elapsed_ms}ms")
        return True

    def pending_migrations(self) -> list[Migration]:
        return [
            m
            for m in self.get_migration_files()
            if not self.is_migration_executed(m.name)
        ]

    def run(self) -> MigrationSummary:
        """
        Apply every pending migration, stopping at the first failure.

        Returns:
            MigrationSummary: Counts of applied, skipped and failed files
        """
        summary = MigrationSummary()
        migrations = self.get_migration_files()

        if not migrations:
            self.logger.warning("No migration files found")
            return summary

        self.logger.info(f"Found {len(migrations)} migration files")
        self.ensure_migrations_table()

        for migration in migrations:
            if self.is_migration_executed(migration.name):
                self.logger.info(f"⏭️  Skipping {migration.name} (already executed)")
                summary.skipped += 1
                continue

            if self.execute_migration(migration):
                summary.success += 1
            else:
                summary.failed += 1
                break

        return summary


def main():
    parser = argparse.ArgumentParser(description="Run pending SQL migrations")
    parser.add_argument(
        "--migrations-dir",
        default=config.MIGRATIONS_DIR,
        help="Directory containing *.sql migration files",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending migrations without running them",
    )
    args = parser.parse_args()

    logger = setup_migration_logging()

    try:
        logger.info("🚀 Starting migrations...")
        runner = MigrationRunner(get_postgres_engine(), args.migrations_dir, logger)

        if args.dry_run:
            runner.ensure_migrations_table()
            pending = runner.pending_migrations()
            logger.info(f"📋 {len(pending)} pending migrations:")
            for migration in pending:
                logger.info(f"   - {migration.name}")
            return

        summary = runner.run()

        logger.info("=" * 60)
        logger.info(f"✅ Successful: {summary.success}")
        logger.info(f"⏭️  Skipped: {summary.skipped}")
        logger.info(f"❌ Failed: {summary.failed}")

        if summary.failed:
            logger.error("Some migrations failed. Please check the errors above.")
            sys.exit(1)

        logger.info("🎉 All migrations completed successfully!")

    except Exception as e:
        logger.error(f"❌ Migration run failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
