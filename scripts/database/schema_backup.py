#!/usr/bin/env python3
"""
Schema Backup Script

Captures the structure of the public schema before any table is archived or
removed, so a rollback can be checked against a known baseline.

Usage:
    python scripts/database/schema_backup.py
    python scripts/database/schema_backup.py --tables properties units tenants

This will:
1. Back up column definitions for every table in the discovery report (or --tables)
2. Back up foreign key constraints and indexes
3. Write backups/schema-backup-<timestamp>/ containing:
   - complete-schema-backup.json
   - restore-instructions.md
   - monitoring-config.json
   - phase1-completion-report.json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.supabase_client import (
    RemoteCallError,
    SupabaseAdminClient,
    get_supabase_client,
)
from scripts.database.table_analysis import load_table_list
from scripts.database.table_archive import ARCHIVE_PREFIX, rename_table_sql
from utils.logging import setup_schema_backup_logging

COLUMNS_SQL = """
SELECT
  column_name,
  data_type,
  is_nullable,
  column_default,
  character_maximum_length,
  numeric_precision,
  numeric_scale
FROM information_schema.columns
WHERE table_name = '{table_name}'
  AND table_schema = 'public'
ORDER BY ordinal_position
"""

FOREIGN_KEYS_SQL = """
SELECT
  tc.table_name,
  kcu.column_name,
  ccu.table_name AS foreign_table_name,
  ccu.column_name AS foreign_column_name,
  tc.constraint_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
  ON tc.constraint_name = kcu.constraint_name
JOIN information_schema.constraint_column_usage AS ccu
  ON ccu.constraint_name = tc.constraint_name
WHERE tc.constraint_type = 'FOREIGN KEY'
  AND tc.table_schema = 'public'
"""

INDEXES_SQL = """
SELECT schemaname, tablename, indexname, indexdef
FROM pg_indexes
WHERE schemaname = 'public'
"""


ALERT_THRESHOLDS = {
    "errorRate": "More than 5 table access errors per hour",
    "performanceDegradation": "Query performance drops by more than 20%",
    "applicationDowntime": "Any application downtime lasting more than 1 minute",
}


def build_monitoring_config(environment: str) -> dict:
    """Monitoring settings to follow while archived tables are under observation."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": environment,
        "monitoring": {
            "errorTracking": "Monitor application logs for table access errors",
            "performanceMetrics": "Track query performance before and after archiving",
            "accessLogging": "Log attempts to access archived tables",
            "rollbackTriggers": "Roll back if critical errors are detected",
        },
        "alertThresholds": dict(ALERT_THRESHOLDS),
        "rollbackProcedure": {
            "immediate": "python scripts/database/archive_tables.py --rollback <archive-log>",
            "verification": "python scripts/database/verify_schema.py",
            "documentation": "Document what went wrong and lessons learned",
        },
    }


def _sql_literal(value: str) -> str:
    return value.replace("'", "''")


class SchemaBackup:
    """Collect schema metadata through exec_sql and write it to disk."""

    def __init__(
        self, client: SupabaseAdminClient, logger: logging.Logger | None = None
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def backup_table_columns(self, tables: list[str]) -> dict:
        """Column definitions per table; tables that fail are logged and skipped."""
        self.logger.info("📊 Backing up table schemas...")
        backed_up = {}

        for table_name in tables:
            try:
                columns = self.client.exec_sql(
                    COLUMNS_SQL.format(table_name=_sql_literal(table_name))
                )
            except RemoteCallError as e:
                self.logger.warning(f"❌ {table_name}: schema backup error - {e.message}")
                continue

            if not columns:
                self.logger.warning(f"⚠️  {table_name}: no columns found")
                continue

            backed_up[table_name] = {
                "columns": columns,
                "backupTimestamp": datetime.now(timezone.utc).isoformat(),
            }
            self.logger.info(f"✅ {table_name}: {len(columns)} columns backed up")

        return backed_up

    def backup_foreign_keys(self) -> list[dict]:
        self.logger.info("🔗 Backing up foreign key constraints...")
        try:
            constraints = self.client.exec_sql(FOREIGN_KEYS_SQL) or []
        except RemoteCallError as e:
            self.logger.warning(f"⚠️  Foreign key backup error: {e.message}")
            return []

        self.logger.info(f"✅ {len(constraints)} foreign key constraints backed up")
        return constraints

    def backup_indexes(self) -> list[dict]:
        self.logger.info("📇 Backing up indexes...")
        try:
            indexes = self.client.exec_sql(INDEXES_SQL) or []
        except RemoteCallError as e:
            self.logger.warning(f"⚠️  Index backup error: {e.message}")
            return []

        self.logger.info(f"✅ {len(indexes)} indexes backed up")
        return indexes

    def create_backup(self, tables: list[str]) -> dict:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": config.APP_ENV,
            "supabaseUrl": self.client.base_url,
            "description": "Complete schema backup before soft delete operations",
            "tables": self.backup_table_columns(tables),
            "constraints": {"foreignKeys": self.backup_foreign_keys()},
            "indexes": self.backup_indexes(),
        }


def render_restore_instructions(backup: dict, phase: str | None = None) -> str:
    """
    Render markdown with the rename-back statement for every backed-up table.

    Args:
        backup (dict): Output of SchemaBackup.create_backup
        phase (str, optional): Phase label to show concrete archived names for
    """
    label = phase or "<phase>"
    lines = [
        "# Schema Restore Instructions",
        "",
        f"Backup taken: {backup['timestamp']} ({backup['environment']})",
        "",
        "## Roll back archived tables",
        "",
        "Run through exec_sql, or with",
        "`python scripts/database/archive_tables.py --rollback <archive-log>`:",
        "",
        "```sql",
    ]
    for table_name in sorted(backup["tables"]):
        archived = f"{ARCHIVE_PREFIX}{label}_{table_name}"
        lines.append(rename_table_sql(archived, table_name))
    lines += [
        "```",
        "",
        "## Recreate foreign keys",
        "",
        "Compare `constraints.foreignKeys` in complete-schema-backup.json with:",
        "",
        "```sql",
        FOREIGN_KEYS_SQL.strip() + ";",
        "```",
        "",
        "## Recreate indexes",
        "",
        "Each entry in `indexes` carries its full `indexdef`:",
        "",
        "```sql",
    ]
    for index in backup["indexes"]:
        lines.append(f"{index['indexdef']};")
    lines += ["```", ""]
    return "\n".join(lines)


def write_backup(backup: dict, backup_dir: str, phase: str | None = None) -> dict:
    """
    Write the backup, restore instructions, monitoring config and completion report.

    Returns:
        dict: The completion report, including the paths written
    """
    stamp = backup["timestamp"].replace(":", "-").replace(".", "-")
    target_dir = os.path.join(backup_dir, f"schema-backup-{stamp}")
    os.makedirs(target_dir, exist_ok=True)

    schema_file = os.path.join(target_dir, "complete-schema-backup.json")
    with open(schema_file, "w") as f:
        json.dump(backup, f, indent=2, default=str)

    instructions_file = os.path.join(target_dir, "restore-instructions.md")
    with open(instructions_file, "w") as f:
        f.write(render_restore_instructions(backup, phase))

    monitoring_file = os.path.join(target_dir, "monitoring-config.json")
    with open(monitoring_file, "w") as f:
        json.dump(build_monitoring_config(backup["environment"]), f, indent=2)

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "phase": "Schema Backup",
        "status": "COMPLETED",
        "environment": backup["environment"],
        "deliverables": {
            "schemaBackup": schema_file,
            "restoreInstructions": instructions_file,
            "monitoringConfig": monitoring_file,
        },
        "statistics": {
            "tablesBackedUp": len(backup["tables"]),
            "constraintsBackedUp": len(backup["constraints"]["foreignKeys"]),
            "indexesBackedUp": len(backup["indexes"]),
        },
    }
    report_file = os.path.join(target_dir, "phase1-completion-report.json")
    with open(report_file, "w") as f:
        json.dump(report, f, indent=2)

    report["deliverables"]["completionReport"] = report_file
    return report


def main():
    parser = argparse.ArgumentParser(description="Back up the public schema structure")
    parser.add_argument("--tables", nargs="+", metavar="TABLE", help="Tables to back up")
    parser.add_argument(
        "--discovery-report",
        default=config.DISCOVERY_REPORT_FILE,
        metavar="FILE",
        help="Table list written by table_discovery.py (used when --tables is omitted)",
    )
    parser.add_argument(
        "--phase",
        default=None,
        help="Phase label to use in the restore instructions",
    )
    parser.add_argument("--backup-dir", default=config.BACKUP_DIR)
    args = parser.parse_args()

    logger = setup_schema_backup_logging()

    try:
        logger.info("🚀 Starting schema backup...")
        logger.info(f"🌍 Environment: {config.APP_ENV}")

        tables = args.tables or load_table_list(args.discovery_report)
        backup = SchemaBackup(get_supabase_client(logger), logger).create_backup(tables)
        report = write_backup(backup, args.backup_dir, args.phase)

        stats = report["statistics"]
        logger.info("=" * 60)
        logger.info(f"✅ Schema backup: {stats['tablesBackedUp']} tables")
        logger.info(f"✅ Constraints backup: {stats['constraintsBackedUp']} foreign keys")
        logger.info(f"✅ Indexes backup: {stats['indexesBackedUp']} indexes")
        for path in report["deliverables"].values():
            logger.info(f"   📄 {path}")

    except Exception as e:
        logger.error(f"❌ Schema backup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
