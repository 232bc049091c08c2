#!/usr/bin/env python3
"""
Table Archive Script

Archives (renames) a batch of tables under a phase label, or rolls a previous
batch back from its archive log. Archived tables keep their data; they are
only hidden from normal application queries under `_archived_{phase}_{table}`.

Usage:
    # Archive explicit tables
    python scripts/database/archive_tables.py --phase phase2 --tables parcels plots

    # Archive the high-priority tables of an analysis report
    python scripts/database/archive_tables.py --phase phase2 \\
        --from-report complete-database-analysis-report.json --priority high

    # Archive phase 3 of a cleanup plan (the phase label comes from the plan)
    python scripts/database/archive_tables.py \\
        --from-report soft-delete-cleanup-plan.json --priority medium

    # Show what would be renamed
    python scripts/database/archive_tables.py --phase phase2 --tables parcels --dry-run

    # Roll back a batch
    python scripts/database/archive_tables.py --rollback backups/archive-log-phase2-<ts>.json

Tables are processed one at a time. A failed rename is logged and counted and
the loop continues; the script exits with code 1 if anything failed.
"""

from __future__ import annotations

import argparse
import json
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.cleanup_plan import (
    PRIORITY_PHASES,
    is_cleanup_plan,
    plan_phase_tables,
)
from scripts.database.supabase_client import get_supabase_client
from scripts.database.table_analysis import cleanup_tables
from scripts.database.table_archive import (
    DEFAULT_PHASE,
    ArchiveBatchResult,
    TableArchiver,
    load_archive_log,
    write_archive_log,
)
from utils.logging import setup_archive_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Archive tables by renaming them, or roll an archive batch back"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--tables",
        nargs="+",
        metavar="TABLE",
        help="Tables to archive",
    )
    source.add_argument(
        "--from-report",
        metavar="FILE",
        help="Analysis report (table_analysis.py) or cleanup plan (cleanup_plan.py)",
    )
    source.add_argument(
        "--rollback",
        metavar="LOGFILE",
        help="Archive log to roll back",
    )
    parser.add_argument(
        "--phase",
        default=None,
        help=(
            "Phase label used in archived names (default: the plan phase for "
            f"--from-report, otherwise {DEFAULT_PHASE})"
        ),
    )
    parser.add_argument(
        "--priority",
        choices=["high", "medium", "low"],
        default="high",
        help="Cleanup priority to take from --from-report (default: high)",
    )
    parser.add_argument(
        "--approved",
        action="store_true",
        help="Confirm approval for plan phases that require it",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the planned renames without sending them",
    )
    parser.add_argument(
        "--backup-dir",
        default=config.BACKUP_DIR,
        help=f"Directory for archive logs (default: {config.BACKUP_DIR})",
    )
    return parser.parse_args(argv)


def resolve_tables(args: argparse.Namespace) -> tuple[str, list[str]]:
    """
    Return (phase label, tables) to archive.

    Tables from --from-report are archived under the plan phase for the
    chosen priority unless --phase is given.
    """
    if args.tables:
        return args.phase or DEFAULT_PHASE, args.tables

    with open(args.from_report, "r") as f:
        report = json.load(f)

    if is_cleanup_plan(report):
        phase, tables = plan_phase_tables(report, args.priority, args.approved)
    else:
        phase, tables = PRIORITY_PHASES[args.priority], cleanup_tables(report, args.priority)
    return args.phase or phase, tables


def log_batch_summary(result: ArchiveBatchResult, action: str, logger) -> None:
    logger.info("=" * 60)
    if result.planned:
        logger.info(f"📋 {len(result.planned)} renames planned (dry run, nothing sent)")
    else:
        logger.info(f"✅ {action} succeeded: {result.success_count}")

    logger.info(f"❌ {action} failed: {result.failure_count}")
    for name, message in result.failures.items():
        logger.error(f"   {name!r}: {message}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger = setup_archive_logging()

    try:
        archiver = TableArchiver(get_supabase_client(logger), logger)

        if args.rollback:
            records = load_archive_log(args.rollback)
            logger.info(f"🔄 Rolling back {len(records)} records from {args.rollback}")
            result = archiver.rollback_records(records, dry_run=args.dry_run)
            action = "Rollback"
            phase = f"rollback-{records[0].phase or DEFAULT_PHASE}" if records else "rollback"
        else:
            phase, tables = resolve_tables(args)
            if not tables:
                logger.warning("No tables to archive")
                return 0

            logger.info(f"📦 Archiving {len(tables)} tables under phase '{phase}'")
            result = archiver.archive_tables(tables, phase, dry_run=args.dry_run)
            action = "Archive"

        if result.records:
            log_path = write_archive_log(result.records, phase, args.backup_dir)
            logger.info(f"📄 Archive log saved to: {log_path}")

        log_batch_summary(result, action, logger)
        return 1 if result.failures else 0

    except Exception as e:
        logger.error(f"❌ Archive operation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
