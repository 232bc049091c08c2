#!/usr/bin/env python3
"""
Cleanup Plan Script

Turns an analysis report into a phased soft-delete plan. Each cleanup
priority becomes one archive phase with its own monitoring period and risk
level:

    phase1  schema backup and monitoring setup (no tables)
    phase2  highPriority tables, 7 days monitoring
    phase3  mediumPriority tables, 14 days monitoring
    phase4  lowPriority tables, requires approval
    phase5  investigate (empty core tables), requires business approval

Usage:
    python scripts/database/cleanup_plan.py
    python scripts/database/cleanup_plan.py --report complete-database-analysis-report.json

The plan is written to soft-delete-cleanup-plan.json. archive_tables.py
accepts it through --from-report and then uses the plan's phase key as the
archive phase label.
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
from scripts.database.table_analysis import PRIORITY_KEYS
from utils.logging import setup_logging

PRIORITY_PHASES = {
    "high": "phase2",
    "medium": "phase3",
    "low": "phase4",
    "investigate": "phase5",
}

PHASES = {
    "phase1": {
        "name": "Schema Backup & Monitoring Setup",
        "description": "Create complete backups and monitoring before any changes",
        "duration": "1-2 days",
        "actions": [
            "Create complete schema backup",
            "Set up table access monitoring",
            "Create restoration instructions",
            "Document all foreign key relationships",
        ],
        "risk": "NONE",
    },
    "phase2": {
        "name": "High Priority Soft Archive",
        "description": "Rename obviously unused tables (land sales, marketing)",
        "duration": "1 week monitoring",
        "actions": [
            "Rename tables with _archived_ prefix",
            "Monitor application for errors",
            "Track any access attempts",
            "Verify application functionality",
        ],
        "risk": "LOW",
        "monitoringPeriod": "7 days",
    },
    "phase3": {
        "name": "Medium Priority Soft Archive",
        "description": "Archive maintenance, notification, audit tables",
        "duration": "2 weeks monitoring",
        "actions": [
            "Rename tables with _archived_ prefix",
            "Extended monitoring period",
            "Check for scheduled jobs or triggers",
            "Verify no background processes use these tables",
        ],
        "risk": "MEDIUM",
        "monitoringPeriod": "14 days",
    },
    "phase4": {
        "name": "Low Priority Investigation",
        "description": "Careful analysis of financial, utility, auth tables",
        "duration": "1 month analysis",
        "actions": [
            "Detailed code analysis for table references",
            "Check migration files for future plans",
            "Consult with development team",
            "Selective archiving based on analysis",
        ],
        "risk": "HIGH",
        "requiresApproval": True,
    },
    "phase5": {
        "name": "Core Table Investigation",
        "description": "Special handling for empty core rental tables",
        "duration": "Ongoing analysis",
        "actions": [
            "Verify if empty state is expected",
            "Check if tables are needed for future features",
            "Consult business requirements",
            "NO ARCHIVING without explicit approval",
        ],
        "risk": "CRITICAL",
        "requiresBusinessApproval": True,
    },
}

SAFETY_MEASURES = {
    "backupStrategy": {
        "fullSchemaBackup": "Column, constraint and index backup (schema_backup.py)",
        "relationshipMapping": "Document all foreign key relationships",
    },
    "monitoringStrategy": {
        "errorTracking": "Monitor application logs for table access errors",
        "accessLogging": "Log any attempts to access archived tables",
        "rollbackTriggers": "Roll back if critical errors are detected",
    },
    "rollbackStrategy": {
        "immediateRollback": "archive_tables.py --rollback <archive-log>",
        "relationshipRestoration": "Recreate foreign key constraints from the backup",
        "verificationTesting": "Run verify_schema.py and test the application",
    },
}


def build_cleanup_plan(report: dict) -> dict:
    """
    Build the phased plan from an analysis report.

    Args:
        report (dict): Report produced by table_analysis.build_report

    Returns:
        dict: timestamp, strategy, totalEmptyTables, phases and safetyMeasures
    """
    phases = {}
    for phase_key, definition in PHASES.items():
        phase = {**definition, "reversible": True}
        phase["actions"] = list(definition["actions"])
        phases[phase_key] = phase

    for priority, phase_key in PRIORITY_PHASES.items():
        strategy = report["cleanupStrategy"].get(PRIORITY_KEYS[priority], {})
        tables = list(strategy.get("tables", []))
        phases[phase_key]["tables"] = tables
        phases[phase_key]["tableCount"] = len(tables)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "strategy": "soft-delete-with-monitoring",
        "totalEmptyTables": report["summary"]["cleanupCandidates"],
        "phases": phases,
        "safetyMeasures": SAFETY_MEASURES,
    }


def is_cleanup_plan(document: dict) -> bool:
    return "phases" in document and "cleanupStrategy" not in document


def plan_phase_tables(
    plan: dict, priority: str, approved: bool = False
) -> tuple[str, list[str]]:
    """
    Return (phase label, tables) for one priority of a plan.

    Raises:
        ValueError: If the priority is unknown, or the phase requires approval
            and approved is False
    """
    if priority not in PRIORITY_PHASES:
        raise ValueError(
            f"Unknown priority '{priority}'. Expected one of: {', '.join(PRIORITY_PHASES)}"
        )

    phase_key = PRIORITY_PHASES[priority]
    phase = plan["phases"][phase_key]
    if phase.get("requiresBusinessApproval"):
        raise ValueError(f"{phase_key} ({phase['name']}) is never archived from a plan")
    if phase.get("requiresApproval") and not approved:
        raise ValueError(
            f"{phase_key} ({phase['name']}) requires approval; re-run with --approved"
        )

    return phase_key, list(phase.get("tables", []))


def write_cleanup_plan(plan: dict, path: str) -> None:
    with open(path, "w") as f:
        json.dump(plan, f, indent=2)


def log_plan_summary(plan: dict, logger: logging.Logger) -> None:
    risk_emoji = {"NONE": "🟢", "LOW": "🟡", "MEDIUM": "🟠", "HIGH": "🔴", "CRITICAL": "🚨"}

    logger.info("=" * 60)
    logger.info(f"📋 Total empty tables to handle: {plan['totalEmptyTables']}")
    for phase_key, phase in plan["phases"].items():
        logger.info(f"{risk_emoji.get(phase['risk'], '❓')} {phase_key}: {phase['name']}")
        logger.info(f"   📊 Tables: {phase.get('tableCount', 'N/A')}")
        logger.info(f"   ⏱️  Duration: {phase['duration']}")
        if phase.get("requiresApproval") or phase.get("requiresBusinessApproval"):
            logger.info("   ⚠️  Requires approval before execution")


def main():
    parser = argparse.ArgumentParser(
        description="Build a phased soft-delete plan from an analysis report"
    )
    parser.add_argument(
        "--report",
        default=config.ANALYSIS_REPORT_FILE,
        metavar="FILE",
        help="Analysis report written by table_analysis.py",
    )
    parser.add_argument(
        "--output",
        default=config.CLEANUP_PLAN_FILE,
        metavar="FILE",
        help="Where to write the plan (JSON)",
    )
    args = parser.parse_args()

    logger = setup_logging(logger_name="cleanup_plan")

    try:
        if not os.path.exists(args.report):
            raise FileNotFoundError(
                f"Analysis report not found: {args.report}. Run table_analysis.py first."
            )
        with open(args.report, "r") as f:
            report = json.load(f)

        plan = build_cleanup_plan(report)
        write_cleanup_plan(plan, args.output)

        log_plan_summary(plan, logger)
        logger.info(f"📄 Cleanup plan saved to: {args.output}")

    except Exception as e:
        logger.error(f"❌ Cleanup plan creation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
