#!/usr/bin/env python3
"""
Table Analysis Script

Analyzes every discovered table (row count, sample columns), assigns each one
a functional category and builds a prioritized cleanup strategy for empty
tables. The resulting report feeds archive_tables.py --from-report.

Usage:
    python scripts/database/table_analysis.py
    python scripts/database/table_analysis.py --discovery-report table-discovery-report.json

This will:
1. Load the table list written by table_discovery.py
2. Count rows and sample columns for each table
3. Categorize tables and group empty ones into cleanup priorities
4. Save a JSON report and a CSV of per-table results
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone

import pandas as pd

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.supabase_client import (
    RemoteCallError,
    SupabaseAdminClient,
    get_supabase_client,
)
from utils.logging import setup_logging

CORE_RENTAL_TABLES = {
    "properties",
    "units",
    "tenants",
    "tenancy_agreements",
    "rent_invoices",
    "payments",
    "property_users",
    "landlords",
    "active_leases",
}

# Checked in order; the first family with a matching substring wins
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    (
        "land-sales",
        (
            "parcel", "subdivision", "plot", "sale", "purchase", "handover",
            "acquisition", "client", "listing", "offer", "reservation",
            "transfer", "title", "survey", "encumbrance", "wayleave", "easement",
        ),
    ),
    (
        "user-auth",
        (
            "user", "auth", "profile", "permission", "role", "invitation",
            "access", "security", "agent",
        ),
    ),
    (
        "financial",
        (
            "payment", "invoice", "receipt", "expense", "commission", "ledger",
            "mpesa", "bank", "recon", "allocation", "installment",
        ),
    ),
    ("utility", ("utility", "meter", "shared_meter")),
    ("maintenance", ("maintenance", "ticket", "task", "reminder")),
    ("notification", ("notification", "template", "history")),
    ("document-media", ("document", "media", "amenities")),
    ("audit-log", ("audit", "log", "activity", "event", "dispute")),
    ("geographic", ("geography", "geometry", "spatial", "zone", "rate")),
]

BASE_CATEGORIES = [
    "core-rental",
    "land-sales",
    "user-auth",
    "financial",
    "utility",
    "maintenance",
    "notification",
    "document-media",
    "audit-log",
    "geographic",
    "marketing",
    "unknown",
]

ALL_CATEGORIES = (
    [f"{base}-{state}" for base in BASE_CATEGORIES for state in ("active", "empty")]
    + ["view", "error"]
)

CLEANUP_PRIORITIES = {
    "highPriority": (
        ["land-sales-empty", "document-media-empty", "marketing-empty"],
        "Safe to remove - land sales, unused documents, marketing tables",
    ),
    "mediumPriority": (
        ["maintenance-empty", "notification-empty", "audit-log-empty", "unknown-empty"],
        "Likely safe to remove - maintenance, notifications, audit logs",
    ),
    "lowPriority": (
        ["financial-empty", "utility-empty", "user-auth-empty", "geographic-empty"],
        "Investigate before removal - financial, utility, user auth tables",
    ),
    "investigate": (
        ["core-rental-empty"],
        "Core rental tables that are empty - verify if this is expected",
    ),
}

PRIORITY_KEYS = {
    "high": "highPriority",
    "medium": "mediumPriority",
    "low": "lowPriority",
    "investigate": "investigate",
}


def categorize_table(table_name: str, row_count: int | None) -> str:
    """
    Assign a functional category to a table.

    Args:
        table_name (str): Table name (case-insensitive)
        row_count (int | None): Exact row count, None if unknown

    Returns:
        str: `<family>-active`, `<family>-empty`, `view`, or `unknown` when
        neither a family nor the row count is known
    """
    name = table_name.lower()

    def with_state(family: str) -> str:
        return f"{family}-active" if row_count else f"{family}-empty"

    if name in CORE_RENTAL_TABLES:
        return with_state("core-rental")

    for family, keywords in CATEGORY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return with_state(family)

    if name.startswith("view_") or "_view" in name:
        return "view"

    if "marketing" in name or "lead" in name:
        return with_state("marketing")

    if row_count is None:
        return "unknown"
    return with_state("unknown")


class TableAnalyzer:
    """Collect per-table statistics through the REST API."""

    def __init__(
        self, client: SupabaseAdminClient, logger: logging.Logger | None = None
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def analyze_table(self, table_name: str) -> dict:
        """
        Count rows and sample columns of one table.

        Returns:
            dict: Analysis with category "error" when the table is inaccessible
        """
        try:
            row_count = self.client.count_rows(table_name)
        except RemoteCallError as e:
            return {
                "tableName": table_name,
                "rowCount": None,
                "accessible": False,
                "error": e.message,
                "category": "error",
            }

        try:
            sample = self.client.select(table_name, limit=1)
        except RemoteCallError as e:
            self.logger.warning(f"Could not sample {table_name}: {e.message}")
            sample = []

        return {
            "tableName": table_name,
            "rowCount": row_count,
            "accessible": True,
            "hasData": row_count > 0,
            "sampleColumns": list(sample[0].keys()) if sample else [],
            "category": categorize_table(table_name, row_count),
        }

    def analyze_tables(self, table_names: list[str]) -> list[dict]:
        analyses = []
        for i, table_name in enumerate(table_names, start=1):
            analysis = self.analyze_table(table_name)
            analyses.append(analysis)

            if analysis["accessible"]:
                self.logger.info(
                    f"📈 {table_name}: {analysis['rowCount']} rows, {analysis['category']}"
                )
            else:
                self.logger.warning(f"❌ {table_name}: {analysis['error']}")

            if i % 20 == 0:
                self.logger.info(f"Progress: {i}/{len(table_names)} tables analyzed")

        return analyses


def analyses_to_frame(analyses: list[dict]) -> pd.DataFrame:
    """Tabulate analyses, mapping categories outside ALL_CATEGORIES to unknown-active."""
    df = pd.DataFrame(
        analyses, columns=["tableName", "rowCount", "accessible", "category"]
    )
    df["category"] = df["category"].where(
        df["category"].isin(ALL_CATEGORIES), "unknown-active"
    )
    df["rowCount"] = pd.to_numeric(df["rowCount"], errors="coerce")
    return df


def build_report(analyses: list[dict]) -> dict:
    """
    Build the cleanup report from per-table analyses.

    Returns:
        dict: timestamp, summary, breakdown, cleanupStrategy and rawData
    """
    df = analyses_to_frame(analyses)
    total_tables = len(df)
    total_rows = int(df["rowCount"].fillna(0).sum())

    breakdown = {category: [] for category in ALL_CATEGORIES}
    for category, group in df.groupby("category", sort=False):
        breakdown[category] = group["tableName"].tolist()

    cleanup_candidates = int(df["category"].str.endswith("-empty").sum())
    cleanup_percentage = (
        round(cleanup_candidates / total_tables * 100) if total_tables else 0
    )

    cleanup_strategy = {}
    for key, (categories, description) in CLEANUP_PRIORITIES.items():
        tables = [t for category in categories for t in breakdown[category]]
        cleanup_strategy[key] = {
            "count": len(tables),
            "tables": tables,
            "description": description,
        }

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "totalTables": total_tables,
            "totalRows": total_rows,
            "cleanupCandidates": cleanup_candidates,
            "cleanupPercentage": cleanup_percentage,
            "activeTables": total_tables
            - cleanup_candidates
            - len(breakdown["view"])
            - len(breakdown["error"]),
        },
        "breakdown": breakdown,
        "cleanupStrategy": cleanup_strategy,
        "rawData": analyses,
    }


def cleanup_tables(report: dict, priority: str) -> list[str]:
    """
    Return the table names for one cleanup priority of a report.

    Args:
        report (dict): Report produced by build_report
        priority (str): high, medium, low or investigate

    Raises:
        ValueError: If the priority is unknown
    """
    if priority not in PRIORITY_KEYS:
        raise ValueError(
            f"Unknown priority '{priority}'. Expected one of: {', '.join(PRIORITY_KEYS)}"
        )
    return list(report["cleanupStrategy"][PRIORITY_KEYS[priority]]["tables"])


def load_table_list(discovery_report: str) -> list[str]:
    if not os.path.exists(discovery_report):
        raise FileNotFoundError(
            f"Table discovery report not found: {discovery_report}. "
            "Run table_discovery.py first."
        )
    with open(discovery_report, "r") as f:
        return json.load(f)["discoveredTables"]


def log_summary(report: dict, logger: logging.Logger) -> None:
    summary = report["summary"]
    logger.info("=" * 60)
    logger.info(f"📋 Total tables: {summary['totalTables']}")
    logger.info(f"📊 Total rows: {summary['totalRows']:,}")
    logger.info(
        f"🗑️  Cleanup candidates: {summary['cleanupCandidates']} ({summary['cleanupPercentage']}%)"
    )
    logger.info(f"✅ Active tables: {summary['activeTables']}")

    for key, strategy in report["cleanupStrategy"].items():
        logger.info(f"   {key} ({strategy['count']} tables): {strategy['description']}")


def main():
    parser = argparse.ArgumentParser(
        description="Analyze discovered tables and build a cleanup report"
    )
    parser.add_argument(
        "--discovery-report",
        default=config.DISCOVERY_REPORT_FILE,
        metavar="FILE",
        help="Table list written by table_discovery.py",
    )
    parser.add_argument(
        "--output",
        default=config.ANALYSIS_REPORT_FILE,
        metavar="FILE",
        help="Where to write the analysis report (JSON)",
    )
    args = parser.parse_args()

    logger = setup_logging(logger_name="table_analysis")

    try:
        tables = load_table_list(args.discovery_report)
        logger.info(f"🚀 Analyzing {len(tables)} discovered tables...")

        analyzer = TableAnalyzer(get_supabase_client(logger), logger)
        report = build_report(analyzer.analyze_tables(tables))

        with open(args.output, "w") as f:
            json.dump(report, f, indent=2)

        csv_path = os.path.splitext(args.output)[0] + ".csv"
        analyses_to_frame(report["rawData"]).to_csv(csv_path, index=False)

        log_summary(report, logger)
        logger.info(f"📄 Report saved to: {args.output}")

    except Exception as e:
        logger.error(f"❌ Table analysis failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
