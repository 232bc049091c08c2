#!/usr/bin/env python3
"""
Table Discovery Script

Finds every table in the project's public schema by combining several
methods, since no single one is guaranteed to work with the service-role
credential:

1. Catalog query on information_schema.tables through exec_sql
2. Relation names from the REST API's OpenAPI document
3. Probing a list of candidate table names one at a time

Usage:
    python scripts/database/table_discovery.py
    python scripts/database/table_discovery.py --skip-probe

The sorted union is written to table-discovery-report.json, which
table_analysis.py and schema_backup.py read.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Callable
from datetime import datetime, timezone

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config
from scripts.database.supabase_client import (
    RemoteCallError,
    SupabaseAdminClient,
    get_supabase_client,
)
from utils.logging import setup_logging

CATALOG_TABLES_SQL = """
SELECT table_name
FROM information_schema.tables
WHERE table_schema = 'public'
  AND table_type = 'BASE TABLE'
ORDER BY table_name
"""

# Names commonly used by the property-management application
CANDIDATE_TABLES = [
    # Core rental management
    "properties", "units", "tenants", "tenancy_agreements", "rent_invoices",
    "payments", "property_users", "landlords", "notifications",
    "user_invitations", "profiles",
    # Land and sales
    "parcels", "subdivisions", "plots", "clients", "listings",
    "sale_agreements", "land_parcels", "land_subdivisions",
    "property_listings", "sales_clients",
    # Users
    "users", "user_profiles", "enhanced_users", "user_roles", "roles",
    "permissions", "user_permissions", "role_permissions",
    # Documents and media
    "documents", "document_versions", "document_types", "attachments",
    "media", "property_media", "property_images",
    # Maintenance
    "maintenance_requests", "work_orders", "inspections", "vendors",
    # Finance
    "invoices", "expenses", "transactions", "accounts", "bank_accounts",
    "tax_records", "expense_categories", "income_transactions",
    # Property features
    "amenities", "property_amenities", "unit_types",
    # Utilities
    "utility_readings", "utility_bills", "meter_readings", "shared_meters",
    # Leasing
    "leases", "lease_agreements", "rental_applications",
    # Communication
    "messages", "email_templates", "notification_settings",
    "notification_history",
    # Marketing
    "marketing_campaigns", "leads", "inquiries",
    # Settings
    "settings", "system_settings", "user_preferences",
    # Audit
    "audit_logs", "activity_logs", "access_logs",
    # Geographic
    "addresses", "locations", "zones",
    # Emergency
    "emergency_contacts",
    # Deposits and fees
    "security_deposits", "refunds", "late_fees", "fee_schedules",
    # Staff
    "staff", "agents", "property_managers",
]


class TableDiscovery:
    """Discover tables through several independent methods."""

    def __init__(
        self, client: SupabaseAdminClient, logger: logging.Logger | None = None
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def from_catalog(self) -> list[str] | None:
        """Query information_schema.tables via exec_sql; None on failure."""
        self.logger.info("🔍 Method 1: catalog query via exec_sql...")
        try:
            rows = self.client.exec_sql(CATALOG_TABLES_SQL)
        except RemoteCallError as e:
            self.logger.warning(f"Catalog query failed: {e.message}")
            return None

        tables = [row["table_name"] for row in rows or []]
        self.logger.info(f"Found {len(tables)} tables via catalog query")
        return tables

    def from_openapi(self) -> list[str] | None:
        """Read relation names from the REST OpenAPI document; None on failure."""
        self.logger.info("🔍 Method 2: REST OpenAPI definitions...")
        try:
            tables = self.client.list_exposed_tables()
        except RemoteCallError as e:
            self.logger.warning(f"OpenAPI listing failed: {e.message}")
            return None

        self.logger.info(f"Found {len(tables)} relations via OpenAPI")
        return tables

    def from_candidates(self, candidates: list[str] | None = None) -> list[str]:
        """Probe each candidate name with a one-row select."""
        candidates = candidates if candidates is not None else CANDIDATE_TABLES
        self.logger.info(f"🔍 Method 3: probing {len(candidates)} candidate names...")

        found = []
        for i, table_name in enumerate(dict.fromkeys(candidates), start=1):
            if i % 50 == 0:
                self.logger.info(
                    f"Progress: {i}/{len(candidates)} checked, {len(found)} found"
                )

            try:
                self.client.select(table_name, limit=1)
            except RemoteCallError:
                continue

            found.append(table_name)
            self.logger.debug(f"Found: {table_name}")

        self.logger.info(f"Probing found {len(found)} tables")
        return found

    def discover(self, probe: bool = True) -> list[str]:
        """
        Run every method and return the sorted union of table names.

        Args:
            probe (bool): Include the candidate-name probe
        """
        methods: list[Callable[[], list[str] | None]] = [
            self.from_catalog,
            self.from_openapi,
        ]
        if probe:
            methods.append(self.from_candidates)

        discovered: set[str] = set()
        for method in methods:
            tables = method()
            if tables:
                discovered.update(tables)
                self.logger.info(f"Running total: {len(discovered)} unique tables")

        return sorted(discovered)


def write_discovery_report(tables: list[str], path: str, methods: list[str]) -> dict:
    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "totalDiscovered": len(tables),
        "discoveredTables": tables,
        "methods": methods,
    }
    with open(path, "w") as f:
        json.dump(report, f, indent=2)
    return report


def main():
    parser = argparse.ArgumentParser(description="Discover tables in the public schema")
    parser.add_argument(
        "--output",
        default=config.DISCOVERY_REPORT_FILE,
        metavar="FILE",
        help="Where to write the discovery report (JSON)",
    )
    parser.add_argument(
        "--skip-probe",
        action="store_true",
        help="Skip probing candidate table names",
    )
    args = parser.parse_args()

    logger = setup_logging(logger_name="table_discovery")

    try:
        logger.info("🚀 Starting table discovery...")
        discovery = TableDiscovery(get_supabase_client(logger), logger)
        tables = discovery.discover(probe=not args.skip_probe)

        methods = ["catalog query", "openapi definitions"]
        if not args.skip_probe:
            methods.append("candidate probe")
        write_discovery_report(tables, args.output, methods)

        logger.info("=" * 60)
        logger.info(f"📋 Total unique tables discovered: {len(tables)}")
        for i, table in enumerate(tables, start=1):
            logger.info(f"   {i:02d}. {table}")
        logger.info(f"📄 Discovery report saved to: {args.output}")

    except Exception as e:
        logger.error(f"❌ Table discovery failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
