"""
Shared test fixtures and configuration for the Mzima DB Tools test suite.

This file contains pytest fixtures that can be used across all test modules.
Fixtures defined here are automatically available to all test files.
"""

import logging
import os
from unittest.mock import MagicMock, Mock

import pytest

from scripts.database.supabase_client import SupabaseAdminClient


@pytest.fixture(autouse=True)
def setup_test_environment():
    """
    Set up test environment variables.

    This fixture automatically runs before each test so configuration built
    inside a test sees a complete, fake Supabase project.
    """
    defaults = {
        "NEXT_PUBLIC_SUPABASE_URL": "https://abcdefghijkl.supabase.co",
        "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
        "SUPABASE_DB_PASSWORD": "test_password",
    }
    added = [key for key in defaults if not os.getenv(key)]
    for key in added:
        os.environ[key] = defaults[key]

    yield

    for key in added:
        del os.environ[key]


@pytest.fixture
def mock_logger():
    """Provide a Mock logger so tests can assert on logged messages."""
    return Mock(spec=logging.Logger)


@pytest.fixture
def mock_client():
    """
    Provide a Mock SupabaseAdminClient.

    exec_sql returns an empty list by default, which is what the remote
    helper returns for DDL statements such as ALTER TABLE.
    """
    client = Mock(spec=SupabaseAdminClient)
    client.base_url = "https://abcdefghijkl.supabase.co"
    client.exec_sql.return_value = []
    return client


@pytest.fixture
def mock_db_engine():
    """
    Provide a mock SQLAlchemy engine.

    Returns a Mock engine with both connect() and begin() context managers
    configured. Use this to avoid real database connections.
    """
    mock_engine = MagicMock()
    mock_connection = MagicMock()
    mock_result = MagicMock()

    mock_engine.connect.return_value.__enter__.return_value = mock_connection
    mock_engine.connect.return_value.__exit__.return_value = None
    mock_engine.begin.return_value.__enter__.return_value = mock_connection
    mock_engine.begin.return_value.__exit__.return_value = None

    mock_connection.execute.return_value = mock_result
    mock_result.fetchone.return_value = None
    mock_result.fetchall.return_value = []

    return mock_engine


@pytest.fixture
def sample_analyses():
    """
    Provide per-table analyses as produced by TableAnalyzer.analyze_table.

    Covers active and empty tables across several categories plus one
    inaccessible table.
    """
    return [
        {
            "tableName": "properties",
            "rowCount": 12,
            "accessible": True,
            "hasData": True,
            "sampleColumns": ["id", "name"],
            "category": "core-rental-active",
        },
        {
            "tableName": "tenants",
            "rowCount": 0,
            "accessible": True,
            "hasData": False,
            "sampleColumns": [],
            "category": "core-rental-empty",
        },
        {
            "tableName": "land_parcels",
            "rowCount": 0,
            "accessible": True,
            "hasData": False,
            "sampleColumns": [],
            "category": "land-sales-empty",
        },
        {
            "tableName": "marketing_campaigns",
            "rowCount": 0,
            "accessible": True,
            "hasData": False,
            "sampleColumns": [],
            "category": "marketing-empty",
        },
        {
            "tableName": "maintenance_requests",
            "rowCount": 0,
            "accessible": True,
            "hasData": False,
            "sampleColumns": [],
            "category": "maintenance-empty",
        },
        {
            "tableName": "bank_accounts",
            "rowCount": 0,
            "accessible": True,
            "hasData": False,
            "sampleColumns": [],
            "category": "financial-empty",
        },
        {
            "tableName": "rent_invoices",
            "rowCount": 30,
            "accessible": True,
            "hasData": True,
            "sampleColumns": ["id", "amount"],
            "category": "core-rental-active",
        },
        {
            "tableName": "view_occupancy",
            "rowCount": 4,
            "accessible": True,
            "hasData": True,
            "sampleColumns": ["unit_id"],
            "category": "view",
        },
        {
            "tableName": "secret_stuff",
            "rowCount": None,
            "accessible": False,
            "error": "permission denied",
            "category": "error",
        },
    ]
