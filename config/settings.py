"""
Configuration settings for the Mzima DB Tools project.

This module centralizes all configuration values and provides a single source of truth for all
configurable parameters used by the database maintenance scripts.
"""

import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from sqlalchemy.engine import URL

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def get_env_file() -> str:
    """
    Return the path of the environment file for the current APP_ENV.

    Returns:
        str: `.env.staging` when APP_ENV=staging, otherwise `.env.local`
    """
    if os.getenv("APP_ENV") == "staging":
        return os.path.join(PROJECT_ROOT, ".env.staging")
    return os.path.join(PROJECT_ROOT, ".env.local")


# Load the env file before Config reads os.environ
load_dotenv(get_env_file())


class Config:
    """
    Central configuration class for the Mzima DB Tools project.

    This class consolidates the Supabase project settings, direct database
    connection parameters, file paths and logging parameters.
    """

    APP_NAME: str = "Mzima-DB-Tools"
    APP_VERSION: str = "1.0"
    APP_ENV: str = "production"

    # Supabase project
    SUPABASE_URL: Optional[str] = None
    SERVICE_ROLE_KEY: Optional[str] = None

    # Request Settings
    REQUEST_TIMEOUT: int = 30

    # Direct database connection
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    DB_NAME: str = "postgres"
    DB_USER: str = "postgres"
    DB_PASSWORD: Optional[str] = None

    # File Paths
    BACKUP_DIR: str = "backups"
    MIGRATIONS_DIR: str = os.path.join(PROJECT_ROOT, "sql", "migrations")
    DISCOVERY_REPORT_FILE: str = "table-discovery-report.json"
    ANALYSIS_REPORT_FILE: str = "complete-database-analysis-report.json"
    CLEANUP_PLAN_FILE: str = "soft-delete-cleanup-plan.json"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB
    LOG_BACKUP_COUNT: int = 3
    ARCHIVE_LOG_FILE: str = "logs/table_archive.log"
    MIGRATION_LOG_FILE: str = "logs/migrations.log"
    SCHEMA_BACKUP_LOG_FILE: str = "logs/schema_backup.log"

    def __init__(self):
        """Initialize configuration by loading from environment variables."""
        self._load_from_env()

    def _load_from_env(self):
        """Load configuration values from environment variables."""
        app_env = os.getenv("APP_ENV")
        if app_env:
            self.APP_ENV = app_env

        supabase_url = os.getenv("NEXT_PUBLIC_SUPABASE_URL")
        if supabase_url:
            self.SUPABASE_URL = supabase_url.rstrip("/")

        service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if service_key:
            self.SERVICE_ROLE_KEY = service_key

        # Database settings
        db_password = os.getenv("SUPABASE_DB_PASSWORD")
        if db_password:
            self.DB_PASSWORD = db_password

        db_host = os.getenv("SUPABASE_DB_HOST")
        if db_host:
            self.DB_HOST = db_host

        db_port = os.getenv("SUPABASE_DB_PORT")
        if db_port:
            self.DB_PORT = int(db_port)

        db_name = os.getenv("SUPABASE_DB_NAME")
        if db_name:
            self.DB_NAME = db_name

        db_user = os.getenv("SUPABASE_DB_USER")
        if db_user:
            self.DB_USER = db_user

        # Optional overrides
        request_timeout = os.getenv("REQUEST_TIMEOUT")
        if request_timeout:
            self.REQUEST_TIMEOUT = int(request_timeout)

        backup_dir = os.getenv("BACKUP_DIR")
        if backup_dir:
            self.BACKUP_DIR = backup_dir

        migrations_dir = os.getenv("MIGRATIONS_DIR")
        if migrations_dir:
            self.MIGRATIONS_DIR = migrations_dir

        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            self.LOG_LEVEL = log_level

    @property
    def project_ref(self) -> Optional[str]:
        """Project reference: the first label of the Supabase project host."""
        if not self.SUPABASE_URL:
            return None
        host = urlparse(self.SUPABASE_URL).hostname or ""
        if not host.endswith(".supabase.co"):
            return None
        return host.split(".")[0]

    def get_db_host(self) -> Optional[str]:
        """
        Resolve the direct database host.

        Returns:
            str | None: SUPABASE_DB_HOST if set, else db.<project-ref>.supabase.co
        """
        if self.DB_HOST:
            return self.DB_HOST
        if self.project_ref:
            return f"db.{self.project_ref}.supabase.co"
        return None

    def validate_for_remote_operations(self):
        """
        Validate configuration needed for REST/RPC calls.

        Raises:
            ValueError: If the project URL or service-role key is missing.
        """
        if not self.SUPABASE_URL:
            raise ValueError(
                "NEXT_PUBLIC_SUPABASE_URL environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

        if not self.SERVICE_ROLE_KEY:
            raise ValueError(
                "SUPABASE_SERVICE_ROLE_KEY environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

    def validate_for_database_operations(self):
        """
        Validate configuration needed for a direct database connection.

        Raises:
            ValueError: If the database password or host is missing.
        """
        if not self.DB_PASSWORD:
            raise ValueError(
                "SUPABASE_DB_PASSWORD environment variable is required. "
                "Please set it in your .env.local file or environment."
            )

        if not self.get_db_host():
            raise ValueError(
                "Cannot determine database host. Set SUPABASE_DB_HOST or "
                "NEXT_PUBLIC_SUPABASE_URL."
            )

    def get_database_url(self) -> str:
        """
        Generate database connection URL.

        Credentials are percent-encoded, so passwords may contain @, / or #.

        Returns:
            str: PostgreSQL connection URL
        """
        url = URL.create(
            "postgresql+psycopg2",
            username=self.DB_USER,
            password=self.DB_PASSWORD,
            host=self.get_db_host(),
            port=self.DB_PORT,
            database=self.DB_NAME,
        )
        return url.render_as_string(hide_password=False)


# Global configuration instance
config = Config()
