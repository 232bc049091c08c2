"""
Supabase Admin Client for Mzima DB Tools

This module wraps the hosted backend's REST surface (PostgREST) with a small,
blocking client authenticated by the service-role credential. It is shared
by every maintenance script that talks to the remote project.

Key Features:
- Raw SQL execution through the `exec_sql` remote procedure
- Generic RPC calls
- Row select/insert/delete and exact row counts on exposed tables
- Table listing from the REST OpenAPI document
- A single error type (RemoteCallError) for every failed remote call

It also provides get_postgres_engine() for scripts that need a direct
database connection (migrations, schema verification).

Example Usage:
    client = get_supabase_client()
    rows = client.exec_sql("SELECT table_name FROM information_schema.tables")
    total = client.count_rows("properties")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import requests
from sqlalchemy import Engine, create_engine

sys.path.append(os.path.join(os.path.dirname(__file__), "..", ".."))

from config.settings import config


class RemoteCallError(Exception):
    """A remote call to the backend failed or returned an error payload."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


def get_supabase_client(logger: logging.Logger | None = None) -> SupabaseAdminClient:
    """
    Create a SupabaseAdminClient using configuration.

    Returns:
        SupabaseAdminClient: Client authenticated with the service-role key

    Raises:
        ValueError: If the project URL or service-role key is missing
    """
    config.validate_for_remote_operations()
    return SupabaseAdminClient(
        config.SUPABASE_URL,
        config.SERVICE_ROLE_KEY,
        timeout=config.REQUEST_TIMEOUT,
        logger=logger,
    )


def get_postgres_engine() -> Engine:
    """
    Create a SQLAlchemy engine for the project's Postgres database.

    Returns:
        Engine: SQLAlchemy engine instance

    Raises:
        ValueError: If any required configuration is missing
    """
    config.validate_for_database_operations()
    return create_engine(config.get_database_url())


class SupabaseAdminClient:
    """
    Blocking REST client for a Supabase project using the service-role key.

    Every method issues exactly one HTTP request. Failures are never retried;
    they surface as RemoteCallError.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: int | None = None,
        logger: logging.Logger | None = None,
    ):
        if not base_url or not service_key:
            raise ValueError("Both base_url and service_key are required")

        self.base_url = base_url.rstrip("/")
        self.rest_url = f"{self.base_url}/rest/v1"
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.logger = logger or logging.getLogger(__name__)
        self.session = requests.Session()

        self.session.headers.update(
            {
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
                "User-Agent": f"{config.APP_NAME}/{config.APP_VERSION}",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> requests.Response:
        url = f"{self.rest_url}/{path.lstrip('/')}"
        self.logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RemoteCallError(f"Request to {path} failed: {e!s}") from e

        if not response.ok:
            raise self._error_from_response(response)

        return response

    @staticmethod
    def _error_from_response(response: requests.Response) -> RemoteCallError:
        message = response.reason or f"HTTP {response.status_code}"
        code = None
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error") or message
            code = payload.get("code")

        return RemoteCallError(message, status_code=response.status_code, code=code)

    @staticmethod
    def _decode(response: requests.Response, empty: Any = None) -> Any:
        """Decode a successful JSON body; a body that is not JSON is a RemoteCallError."""
        if not response.content:
            return empty
        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(
                f"Response body is not valid JSON: {e!s}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _eq_filters(filters: dict | None) -> dict:
        return {column: f"eq.{value}" for column, value in (filters or {}).items()}

    # ====================================
    # RPC
    # ====================================

    def rpc(self, function_name: str, params: dict | None = None) -> Any:
        """
        Call a remote procedure.

        Args:
            function_name (str): Name of the Postgres function
            params (dict, optional): Named arguments for the function

        Returns:
            Any: Decoded JSON result, or None for an empty body
        """
        response = self._request("POST", f"rpc/{function_name}", json=params or {})
        return self._decode(response)

    def exec_sql(self, sql: str) -> Any:
        """
        Execute a raw SQL statement through the `exec_sql` procedure.

        Args:
            sql (str): SQL statement

        Returns:
            Any: Rows as a list of dicts for queries, the procedure's result otherwise

        Raises:
            RemoteCallError: If the procedure is missing or the statement fails
        """
        return self.rpc("exec_sql", {"sql": sql})

    # ====================================
    # TABLE ACCESS
    # ====================================

    def select(
        self,
        table: str,
        columns: str = "*",
        limit: int | None = None,
        filters: dict | None = None,
    ) -> list[dict]:
        params = {"select": columns, **self._eq_filters(filters)}
        if limit is not None:
            params["limit"] = limit
        return self._decode(self._request("GET", table, params=params), empty=[])

    def count_rows(self, table: str) -> int:
        """
        Return the exact row count of a table without fetching rows.

        Args:
            table (str): Table name

        Returns:
            int: Number of rows

        Raises:
            RemoteCallError: If the table is not accessible or no count is returned
        """
        response = self._request(
            "HEAD",
            table,
            params={"select": "*"},
            headers={"Prefer": "count=exact"},
        )
        content_range = response.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise RemoteCallError(
                f"No exact count returned for {table} (Content-Range: '{content_range}')",
                status_code=response.status_code,
            )
        return int(total)

    def insert(self, table: str, rows: dict | list[dict]) -> list[dict]:
        response = self._request(
            "POST",
            table,
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._decode(response, empty=[])

    def delete(self, table: str, filters: dict) -> list[dict]:
        """
        Delete rows matching all equality filters.

        Raises:
            ValueError: If no filters are given (PostgREST would reject it anyway)
        """
        if not filters:
            raise ValueError(f"Refusing to delete from {table} without filters")

        response = self._request(
            "DELETE",
            table,
            params=self._eq_filters(filters),
            headers={"Prefer": "return=representation"},
        )
        return self._decode(response, empty=[])

    def list_exposed_tables(self) -> list[str]:
        """
        List relations exposed by the REST API via its OpenAPI document.

        Returns:
            list[str]: Sorted relation names from the `definitions` section
        """
        document = self._decode(self._request("GET", ""))
        return sorted((document or {}).get("definitions", {}).keys())
